"""Sheet -> store synchronization pipeline."""
