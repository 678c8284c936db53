"""Salesboard models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin, SheetSyncMixin
from .sheet_connection import SheetConnection, SHEET_TYPES
from .credential import SheetCredential
from .profile import Profile
from .lead import Lead
from .appointment import Appointment
from .call import Call
from .deal import Deal
from .sync_operation import SyncOperation

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "SheetSyncMixin",
    "SheetConnection",
    "SHEET_TYPES",
    "SheetCredential",
    "Profile",
    "Lead",
    "Appointment",
    "Call",
    "Deal",
    "SyncOperation",
]
