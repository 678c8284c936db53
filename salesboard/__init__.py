"""Salesboard - sales pipeline dashboard with Google Sheets synchronization."""
