"""Blob store errors."""


class StoreError(Exception):
    """Base exception for blob store operations."""


class MigrationError(StoreError):
    """Raised when legacy history data cannot be converted."""
