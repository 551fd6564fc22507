"""Exceptions raised by the history engine."""

from __future__ import annotations


class HistoryError(Exception):
    """Base class for history lookup and mutation errors."""


class ItemNotFoundError(HistoryError):
    """Raised when an id or id prefix does not identify exactly one item."""
