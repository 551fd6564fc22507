"""Clipboard change detection."""

from .detector import ChangeDetector, TickOutcome

__all__ = ["ChangeDetector", "TickOutcome"]
