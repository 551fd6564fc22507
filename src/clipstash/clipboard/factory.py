"""Clipboard backend selection."""

from __future__ import annotations

from .base import ClipboardBackend, ClipboardError
from .command import CommandClipboard
from .memory import InMemoryClipboard


def get_clipboard_backend(name: str = "auto") -> ClipboardBackend:
    """Return the clipboard backend called ``name``.

    Args:
        name: ``auto``, ``wayland``, ``x11`` or ``memory``.

    Raises:
        ClipboardError: If the requested backend is unknown or unavailable.
    """
    normalized = (name or "auto").lower()
    if normalized == "memory":
        return InMemoryClipboard()
    if normalized in ("wayland", "x11"):
        return CommandClipboard(normalized)
    if normalized == "auto":
        return CommandClipboard.detect()
    raise ClipboardError(f"Unsupported clipboard backend '{name}'.")
