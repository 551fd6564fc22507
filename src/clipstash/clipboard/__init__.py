"""System clipboard access."""

from .base import ClipboardBackend, ClipboardError
from .command import CommandClipboard, preferred_representation
from .factory import get_clipboard_backend
from .memory import InMemoryClipboard

__all__ = [
    "ClipboardBackend",
    "ClipboardError",
    "CommandClipboard",
    "InMemoryClipboard",
    "get_clipboard_backend",
    "preferred_representation",
]
