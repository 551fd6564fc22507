"""Abstract clipboard service consumed by the capture and restore paths."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from clipstash.capture.models import Representation


class ClipboardError(Exception):
    """Raised when the system clipboard cannot be accessed."""


class ClipboardBackend(ABC):
    """Minimal view of a system clipboard.

    Implementations expose a change counter that increases every time the
    clipboard contents change, including changes made through ``write``.
    """

    name = "abstract"

    @abstractmethod
    def current_change_counter(self) -> int:
        """Return the clipboard's monotonically increasing change counter."""

    @abstractmethod
    def available_types(self) -> list[str]:
        """Return the type identifiers currently offered, in preference order."""

    @abstractmethod
    def read(self, type_id: str) -> Optional[bytes]:
        """Return the payload for ``type_id``, or ``None`` if it is unavailable."""

    @abstractmethod
    def write(self, representations: Sequence[Representation]) -> None:
        """Replace the clipboard contents with ``representations``."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all clipboard contents."""
