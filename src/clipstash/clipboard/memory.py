"""In-process clipboard used for tests and headless sessions."""

from __future__ import annotations

import threading
from typing import Optional, Sequence

from clipstash.capture.models import Representation

from .base import ClipboardBackend


class InMemoryClipboard(ClipboardBackend):
    """Thread-safe clipboard held in memory."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._representations: list[Representation] = []
        self._change_counter = 0
        self.write_count = 0

    def current_change_counter(self) -> int:
        with self._lock:
            return self._change_counter

    def available_types(self) -> list[str]:
        with self._lock:
            return [rep.type for rep in self._representations]

    def read(self, type_id: str) -> Optional[bytes]:
        with self._lock:
            for rep in self._representations:
                if rep.type == type_id:
                    return rep.data
        return None

    def write(self, representations: Sequence[Representation]) -> None:
        with self._lock:
            self._representations = list(representations)
            self._change_counter += 1
            self.write_count += 1

    def clear(self) -> None:
        with self._lock:
            self._representations = []
            self._change_counter += 1

    def copy(self, *representations: Representation) -> None:
        """Simulate another application copying ``representations``."""
        with self._lock:
            self._representations = list(representations)
            self._change_counter += 1

    def copy_text(self, text: str) -> None:
        """Simulate another application copying plain text."""
        self.copy(Representation(type="text/plain;charset=utf-8", data=text.encode("utf-8")))
