"""Polling change detector feeding captures into the history engine."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from clipstash.capture.models import ClipboardItem
    from clipstash.capture.pipeline import CapturePipeline
    from clipstash.clipboard import ClipboardBackend
    from clipstash.history import HistoryEngine

LOGGER = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5


class TickOutcome(str, Enum):
    """Result of a single detector tick."""

    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    EMPTY = "empty"
    CAPTURED = "captured"
    FAILED = "failed"


class ChangeDetector:
    """Poll the clipboard's change counter and capture new snapshots.

    The recorded counter always advances on change, even while paused or while
    a restore is settling, so those changes are never captured later.
    """

    def __init__(
        self,
        clipboard: "ClipboardBackend",
        engine: "HistoryEngine",
        pipeline: "CapturePipeline",
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        paused: bool = False,
        on_capture: Optional[Callable[["ClipboardItem"], None]] = None,
    ) -> None:
        """Initialize the detector.

        Args:
            clipboard: Clipboard to poll.
            engine: History engine receiving captures.
            pipeline: Capture pipeline building items from the clipboard.
            interval: Seconds between ticks.
            paused: Start with capturing paused.
            on_capture: Optional callback invoked with each recorded item.
        """
        self._clipboard = clipboard
        self._engine = engine
        self._pipeline = pipeline
        self.interval = max(0.05, interval)
        self._paused = paused
        self._on_capture = on_capture
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_counter = clipboard.current_change_counter()

    @property
    def paused(self) -> bool:
        """Return whether capturing is paused."""
        return self._paused

    @paused.setter
    def paused(self, value: bool) -> None:
        self._paused = value
        LOGGER.info("Capturing %s", "paused" if value else "resumed")

    @property
    def last_counter(self) -> int:
        """Return the most recently observed change counter."""
        return self._last_counter

    @property
    def running(self) -> bool:
        """Return whether the polling thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def toggle_pause(self) -> bool:
        """Flip the paused flag and return the new value."""
        self.paused = not self._paused
        return self._paused

    def reset_baseline(self) -> None:
        """Treat the clipboard's current contents as already seen."""
        self._last_counter = self._clipboard.current_change_counter()

    def tick(self, *, force: bool = False) -> TickOutcome:
        """Run one detection cycle.

        Args:
            force: Capture even if the counter has not moved since the last tick.

        Returns:
            TickOutcome: What the cycle did.
        """
        try:
            counter = self._clipboard.current_change_counter()
        except Exception:
            LOGGER.exception("Failed to read the clipboard change counter")
            return TickOutcome.FAILED
        if counter == self._last_counter and not force:
            return TickOutcome.UNCHANGED
        self._last_counter = counter

        if self._paused or self._engine.is_restoring:
            LOGGER.debug("Ignoring clipboard change %d (paused=%s)", counter, self._paused)
            return TickOutcome.SKIPPED

        try:
            captured = self._pipeline.capture(self._clipboard)
            if captured is None:
                return TickOutcome.EMPTY
            item, representations = captured
            if not self._engine.insert(item, representations):
                return TickOutcome.SKIPPED
        except Exception:
            LOGGER.exception("Capture failed for clipboard change %d", counter)
            return TickOutcome.FAILED

        if self._on_capture is not None:
            try:
                self._on_capture(item)
            except Exception:
                LOGGER.exception("Capture callback failed for item %s", item.id)
        return TickOutcome.CAPTURED

    def run(self) -> None:
        """Tick until :meth:`stop` is called."""
        self._stop_event.clear()
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.interval)

    def start(self) -> None:
        """Start polling on a background thread."""
        if self.running:
            raise RuntimeError("ChangeDetector is already running.")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="clipstash-detector", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop scheduling ticks; a tick in progress finishes first."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None


__all__ = ["ChangeDetector", "TickOutcome", "DEFAULT_POLL_INTERVAL"]
