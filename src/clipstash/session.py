"""Composition root wiring the store, engine and detector together."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional
from uuid import UUID

from clipstash.capture import CapturePipeline, ClipboardItem, ContentCategory
from clipstash.clipboard import ClipboardBackend, get_clipboard_backend
from clipstash.config import ClipstashConfig
from clipstash.history import HistoryEngine
from clipstash.store import BlobStore
from clipstash.watch import ChangeDetector

LOGGER = logging.getLogger(__name__)


class ClipboardSession:
    """Own one store, engine and detector for the lifetime of a process.

    Construction loads the index. With ``maintenance`` it first migrates the
    legacy format and afterwards removes orphaned blobs; only the process that
    owns the history (the watcher) should do that, because another process may
    have written blobs it has not indexed yet.

    The clipboard backend and the detector are built on first use, so commands
    that only read the history work without a clipboard tool. The detector's
    baseline is the clipboard's counter at that moment, so whatever is already
    on the clipboard is not captured.
    """

    def __init__(
        self,
        config: ClipstashConfig,
        *,
        clipboard: Optional[ClipboardBackend] = None,
        store: Optional[BlobStore] = None,
        maintenance: bool = False,
        paused: bool = False,
        interval: Optional[float] = None,
        on_capture: Optional[Callable[[ClipboardItem], None]] = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Resolved configuration.
            clipboard: Clipboard backend; chosen from ``config.capture.backend`` on first use when omitted.
            store: Blob store; rooted at ``config.storage.directory`` when omitted.
            maintenance: Run legacy migration and orphan cleanup at startup.
            paused: Start with capturing paused.
            interval: Poll interval override in seconds.
            on_capture: Callback invoked with each recorded item.
        """
        self.config = config
        self.store = store or BlobStore(Path(config.storage.directory))
        self._clipboard = clipboard
        self._detector: Optional[ChangeDetector] = None
        self._paused = paused
        self._interval = interval if interval is not None else config.capture.poll_interval_seconds
        self._on_capture = on_capture

        migrated = self.store.migrate_from_legacy_format() if maintenance else 0
        items = self.store.load_index()
        if maintenance:
            self.store.cleanup_orphans(item.id for item in items)
        LOGGER.debug("Loaded %d history item(s) (%d migrated)", len(items), migrated)

        history = config.history
        self.engine = HistoryEngine(
            self.store,
            clipboard,
            items=items,
            max_items=history.max_items,
            max_total_size_bytes=history.max_total_size_bytes,
            excluded_categories=history.excluded_categories,
            settle_seconds=config.capture.restore_settle_seconds,
        )
        self.pipeline = CapturePipeline(max_capture_bytes=config.capture.max_capture_size_mb * 1024 * 1024)

    @property
    def clipboard(self) -> ClipboardBackend:
        """Return the clipboard backend, creating it on first access.

        Raises:
            ClipboardError: If the configured backend is unavailable.
        """
        if self._clipboard is None:
            self._clipboard = get_clipboard_backend(self.config.capture.backend)
        return self._clipboard

    @property
    def detector(self) -> ChangeDetector:
        """Return the change detector, creating it on first access.

        Raises:
            ClipboardError: If the configured backend is unavailable.
        """
        if self._detector is None:
            self._detector = ChangeDetector(
                self.clipboard,
                self.engine,
                self.pipeline,
                interval=self._interval,
                paused=self._paused,
                on_capture=self._on_capture,
            )
        return self._detector

    def __enter__(self) -> "ClipboardSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def list_items(
        self,
        category: Optional[ContentCategory] = None,
        query: Optional[str] = None,
    ) -> list[ClipboardItem]:
        """Return history items, most recent first."""
        return self.engine.list_items(category=category, query=query)

    def find(self, reference: str) -> ClipboardItem:
        """Resolve an id or unique id prefix."""
        return self.engine.find(reference)

    def restore(self, item_id: UUID) -> bool:
        """Write a stored item back to the clipboard.

        Raises:
            ClipboardError: If the backend is unavailable or rejects the write.
        """
        self.engine.clipboard = self.clipboard
        return self.engine.restore(item_id)

    def remove(self, item_id: UUID) -> ClipboardItem:
        """Delete one item."""
        return self.engine.remove(item_id)

    def remove_all(self) -> int:
        """Delete the whole history."""
        return self.engine.remove_all()

    def toggle_pause(self) -> bool:
        """Flip capture pausing and return the new state."""
        return self.detector.toggle_pause()

    def update_configuration(
        self,
        max_items: Optional[int] = None,
        max_total_size_bytes: Optional[int] = None,
        excluded_categories: Optional[Iterable[ContentCategory]] = None,
    ) -> list[UUID]:
        """Apply new retention limits; returns evicted ids."""
        return self.engine.update_configuration(
            max_items=max_items,
            max_total_size_bytes=max_total_size_bytes,
            excluded_categories=excluded_categories,
        )

    def flush(self) -> None:
        """Wait for pending writes."""
        self.store.flush()

    def close(self) -> None:
        """Stop polling and let pending writes finish."""
        if self._detector is not None:
            self._detector.stop()
        self.engine.close()
        self.store.close()


__all__ = ["ClipboardSession"]
