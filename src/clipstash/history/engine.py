"""Ordered clipboard history with dedup, eviction and restore."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from typing import TYPE_CHECKING, Iterable, Optional, Sequence
from uuid import UUID

from clipstash.capture.models import ClipboardItem, ContentCategory, Representation
from clipstash.clipboard.base import ClipboardError

from .errors import ItemNotFoundError

if TYPE_CHECKING:
    from clipstash.clipboard import ClipboardBackend
    from clipstash.store import BlobStore

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 50
DEFAULT_MAX_TOTAL_SIZE_BYTES = 1024 * 1024 * 1024
DEFAULT_SETTLE_SECONDS = 0.5


class HistoryEngine:
    """Keep the most-recent-first history and persist every mutation.

    The in-memory list is authoritative for the running session. Persistence
    goes through the blob store's background queue; failures there are logged
    by the store and never surface here.
    """

    def __init__(
        self,
        store: "BlobStore",
        clipboard: Optional["ClipboardBackend"] = None,
        *,
        items: Sequence[ClipboardItem] = (),
        max_items: int = DEFAULT_MAX_ITEMS,
        max_total_size_bytes: int = DEFAULT_MAX_TOTAL_SIZE_BYTES,
        excluded_categories: Iterable[ContentCategory] = (),
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Blob store used for persistence.
            clipboard: Clipboard that restored items are written to. Restoring
                without one raises :class:`ClipboardError`.
            items: Previously persisted history, most recent first.
            max_items: Maximum number of retained items.
            max_total_size_bytes: Maximum combined ``total_size`` of retained items.
            excluded_categories: Categories that are never recorded.
            settle_seconds: Delay before the restoring flag clears after a restore.
        """
        self._store = store
        self.clipboard = clipboard
        self._items: list[ClipboardItem] = list(items)
        self.max_items = max_items
        self.max_total_size_bytes = max_total_size_bytes
        self.excluded_categories = frozenset(excluded_categories)
        self.settle_seconds = settle_seconds
        self._lock = threading.RLock()
        self._restoring = False
        self._restore_generation = 0
        self._settle_timer: Optional[threading.Timer] = None

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    @property
    def is_restoring(self) -> bool:
        """Return whether a restore is settling."""
        return self._restoring

    @property
    def items(self) -> list[ClipboardItem]:
        """Return a snapshot of the history, most recent first."""
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def list_items(
        self,
        category: Optional[ContentCategory] = None,
        query: Optional[str] = None,
    ) -> list[ClipboardItem]:
        """Return history items, optionally filtered.

        Args:
            category: Only return items of this category.
            query: Case-insensitive substring matched against the preview text.

        Returns:
            list[ClipboardItem]: Matching items, most recent first.
        """
        needle = query.casefold() if query else None
        return [
            item
            for item in self.items
            if (category is None or item.category == category)
            and (needle is None or needle in item.preview_text.casefold())
        ]

    def get(self, item_id: UUID) -> ClipboardItem:
        """Return the item with ``item_id``.

        Raises:
            ItemNotFoundError: If no item has that id.
        """
        with self._lock:
            for item in self._items:
                if item.id == item_id:
                    return item
        raise ItemNotFoundError(f"No history item with id {item_id}")

    def find(self, reference: str) -> ClipboardItem:
        """Resolve a full id or a unique id prefix to an item.

        Raises:
            ItemNotFoundError: If nothing matches or the prefix is ambiguous.
        """
        prefix = reference.strip().lower()
        if not prefix:
            raise ItemNotFoundError("An item id is required")
        matches = [item for item in self.items if str(item.id).startswith(prefix)]
        if not matches:
            raise ItemNotFoundError(f"No history item matches '{reference}'")
        if len(matches) > 1:
            raise ItemNotFoundError(f"'{reference}' matches {len(matches)} items; use a longer prefix")
        return matches[0]

    def total_size(self) -> int:
        """Return the combined size of all retained items."""
        return sum(item.total_size for item in self.items)

    def category_counts(self) -> dict[ContentCategory, int]:
        """Return the number of retained items per category."""
        counts = Counter(item.category for item in self.items)
        return {category: counts[category] for category in ContentCategory if counts[category]}

    # ------------------------------------------------------------------ #
    # Mutations                                                          #
    # ------------------------------------------------------------------ #

    def insert(self, item: ClipboardItem, representations: Sequence[Representation]) -> bool:
        """Record a new capture at the front of the history.

        An existing item with the same content hash is replaced rather than
        duplicated. Caps are enforced after insertion.

        Returns:
            bool: ``False`` when the item's category is excluded.
        """
        if item.category in self.excluded_categories:
            LOGGER.debug("Skipping capture in excluded category %s", item.category.value)
            return False

        with self._lock:
            removed = [existing.id for existing in self._items if existing.content_hash == item.content_hash]
            if removed:
                self._items = [existing for existing in self._items if existing.id not in removed]
            self._items.insert(0, item)
            removed.extend(self._enforce_limits())
            snapshot = list(self._items)

        self._store.save_blobs(item.id, representations, item.thumbnail)
        self._store.save_index(snapshot)
        if removed:
            self._store.delete_blobs(removed)
        LOGGER.debug("Recorded %s item %s (%d removed)", item.category.value, item.id, len(removed))
        return True

    def remove(self, item_id: UUID) -> ClipboardItem:
        """Delete one item and its blobs.

        Raises:
            ItemNotFoundError: If no item has that id.
        """
        with self._lock:
            item = self.get(item_id)
            self._items = [existing for existing in self._items if existing.id != item_id]
            snapshot = list(self._items)
        self._store.save_index(snapshot)
        self._store.delete_blobs([item_id])
        return item

    def remove_all(self) -> int:
        """Delete every item and all persisted state.

        Returns:
            int: Number of removed items.
        """
        with self._lock:
            count = len(self._items)
            self._items = []
        self._store.delete_all()
        return count

    def restore(self, item_id: UUID) -> bool:
        """Write a stored item back to the clipboard and move it to the front.

        The restoring flag is raised before the clipboard is written and clears
        after ``settle_seconds``, so the resulting clipboard change is not
        captured again.

        Returns:
            bool: ``False`` when the item's blobs are missing; nothing is written.

        Raises:
            ItemNotFoundError: If no item has that id.
            ClipboardError: If no clipboard is attached or it rejects the write.
        """
        self.get(item_id)
        clipboard = self.clipboard
        if clipboard is None:
            raise ClipboardError("No clipboard is attached to the history engine.")
        generation = self._begin_restore()
        representations = self._store.load_representations(item_id)
        if representations is None:
            LOGGER.warning("Stored data for %s is unavailable; nothing restored", item_id)
            self._end_restore(generation)
            return False

        try:
            clipboard.write(representations)
        except ClipboardError:
            self._end_restore(generation)
            raise

        with self._lock:
            index = next((i for i, item in enumerate(self._items) if item.id == item_id), None)
            if index is not None and index > 0:
                self._items.insert(0, self._items.pop(index))
            snapshot = list(self._items)
        if index is not None:
            self._store.save_index(snapshot)
        self._schedule_settle(generation)
        return True

    def update_configuration(
        self,
        max_items: Optional[int] = None,
        max_total_size_bytes: Optional[int] = None,
        excluded_categories: Optional[Iterable[ContentCategory]] = None,
    ) -> list[UUID]:
        """Change limits and apply them to the current history immediately.

        Returns:
            list[UUID]: Ids evicted by the new limits.
        """
        with self._lock:
            if max_items is not None:
                self.max_items = max_items
            if max_total_size_bytes is not None:
                self.max_total_size_bytes = max_total_size_bytes
            if excluded_categories is not None:
                self.excluded_categories = frozenset(excluded_categories)
            removed = self._enforce_limits()
            snapshot = list(self._items)
        if removed:
            self._store.save_index(snapshot)
            self._store.delete_blobs(removed)
            LOGGER.info("Evicted %d item(s) after configuration change", len(removed))
        return removed

    def close(self) -> None:
        """Cancel a pending settle timer."""
        timer = self._settle_timer
        if timer is not None:
            timer.cancel()
        self._restoring = False

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _enforce_limits(self) -> list[UUID]:
        removed: list[UUID] = []
        if len(self._items) > self.max_items:
            removed.extend(item.id for item in self._items[self.max_items :])
            del self._items[self.max_items :]
        total = sum(item.total_size for item in self._items)
        while len(self._items) > 1 and total > self.max_total_size_bytes:
            evicted = self._items.pop()
            total -= evicted.total_size
            removed.append(evicted.id)
        return removed

    def _begin_restore(self) -> int:
        with self._lock:
            self._restore_generation += 1
            self._restoring = True
            if self._settle_timer is not None:
                self._settle_timer.cancel()
                self._settle_timer = None
            return self._restore_generation

    def _end_restore(self, generation: int) -> None:
        with self._lock:
            # A newer restore owns the flag.
            if generation == self._restore_generation:
                self._restoring = False

    def _schedule_settle(self, generation: int) -> None:
        with self._lock:
            if generation != self._restore_generation:
                return
            if self.settle_seconds <= 0:
                self._restoring = False
                return
            timer = threading.Timer(self.settle_seconds, self._end_restore, args=(generation,))
            timer.daemon = True
            self._settle_timer = timer
            timer.start()


__all__ = [
    "HistoryEngine",
    "DEFAULT_MAX_ITEMS",
    "DEFAULT_MAX_TOTAL_SIZE_BYTES",
    "DEFAULT_SETTLE_SECONDS",
]
