"""History engine tests covering dedup, eviction, removal and restore."""

from __future__ import annotations

import threading
import time
from typing import Sequence
from uuid import UUID

import pytest

from clipstash.capture import ClipboardItem, ContentCategory, Representation
from clipstash.clipboard import ClipboardError, InMemoryClipboard
from clipstash.history import HistoryEngine, ItemNotFoundError
from clipstash.store import BlobStore

from .conftest import make_item, text_rep


def _engine(store: BlobStore, clipboard: InMemoryClipboard, **kwargs: object) -> HistoryEngine:
    kwargs.setdefault("settle_seconds", 0)
    return HistoryEngine(store, clipboard, **kwargs)  # type: ignore[arg-type]


def _insert_text(engine: HistoryEngine, text: str) -> ClipboardItem:
    representation = text_rep(text)
    item = make_item(representation)
    assert engine.insert(item, [representation])
    return item


def test_insert_places_newest_first(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)

    first = _insert_text(engine, "first")
    second = _insert_text(engine, "second")

    assert [item.id for item in engine.items] == [second.id, first.id]


def test_duplicate_content_replaces_existing_entry(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    """Capturing identical text twice leaves one entry carrying the newer capture.

    Args:
        store: Blob store rooted in a temporary directory.
        clipboard: In-memory clipboard.
    """
    engine = _engine(store, clipboard)
    original = _insert_text(engine, "hello")
    _insert_text(engine, "other")

    duplicate = _insert_text(engine, "hello")
    store.flush()

    assert len(engine) == 2
    assert engine.items[0].id == duplicate.id
    assert engine.items[0].content_hash == original.content_hash
    assert engine.items[0].timestamp >= original.timestamp
    assert not store.blob_dir(original.id).exists()
    assert store.load_representations(duplicate.id) == [text_rep("hello")]


def test_count_cap_evicts_oldest(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, max_items=2)

    a = _insert_text(engine, "A")
    b = _insert_text(engine, "B")
    c = _insert_text(engine, "C")
    store.flush()

    assert [item.id for item in engine.items] == [c.id, b.id]
    assert not store.blob_dir(a.id).exists()
    assert [item.id for item in store.load_index()] == [c.id, b.id]


def test_size_cap_evicts_until_under_limit(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, max_total_size_bytes=10)

    _insert_text(engine, "aaaaaa")
    latest = _insert_text(engine, "bbbbbb")

    assert [item.id for item in engine.items] == [latest.id]
    assert engine.total_size() == 6


def test_size_cap_keeps_single_oversized_item(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, max_total_size_bytes=4)

    _insert_text(engine, "small")
    big = _insert_text(engine, "x" * 50)

    assert [item.id for item in engine.items] == [big.id]


def test_excluded_category_is_not_recorded(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, excluded_categories=[ContentCategory.LINK])
    representation = text_rep("https://example.com")
    item = make_item(representation)

    assert engine.insert(item, [representation]) is False
    store.flush()

    assert len(engine) == 0
    assert not store.blob_dir(item.id).exists()


def test_remove_deletes_item_and_blobs(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)
    keep = _insert_text(engine, "keep")
    drop = _insert_text(engine, "drop")

    removed = engine.remove(drop.id)
    store.flush()

    assert removed.id == drop.id
    assert [item.id for item in engine.items] == [keep.id]
    assert not store.blob_dir(drop.id).exists()
    assert [item.id for item in store.load_index()] == [keep.id]

    with pytest.raises(ItemNotFoundError):
        engine.remove(drop.id)


def test_remove_all_clears_everything(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)
    _insert_text(engine, "one")
    _insert_text(engine, "two")

    assert engine.remove_all() == 2
    store.flush()

    assert engine.items == []
    assert store.load_index() == []
    assert not store.blobs_dir.exists()


def test_restore_writes_clipboard_and_moves_item_first(
    store: BlobStore, clipboard: InMemoryClipboard
) -> None:
    engine = _engine(store, clipboard)
    older = _insert_text(engine, "older")
    newer = _insert_text(engine, "newer")
    store.flush()

    assert engine.restore(older.id) is True
    store.flush()

    assert clipboard.read("text/plain;charset=utf-8") == b"older"
    assert [item.id for item in engine.items] == [older.id, newer.id]
    assert [item.id for item in store.load_index()] == [older.id, newer.id]
    assert engine.is_restoring is False


def test_restore_raises_flag_until_settled(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, settle_seconds=60)
    item = _insert_text(engine, "hello")
    store.flush()

    engine.restore(item.id)

    assert engine.is_restoring is True
    engine.close()
    assert engine.is_restoring is False


def test_restore_with_missing_blobs_is_a_noop(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard, settle_seconds=60)
    item = _insert_text(engine, "hello")
    store.flush()
    (store.blob_dir(item.id) / "meta.json").unlink()

    assert engine.restore(item.id) is False
    assert clipboard.write_count == 0
    assert engine.is_restoring is False


def test_restore_unknown_id_raises(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)

    with pytest.raises(ItemNotFoundError):
        engine.restore(UUID(int=1))


def test_restore_without_clipboard_raises(store: BlobStore) -> None:
    engine = HistoryEngine(store, settle_seconds=0)
    item = _insert_text(engine, "hello")
    store.flush()

    with pytest.raises(ClipboardError):
        engine.restore(item.id)
    assert engine.is_restoring is False


class _OverlappingClipboard(InMemoryClipboard):
    """Clipboard whose first write starts a second restore on another thread."""

    def __init__(self) -> None:
        super().__init__()
        self.engine: HistoryEngine | None = None
        self.second_id: UUID | None = None
        self.second_writing = threading.Event()
        self.release_second = threading.Event()
        self.worker: threading.Thread | None = None

    def write(self, representations: Sequence[Representation]) -> None:
        if self.worker is None:
            assert self.engine is not None and self.second_id is not None
            self.worker = threading.Thread(target=self.engine.restore, args=(self.second_id,))
            self.worker.start()
            assert self.second_writing.wait(5)
        elif threading.current_thread() is self.worker:
            self.second_writing.set()
            assert self.release_second.wait(5)
        super().write(representations)


def test_overlapping_restores_keep_newest_flag(store: BlobStore) -> None:
    clipboard = _OverlappingClipboard()
    engine = _engine(store, clipboard, settle_seconds=0.1)
    first = _insert_text(engine, "first")
    second = _insert_text(engine, "second")
    store.flush()
    clipboard.engine = engine
    clipboard.second_id = second.id

    try:
        assert engine.restore(first.id) is True
        time.sleep(0.3)
        # The second restore is still writing, so its flag must hold.
        assert engine.is_restoring is True
    finally:
        clipboard.release_second.set()
        assert clipboard.worker is not None
        clipboard.worker.join(5)
        engine.close()


def test_update_configuration_applies_limits_immediately(
    store: BlobStore, clipboard: InMemoryClipboard
) -> None:
    engine = _engine(store, clipboard)
    items = [_insert_text(engine, text) for text in ("a", "b", "c", "d")]

    evicted = engine.update_configuration(max_items=2, excluded_categories=[ContentCategory.IMAGE])
    store.flush()

    assert evicted == [items[1].id, items[0].id]
    assert [item.id for item in engine.items] == [items[3].id, items[2].id]
    assert engine.excluded_categories == frozenset({ContentCategory.IMAGE})
    assert not store.blob_dir(items[0].id).exists()


def test_list_items_filters_by_category_and_text(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)
    _insert_text(engine, "Grocery list")
    link = _insert_text(engine, "https://example.com/groceries")
    _insert_text(engine, "unrelated")

    assert [item.id for item in engine.list_items(category=ContentCategory.LINK)] == [link.id]
    assert len(engine.list_items(query="GROCER")) == 2
    assert engine.list_items(category=ContentCategory.LINK, query="nothing") == []


def test_find_by_unique_prefix(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)
    first = make_item(text_rep("one")).model_copy(update={"id": UUID("aaaa1111-0000-0000-0000-000000000000")})
    second_id = UUID("aaaa2222-0000-0000-0000-000000000000")
    second = make_item(text_rep("two")).model_copy(update={"id": second_id})
    engine.insert(first, [text_rep("one")])
    engine.insert(second, [text_rep("two")])

    assert engine.find("aaaa1").id == first.id
    assert engine.find(str(second.id)).id == second.id
    with pytest.raises(ItemNotFoundError):
        engine.find("aaaa")
    with pytest.raises(ItemNotFoundError):
        engine.find("ffff")


def test_statistics(store: BlobStore, clipboard: InMemoryClipboard) -> None:
    engine = _engine(store, clipboard)
    _insert_text(engine, "hello")
    _insert_text(engine, "https://example.com")
    image = Representation(type="image/x-unknown", data=b"\x00" * 10)
    engine.insert(make_item(image), [image])

    assert engine.total_size() == 5 + 19 + 10
    assert engine.category_counts() == {
        ContentCategory.PLAIN_TEXT: 1,
        ContentCategory.LINK: 1,
        ContentCategory.IMAGE: 1,
    }
