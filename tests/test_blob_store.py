"""Blob store persistence, cleanup and migration tests."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import threading
from pathlib import Path
from uuid import uuid4

import pytest

from clipstash.capture import ContentCategory, Representation
from clipstash.capture.models import PREVIEW_LIMIT
from clipstash.store import BlobStore
from clipstash.store.writer import BackgroundWriter

from .conftest import make_item, png_bytes, text_rep


def test_save_blobs_round_trip(store: BlobStore) -> None:
    """Ensure stored representations come back byte-equal and in order.

    Args:
        store: Blob store rooted in a temporary directory.
    """
    representations = [text_rep("hello"), Representation(type="text/html", data=b"<b>hello</b>")]
    item_id = uuid4()

    store.save_blobs(item_id, representations)
    store.flush()

    assert store.load_representations(item_id) == representations
    meta = json.loads((store.blob_dir(item_id) / "meta.json").read_text())
    assert meta == {"types": ["text/plain;charset=utf-8", "text/html"], "sizes": [5, 12]}


def test_load_representations_missing_descriptor_is_none(store: BlobStore) -> None:
    assert store.load_representations(uuid4()) is None


def test_load_representations_truncated_blob_is_none(store: BlobStore) -> None:
    item_id = uuid4()
    store.save_blobs(item_id, [text_rep("hello")])
    store.flush()

    (store.blob_dir(item_id) / "rep-0.dat").write_bytes(b"he")

    assert store.load_representations(item_id) is None


def test_load_representations_missing_blob_is_none(store: BlobStore) -> None:
    item_id = uuid4()
    store.save_blobs(item_id, [text_rep("a"), text_rep("b")])
    store.flush()

    (store.blob_dir(item_id) / "rep-1.dat").unlink()

    assert store.load_representations(item_id) is None


def test_index_round_trip_restores_thumbnails(store: BlobStore) -> None:
    """Ensure index metadata survives a save/load cycle and thumbnails are re-attached.

    Args:
        store: Blob store rooted in a temporary directory.
    """
    image = Representation(type="image/png", data=png_bytes(320, 240))
    image_item = make_item(image)
    text_item = make_item(text_rep("hello"))
    assert image_item.thumbnail is not None

    store.save_blobs(image_item.id, [image], image_item.thumbnail)
    store.save_blobs(text_item.id, [text_rep("hello")])
    store.save_index([text_item, image_item])
    store.flush()

    loaded = store.load_index()

    assert [item.id for item in loaded] == [text_item.id, image_item.id]
    assert loaded[0].model_dump() == text_item.model_dump()
    assert loaded[1].thumbnail == image_item.thumbnail
    assert loaded[1].category is ContentCategory.IMAGE
    assert loaded[1].content_hash == image_item.content_hash
    assert loaded[1].representation_infos == image_item.representation_infos


def test_index_thumbnail_missing_on_disk_is_dropped(store: BlobStore) -> None:
    image = Representation(type="image/png", data=png_bytes(20, 20))
    item = make_item(image)
    store.save_index([item])
    store.flush()

    loaded = store.load_index()

    assert len(loaded) == 1
    assert loaded[0].thumbnail is None


def test_load_index_absent_or_corrupt_is_empty(store: BlobStore) -> None:
    assert store.load_index() == []

    store.index_path.parent.mkdir(parents=True)
    store.index_path.write_text("{not json", encoding="utf-8")

    assert store.load_index() == []


def test_index_is_written_atomically(store: BlobStore) -> None:
    store.save_index([make_item(text_rep("x"))])
    store.flush()

    leftovers = [path.name for path in store.index_path.parent.iterdir() if path.suffix == ".tmp"]
    assert leftovers == []
    document = json.loads(store.index_path.read_text(encoding="utf-8"))
    assert document["version"] == 2
    assert document["items"][0]["preview_text"] == "x"
    assert "thumbnail" not in document["items"][0]


def test_delete_blobs_and_delete_all(store: BlobStore) -> None:
    keep, drop = uuid4(), uuid4()
    store.save_blobs(keep, [text_rep("keep")])
    store.save_blobs(drop, [text_rep("drop")])
    store.save_index([make_item(text_rep("keep"))])
    store.delete_blobs([drop])
    store.flush()

    assert store.blob_dir(keep).is_dir()
    assert not store.blob_dir(drop).exists()

    store.delete_all()
    store.flush()

    assert not store.index_path.exists()
    assert not store.blob_dir(keep).exists()


def test_cleanup_orphans_removes_unknown_and_misnamed_entries(store: BlobStore) -> None:
    valid, orphan = uuid4(), uuid4()
    for item_id in (valid, orphan):
        store.save_blobs(item_id, [text_rep(str(item_id))])
    store.flush()
    (store.blobs_dir / "not-a-uuid").mkdir()
    (store.blobs_dir / "stray.dat").write_bytes(b"x")

    removed = store.cleanup_orphans([valid])

    assert removed == 3
    assert [path.name for path in store.blobs_dir.iterdir()] == [str(valid)]


def test_cleanup_orphans_without_blobs_dir(store: BlobStore) -> None:
    assert store.cleanup_orphans([]) == 0


def _write_legacy(root: Path, payloads: list[bytes]) -> list[str]:
    records = []
    for payload in payloads:
        records.append(
            {
                "id": str(uuid4()),
                "timestamp": "2024-05-01T12:00:00Z",
                "category": "plain_text",
                "representations": [
                    {"type": "text/plain", "data": base64.b64encode(payload).decode("ascii")}
                ],
                "preview_text": payload.decode("utf-8"),
                "thumbnail": None,
            }
        )
    root.mkdir(parents=True, exist_ok=True)
    (root / "history.json").write_text(json.dumps(records), encoding="utf-8")
    return [record["id"] for record in records]


def test_migrate_from_legacy_format(store: BlobStore) -> None:
    """Ensure a legacy history is converted into index and blobs, then removed.

    Args:
        store: Blob store rooted in a temporary directory.
    """
    ids = _write_legacy(store.root, [b"first", b"second"])

    migrated = store.migrate_from_legacy_format()

    assert migrated == 2
    assert not store.legacy_path.exists()
    items = store.load_index()
    assert [str(item.id) for item in items] == ids
    assert items[0].content_hash == hashlib.sha256(b"first").hexdigest()
    assert items[1].total_size == len(b"second")
    assert store.load_representations(items[1].id) == [Representation(type="text/plain", data=b"second")]


def test_migration_clips_long_previews(store: BlobStore) -> None:
    long_text = b"x" * (PREVIEW_LIMIT + 250)
    (item_id,) = _write_legacy(store.root, [long_text])

    assert store.migrate_from_legacy_format() == 1

    (item,) = store.load_index()
    assert str(item.id) == item_id
    assert len(item.preview_text) == PREVIEW_LIMIT
    assert store.cleanup_orphans([item.id]) == 0
    assert store.load_representations(item.id) == [Representation(type="text/plain", data=long_text)]


def test_migration_discards_legacy_when_index_exists(store: BlobStore) -> None:
    current = make_item(text_rep("current"))
    store.save_index([current])
    store.flush()
    _write_legacy(store.root, [b"stale"])

    assert store.migrate_from_legacy_format() == 0
    assert not store.legacy_path.exists()
    assert [item.id for item in store.load_index()] == [current.id]


def test_failed_migration_keeps_legacy_file(store: BlobStore) -> None:
    store.root.mkdir(parents=True)
    store.legacy_path.write_text("[{\"id\": \"broken\"}]", encoding="utf-8")

    assert store.migrate_from_legacy_format() == 0
    assert store.legacy_path.exists()
    assert not store.index_path.exists()


def test_migration_without_legacy_file_is_noop(store: BlobStore) -> None:
    assert store.migrate_from_legacy_format() == 0


def test_writer_runs_jobs_in_submission_order() -> None:
    writer = BackgroundWriter(name="test-writer")
    seen: list[int] = []
    gate = threading.Event()

    writer.submit("wait", lambda: gate.wait(timeout=5))
    for index in range(20):
        writer.submit(f"job {index}", lambda index=index: seen.append(index))
    gate.set()
    writer.flush()
    writer.close()

    assert seen == list(range(20))
    assert writer.closed


def test_writer_logs_failures_and_keeps_going(caplog: pytest.LogCaptureFixture) -> None:
    writer = BackgroundWriter(name="test-writer")
    seen: list[str] = []

    def _boom() -> None:
        raise OSError("disk full")

    with caplog.at_level(logging.ERROR, logger="clipstash.store.writer"):
        writer.submit("explode", _boom)
        writer.submit("after", lambda: seen.append("after"))
        writer.flush()
    writer.close()

    assert seen == ["after"]
    assert "Background write failed: explode" in caplog.text


def test_writer_runs_inline_after_close() -> None:
    writer = BackgroundWriter(name="test-writer")
    writer.close()
    seen: list[str] = []

    writer.submit("late", lambda: seen.append("late"))

    assert seen == ["late"]
