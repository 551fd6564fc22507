"""Durable, id-keyed storage for clipboard history."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Sequence
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from clipstash.capture.models import ClipboardItem, Representation, RepresentationInfo

from .errors import MigrationError, StoreError
from .models import BlobMeta, IndexDocument, IndexEntry, LegacyItem
from .writer import BackgroundWriter

LOGGER = logging.getLogger(__name__)

DEFAULT_STORE_DIR = Path("~/.clipstash/data")
INDEX_DIRNAME = "v2"
INDEX_FILENAME = "index.json"
BLOBS_DIRNAME = "blobs"
LEGACY_FILENAME = "history.json"
META_FILENAME = "meta.json"
THUMBNAIL_FILENAME = "thumb.dat"

_LEGACY_ADAPTER = TypeAdapter(list[LegacyItem])


class BlobStore:
    """Persist history metadata and representation bytes under one directory.

    Layout::

        <root>/v2/index.json            metadata for the whole history
        <root>/v2/blobs/<id>/rep-N.dat  bytes of the N-th representation
        <root>/v2/blobs/<id>/thumb.dat  optional thumbnail
        <root>/v2/blobs/<id>/meta.json  ordered types and sizes
        <root>/history.json             legacy single-file history

    Writes and deletions run on a :class:`BackgroundWriter` so they never block
    the caller; reads are synchronous.
    """

    def __init__(self, root: Path | None = None, writer: BackgroundWriter | None = None) -> None:
        """Initialize the store.

        Args:
            root: Application-support directory for history data.
            writer: Queue used for asynchronous writes; one is created when omitted.
        """
        self._root = (root or DEFAULT_STORE_DIR).expanduser()
        self._writer = writer or BackgroundWriter()

    @property
    def root(self) -> Path:
        """Return the application-support directory."""
        return self._root

    @property
    def index_path(self) -> Path:
        """Return the path of the index file."""
        return self._root / INDEX_DIRNAME / INDEX_FILENAME

    @property
    def blobs_dir(self) -> Path:
        """Return the directory holding per-item blob directories."""
        return self._root / INDEX_DIRNAME / BLOBS_DIRNAME

    @property
    def legacy_path(self) -> Path:
        """Return the path of the legacy single-file history."""
        return self._root / LEGACY_FILENAME

    @property
    def writer(self) -> BackgroundWriter:
        """Return the background write queue."""
        return self._writer

    def blob_dir(self, item_id: UUID) -> Path:
        """Return the blob directory for ``item_id``."""
        return self.blobs_dir / str(item_id)

    # ------------------------------------------------------------------ #
    # Asynchronous writes                                                #
    # ------------------------------------------------------------------ #

    def save_index(self, items: Sequence[ClipboardItem]) -> None:
        """Queue an atomic rewrite of the index describing ``items``."""
        document = IndexDocument(items=[IndexEntry.from_item(item) for item in items])
        payload = json.dumps(document.model_dump(mode="json"), indent=2).encode("utf-8")
        self._writer.submit("save index", lambda: _atomic_write(self.index_path, payload))

    def save_blobs(
        self,
        item_id: UUID,
        representations: Sequence[Representation],
        thumbnail: Optional[bytes] = None,
    ) -> None:
        """Queue writing the representation bytes, thumbnail and descriptor for ``item_id``."""
        snapshot = tuple(representations)
        self._writer.submit(
            f"save blobs {item_id}",
            lambda: self._write_blob_dir(self.blob_dir(item_id), snapshot, thumbnail),
        )

    def delete_blobs(self, item_ids: Iterable[UUID]) -> None:
        """Queue removal of the blob directories for ``item_ids``."""
        targets = [self.blob_dir(item_id) for item_id in item_ids]
        if not targets:
            return

        def _delete() -> None:
            for target in targets:
                _remove_tree(target)

        self._writer.submit(f"delete {len(targets)} blob dir(s)", _delete)

    def delete_all(self) -> None:
        """Queue removal of the index and every blob."""
        self._writer.submit("delete all", lambda: _remove_tree(self._root / INDEX_DIRNAME))

    def flush(self) -> None:
        """Block until queued writes have completed."""
        self._writer.flush()

    def close(self) -> None:
        """Let queued writes finish and stop the writer."""
        self._writer.close()

    # ------------------------------------------------------------------ #
    # Synchronous reads                                                  #
    # ------------------------------------------------------------------ #

    def load_index(self) -> list[ClipboardItem]:
        """Load history metadata, re-attaching thumbnails from disk.

        Returns:
            list[ClipboardItem]: Items in stored order; empty when no index exists
            or the index cannot be parsed.
        """
        path = self.index_path
        if not path.exists():
            return []
        try:
            document = self._read_index_document(path)
        except StoreError as exc:
            LOGGER.error("Failed to load index: %s", exc)
            return []

        items: list[ClipboardItem] = []
        for entry in document.items:
            thumbnail = None
            if entry.has_thumbnail:
                thumbnail = _read_optional(self.blob_dir(entry.id) / THUMBNAIL_FILENAME)
            try:
                items.append(entry.to_item(thumbnail))
            except ValidationError as exc:
                LOGGER.warning("Skipping invalid index entry %s: %s", entry.id, exc)
        return items

    def load_representations(self, item_id: UUID) -> Optional[list[Representation]]:
        """Reconstruct the stored representations for ``item_id``.

        Returns:
            Optional[list[Representation]]: Representations in capture order, or
            ``None`` when the descriptor or any payload is missing or unreadable.
        """
        directory = self.blob_dir(item_id)
        raw_meta = _read_optional(directory / META_FILENAME)
        if raw_meta is None:
            return None
        try:
            meta = BlobMeta.model_validate_json(raw_meta)
        except ValidationError as exc:
            LOGGER.warning("Unreadable blob descriptor for %s: %s", item_id, exc)
            return None

        representations: list[Representation] = []
        for index, (type_id, size) in enumerate(zip(meta.types, meta.sizes)):
            data = _read_optional(directory / f"rep-{index}.dat")
            if data is None or len(data) != size:
                LOGGER.warning("Blob rep-%d for %s is missing or truncated", index, item_id)
                return None
            representations.append(Representation(type=type_id, data=data))
        return representations or None

    # ------------------------------------------------------------------ #
    # Startup maintenance                                                #
    # ------------------------------------------------------------------ #

    def cleanup_orphans(self, valid_ids: Iterable[UUID]) -> int:
        """Remove blob directories that no valid item refers to.

        Entries whose names do not parse as an id are removed as well.

        Returns:
            int: Number of removed entries.
        """
        valid = set(valid_ids)
        if not self.blobs_dir.is_dir():
            return 0
        removed = 0
        for child in self.blobs_dir.iterdir():
            try:
                item_id: Optional[UUID] = UUID(child.name)
            except ValueError:
                item_id = None
            if item_id is not None and item_id in valid:
                continue
            try:
                _remove_tree(child)
            except OSError as exc:
                LOGGER.warning("Could not remove orphaned blob entry %s: %s", child, exc)
                continue
            removed += 1
        if removed:
            LOGGER.info("Removed %d orphaned blob entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def migrate_from_legacy_format(self) -> int:
        """Convert a legacy ``history.json`` into the directory-of-blobs layout.

        When a current-format index already exists the legacy file is discarded
        without being read. On failure the legacy file is left in place.

        Returns:
            int: Number of migrated items.
        """
        legacy = self.legacy_path
        if not legacy.exists():
            return 0

        if self.index_path.exists():
            LOGGER.info("Index already present; discarding legacy history at %s", legacy)
            _unlink_quietly(legacy)
            return 0

        try:
            migrated = self._migrate(legacy)
        except MigrationError as exc:
            LOGGER.error("Migration failed; leaving %s untouched: %s", legacy, exc)
            return 0

        _unlink_quietly(legacy)
        LOGGER.info("Migration complete: %d items migrated", migrated)
        return migrated

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _migrate(self, legacy: Path) -> int:
        try:
            legacy_items = _LEGACY_ADAPTER.validate_json(legacy.read_bytes())
        except (OSError, ValidationError) as exc:
            raise MigrationError(f"cannot read legacy history: {exc}") from exc

        entries: list[IndexEntry] = []
        try:
            for legacy_item in legacy_items:
                representations = [
                    Representation(type=rep.type, data=rep.data) for rep in legacy_item.representations
                ]
                self._write_blob_dir(
                    self.blob_dir(legacy_item.id), representations, legacy_item.thumbnail
                )
                digest = hashlib.sha256()
                for representation in representations:
                    digest.update(representation.data)
                entries.append(
                    IndexEntry(
                        id=legacy_item.id,
                        timestamp=legacy_item.timestamp,
                        category=legacy_item.category,
                        preview_text=legacy_item.preview_text,
                        has_thumbnail=legacy_item.thumbnail is not None,
                        total_size=sum(rep.size for rep in representations),
                        content_hash=digest.hexdigest(),
                        representation_infos=[
                            RepresentationInfo(type=rep.type, size=rep.size) for rep in representations
                        ],
                    )
                )
            document = IndexDocument(items=entries)
            _atomic_write(
                self.index_path,
                json.dumps(document.model_dump(mode="json"), indent=2).encode("utf-8"),
            )
        except (OSError, ValidationError) as exc:
            raise MigrationError(str(exc)) from exc
        return len(entries)

    def _read_index_document(self, path: Path) -> IndexDocument:
        try:
            return IndexDocument.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise StoreError(f"Invalid index data at {path}: {exc}") from exc

    def _write_blob_dir(
        self,
        directory: Path,
        representations: Sequence[Representation],
        thumbnail: Optional[bytes],
    ) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        for index, representation in enumerate(representations):
            _atomic_write(directory / f"rep-{index}.dat", representation.data)
        if thumbnail is not None:
            _atomic_write(directory / THUMBNAIL_FILENAME, thumbnail)
        meta = BlobMeta(
            types=[rep.type for rep in representations],
            sizes=[rep.size for rep in representations],
        )
        # The descriptor goes last; a directory without one reads as a cache miss.
        _atomic_write(directory / META_FILENAME, meta.model_dump_json().encode("utf-8"))


def _atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to a temporary sibling and rename it over ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "wb", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
    )
    try:
        with handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        _unlink_quietly(Path(handle.name))
        raise


def _read_optional(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        LOGGER.warning("Could not read %s: %s", path, exc)
        return None


def _remove_tree(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove %s: %s", path, exc)


__all__ = [
    "BlobStore",
    "BackgroundWriter",
    "DEFAULT_STORE_DIR",
    "StoreError",
    "MigrationError",
]
