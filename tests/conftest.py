"""Shared fixtures for the clipstash test suite."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Iterator

import pytest
from PIL import Image

from clipstash.capture import CapturePipeline, ClipboardItem, Representation
from clipstash.clipboard import InMemoryClipboard
from clipstash.store import BlobStore

TEXT_TYPE = "text/plain;charset=utf-8"


def text_rep(text: str) -> Representation:
    """Return a UTF-8 plain-text representation of ``text``."""
    return Representation(type=TEXT_TYPE, data=text.encode("utf-8"))


def png_bytes(width: int, height: int, color: str = "red") -> bytes:
    """Return a PNG image of the requested size."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_item(*representations: Representation) -> ClipboardItem:
    """Build a history item the way a capture would."""
    return CapturePipeline().build_item(list(representations))


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Iterator[None]:
    """Undo handlers installed by CLI runs so caplog keeps working."""
    yield
    logger = logging.getLogger("clipstash")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def clipboard() -> InMemoryClipboard:
    return InMemoryClipboard()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[BlobStore]:
    blob_store = BlobStore(tmp_path / "data")
    yield blob_store
    blob_store.close()
