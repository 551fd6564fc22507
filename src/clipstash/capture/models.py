"""Data models describing captured clipboard snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

PREVIEW_LIMIT = 500


class ContentCategory(str, Enum):
    """Closed set of content kinds a snapshot can be classified as."""

    PLAIN_TEXT = "plain_text"
    RICH_TEXT = "rich_text"
    MARKUP = "markup"
    LINK = "link"
    IMAGE = "image"
    DOCUMENT = "document"
    FILE_REFERENCE = "file_reference"
    COLOR = "color"
    SOURCE_CODE = "source_code"
    TABULAR = "tabular"
    OTHER = "other"

    @property
    def label(self) -> str:
        """Return a human-readable label."""
        return _LABELS[self]

    @property
    def icon(self) -> str:
        """Return the glyph name presentation layers use for this category."""
        return _ICONS[self]

    @property
    def placeholder(self) -> str:
        """Return the preview shown when no content could be extracted."""
        return _PLACEHOLDERS[self]


_LABELS = {
    ContentCategory.PLAIN_TEXT: "Plain text",
    ContentCategory.RICH_TEXT: "Rich text",
    ContentCategory.MARKUP: "HTML",
    ContentCategory.LINK: "Link",
    ContentCategory.IMAGE: "Image",
    ContentCategory.DOCUMENT: "PDF",
    ContentCategory.FILE_REFERENCE: "Files",
    ContentCategory.COLOR: "Color",
    ContentCategory.SOURCE_CODE: "Source code",
    ContentCategory.TABULAR: "CSV",
    ContentCategory.OTHER: "Other",
}

_ICONS = {
    ContentCategory.PLAIN_TEXT: "doc.text",
    ContentCategory.RICH_TEXT: "doc.richtext",
    ContentCategory.MARKUP: "chevron.left.forwardslash.chevron.right",
    ContentCategory.LINK: "link",
    ContentCategory.IMAGE: "photo",
    ContentCategory.DOCUMENT: "doc.fill",
    ContentCategory.FILE_REFERENCE: "folder",
    ContentCategory.COLOR: "paintpalette",
    ContentCategory.SOURCE_CODE: "curlybraces",
    ContentCategory.TABULAR: "tablecells",
    ContentCategory.OTHER: "doc.questionmark",
}

_PLACEHOLDERS = {
    ContentCategory.PLAIN_TEXT: "(No text)",
    ContentCategory.RICH_TEXT: "(Rich text)",
    ContentCategory.MARKUP: "(HTML)",
    ContentCategory.LINK: "(URL)",
    ContentCategory.IMAGE: "Image",
    ContentCategory.DOCUMENT: "PDF document",
    ContentCategory.FILE_REFERENCE: "(Files)",
    ContentCategory.COLOR: "(Color)",
    ContentCategory.SOURCE_CODE: "(No text)",
    ContentCategory.TABULAR: "(No text)",
    ContentCategory.OTHER: "(Data)",
}


@dataclass(frozen=True, slots=True)
class Representation:
    """One encoding of a clipboard snapshot.

    Attributes:
        type: Content-type identifier advertised by the clipboard.
        data: Raw bytes for that type.
    """

    type: str
    data: bytes

    @property
    def size(self) -> int:
        """Return the byte length of the payload."""
        return len(self.data)


class RepresentationInfo(BaseModel):
    """Type and size of a stored representation, without its bytes."""

    model_config = ConfigDict(frozen=True)

    type: str
    size: int = Field(ge=0)


class ClipboardItem(BaseModel):
    """Record of one captured clipboard snapshot.

    The raw representation bytes are not part of the item; they live in the
    blob store and are loaded on demand when the item is restored.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    category: ContentCategory
    preview_text: str = Field(max_length=PREVIEW_LIMIT)
    thumbnail: Optional[bytes] = Field(default=None, repr=False)
    total_size: int = Field(ge=0)
    content_hash: str
    representation_infos: List[RepresentationInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_total_size(self) -> "ClipboardItem":
        expected = sum(info.size for info in self.representation_infos)
        if expected != self.total_size:
            raise ValueError(
                f"total_size {self.total_size} does not match representation sizes ({expected})"
            )
        return self

    @property
    def has_thumbnail(self) -> bool:
        """Return whether a thumbnail is attached."""
        return self.thumbnail is not None

    @property
    def formatted_size(self) -> str:
        """Return ``total_size`` formatted for display."""
        return format_bytes(self.total_size)


def format_bytes(size: int) -> str:
    """Render a byte count as ``B``, ``KB`` or ``MB`` with one decimal place."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


__all__ = [
    "PREVIEW_LIMIT",
    "ContentCategory",
    "Representation",
    "RepresentationInfo",
    "ClipboardItem",
    "format_bytes",
]
