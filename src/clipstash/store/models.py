"""On-disk record formats for the blob store."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Base64Bytes, BaseModel, Field, field_validator, model_validator

from clipstash.capture.models import PREVIEW_LIMIT, ClipboardItem, ContentCategory, RepresentationInfo

INDEX_VERSION = 2


class IndexEntry(BaseModel):
    """Lightweight metadata for one history item, without representation bytes."""

    id: UUID
    timestamp: datetime
    category: ContentCategory
    preview_text: str
    has_thumbnail: bool = False
    total_size: int
    content_hash: str
    representation_infos: List[RepresentationInfo] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: ClipboardItem) -> "IndexEntry":
        return cls(
            id=item.id,
            timestamp=item.timestamp,
            category=item.category,
            preview_text=item.preview_text,
            has_thumbnail=item.has_thumbnail,
            total_size=item.total_size,
            content_hash=item.content_hash,
            representation_infos=list(item.representation_infos),
        )

    def to_item(self, thumbnail: Optional[bytes]) -> ClipboardItem:
        return ClipboardItem(
            id=self.id,
            timestamp=self.timestamp,
            category=self.category,
            preview_text=self.preview_text,
            thumbnail=thumbnail,
            total_size=self.total_size,
            content_hash=self.content_hash,
            representation_infos=self.representation_infos,
        )


class IndexDocument(BaseModel):
    """Contents of ``index.json``."""

    version: int = INDEX_VERSION
    items: List[IndexEntry] = Field(default_factory=list)


class BlobMeta(BaseModel):
    """Per-item descriptor listing stored representation types and sizes in order."""

    types: List[str]
    sizes: List[int]

    @model_validator(mode="after")
    def _check_lengths(self) -> "BlobMeta":
        if len(self.types) != len(self.sizes):
            raise ValueError("types and sizes must have the same length")
        return self


class LegacyRepresentation(BaseModel):
    """Inline representation stored by the single-file history format."""

    type: str
    data: Base64Bytes


class LegacyItem(BaseModel):
    """Full item record of the single-file history format."""

    id: UUID
    timestamp: datetime
    category: ContentCategory
    representations: List[LegacyRepresentation]
    preview_text: str
    thumbnail: Optional[Base64Bytes] = None

    @field_validator("preview_text")
    @classmethod
    def _clip_preview(cls, value: str) -> str:
        # Older builds did not bound previews.
        return value[:PREVIEW_LIMIT]


__all__ = [
    "INDEX_VERSION",
    "IndexEntry",
    "IndexDocument",
    "BlobMeta",
    "LegacyRepresentation",
    "LegacyItem",
]
