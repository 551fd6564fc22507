"""Snapshot capture: models, classification, hashing."""

from .classifier import Classification, ContentClassifier, looks_like_source_code
from .hasher import ContentHasher
from .models import ClipboardItem, ContentCategory, Representation, RepresentationInfo, format_bytes
from .pipeline import CapturePipeline

__all__ = [
    "CapturePipeline",
    "Classification",
    "ClipboardItem",
    "ContentCategory",
    "ContentClassifier",
    "ContentHasher",
    "Representation",
    "RepresentationInfo",
    "format_bytes",
    "looks_like_source_code",
]
