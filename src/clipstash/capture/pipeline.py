"""Capture pipeline turning a clipboard change into a history item."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Tuple

from .classifier import ContentClassifier
from .hasher import ContentHasher
from .models import ClipboardItem, Representation, RepresentationInfo

if TYPE_CHECKING:
    from clipstash.clipboard import ClipboardBackend

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_CAPTURE_BYTES = 50 * 1024 * 1024

Capture = Tuple[ClipboardItem, list[Representation]]


class CapturePipeline:
    """Read a snapshot from the clipboard, then classify and hash it."""

    def __init__(
        self,
        classifier: ContentClassifier | None = None,
        hasher: ContentHasher | None = None,
        *,
        max_capture_bytes: int = DEFAULT_MAX_CAPTURE_BYTES,
    ) -> None:
        self.classifier = classifier or ContentClassifier()
        self.hasher = hasher or ContentHasher()
        self.max_capture_bytes = max_capture_bytes

    def capture(self, clipboard: "ClipboardBackend") -> Optional[Capture]:
        """Capture the current clipboard contents.

        Representations are read in the order the clipboard advertises them.
        Once the cumulative size passes ``max_capture_bytes`` the remaining
        types are dropped.

        Args:
            clipboard: Clipboard backend to read from.

        Returns:
            Optional[Capture]: The new item and its representations, or ``None``
            when nothing readable is on the clipboard.
        """
        representations: list[Representation] = []
        total = 0
        for type_id in clipboard.available_types():
            data = clipboard.read(type_id)
            if data is None:
                continue
            total += len(data)
            if total > self.max_capture_bytes:
                LOGGER.info("Snapshot exceeds %d bytes; dropping %s onwards", self.max_capture_bytes, type_id)
                break
            representations.append(Representation(type=type_id, data=data))

        if not representations:
            return None
        return self.build_item(representations), representations

    def build_item(self, representations: list[Representation]) -> ClipboardItem:
        """Create a history item describing ``representations``."""
        classification = self.classifier.classify(representations)
        infos = [RepresentationInfo(type=rep.type, size=rep.size) for rep in representations]
        return ClipboardItem(
            category=classification.category,
            preview_text=classification.preview_text,
            thumbnail=classification.thumbnail,
            total_size=sum(info.size for info in infos),
            content_hash=self.hasher.compute(representations),
            representation_infos=infos,
        )


__all__ = ["CapturePipeline", "Capture", "DEFAULT_MAX_CAPTURE_BYTES"]
