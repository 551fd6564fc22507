"""Content classification, preview and thumbnail generation for snapshots.

Classification walks an ordered rule list where the first matching rule wins.
The ordering reflects how real clipboards overlap: a file manager copy also
carries an icon image, rich text copies carry a plain-text fallback, and so
on. Previews and thumbnails are derived from the same snapshot and degrade to
per-category placeholders whenever a payload cannot be decoded.
"""

from __future__ import annotations

import io
import logging
import re
import struct
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Iterable, Optional, Sequence
from urllib.parse import unquote, urlparse

from PIL import Image

from . import types as ct
from .models import PREVIEW_LIMIT, ContentCategory, Representation

LOGGER = logging.getLogger(__name__)

MAX_THUMBNAIL_DIMENSION = 200
MAX_LISTED_FILES = 5
SOURCE_SCAN_LINES = 20

SnapshotReader = Callable[[str], Optional[bytes]]

_CODE_PATTERNS = (
    "func ",
    "class ",
    "struct ",
    "enum ",
    "import ",
    "def ",
    "return ",
    "if (",
    "for (",
    "while (",
    "const ",
    "let ",
    "var ",
    "function ",
    "public ",
    "private ",
    "protected ",
    "#!/",
    "=> {",
    "-> {",
)
_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_RTF_CONTROL = re.compile(r"\\([a-z]{1,32})(-?\d{1,10})? ?|\\'([0-9a-fA-F]{2})|\\([^a-z])|([{}])")
_RTF_SKIP_DESTINATIONS = frozenset(
    {"fonttbl", "colortbl", "stylesheet", "info", "pict", "header", "footer", "generator", "*"}
)


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of classifying one snapshot.

    Attributes:
        category: Dominant content kind.
        preview_text: Bounded human-readable summary.
        thumbnail: PNG-encoded preview for image and document snapshots.
    """

    category: ContentCategory
    preview_text: str
    thumbnail: Optional[bytes] = None


class _Snapshot:
    """Read-only view over the representations of one clipboard change."""

    def __init__(
        self, representations: Sequence[Representation], reader: SnapshotReader | None
    ) -> None:
        self._by_type: dict[str, bytes] = {}
        for representation in representations:
            self._by_type.setdefault(representation.type, representation.data)
        self._reader = reader
        self.types = frozenset(self._by_type)

    def has_any(self, candidates: Iterable[str]) -> bool:
        return any(candidate in self.types for candidate in candidates)

    def data(self, type_id: str) -> Optional[bytes]:
        if type_id not in self.types:
            return None
        if self._reader is not None:
            try:
                payload = self._reader(type_id)
            except Exception as exc:  # pragma: no cover - reader failures are backend specific
                LOGGER.warning("Reading %s from clipboard failed: %s", type_id, exc)
                payload = None
            if payload is not None:
                return payload
        return self._by_type.get(type_id)

    def text(self) -> Optional[str]:
        type_id = ct.first_present(ct.PLAIN_TEXT_TYPES, self.types)
        if type_id is None:
            return None
        payload = self.data(type_id)
        if payload is None:
            return None
        return payload.decode("utf-8", errors="replace")

    def image_payloads(self) -> list[bytes]:
        payloads = []
        for type_id in sorted(self.types, key=_image_rank):
            if ct.is_image_type(type_id):
                payload = self.data(type_id)
                if payload:
                    payloads.append(payload)
        return payloads


class ContentClassifier:
    """Derive category, preview text and thumbnail for captured snapshots."""

    def classify(
        self,
        representations: Sequence[Representation],
        reader: SnapshotReader | None = None,
    ) -> Classification:
        """Classify one snapshot.

        Args:
            representations: Representations captured for the clipboard change.
            reader: Optional accessor for the live clipboard, consulted before the
                captured bytes when extracting content.

        Returns:
            Classification: Category, preview and optional thumbnail.
        """
        snapshot = _Snapshot(representations, reader)
        category = self._categorize(snapshot)
        preview = self._preview(category, snapshot)[:PREVIEW_LIMIT]
        thumbnail = self._thumbnail(category, snapshot)
        return Classification(category=category, preview_text=preview, thumbnail=thumbnail)

    # ------------------------------------------------------------------ #
    # Category rules                                                     #
    # ------------------------------------------------------------------ #

    def _categorize(self, snapshot: _Snapshot) -> ContentCategory:
        if snapshot.has_any(ct.FILE_REFERENCE_TYPES) or self._uri_list_is_files(snapshot):
            return ContentCategory.FILE_REFERENCE

        if snapshot.has_any(ct.COLOR_TYPES):
            return ContentCategory.COLOR

        if snapshot.has_any(ct.DOCUMENT_TYPES):
            return ContentCategory.DOCUMENT

        has_text = snapshot.has_any(ct.PLAIN_TEXT_TYPES)
        if not has_text and any(ct.is_image_type(type_id) for type_id in snapshot.types):
            return ContentCategory.IMAGE

        if snapshot.has_any(ct.URL_TYPES):
            text = snapshot.text()
            if text is not None and _absolute_url_scheme(text) is not None:
                return ContentCategory.LINK

        if snapshot.has_any(ct.MARKUP_TYPES):
            return ContentCategory.MARKUP

        if snapshot.has_any(ct.RICH_TEXT_TYPES):
            return ContentCategory.RICH_TEXT

        if snapshot.has_any(ct.TABULAR_TYPES):
            return ContentCategory.TABULAR

        if snapshot.has_any(ct.SOURCE_CODE_TYPES):
            return ContentCategory.SOURCE_CODE

        if has_text:
            text = snapshot.text()
            if text is not None:
                if _absolute_url_scheme(text) in ct.LINK_SCHEMES:
                    return ContentCategory.LINK
                if looks_like_source_code(text):
                    return ContentCategory.SOURCE_CODE
            return ContentCategory.PLAIN_TEXT

        return ContentCategory.OTHER

    def _uri_list_is_files(self, snapshot: _Snapshot) -> bool:
        if ct.URI_LIST not in snapshot.types:
            return False
        payload = snapshot.data(ct.URI_LIST)
        if not payload:
            return False
        entries = _uri_entries(payload)
        return bool(entries) and all(entry.lower().startswith("file:") for entry in entries)

    # ------------------------------------------------------------------ #
    # Previews                                                           #
    # ------------------------------------------------------------------ #

    def _preview(self, category: ContentCategory, snapshot: _Snapshot) -> str:
        text = snapshot.text()

        if category in (
            ContentCategory.PLAIN_TEXT,
            ContentCategory.SOURCE_CODE,
            ContentCategory.TABULAR,
            ContentCategory.LINK,
        ):
            if text is not None:
                return text
            if category is ContentCategory.LINK:
                return self._first_url(snapshot) or category.placeholder
            return category.placeholder

        if category is ContentCategory.RICH_TEXT:
            if text is not None:
                return text
            for type_id in sorted(ct.RICH_TEXT_TYPES & snapshot.types):
                payload = snapshot.data(type_id)
                if payload:
                    stripped = rtf_to_text(payload.decode("latin-1"))
                    if stripped:
                        return stripped
            return category.placeholder

        if category is ContentCategory.MARKUP:
            if text is not None:
                return text
            for type_id in sorted(ct.MARKUP_TYPES & snapshot.types):
                payload = snapshot.data(type_id)
                if payload:
                    return payload.decode("utf-8", errors="replace")
            return category.placeholder

        if category is ContentCategory.IMAGE:
            for payload in snapshot.image_payloads():
                dimensions = _image_dimensions(payload)
                if dimensions is not None:
                    width, height = dimensions
                    return f"Image {width}\u00d7{height}"
            return category.placeholder

        if category is ContentCategory.FILE_REFERENCE:
            names = [_basename(path) for path in self._file_paths(snapshot)]
            names = [name for name in names if name]
            if not names:
                return category.placeholder
            preview = ", ".join(names[:MAX_LISTED_FILES])
            if len(names) > MAX_LISTED_FILES:
                preview += f" +{len(names) - MAX_LISTED_FILES} more"
            return preview

        if category is ContentCategory.COLOR:
            # Only the GTK layout is decoded; other color payloads are archived objects.
            payload = snapshot.data(ct.GTK_COLOR)
            rendered = _color_hex(payload) if payload else None
            return rendered or category.placeholder

        return category.placeholder

    def _file_paths(self, snapshot: _Snapshot) -> list[str]:
        for type_id in (ct.GNOME_COPIED_FILES, ct.URI_LIST, "public.file-url", "NSFilenamesPboardType"):
            payload = snapshot.data(type_id)
            if not payload:
                continue
            paths = [_path_from_entry(entry) for entry in _uri_entries(payload)]
            if paths:
                return paths
        return []

    def _first_url(self, snapshot: _Snapshot) -> Optional[str]:
        for type_id in sorted(ct.URL_TYPES & snapshot.types):
            payload = snapshot.data(type_id)
            if not payload:
                continue
            entries = _uri_entries(payload)
            if entries:
                return entries[0]
        return None

    # ------------------------------------------------------------------ #
    # Thumbnails                                                         #
    # ------------------------------------------------------------------ #

    def _thumbnail(self, category: ContentCategory, snapshot: _Snapshot) -> Optional[bytes]:
        if category is ContentCategory.IMAGE:
            candidates = snapshot.image_payloads()
        elif category is ContentCategory.DOCUMENT:
            # Pillow cannot rasterise PDF pages; documents only get a thumbnail
            # when the copying application also supplied a rendered image.
            candidates = snapshot.image_payloads()
            candidates += [
                payload
                for payload in (snapshot.data(type_id) for type_id in sorted(ct.DOCUMENT_TYPES))
                if payload
            ]
        else:
            return None

        for payload in candidates:
            thumbnail = render_thumbnail(payload)
            if thumbnail is not None:
                return thumbnail
        return None


def looks_like_source_code(text: str) -> bool:
    """Return whether ``text`` resembles source code.

    At least three lines are required, and two distinct lines among the first
    twenty must contain a keyword or punctuation idiom typical of source code.
    """
    lines = _LINE_BREAK.split(text)
    if len(lines) < 3:
        return False
    matches = 0
    for line in lines[:SOURCE_SCAN_LINES]:
        if any(pattern in line for pattern in _CODE_PATTERNS):
            matches += 1
    return matches >= 2


def render_thumbnail(payload: bytes, max_dimension: int = MAX_THUMBNAIL_DIMENSION) -> Optional[bytes]:
    """Decode ``payload`` and return a PNG no larger than ``max_dimension`` on either side.

    Images that already fit are re-encoded at their original size. Undecodable
    payloads yield ``None``.
    """
    try:
        with Image.open(io.BytesIO(payload)) as image:
            image.load()
            width, height = image.size
            if width <= 0 or height <= 0:
                return None
            if image.mode not in ("1", "L", "LA", "P", "RGB", "RGBA"):
                image = image.convert("RGBA")
            image.thumbnail((max_dimension, max_dimension))
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()
    except Exception as exc:  # pragma: no cover - corrupt or unsupported images
        LOGGER.debug("Thumbnail generation failed: %s", exc)
        return None


def rtf_to_text(rtf: str) -> str:
    """Extract the visible text of an RTF document."""
    output: list[str] = []
    skip_depth: Optional[int] = None
    skip_fallback = False
    depth = 0
    position = 0
    for match in _RTF_CONTROL.finditer(rtf):
        if skip_depth is None:
            segment = rtf[position : match.start()].replace("\r", "").replace("\n", "")
            if skip_fallback and segment:
                segment = segment[1:]
            skip_fallback = False
            output.append(segment)
        position = match.end()
        word, argument, hex_code, symbol, brace = match.groups()
        if brace == "{":
            depth += 1
            continue
        if brace == "}":
            if skip_depth is not None and depth <= skip_depth:
                skip_depth = None
            depth -= 1
            continue
        if skip_depth is not None:
            continue
        if word in _RTF_SKIP_DESTINATIONS or symbol == "*":
            skip_depth = depth
        elif word in ("par", "line"):
            output.append("\n")
        elif word == "tab":
            output.append("\t")
        elif word == "u" and argument is not None:
            output.append(chr(int(argument) % 0x10000))
            skip_fallback = True
        elif hex_code is not None:
            if skip_fallback:
                skip_fallback = False
            else:
                output.append(bytes.fromhex(hex_code).decode("cp1252", errors="replace"))
        elif symbol is not None and symbol in "\\{}":
            output.append(symbol)
    if skip_depth is None:
        output.append(rtf[position:].replace("\r", "").replace("\n", ""))
    return "".join(output).strip()


def _absolute_url_scheme(text: str) -> Optional[str]:
    candidate = text.strip()
    if not candidate or any(char.isspace() for char in candidate):
        return None
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    return parsed.scheme.lower()


def _uri_entries(payload: bytes) -> list[str]:
    text = payload.decode("utf-8", errors="ignore")
    lines = [line.strip() for line in _LINE_BREAK.split(text) if line.strip()]
    if lines and lines[0].lower() in {"copy", "cut"}:
        lines = lines[1:]
    return [line for line in lines if not line.startswith("#")]


def _path_from_entry(entry: str) -> str:
    parsed = urlparse(entry)
    if parsed.scheme == "file":
        return unquote(parsed.path)
    return unquote(entry)


def _basename(path: str) -> str:
    return PurePosixPath(path.rstrip("/")).name or path


def _image_rank(type_id: str) -> tuple[int, str]:
    try:
        return ct.IMAGE_TYPES.index(type_id), type_id
    except ValueError:
        return len(ct.IMAGE_TYPES), type_id


def _image_dimensions(payload: bytes) -> Optional[tuple[int, int]]:
    try:
        with Image.open(io.BytesIO(payload)) as image:
            return image.size
    except Exception:  # pragma: no cover - corrupt images
        return None


def _color_hex(payload: bytes) -> Optional[str]:
    """Render a GTK ``application/x-color`` payload (four 16-bit channels) as ``#RRGGBB``."""
    if len(payload) < 6:
        return None
    channels = struct.unpack_from("<3H", payload)
    red, green, blue = (int(channel / 65535 * 255) for channel in channels)
    return f"#{red:02X}{green:02X}{blue:02X}"


__all__ = [
    "Classification",
    "ContentClassifier",
    "SnapshotReader",
    "looks_like_source_code",
    "render_thumbnail",
    "rtf_to_text",
    "MAX_THUMBNAIL_DIMENSION",
]
