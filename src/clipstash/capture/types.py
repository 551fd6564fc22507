"""Content-type identifiers recognised by the classifier.

Clipboards advertise opaque type tags. Linux desktops use MIME types and X11
target atoms, macOS uses uniform type identifiers; both vocabularies are
listed so snapshots from either source classify the same way.
"""

from __future__ import annotations

from typing import Collection, Iterable

URI_LIST = "text/uri-list"
GNOME_COPIED_FILES = "x-special/gnome-copied-files"
GTK_COLOR = "application/x-color"

FILE_REFERENCE_TYPES = frozenset(
    {
        GNOME_COPIED_FILES,
        "public.file-url",
        "NSFilenamesPboardType",
    }
)

COLOR_TYPES = frozenset({GTK_COLOR, "com.apple.cocoa.pasteboard.color"})

DOCUMENT_TYPES = frozenset({"application/pdf", "com.adobe.pdf"})

IMAGE_TYPES = (
    "image/png",
    "image/tiff",
    "image/jpeg",
    "image/jpg",
    "image/bmp",
    "image/x-ms-bmp",
    "image/gif",
    "image/webp",
    "image/heic",
    "public.png",
    "public.tiff",
    "public.jpeg",
    "public.heic",
)

URL_TYPES = frozenset(
    {
        URI_LIST,
        "text/x-moz-url",
        "_NETSCAPE_URL",
        "public.url",
    }
)

MARKUP_TYPES = frozenset({"text/html", "public.html", "application/xhtml+xml"})

RICH_TEXT_TYPES = frozenset(
    {"text/rtf", "application/rtf", "text/richtext", "public.rtf", "com.apple.flat-rtfd"}
)

TABULAR_TYPES = frozenset(
    {
        "text/csv",
        "text/tab-separated-values",
        "public.comma-separated-values-text",
        "public.tab-separated-values-text",
    }
)

SOURCE_CODE_TYPES = frozenset(
    {
        "public.source-code",
        "com.apple.dt.document.source-code",
        "text/x-python",
        "text/x-csrc",
        "text/x-c++src",
        "text/x-java",
        "text/x-go",
        "text/x-rust",
        "text/javascript",
        "application/x-shellscript",
    }
)

# Ordered by preference when decoding the snapshot's text.
PLAIN_TEXT_TYPES = (
    "text/plain;charset=utf-8",
    "text/plain;charset=UTF-8",
    "public.utf8-plain-text",
    "UTF8_STRING",
    "text/plain",
    "STRING",
    "TEXT",
)

LINK_SCHEMES = frozenset({"http", "https", "ftp", "ssh"})


def first_present(candidates: Iterable[str], available: Collection[str]) -> str | None:
    """Return the first identifier of ``candidates`` contained in ``available``."""
    for candidate in candidates:
        if candidate in available:
            return candidate
    return None


def is_image_type(type_id: str) -> bool:
    """Return whether ``type_id`` names a raster image payload."""
    return type_id in IMAGE_TYPES or (type_id.startswith("image/") and type_id != "image/svg+xml")


__all__ = [
    "URI_LIST",
    "GNOME_COPIED_FILES",
    "GTK_COLOR",
    "FILE_REFERENCE_TYPES",
    "COLOR_TYPES",
    "DOCUMENT_TYPES",
    "IMAGE_TYPES",
    "URL_TYPES",
    "MARKUP_TYPES",
    "RICH_TEXT_TYPES",
    "TABULAR_TYPES",
    "SOURCE_CODE_TYPES",
    "PLAIN_TEXT_TYPES",
    "LINK_SCHEMES",
    "first_present",
    "is_image_type",
]
