"""Linux desktop clipboard driven through wl-clipboard or xclip."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import subprocess
import threading
from typing import List, Optional, Sequence

from clipstash.capture import types as ct
from clipstash.capture.models import Representation

from .base import ClipboardBackend, ClipboardError

LOGGER = logging.getLogger(__name__)

_X11_META_TARGETS = frozenset(
    {"TARGETS", "TIMESTAMP", "MULTIPLE", "SAVE_TARGETS", "DELETE", "INSERT_PROPERTY", "INSERT_SELECTION"}
)
_READ_TIMEOUT = 1.5
_WRITE_TIMEOUT = 2.0


class CommandClipboard(ClipboardBackend):
    """Clipboard backed by the ``wl-paste``/``wl-copy`` or ``xclip`` command line tools.

    Neither tool exposes a change counter, so one is derived: every call to
    :meth:`current_change_counter` fingerprints the advertised types and the
    preferred payload, and bumps the counter whenever the fingerprint moves.
    """

    def __init__(self, flavor: str) -> None:
        if flavor not in ("wayland", "x11"):
            raise ValueError(f"Unknown clipboard flavor '{flavor}'.")
        self.flavor = flavor
        self.name = flavor
        self._lock = threading.Lock()
        self._counter = 0
        self._fingerprint: Optional[str] = None
        self._resync = True

    @classmethod
    def detect(cls) -> "CommandClipboard":
        """Return a backend for the running display server.

        Raises:
            ClipboardError: If neither wl-clipboard nor xclip is usable.
        """
        if os.environ.get("WAYLAND_DISPLAY") and shutil.which("wl-paste") and shutil.which("wl-copy"):
            return cls("wayland")
        if shutil.which("xclip"):
            return cls("x11")
        raise ClipboardError("No clipboard tool found; install wl-clipboard or xclip.")

    def current_change_counter(self) -> int:
        fingerprint = self._compute_fingerprint()
        with self._lock:
            if self._resync:
                self._resync = False
            elif fingerprint != self._fingerprint:
                self._counter += 1
            self._fingerprint = fingerprint
            return self._counter

    def available_types(self) -> list[str]:
        if self.flavor == "wayland":
            raw = self._run_command(["wl-paste", "--list-types"], timeout=_READ_TIMEOUT)
        else:
            raw = self._run_command(
                ["xclip", "-selection", "clipboard", "-t", "TARGETS", "-o"], timeout=_READ_TIMEOUT
            )
        return [target for target in self._parse_type_list(raw) if target not in _X11_META_TARGETS]

    def read(self, type_id: str) -> Optional[bytes]:
        if self.flavor == "wayland":
            command = ["wl-paste", "--no-newline", "--type", type_id]
        else:
            command = ["xclip", "-selection", "clipboard", "-t", type_id, "-o"]
        return self._run_command(command, timeout=_READ_TIMEOUT)

    def write(self, representations: Sequence[Representation]) -> None:
        """Write the preferred representation to the clipboard.

        Both tools serve a single type per invocation, so only one
        representation is offered: file references first, then images, then
        plain text, then whatever was captured first.
        """
        if not representations:
            self.clear()
            return
        chosen = preferred_representation(representations)
        if self.flavor == "wayland":
            command = ["wl-copy", "--type", chosen.type]
        else:
            command = ["xclip", "-selection", "clipboard", "-t", chosen.type, "-i"]
        try:
            subprocess.run(command, input=chosen.data, check=True, timeout=_WRITE_TIMEOUT)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            raise ClipboardError(f"Failed to write clipboard via {command[0]}: {exc}") from exc
        self._note_own_write()

    def clear(self) -> None:
        if self.flavor == "wayland":
            command = ["wl-copy", "--clear"]
        else:
            command = ["xclip", "-selection", "clipboard", "-i", "/dev/null"]
        try:
            subprocess.run(command, check=True, timeout=_WRITE_TIMEOUT)
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as exc:
            raise ClipboardError(f"Failed to clear clipboard via {command[0]}: {exc}") from exc
        self._note_own_write()

    # Internal helpers -------------------------------------------------

    def _note_own_write(self) -> None:
        with self._lock:
            self._counter += 1
            self._resync = True

    def _compute_fingerprint(self) -> str:
        types = self.available_types()
        digest = hashlib.sha256("\n".join(types).encode("utf-8"))
        preferred = ct.first_present(ct.PLAIN_TEXT_TYPES, types) or (types[0] if types else None)
        if preferred is not None:
            digest.update(self.read(preferred) or b"")
        return digest.hexdigest()

    def _parse_type_list(self, data: Optional[bytes]) -> List[str]:
        if not data:
            return []
        text = data.decode("utf-8", errors="ignore")
        return [line.strip() for line in text.splitlines() if line.strip()]

    def _run_command(self, command: List[str], timeout: float) -> Optional[bytes]:
        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
                timeout=timeout,
            )
            return result.stdout
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError) as exc:
            LOGGER.debug("Clipboard command %s failed: %s", command[0], exc)
            return None


def preferred_representation(representations: Sequence[Representation]) -> Representation:
    """Pick the representation a single-type clipboard tool should serve."""
    for rep in representations:
        if rep.type in ct.FILE_REFERENCE_TYPES or rep.type == ct.URI_LIST:
            return rep
    for rep in representations:
        if ct.is_image_type(rep.type):
            return rep
    for rep in representations:
        if rep.type in ct.PLAIN_TEXT_TYPES:
            return rep
    return representations[0]
