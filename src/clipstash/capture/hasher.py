"""Content hashing used as the deduplication key."""

from __future__ import annotations

import hashlib
from typing import Iterable

from .models import Representation


class ContentHasher:
    """Compute SHA-256 digests over the concatenated bytes of a snapshot.

    Only representation bytes feed the digest, in capture order; type tags,
    timestamps and ids do not. The result is stable across processes.
    """

    algorithm = "sha256"

    def compute(self, representations: Iterable[Representation]) -> str:
        """Return the hex digest for ``representations``."""
        digest = hashlib.new(self.algorithm)
        for representation in representations:
            digest.update(representation.data)
        return digest.hexdigest()


__all__ = ["ContentHasher"]
