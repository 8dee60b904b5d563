"""Spill-to-disk message buffer that hashes what it stores."""

from __future__ import annotations

import hashlib
import tempfile
from typing import BinaryIO

DEFAULT_MAX_MEMORY = 1024 * 1024


class HashingSpool:
    """Buffer one message body while computing its SHA-1 in the same pass.

    Small bodies stay in memory; once ``max_memory`` bytes are exceeded the
    buffer moves to an anonymous temporary file. After writing, ``rewind``
    returns a seekable handle positioned at the first byte.
    """

    def __init__(self, name: str = "", max_memory: int = DEFAULT_MAX_MEMORY) -> None:
        self.name = name
        self.max_memory = max_memory
        self._file = tempfile.SpooledTemporaryFile(max_size=max_memory, prefix=f"imap-{name}-")
        self._hash = hashlib.sha1()
        self.size = 0

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        written = self._file.write(data)
        self.size += len(data)
        return written if written is not None else len(data)

    def digest(self) -> bytes:
        return self._hash.digest()

    @property
    def spilled(self) -> bool:
        """True once the content lives on disk instead of in memory."""
        return self.size > self.max_memory

    def rewind(self) -> BinaryIO:
        self._file.seek(0)
        return self._file  # type: ignore[return-value]

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> "HashingSpool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
