"""Utility helpers shared across modules."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import BinaryIO, Iterator

UID_HEADER = "X-UID"
SHA1_HEADER = "X-SHA1"


def sha1_hex(digest: bytes) -> str:
    """Render a raw SHA-1 digest the way it appears in headers and file names."""
    return digest.hex()


def identifying_headers(uid: int, digest: bytes) -> dict[str, str]:
    """Headers that let downstream consumers recognise a redelivered message."""
    return {UID_HEADER: str(uid), SHA1_HEADER: sha1_hex(digest)}


def header_block(uid: int, digest: bytes) -> bytes:
    """RFC 5322 header lines to prepend to the raw message."""
    lines = [f"{name}: {value}\r\n" for name, value in identifying_headers(uid, digest).items()]
    return "".join(lines).encode("ascii")


def iter_chunks(stream: BinaryIO, size: int = 64 * 1024) -> Iterator[bytes]:
    """Yield a stream in fixed-size chunks until exhausted."""
    while True:
        chunk = stream.read(size)
        if not chunk:
            return
        yield chunk


def utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()
