"""Delivery callbacks that stamp each message with its UID and SHA-1."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Union

import requests

from .config import Settings
from .dedupe_cache import DedupeCache
from .errors import DeliveryError
from .models import DeliverFunc
from .utils import header_block, identifying_headers, iter_chunks, sha1_hex

logger = logging.getLogger(__name__)


class DirectoryDeliverer:
    """Write every message as ``<uid>-<sha1>.eml`` into a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, uid: int, digest: bytes) -> Path:
        return self.directory / f"{uid}-{sha1_hex(digest)}.eml"

    def __call__(self, content: BinaryIO, uid: int, digest: bytes) -> None:
        target = self.path_for(uid, digest)
        if target.exists():
            logger.info("uid=%s already stored at %s; skipping", uid, target)
            return

        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".incoming-", suffix=".eml")
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(header_block(uid, digest))
                for chunk in iter_chunks(content):
                    out.write(chunk)
            os.replace(tmp_name, target)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise DeliveryError(f"writing uid {uid} to {target}: {exc}") from exc
        logger.info("Stored uid=%s at %s", uid, target)

    def close(self) -> None:
        pass


class SizedBody:
    """Readable view of a message body that knows its length.

    requests takes the Content-Length from ``len()`` and streams through
    ``read``, so it never asks the underlying spool for a ``fileno``.
    """

    def __init__(self, content: BinaryIO) -> None:
        self._content = content
        start = content.tell()
        self._length = content.seek(0, os.SEEK_END) - start
        content.seek(start)

    def __len__(self) -> int:
        return self._length

    def read(self, size: int = -1) -> bytes:
        return self._content.read(size)


class HttpDeliverer:
    """POST the raw message to an HTTP endpoint."""

    def __init__(
        self,
        url: str,
        token: Optional[str] = None,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def __call__(self, content: BinaryIO, uid: int, digest: bytes) -> None:
        headers = {"Content-Type": "message/rfc822", **identifying_headers(uid, digest)}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        logger.info("Posting uid=%s to %s", uid, self.url)
        try:
            response = self.session.post(self.url, headers=headers, data=SizedBody(content), timeout=self.timeout)
        except requests.RequestException as exc:
            raise DeliveryError(f"posting uid {uid}: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Delivery of uid=%s failed (%s): %s", uid, response.status_code, response.text)
            try:
                response.raise_for_status()
            except requests.HTTPError as exc:
                raise DeliveryError(f"posting uid {uid}: HTTP {response.status_code}") from exc

    def close(self) -> None:
        self.session.close()


class DedupingDeliverer:
    """Skip messages whose SHA-1 was already delivered, record the rest."""

    def __init__(self, deliver: DeliverFunc, cache: DedupeCache, mailbox: Optional[str] = None) -> None:
        self.deliver = deliver
        self.cache = cache
        self.mailbox = mailbox

    def __call__(self, content: BinaryIO, uid: int, digest: bytes) -> None:
        checksum = sha1_hex(digest)
        if self.cache.seen(checksum):
            logger.info("Already delivered uid=%s sha1=%s; skipping", uid, checksum)
            return
        self.deliver(content, uid, digest)
        self.cache.record(sha1=checksum, uid=uid, mailbox=self.mailbox)

    def close(self) -> None:
        self.cache.close()
        inner_close = getattr(self.deliver, "close", None)
        if inner_close is not None:
            inner_close()


Deliverer = Union[DirectoryDeliverer, HttpDeliverer, DedupingDeliverer]


def build_deliverer(settings: Settings) -> Deliverer:
    """Assemble the delivery callback described by ``settings``.

    The caller owns the result and must ``close`` it when done.
    """
    deliver: Deliverer
    if settings.delivery_mode == "http":
        deliver = HttpDeliverer(settings.delivery_url or "", token=settings.delivery_token)
    else:
        deliver = DirectoryDeliverer(settings.delivery_dir)

    if settings.dedupe_db is not None:
        cache = DedupeCache(settings.dedupe_db)
        deliver = DedupingDeliverer(deliver, cache, mailbox=settings.imap_inbox)
    return deliver
