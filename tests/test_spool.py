from __future__ import annotations

import hashlib

from imap_deliver.spool import HashingSpool


def test_small_message_stays_in_memory() -> None:
    with HashingSpool("1", max_memory=1024) as spool:
        spool.write(b"Subject: hi\r\n\r\n")
        spool.write(b"body\r\n")

        assert not spool.spilled
        assert spool.size == 21
        assert spool.digest() == hashlib.sha1(b"Subject: hi\r\n\r\nbody\r\n").digest()
        assert spool.rewind().read() == b"Subject: hi\r\n\r\nbody\r\n"


def test_large_message_spills_and_can_be_reread() -> None:
    payload = bytes(range(256)) * 64
    with HashingSpool("2", max_memory=1024) as spool:
        for start in range(0, len(payload), 1000):
            spool.write(payload[start : start + 1000])

        assert spool.spilled
        assert spool.digest() == hashlib.sha1(payload).digest()
        assert spool.rewind().read() == payload
        assert spool.rewind().read(4) == payload[:4]


def test_spill_starts_past_the_memory_limit() -> None:
    with HashingSpool("3", max_memory=8) as spool:
        spool.write(b"12345678")
        assert not spool.spilled

        spool.write(b"9")
        assert spool.spilled
        assert spool.rewind().read() == b"123456789"
