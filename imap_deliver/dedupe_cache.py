"""SQLite-backed cache to prevent duplicate deliveries."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import sqlite_utils

from .utils import utc_now_iso


class DedupeCache:
    """Store the SHA-1 of every delivered message."""

    TABLE = "delivered_messages"

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db = sqlite_utils.Database(str(db_path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.db[self.TABLE].create(
            {
                "sha1": str,
                "uid": int,
                "mailbox": str,
                "delivered_at": str,
            },
            pk="sha1",
            if_not_exists=True,
        )

    def seen(self, sha1: str) -> bool:
        return self.db[self.TABLE].count_where("sha1 = ?", [sha1]) > 0

    def record(self, *, sha1: str, uid: int, mailbox: Optional[str] = None) -> None:
        self.db[self.TABLE].upsert(
            {
                "sha1": sha1,
                "uid": uid,
                "mailbox": mailbox,
                "delivered_at": utc_now_iso(),
            },
            pk="sha1",
        )

    def close(self) -> None:
        self.db.close()
