"""Mailbox session interface consumed by the delivery engine."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional, Sequence

from .errors import FlagError, MailboxError, MoveError
from .search import Criterion, SearchStrategy


SEEN = "\\Seen"
DELETED = "\\Deleted"


class MailboxSession(ABC):
    """Listing, reading, flagging and moving messages by UID.

    Subclasses bind the protocol primitives (the abstract methods) to a concrete
    client library. Listing, moving and the flag helpers are built on top of
    them here, together with the two per-session caches: the mailboxes this
    session already created and the negotiated search charset.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self.created: set[str] = set()
        self.search_strategy = SearchStrategy(logger=self._logger)

    @abstractmethod
    def connect(self) -> None:
        """Establish and authenticate a fresh connection."""

    @abstractmethod
    def close(self, expunge: bool = True) -> None:
        """Leave the selected mailbox (expunging if asked) and log out."""

    @abstractmethod
    def select(self, mailbox: str) -> None:
        ...

    @abstractmethod
    def search(self, criteria: Sequence[Criterion], charset: Optional[str] = None) -> list[int]:
        """UID SEARCH through the client's search helper."""

    @abstractmethod
    def search_raw(self, criteria: Sequence[Criterion]) -> list[int]:
        """UID SEARCH sent as-is, without any CHARSET argument."""

    @abstractmethod
    def read_to(self, sink: BinaryIO, uid: int) -> int:
        """Stream the full body of ``uid`` into ``sink``; return bytes written."""

    @abstractmethod
    def get_flags(self, uid: int) -> frozenset[str]:
        ...

    @abstractmethod
    def set_flag(self, uid: int, keyword: str, on: bool = True) -> None:
        ...

    @abstractmethod
    def create_mailbox(self, mailbox: str) -> None:
        ...

    @abstractmethod
    def copy(self, uid: int, mailbox: str) -> None:
        ...

    def list_messages(self, mailbox: str, pattern: str = "", all_undeleted: bool = False) -> list[int]:
        """Select ``mailbox`` and return the candidate UIDs.

        Only unseen messages are listed unless ``all_undeleted`` is set.
        """
        self._logger.debug("List mailbox=%s pattern=%r", mailbox, pattern)
        self.select(mailbox)
        return self.search_strategy.search(self, pattern, all_undeleted)

    def mark_seen(self, uid: int) -> None:
        self.set_flag(uid, SEEN, True)

    def mark_unseen(self, uid: int) -> None:
        self.set_flag(uid, SEEN, False)

    def mark_deleted(self, uid: int) -> None:
        self.set_flag(uid, DELETED, True)

    def mark_undeleted(self, uid: int) -> None:
        self.set_flag(uid, DELETED, False)

    def set_flag_regex(self, uid: int, regex: str, on: bool = True) -> None:
        """Set or clear every flag of ``uid`` that matches ``regex``."""
        rex = re.compile(regex)
        for flag in sorted(self.get_flags(uid)):
            if rex.search(flag):
                self.set_flag(uid, flag, on)

    def move(self, uid: int, mailbox: str) -> None:
        """Copy ``uid`` into ``mailbox`` and mark the original deleted.

        The destination is created the first time this session moves anything
        there; a failed create (usually "already exists") is logged and not
        retried. Removal from the source happens on expunge at close.
        """
        if mailbox not in self.created:
            self._logger.info("Create mailbox=%s", mailbox)
            self.created.add(mailbox)
            try:
                self.create_mailbox(mailbox)
            except MailboxError as exc:
                self._logger.error("Create mailbox=%s failed: %s", mailbox, exc)

        self.copy(uid, mailbox)
        try:
            self.mark_deleted(uid)
        except FlagError as exc:
            self._logger.error(
                "uid=%s copied to %s but could not be marked deleted; it now exists in both: %s",
                uid,
                mailbox,
                exc,
            )
            raise MoveError(f"uid {uid} copied to {mailbox} but not marked deleted") from exc
