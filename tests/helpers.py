from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Sequence

from imapclient import imap_utf7

from imap_deliver.errors import (
    CharsetRejectedError,
    ConnectError,
    FetchError,
    FlagError,
    MoveError,
    SearchError,
)
from imap_deliver.search import Criterion
from imap_deliver.session import DELETED, SEEN, MailboxSession


@dataclass
class FakeMessage:
    body: bytes
    subject: str = ""
    flags: set[str] = field(default_factory=set)


class FakeSession(MailboxSession):
    """In-memory mailbox server speaking the session primitives."""

    def __init__(
        self,
        messages: Optional[dict[int, FakeMessage]] = None,
        *,
        mailbox: str = "INBOX",
        utf8_search: bool = True,
        existing: Sequence[str] = (),
    ) -> None:
        super().__init__()
        self.mailboxes: dict[str, dict[int, FakeMessage]] = {mailbox: dict(messages or {})}
        for name in existing:
            self.mailboxes.setdefault(name, {})
        self.utf8_search = utf8_search
        self.calls: list[tuple] = []
        self.connected = False
        self.selected: Optional[str] = None
        self.connect_error: Optional[Exception] = None
        self.search_error: Optional[Exception] = None
        self.fetch_fail: set[int] = set()
        self.copy_fail: set[int] = set()
        self.flag_fail: set[tuple[int, str]] = set()

    def __str__(self) -> str:
        return "tester@fake:143"

    def messages_in(self, mailbox: str) -> dict[int, FakeMessage]:
        return self.mailboxes.get(mailbox, {})

    def calls_named(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    def connect(self) -> None:
        self.calls.append(("connect",))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def close(self, expunge: bool = True) -> None:
        self.calls.append(("close", expunge))
        if expunge and self.selected is not None:
            box = self.mailboxes[self.selected]
            for uid in [uid for uid, msg in box.items() if DELETED in msg.flags]:
                del box[uid]
        self.connected = False
        self.selected = None

    def select(self, mailbox: str) -> None:
        self._require()
        self.calls.append(("select", mailbox))
        if mailbox not in self.mailboxes:
            raise SearchError(f"no mailbox {mailbox}")
        self.selected = mailbox

    def search(self, criteria: Sequence[Criterion], charset: Optional[str] = None) -> list[int]:
        self.calls.append(("search", list(criteria), charset))
        if self.search_error is not None:
            raise self.search_error
        if charset is not None and not self.utf8_search:
            raise CharsetRejectedError("NO [BADCHARSET (US-ASCII)] charset not supported")
        return self._match(criteria)

    def search_raw(self, criteria: Sequence[Criterion]) -> list[int]:
        self.calls.append(("search_raw", list(criteria)))
        if self.search_error is not None:
            raise self.search_error
        return self._match(criteria)

    def read_to(self, sink: BinaryIO, uid: int) -> int:
        self.calls.append(("read_to", uid))
        if uid in self.fetch_fail:
            raise FetchError(f"fetching uid {uid}: connection reset")
        body = self._message(uid).body
        sink.write(body)
        return len(body)

    def get_flags(self, uid: int) -> frozenset[str]:
        return frozenset(self._message(uid).flags)

    def set_flag(self, uid: int, keyword: str, on: bool = True) -> None:
        self.calls.append(("set_flag", uid, keyword, on))
        if (uid, keyword) in self.flag_fail:
            raise FlagError(f"storing {keyword} on uid {uid}")
        flags = self._message(uid).flags
        if on:
            flags.add(keyword)
        else:
            flags.discard(keyword)

    def create_mailbox(self, mailbox: str) -> None:
        self.calls.append(("create", mailbox))
        if mailbox in self.mailboxes:
            raise MoveError(f"[ALREADYEXISTS] {mailbox}")
        self.mailboxes[mailbox] = {}

    def copy(self, uid: int, mailbox: str) -> None:
        self.calls.append(("copy", uid, mailbox))
        if uid in self.copy_fail or mailbox not in self.mailboxes:
            raise MoveError(f"copying uid {uid} to {mailbox}")
        source = self._message(uid)
        target = self.mailboxes[mailbox]
        target[max(target, default=0) + 1] = FakeMessage(source.body, source.subject, set(source.flags))

    def _require(self) -> None:
        if not self.connected:
            raise ConnectError("not connected")

    def _message(self, uid: int) -> FakeMessage:
        return self.mailboxes[self.selected or "INBOX"][uid]

    def _match(self, criteria: Sequence[Criterion]) -> list[int]:
        criteria = list(criteria)
        box = self.mailboxes[self.selected or "INBOX"]
        subject = None
        if "SUBJECT" in criteria:
            term = criteria[criteria.index("SUBJECT") + 1]
            subject = imap_utf7.decode(term) if isinstance(term, bytes) else term
        matches = []
        for uid, msg in box.items():
            if criteria[0] == "UNSEEN" and SEEN in msg.flags:
                continue
            if criteria[:2] == ["NOT", "DELETED"] and DELETED in msg.flags:
                continue
            if subject is not None and subject not in msg.subject:
                continue
            matches.append(uid)
        return matches


def make_messages(count: int, subject: str = "Report") -> dict[int, FakeMessage]:
    return {
        uid: FakeMessage(f"Subject: {subject} {uid}\r\n\r\nbody {uid}\r\n".encode(), f"{subject} {uid}")
        for uid in range(1, count + 1)
    }


class RecordingDeliverer:
    """Delivery callback that remembers what it got and can refuse UIDs."""

    def __init__(self, fail: Sequence[int] = ()) -> None:
        self.fail = set(fail)
        self.delivered: list[tuple[int, bytes, bytes]] = []
        self.attempts: list[int] = []

    def __call__(self, content: BinaryIO, uid: int, digest: bytes) -> None:
        self.attempts.append(uid)
        if uid in self.fail:
            raise RuntimeError(f"handler refused uid {uid}")
        self.delivered.append((uid, content.read(), digest))
