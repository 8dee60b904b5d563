"""Typed containers shared across the delivery engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Optional

DEFAULT_INBOX = "INBOX"
DEFAULT_SHORT_SLEEP = 1.0
DEFAULT_LONG_SLEEP = 5 * 60.0

# deliver(content, uid, sha1): content is rewound to its start before the call.
DeliverFunc = Callable[[BinaryIO, int, bytes], None]


class TLSPolicy(str, Enum):
    """How the session secures its connection."""

    AUTO = "auto"
    FORCE = "force"
    NONE = "none"


class CharsetCapability(str, Enum):
    """What the server accepted for non-ASCII search terms."""

    UTF8 = "utf8"
    UTF7_FALLBACK = "utf7"


@dataclass(frozen=True)
class MailboxState:
    """Source mailbox, subject filter and destinations for one run."""

    inbox: str = DEFAULT_INBOX
    pattern: str = ""
    outbox: Optional[str] = None
    errbox: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.inbox:
            object.__setattr__(self, "inbox", DEFAULT_INBOX)
        if not self.outbox:
            object.__setattr__(self, "outbox", None)
        if not self.errbox:
            object.__setattr__(self, "errbox", None)

    @property
    def all_undeleted(self) -> bool:
        """Triage every undeleted message when both destinations are set."""
        return self.outbox is not None and self.errbox is not None


@dataclass
class PassResult:
    """Outcome of one reconciliation pass."""

    delivered: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
