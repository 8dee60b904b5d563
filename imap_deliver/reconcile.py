"""One round of listing, delivering and filing messages."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import MailboxError
from .models import DeliverFunc, MailboxState, PassResult
from .processor import MessageProcessor
from .session import MailboxSession
from .spool import DEFAULT_MAX_MEMORY

logger = logging.getLogger(__name__)


def reconcile(
    session: MailboxSession,
    state: MailboxState,
    deliver: DeliverFunc,
    max_memory: int = DEFAULT_MAX_MEMORY,
    log: Optional[logging.Logger] = None,
) -> PassResult:
    """Connect, deliver every candidate message once and log out.

    Only connection and listing failures end up in ``PassResult.error``;
    failures of single messages are logged and skipped.
    """
    log = log or logger
    try:
        session.connect()
    except MailboxError as exc:
        log.error("Connecting server=%s failed: %s", session, exc)
        return PassResult(0, exc)

    try:
        try:
            uids = session.list_messages(state.inbox, state.pattern, state.all_undeleted)
        except MailboxError as exc:
            log.error("List server=%s inbox=%s failed: %s", session, state.inbox, exc)
            return PassResult(0, exc)

        processor = MessageProcessor(session, state, deliver, max_memory=max_memory, logger=log)
        delivered = 0
        for uid in uids:
            if processor.process(uid):
                delivered += 1
        return PassResult(delivered)
    finally:
        try:
            session.close(expunge=True)
        except MailboxError as exc:
            log.error("Close server=%s failed: %s", session, exc)


def deliver_one(
    session: MailboxSession,
    inbox: str,
    pattern: str,
    deliver: DeliverFunc,
    outbox: Optional[str] = None,
    errbox: Optional[str] = None,
    max_memory: int = DEFAULT_MAX_MEMORY,
) -> PassResult:
    """Run a single pass without looping; an empty inbox means INBOX."""
    state = MailboxState(inbox=inbox, pattern=pattern, outbox=outbox, errbox=errbox)
    return reconcile(session, state, deliver, max_memory=max_memory)
