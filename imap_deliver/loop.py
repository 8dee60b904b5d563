"""Poll a mailbox repeatedly, backing off when there is nothing to do."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from .models import DEFAULT_LONG_SLEEP, DEFAULT_SHORT_SLEEP, DeliverFunc, MailboxState, PassResult
from .reconcile import reconcile
from .session import MailboxSession
from .spool import DEFAULT_MAX_MEMORY


@dataclass
class PollScheduler:
    """Run reconciliation passes until ``cancel`` is set.

    After a pass that delivered something the scheduler waits ``short_sleep``
    seconds; after an empty or failed pass it waits ``long_sleep``. The
    cancellation event is looked at between passes only, so a pass that has
    started always runs to completion.
    """

    session: MailboxSession
    state: MailboxState
    deliver: DeliverFunc
    short_sleep: float = DEFAULT_SHORT_SLEEP
    long_sleep: float = DEFAULT_LONG_SLEEP
    max_memory: int = DEFAULT_MAX_MEMORY
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def interval(self, result: PassResult) -> float:
        if result.error is not None or result.delivered == 0:
            return self.long_sleep
        return self.short_sleep

    def run_once(self) -> PassResult:
        result = reconcile(
            self.session, self.state, self.deliver, max_memory=self.max_memory, log=self.logger
        )
        if result.error is not None:
            self.logger.error(
                "Delivery pass failed: inbox=%s n=%d error=%s",
                self.state.inbox,
                result.delivered,
                result.error,
            )
        else:
            self.logger.info(
                "Delivery pass finished: inbox=%s n=%d", self.state.inbox, result.delivered
            )
        return result

    def run(self, cancel: Optional[threading.Event] = None) -> int:
        """Loop until cancelled; return the number of passes run."""
        cancel = cancel or threading.Event()
        passes = 0
        while True:
            result = self.run_once()
            passes += 1
            if cancel.is_set():
                return passes
            if cancel.wait(self.interval(result)):
                return passes


def delivery_loop(
    session: MailboxSession,
    inbox: str,
    pattern: str,
    deliver: DeliverFunc,
    outbox: Optional[str] = None,
    errbox: Optional[str] = None,
    cancel: Optional[threading.Event] = None,
    short_sleep: float = DEFAULT_SHORT_SLEEP,
    long_sleep: float = DEFAULT_LONG_SLEEP,
) -> int:
    """Deliver messages from ``inbox`` until ``cancel`` is set.

    Messages matching ``pattern`` in their subject (or any unseen message if the
    pattern is empty) are handed to ``deliver`` with their UID and SHA-1. A
    delivered message is marked Seen and, when ``outbox`` is given, moved
    there; a rejected one is moved to ``errbox`` when that is given.
    """
    state = MailboxState(inbox=inbox, pattern=pattern, outbox=outbox, errbox=errbox)
    scheduler = PollScheduler(
        session, state, deliver, short_sleep=short_sleep, long_sleep=long_sleep
    )
    return scheduler.run(cancel)
