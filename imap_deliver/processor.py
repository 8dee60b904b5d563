"""Per-message fetch, delivery and state transition."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import MailboxError
from .models import DeliverFunc, MailboxState
from .session import MailboxSession
from .spool import DEFAULT_MAX_MEMORY, HashingSpool
from .utils import sha1_hex


class MessageProcessor:
    """Deliver one message by UID and update its flags and location.

    ``process`` returns True only when the delivery callback succeeded; what
    happens to the message afterwards (Seen flag, move) never changes that.
    """

    def __init__(
        self,
        session: MailboxSession,
        state: MailboxState,
        deliver: DeliverFunc,
        max_memory: int = DEFAULT_MAX_MEMORY,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.session = session
        self.state = state
        self.deliver = deliver
        self.max_memory = max_memory
        self._logger = logger or logging.getLogger(__name__)

    def process(self, uid: int) -> bool:
        with HashingSpool(str(uid), max_memory=self.max_memory) as body:
            try:
                self.session.read_to(body, uid)
            except MailboxError as exc:
                self._logger.error("Read uid=%s failed: %s", uid, exc)
                return False

            digest = body.digest()
            self._logger.debug("Read uid=%s size=%d sha1=%s", uid, body.size, sha1_hex(digest))
            try:
                self.deliver(body.rewind(), uid, digest)
            except Exception as exc:
                self._logger.error("Deliver uid=%s failed: %s", uid, exc)
                delivered = False
            else:
                delivered = True

        if not delivered:
            self._reject(uid)
            return False
        self._accept(uid)
        return True

    def _reject(self, uid: int) -> None:
        if not self.state.errbox:
            return
        try:
            self.session.move(uid, self.state.errbox)
        except MailboxError as exc:
            self._logger.error("Move uid=%s to errbox=%s failed: %s", uid, self.state.errbox, exc)

    def _accept(self, uid: int) -> None:
        try:
            self.session.mark_seen(uid)
        except MailboxError as exc:
            self._logger.error("Mark seen uid=%s failed: %s", uid, exc)

        if not self.state.outbox:
            return
        try:
            self.session.move(uid, self.state.outbox)
        except MailboxError as exc:
            self._logger.error("Move uid=%s to outbox=%s failed: %s", uid, self.state.outbox, exc)
