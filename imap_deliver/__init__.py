"""Deliver messages from an IMAP mailbox to a local callback."""

from __future__ import annotations

import logging

from .loop import PollScheduler, delivery_loop
from .models import MailboxState, PassResult
from .reconcile import deliver_one

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["MailboxState", "PassResult", "PollScheduler", "deliver_one", "delivery_loop"]
