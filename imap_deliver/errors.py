"""Exceptions raised by mailbox sessions and delivery callbacks."""

from __future__ import annotations


class MailboxError(Exception):
    """Base class for failures talking to the mailbox server."""


class ConnectError(MailboxError):
    """Connecting or authenticating failed."""


class SearchError(MailboxError):
    """Selecting the mailbox or listing its messages failed."""


class CharsetRejectedError(SearchError):
    """The server refused the search charset (BADCHARSET)."""


class FetchError(MailboxError):
    """Retrieving a message body failed."""


class FlagError(MailboxError):
    """Reading or storing message flags failed."""


class MoveError(MailboxError):
    """Copying a message into another mailbox failed."""


class DeliveryError(Exception):
    """A delivery callback could not hand the message over."""
