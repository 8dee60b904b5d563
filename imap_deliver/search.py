"""Build message searches and negotiate the search charset with the server."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Union

from imapclient import imap_utf7

from .errors import CharsetRejectedError
from .models import CharsetCapability

if TYPE_CHECKING:
    from .session import MailboxSession


Criterion = Union[str, bytes]


def build_criteria(pattern: str, all_undeleted: bool) -> list[Criterion]:
    """Return the search keys for the candidate messages.

    Unseen messages are the candidates unless every undeleted message has to be
    triaged; a non-empty ``pattern`` narrows the result to matching subjects.
    """
    criteria: list[Criterion] = ["NOT", "DELETED"] if all_undeleted else ["UNSEEN"]
    if pattern:
        criteria.extend(["SUBJECT", pattern])
    return criteria


def needs_charset(pattern: str) -> bool:
    return not pattern.isascii()


class SearchStrategy:
    """Issue searches, falling back to modified UTF-7 once the server rejects UTF-8.

    The decision is remembered for the lifetime of the owning session so a
    server without UTF-8 search support costs one failed round trip, not one
    per pass.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.capability = CharsetCapability.UTF8
        self._logger = logger or logging.getLogger(__name__)

    @property
    def fallback_required(self) -> bool:
        return self.capability is CharsetCapability.UTF7_FALLBACK

    def search(self, session: MailboxSession, pattern: str, all_undeleted: bool) -> list[int]:
        """Return the UIDs in the selected mailbox matching ``pattern``."""
        criteria = build_criteria(pattern, all_undeleted)
        if not self.fallback_required:
            charset = "UTF-8" if needs_charset(pattern) else None
            try:
                return session.search(criteria, charset=charset)
            except CharsetRejectedError as exc:
                self._logger.debug("UID SEARCH %s rejected the charset: %s", criteria, exc)
                self.capability = CharsetCapability.UTF7_FALLBACK

        if pattern:
            criteria[-1] = imap_utf7.encode(pattern)
        self._logger.debug("UID SEARCH (without charset) %s", criteria)
        return session.search_raw(criteria)
