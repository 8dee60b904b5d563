"""IMAP session bound to the ``imapclient`` library."""

from __future__ import annotations

import contextlib
import hmac
import logging
import ssl
from typing import BinaryIO, Callable, Optional, Sequence

from imapclient import IMAPClient
from imapclient.exceptions import IMAPClientError, LoginError

from .config import Settings
from .errors import (
    CharsetRejectedError,
    ConnectError,
    FetchError,
    FlagError,
    MailboxError,
    MoveError,
    SearchError,
)
from .models import TLSPolicy
from .search import Criterion
from .session import MailboxSession


BODY_ITEM = "BODY.PEEK[]"
BODY_KEY = b"BODY[]"

# Network failures surface as OSError (ssl.SSLError and socket.timeout included).
_CLIENT_ERRORS = (IMAPClientError, OSError)


class IMAPSession(MailboxSession):
    """Thin wrapper that connects with ``IMAPClient`` and works in UID mode."""

    def __init__(
        self,
        settings: Settings,
        logger: Optional[logging.Logger] = None,
        client_factory: Callable[..., IMAPClient] = IMAPClient,
    ) -> None:
        super().__init__(logger=logger or logging.getLogger(__name__))
        self.settings = settings
        self.host = settings.imap_host
        self.port = settings.resolved_port
        self.username = settings.imap_username
        self._password = settings.imap_password
        self.tls = settings.imap_tls
        self._client_factory = client_factory
        self._client: IMAPClient | None = None
        self._selected: str | None = None

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"

    @property
    def implicit_tls(self) -> bool:
        if self.tls is TLSPolicy.NONE:
            return False
        if self.tls is TLSPolicy.AUTO:
            return self.port != 143
        return True

    @property
    def connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        if self._client is not None:
            self._discard()

        context = self._ssl_context()
        try:
            client = self._client_factory(
                self.host,
                port=self.port,
                ssl=self.implicit_tls,
                ssl_context=context,
                timeout=self.settings.imap_timeout,
            )
        except _CLIENT_ERRORS as exc:
            raise ConnectError(f"connecting to {self}: {exc}") from exc

        try:
            self._logger.debug("Server says hello=%r", client.welcome)
            if not self.implicit_tls and client.has_capability("STARTTLS"):
                client.starttls(ssl_context=context)
            self._logger.debug("Server capabilities=%s", client.capabilities())
            self._login(client)
        except _CLIENT_ERRORS as exc:
            with contextlib.suppress(*_CLIENT_ERRORS):
                client.shutdown()
            raise ConnectError(f"authenticating to {self}: {exc}") from exc

        self._client = client
        self._selected = None

    def close(self, expunge: bool = True) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        selected, self._selected = self._selected, None
        try:
            if selected is not None:
                if expunge:
                    client.close_folder()
                elif client.has_capability("UNSELECT"):
                    client.unselect_folder()
            client.logout()
        except _CLIENT_ERRORS as exc:
            with contextlib.suppress(*_CLIENT_ERRORS):
                client.shutdown()
            raise MailboxError(f"closing {self}: {exc}") from exc

    def select(self, mailbox: str) -> None:
        client = self._require()
        try:
            client.select_folder(mailbox)
        except _CLIENT_ERRORS as exc:
            raise SearchError(f"selecting {mailbox}: {exc}") from exc
        self._selected = mailbox

    def search(self, criteria: Sequence[Criterion], charset: Optional[str] = None) -> list[int]:
        client = self._require()
        try:
            return list(client.search(list(criteria), charset=charset))
        except _CLIENT_ERRORS as exc:
            if "BADCHARSET" in str(exc).upper():
                raise CharsetRejectedError(str(exc)) from exc
            raise SearchError(f"searching {list(criteria)}: {exc}") from exc

    def search_raw(self, criteria: Sequence[Criterion]) -> list[int]:
        client = self._require()
        try:
            return list(client.search(list(criteria)))
        except _CLIENT_ERRORS as exc:
            raise SearchError(f"searching {list(criteria)}: {exc}") from exc

    def read_to(self, sink: BinaryIO, uid: int) -> int:
        client = self._require()
        try:
            response = client.fetch([uid], [BODY_ITEM])
            body = response.get(uid, {}).get(BODY_KEY)
            if body is None:
                raise FetchError(f"uid {uid}: server returned no body")
            sink.write(body)
        except _CLIENT_ERRORS as exc:
            raise FetchError(f"fetching uid {uid}: {exc}") from exc
        return len(body)

    def get_flags(self, uid: int) -> frozenset[str]:
        client = self._require()
        try:
            response = client.get_flags([uid])
        except _CLIENT_ERRORS as exc:
            raise FlagError(f"reading flags of uid {uid}: {exc}") from exc
        return frozenset(_as_text(flag) for flag in response.get(uid, ()))

    def set_flag(self, uid: int, keyword: str, on: bool = True) -> None:
        client = self._require()
        try:
            if on:
                client.add_flags([uid], [keyword], silent=True)
            else:
                client.remove_flags([uid], [keyword], silent=True)
        except _CLIENT_ERRORS as exc:
            raise FlagError(f"{'setting' if on else 'clearing'} {keyword} on uid {uid}: {exc}") from exc

    def create_mailbox(self, mailbox: str) -> None:
        client = self._require()
        try:
            client.create_folder(mailbox)
        except _CLIENT_ERRORS as exc:
            raise MoveError(f"creating {mailbox}: {exc}") from exc

    def copy(self, uid: int, mailbox: str) -> None:
        client = self._require()
        try:
            client.copy([uid], mailbox)
        except _CLIENT_ERRORS as exc:
            raise MoveError(f"copying uid {uid} to {mailbox}: {exc}") from exc

    def _login(self, client: IMAPClient) -> None:
        """LOGIN, then AUTHENTICATE CRAM-MD5 or PLAIN when the server offers them."""
        try:
            client.login(self.username, self._password)
            return
        except LoginError as exc:
            self._logger.error("Login username=%s failed: %s", self.username, exc)
            error = exc

        if client.has_capability("AUTH=CRAM-MD5"):
            try:
                client.sasl_login("CRAM-MD5", self._cram_md5_response)
                return
            except LoginError as exc:
                self._logger.error("Authenticate CRAM-MD5 username=%s failed: %s", self.username, exc)
                error = exc
        if client.has_capability("AUTH=PLAIN"):
            client.plain_login(self.username, self._password)
            return
        raise error

    def _cram_md5_response(self, challenge: bytes) -> str:
        digest = hmac.new(self._password.encode("utf-8"), challenge, "md5").hexdigest()
        return f"{self.username} {digest}"

    def _ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.settings.imap_tls_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _discard(self) -> None:
        try:
            self.close(expunge=False)
        except MailboxError as exc:
            self._logger.debug("Dropping stale connection to %s: %s", self, exc)

    def _require(self) -> IMAPClient:
        if self._client is None:
            raise ConnectError(f"not connected to {self}")
        return self._client


def _as_text(flag: bytes | str) -> str:
    if isinstance(flag, bytes):
        return flag.decode("utf-8", errors="replace")
    return flag
