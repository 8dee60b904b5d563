from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from imap_deliver.config import Settings
from imap_deliver.delivery import DedupingDeliverer, DirectoryDeliverer, HttpDeliverer, build_deliverer
from imap_deliver.models import MailboxState, TLSPolicy


@pytest.fixture
def imap_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setenv("IMAP_HOST", "imap.example.test")
    monkeypatch.setenv("IMAP_USERNAME", "robot")
    monkeypatch.setenv("IMAP_PASSWORD", "s3cret")
    return monkeypatch


def test_defaults(imap_env) -> None:
    settings = Settings(_env_file=None)

    assert settings.resolved_port == 143
    assert settings.imap_tls is TLSPolicy.AUTO
    assert (settings.short_sleep, settings.long_sleep) == (1.0, 300.0)
    assert settings.mailbox_state == MailboxState(inbox="INBOX")
    assert "s3cret" not in repr(settings)


def test_empty_values_normalise(imap_env) -> None:
    imap_env.setenv("IMAP_INBOX", "  ")
    imap_env.setenv("IMAP_OUTBOX", "")
    imap_env.setenv("IMAP_ERRBOX", "failed")
    imap_env.setenv("IMAP_TLS", "FORCE")

    settings = Settings(_env_file=None)

    assert settings.imap_inbox == "INBOX"
    assert settings.imap_outbox is None
    assert settings.imap_tls is TLSPolicy.FORCE
    assert not settings.mailbox_state.all_undeleted


def test_http_mode_requires_url(imap_env) -> None:
    imap_env.setenv("DELIVERY_MODE", "http")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_negative_sleep_rejected(imap_env) -> None:
    imap_env.setenv("IMAP_LONG_SLEEP", "-1")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_build_deliverer_directory_with_dedupe(imap_env, tmp_path: Path) -> None:
    imap_env.setenv("DELIVERY_DIR", str(tmp_path / "out"))
    imap_env.setenv("DEDUPE_DB", str(tmp_path / "dedupe.db"))

    deliver = build_deliverer(Settings(_env_file=None))

    assert isinstance(deliver, DedupingDeliverer)
    assert isinstance(deliver.deliver, DirectoryDeliverer)
    deliver.close()


def test_build_deliverer_http_without_dedupe(imap_env) -> None:
    imap_env.setenv("DELIVERY_MODE", "http")
    imap_env.setenv("DELIVERY_URL", "https://sink.example.test/messages")
    imap_env.setenv("DEDUPE_DB", "")

    deliver = build_deliverer(Settings(_env_file=None))

    assert isinstance(deliver, HttpDeliverer)
    assert deliver.url == "https://sink.example.test/messages"
