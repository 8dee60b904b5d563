"""Configuration management for the IMAP delivery loop."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_INBOX, DEFAULT_LONG_SLEEP, DEFAULT_SHORT_SLEEP, MailboxState, TLSPolicy
from .spool import DEFAULT_MAX_MEMORY

# Load .env early so BaseSettings can pick values up seamlessly.
load_dotenv()

DEFAULT_PORT = 143


class Settings(BaseSettings):
    """App configuration derived from environment variables."""

    imap_host: str = Field(..., alias="IMAP_HOST")
    imap_port: int = Field(0, alias="IMAP_PORT")
    imap_username: str = Field(..., alias="IMAP_USERNAME")
    imap_password: str = Field(..., alias="IMAP_PASSWORD", repr=False)
    imap_tls: TLSPolicy = Field(TLSPolicy.AUTO, alias="IMAP_TLS")
    imap_tls_verify: bool = Field(True, alias="IMAP_TLS_VERIFY")
    imap_timeout: float = Field(30.0, alias="IMAP_TIMEOUT")

    imap_inbox: str = Field(DEFAULT_INBOX, alias="IMAP_INBOX")
    imap_subject_pattern: str = Field("", alias="IMAP_SUBJECT_PATTERN")
    imap_outbox: str | None = Field(None, alias="IMAP_OUTBOX")
    imap_errbox: str | None = Field(None, alias="IMAP_ERRBOX")

    short_sleep: float = Field(DEFAULT_SHORT_SLEEP, alias="IMAP_SHORT_SLEEP")
    long_sleep: float = Field(DEFAULT_LONG_SLEEP, alias="IMAP_LONG_SLEEP")
    spool_max_memory: int = Field(DEFAULT_MAX_MEMORY, alias="SPOOL_MAX_MEMORY")

    delivery_mode: Literal["directory", "http"] = Field("directory", alias="DELIVERY_MODE")
    delivery_dir: Path = Field(Path("data/messages"), alias="DELIVERY_DIR")
    delivery_url: str | None = Field(None, alias="DELIVERY_URL")
    delivery_token: str | None = Field(None, alias="DELIVERY_TOKEN", repr=False)
    dedupe_db: Path | None = Field(Path("data/delivered_messages.db"), alias="DEDUPE_DB")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_delivery(self):
        if self.delivery_mode == "http" and not self.delivery_url:
            raise ValueError("DELIVERY_URL is required for http delivery mode.")
        if self.short_sleep < 0 or self.long_sleep < 0:
            raise ValueError("IMAP_SHORT_SLEEP and IMAP_LONG_SLEEP must not be negative.")
        return self

    @field_validator(
        "imap_outbox",
        "imap_errbox",
        "delivery_url",
        "delivery_token",
        "dedupe_db",
        mode="before",
    )
    @classmethod
    def _empty_str_to_none(cls, value):
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("imap_inbox", mode="before")
    @classmethod
    def _default_inbox(cls, value):
        if value is None:
            return DEFAULT_INBOX
        if isinstance(value, str):
            return value.strip() or DEFAULT_INBOX
        return value

    @field_validator("imap_tls", mode="before")
    @classmethod
    def _normalize_tls(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def resolved_port(self) -> int:
        return self.imap_port or DEFAULT_PORT

    @property
    def mailbox_state(self) -> MailboxState:
        """The source mailbox, filter and destinations for this run."""
        return MailboxState(
            inbox=self.imap_inbox,
            pattern=self.imap_subject_pattern,
            outbox=self.imap_outbox,
            errbox=self.imap_errbox,
        )
