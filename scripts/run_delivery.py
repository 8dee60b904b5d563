"""Entry point that delivers IMAP messages to a directory or HTTP endpoint."""

from __future__ import annotations

import argparse
import contextlib
import logging
import signal
import sys
import threading
from pathlib import Path

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from imap_deliver.config import Settings
from imap_deliver.delivery import build_deliverer
from imap_deliver.imap_session import IMAPSession
from imap_deliver.loop import PollScheduler
from imap_deliver.models import MailboxState


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deliver IMAP messages and file them away.")
    parser.add_argument("--once", action="store_true", help="Run a single pass instead of looping")
    parser.add_argument("--inbox", help="Source mailbox (default: IMAP_INBOX or INBOX)")
    parser.add_argument("--pattern", help="Only messages whose subject contains this text")
    parser.add_argument("--outbox", help="Move delivered messages here")
    parser.add_argument("--errbox", help="Move messages that failed delivery here")
    return parser


def resolve_state(args: argparse.Namespace, settings: Settings) -> MailboxState:
    state = settings.mailbox_state
    return MailboxState(
        inbox=args.inbox if args.inbox is not None else state.inbox,
        pattern=args.pattern if args.pattern is not None else state.pattern,
        outbox=args.outbox if args.outbox is not None else state.outbox,
        errbox=args.errbox if args.errbox is not None else state.errbox,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def install_signal_handlers(cancel: threading.Event) -> None:
    def _stop(signum, _frame) -> None:
        logging.info("Received signal %s; stopping after the current pass", signum)
        cancel.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    settings = Settings()
    configure_logging(settings.log_level)

    with contextlib.closing(build_deliverer(settings)) as deliver:
        scheduler = PollScheduler(
            session=IMAPSession(settings),
            state=resolve_state(args, settings),
            deliver=deliver,
            short_sleep=settings.short_sleep,
            long_sleep=settings.long_sleep,
            max_memory=settings.spool_max_memory,
        )

        if args.once:
            result = scheduler.run_once()
            return 0 if result.ok else 1

        cancel = threading.Event()
        install_signal_handlers(cancel)
        passes = scheduler.run(cancel)
    logging.info("Run complete: passes=%s", passes)
    return 0


if __name__ == "__main__":
    sys.exit(main())
