# imapreader/cli.py
"""Command-line entry point: list messages from a mailbox."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from imapreader.config import IMAPConfig
from imapreader.constants import GMAIL_INBOX
from imapreader.criteria import (
    SEARCH_ALL,
    SEARCH_UNSEEN,
    SearchCriteria,
    all_of,
    by_from,
    by_subject,
)
from imapreader.errors import IMAPError
from imapreader.models import EmailMessage
from imapreader.session import connect

log = logging.getLogger("imapreader")


def setup_logger(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        format="%(asctime)s %(levelname)5s %(name)s %(message)s",
        level=level,
    )
    return log


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imap-reader",
        description=(
            "List messages from an IMAP mailbox. Connection settings come from "
            "IMAP_ADDR, IMAP_USERNAME, IMAP_PASSWORD (a .env file is honoured)."
        ),
    )
    parser.add_argument("--mailbox", default=GMAIL_INBOX, help="Mailbox name")
    which = parser.add_mutually_exclusive_group()
    which.add_argument("--unseen", action="store_true", help="Only unseen messages (default)")
    which.add_argument("--all", action="store_true", help="All messages")
    parser.add_argument("--subject", help="Subject contains this text")
    parser.add_argument("--from", dest="sender", help="From contains this text")
    parser.add_argument(
        "--mark-seen", action="store_true", default=None,
        help="Mark listed messages as seen (overrides IMAP_MARK_SEEN)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logs")
    return parser


def criteria_from_args(args: argparse.Namespace) -> SearchCriteria:
    terms = [SEARCH_ALL if args.all else SEARCH_UNSEEN]
    if args.subject:
        terms.append(by_subject(args.subject))
    if args.sender:
        terms.append(by_from(args.sender))
    return all_of(terms)


def format_message(msg: EmailMessage) -> str:
    flags = " ".join(sorted(msg.flags)) or "-"
    return f"{msg.uid}\t{flags}\t{msg.from_email}\t{msg.subject}"


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logger(args.verbose)

    try:
        config = IMAPConfig.from_env()
        if args.mark_seen is not None:
            config = replace(config, mark_seen=args.mark_seen)
        with connect(config) as session:
            messages = session.list_messages(args.mailbox, criteria_from_args(args))
    except IMAPError as e:
        log.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    for msg in messages:
        print(format_message(msg))
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
