# imapreader/parser.py
from __future__ import annotations

import logging
from email import errors as email_errors
from email.parser import BytesHeaderParser
from email.policy import default as default_policy
from typing import Iterable, List, Optional, Sequence, Tuple

from imapreader.errors import ParseError
from imapreader.fetch_response import FetchRecord
from imapreader.models import EmailMessage, Headers

log = logging.getLogger(__name__)

# Defects that mean the header block isn't a header block.
_FATAL_DEFECTS = (
    email_errors.MissingHeaderBodySeparatorDefect,
    email_errors.FirstHeaderLineIsContinuationDefect,
)


def split_header_body(raw: bytes) -> Tuple[bytes, bytes]:
    """
    Split RFC 5322 bytes at the first empty line. The body is returned
    byte-for-byte (line endings untouched). Without an empty line the whole
    input is the header block and the body is empty.
    """
    if raw.startswith(b"\r\n"):
        return b"", raw[2:]
    if raw.startswith(b"\n"):
        return b"", raw[1:]

    crlf = raw.find(b"\r\n\r\n")
    lf = raw.find(b"\n\n")
    if crlf == -1 and lf == -1:
        return raw, b""

    # earliest separator wins; CRLF and bare LF may be mixed
    candidates = []
    if crlf != -1:
        candidates.append((crlf + 4, crlf + 2))
    if lf != -1:
        candidates.append((lf + 2, lf + 1))
    body_start, header_end = min(candidates)
    return raw[:header_end], raw[body_start:]


def parse_headers(header_block: bytes) -> Headers:
    if not header_block.strip():
        return Headers()

    msg = BytesHeaderParser(policy=default_policy).parsebytes(header_block + b"\r\n")
    fatal = [d for d in msg.defects if isinstance(d, _FATAL_DEFECTS)]
    if fatal:
        raise ParseError(f"malformed header block: {fatal[0].__class__.__name__}")

    items = []
    for name, value in msg.raw_items():
        items.append((name, _header_str(msg, name, value)))
    return Headers(items)


def _header_str(msg, name: str, value) -> str:
    try:
        return str(msg.policy.header_fetch_parse(name, value))
    except (ValueError, TypeError, IndexError) as e:
        log.debug("Header %r could not be decoded (%s); keeping it raw", name, e)
        return str(value)


def parse_message(uid: int, raw: Optional[bytes], flags: Iterable[str] = ()) -> EmailMessage:
    if raw is None:
        raise ParseError(f"FETCH response for UID {uid} has no BODY[] payload")
    if not raw:
        raise ParseError(f"FETCH response for UID {uid} has an empty BODY[] payload")

    try:
        header_block, body = split_header_body(bytes(raw))
        headers = parse_headers(header_block)
    except ParseError as e:
        raise ParseError(f"UID {uid}: {e}") from e

    return EmailMessage(uid=uid, flags=frozenset(flags), headers=headers, body=body)


def messages_from_records(
    records: Sequence[FetchRecord],
    uids: Iterable[int],
) -> List[EmailMessage]:
    """
    Assemble EmailMessages in `uids` order. Records for UIDs nobody asked for
    are ignored; UIDs the server didn't return (expunged meanwhile) are
    skipped. A bad payload fails the whole batch.
    """
    wanted = list(uids)
    wanted_set = set(wanted)

    by_uid = {}
    for rec in records:
        if rec.uid not in wanted_set:
            continue
        prev = by_uid.get(rec.uid)
        # a record carrying the body wins over flag-only updates
        if prev is None or (prev.body is None and rec.body is not None):
            by_uid[rec.uid] = rec

    out: List[EmailMessage] = []
    for uid in wanted:
        rec = by_uid.get(uid)
        if rec is None:
            log.debug("UID %d not returned by FETCH; skipping", uid)
            continue
        out.append(parse_message(uid, rec.body, rec.flags))
    return out
