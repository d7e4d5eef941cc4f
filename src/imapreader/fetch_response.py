# imapreader/fetch_response.py
"""
Helpers for the data list imaplib returns from UID FETCH.

imaplib hands back a flat list where a message carrying a literal shows up
as a (prefix, literal_bytes) tuple followed by a bytes tail, and a message
without literals is a single bytes item:

    [(b'1 (UID 7 FLAGS (\\Seen) BODY[] {42}', b'Subject: ...'), b')',
     b'2 (UID 9 FLAGS ())']

Pieces are regrouped into one FetchRecord per untagged FETCH response.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Iterator, List, Optional

_NEW_RECORD_RE = re.compile(r"^\s*\d+\s+\(")
_UID_RE = re.compile(r"\bUID\s+(\d+)", re.IGNORECASE)
_FLAGS_RE = re.compile(r"\bFLAGS\s+\(([^)]*)\)", re.IGNORECASE)
_BODY_LITERAL_RE = re.compile(r"\bBODY\[\](?:<\d+>)?\s+\{(\d+)\}\s*$", re.IGNORECASE)
_BODY_QUOTED_RE = re.compile(rb'\bBODY\[\](?:<\d+>)?\s+"((?:[^"\\]|\\.)*)"', re.IGNORECASE)


@dataclass(frozen=True)
class FetchPiece:
    meta: str
    payload: Optional[bytes] = None
    raw_meta: bytes = b""


@dataclass(frozen=True)
class FetchRecord:
    """One untagged FETCH response: UID, FLAGS and the BODY[] payload (if any)."""

    uid: int
    flags: FrozenSet[str] = frozenset()
    body: Optional[bytes] = None


@dataclass
class _Partial:
    meta: List[str] = field(default_factory=list)
    raw_meta: List[bytes] = field(default_factory=list)
    body: Optional[bytes] = None


def _decode(raw: bytes) -> str:
    return raw.decode("ascii", errors="replace")


def iter_fetch_pieces(data: Iterable[object]) -> Iterator[FetchPiece]:
    for item in data:
        if item is None:
            continue
        if isinstance(item, tuple):
            if not item:
                continue
            raw_meta = item[0] if isinstance(item[0], bytes) else b""
            payload = item[1] if len(item) > 1 and isinstance(item[1], bytes) else None
            yield FetchPiece(meta=_decode(raw_meta), payload=payload, raw_meta=raw_meta)
        elif isinstance(item, bytes):
            yield FetchPiece(meta=_decode(item), payload=None, raw_meta=item)


def parse_uid(meta: str) -> Optional[int]:
    m = _UID_RE.search(meta)
    return int(m.group(1)) if m else None


def parse_flags(meta: str) -> Optional[FrozenSet[str]]:
    """FLAGS (\\Seen $Label) -> frozenset; None when the meta has no FLAGS item."""
    m = _FLAGS_RE.search(meta)
    if not m:
        return None
    return frozenset(f for f in m.group(1).split() if f)


def _quoted_body(raw_meta: bytes) -> Optional[bytes]:
    m = _BODY_QUOTED_RE.search(raw_meta)
    if not m:
        return None
    return m.group(1).replace(b'\\"', b'"').replace(b"\\\\", b"\\")


def group_fetch_pieces(data: Iterable[object]) -> List[_Partial]:
    groups: List[_Partial] = []
    current: Optional[_Partial] = None

    for piece in iter_fetch_pieces(data):
        if _NEW_RECORD_RE.match(piece.meta):
            current = _Partial()
            groups.append(current)
        elif current is None:
            # continuation without a head: nothing to attach it to
            continue

        current.meta.append(piece.meta)
        current.raw_meta.append(piece.raw_meta)
        if piece.payload is not None and _BODY_LITERAL_RE.search(piece.meta):
            current.body = piece.payload

    return groups


def parse_fetch_records(data: Iterable[object]) -> List[FetchRecord]:
    """
    Turn imaplib UID FETCH data into FetchRecords. Responses without a UID
    (unsolicited sequence-number FETCH updates) are dropped.
    """
    records: List[FetchRecord] = []
    for group in group_fetch_pieces(data):
        meta = " ".join(group.meta)
        uid = parse_uid(meta)
        if uid is None:
            continue

        body = group.body
        if body is None:
            body = _quoted_body(b" ".join(group.raw_meta))

        records.append(
            FetchRecord(
                uid=uid,
                flags=parse_flags(meta) or frozenset(),
                body=body,
            )
        )
    return records
