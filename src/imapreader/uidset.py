# imapreader/uidset.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple


@dataclass(frozen=True)
class UIDSet:
    """
    Ordered UIDs produced by one SEARCH, bound to the mailbox (and its
    UIDVALIDITY) that was selected when the search ran.
    """

    mailbox: str
    uids: Tuple[int, ...] = ()
    uidvalidity: Optional[int] = None

    def __post_init__(self) -> None:
        for uid in self.uids:
            if not isinstance(uid, int) or isinstance(uid, bool) or uid < 1:
                raise ValueError(f"invalid UID: {uid!r}")

    @classmethod
    def from_uids(
        cls,
        uids: Iterable[int],
        *,
        mailbox: str,
        uidvalidity: Optional[int] = None,
    ) -> "UIDSet":
        seen = set()
        ordered: List[int] = []
        for uid in uids:
            if uid in seen:
                continue
            seen.add(uid)
            ordered.append(uid)
        return cls(mailbox=mailbox, uids=tuple(ordered), uidvalidity=uidvalidity)

    def __len__(self) -> int:
        return len(self.uids)

    def __iter__(self) -> Iterator[int]:
        return iter(self.uids)

    def __bool__(self) -> bool:
        return bool(self.uids)

    def __contains__(self, uid: object) -> bool:
        return uid in self.uids

    def to_imap(self) -> str:
        """
        Compact sequence-set form, e.g. (1, 2, 3, 7, 9, 10) -> "1:3,7,9:10".
        Order on the wire doesn't matter to the server; results are
        re-ordered by the caller.
        """
        if not self.uids:
            raise ValueError("empty UID set has no IMAP form")

        ranges: List[str] = []
        values = sorted(self.uids)
        start = prev = values[0]
        for uid in values[1:]:
            if uid == prev + 1:
                prev = uid
                continue
            ranges.append(_fmt_range(start, prev))
            start = prev = uid
        ranges.append(_fmt_range(start, prev))
        return ",".join(ranges)

    def __str__(self) -> str:
        return self.to_imap() if self.uids else ""


def _fmt_range(start: int, end: int) -> str:
    return str(start) if start == end else f"{start}:{end}"


def parse_uid_list(raw: Optional[bytes]) -> List[int]:
    """Parse the payload of an untagged SEARCH response (b"4 7 9")."""
    if not raw:
        return []
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="ignore")
    return [int(x) for x in raw.split() if x.isdigit()]
