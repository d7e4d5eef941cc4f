# imapreader/models/message.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from email.utils import getaddresses, parsedate_to_datetime
from typing import FrozenSet, List, Optional

from imapreader.models.headers import Headers


@dataclass(frozen=True)
class EmailMessage:
    uid: int
    flags: FrozenSet[str] = frozenset()
    headers: Headers = field(default_factory=Headers)
    body: bytes = b""

    # ---- header shortcuts ----
    @property
    def subject(self) -> str:
        return self.headers.first("Subject", "") or ""

    @property
    def from_email(self) -> str:
        return self.headers.first("From", "") or ""

    @property
    def to(self) -> List[str]:
        return [addr for _name, addr in getaddresses(self.headers.get_all("To")) if addr]

    @property
    def message_id(self) -> Optional[str]:
        return self.headers.first("Message-Id")

    @property
    def date(self) -> Optional[datetime]:
        raw = self.headers.first("Date")
        if not raw:
            return None
        try:
            return parsedate_to_datetime(raw)
        except (TypeError, ValueError):
            return None

    def __repr__(self) -> str:
        return (
            f"EmailMessage("
            f"uid={self.uid}, "
            f"flags={sorted(self.flags)!r}, "
            f"subject={self.subject!r}, "
            f"body_size={len(self.body)} bytes)"
        )

