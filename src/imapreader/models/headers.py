# imapreader/models/headers.py
from __future__ import annotations

from collections.abc import Mapping
from typing import Dict, Iterable, Iterator, List, Optional, Tuple


def canonical_header_key(name: str) -> str:
    """'content-TYPE' -> 'Content-Type', 'message-id' -> 'Message-Id'."""
    return "-".join(p[:1].upper() + p[1:].lower() for p in name.strip().split("-"))


class Headers(Mapping):
    """
    Read-only, case-insensitive, multi-valued header map.
    Keys are canonicalized; values are tuples in message order.
    """

    __slots__ = ("_d",)

    def __init__(self, items: Iterable[Tuple[str, str]] = ()):
        d: Dict[str, List[str]] = {}
        for name, value in items:
            d.setdefault(canonical_header_key(name), []).append(value)
        self._d: Dict[str, Tuple[str, ...]] = {k: tuple(v) for k, v in d.items()}

    def __getitem__(self, name: str) -> Tuple[str, ...]:
        return self._d[canonical_header_key(name)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._d)

    def __len__(self) -> int:
        return len(self._d)

    def first(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._d.get(canonical_header_key(name))
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._d.get(canonical_header_key(name), ()))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Headers):
            return self._d == other._d
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._d.items())))

    def __repr__(self) -> str:
        return f"Headers({self._d!r})"
