# imapreader/criteria.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Sequence, Tuple, Union

# A wire token: str is sent as-is, bytes is sent as an IMAP literal.
SearchToken = Union[str, bytes]

_ATOM_RE = re.compile(r"^[A-Za-z0-9.\-]+$")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def quote(s: str) -> SearchToken:
    """
    Quote/escape a string argument for IMAP SEARCH.

    7-bit text without NUL/CR/LF becomes a quoted string with backslash and
    double quote escaped. Anything else can't be a quoted string and is
    returned as UTF-8 bytes, to be sent as a literal.
    """
    try:
        s.encode("ascii")
    except UnicodeEncodeError:
        return s.encode("utf-8")
    if "\0" in s or "\r" in s or "\n" in s:
        return s.encode("utf-8")
    s = s.replace("\\", "\\\\").replace('"', r"\"")
    return f'"{s}"'


def unquote(s: str) -> str:
    """Inverse of quote() for quoted strings."""
    if len(s) >= 2 and s[0] == '"' and s[-1] == '"':
        return s[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    return s


def imap_date(value: Union[date, str]) -> str:
    """date or YYYY-MM-DD -> IMAP date (17-Oct-2026)."""
    if isinstance(value, str):
        value = datetime.strptime(value, "%Y-%m-%d").date()
    elif isinstance(value, datetime):
        value = value.date()
    return f"{value.day}-{_MONTHS[value.month - 1]}-{value.year}"


@dataclass(frozen=True)
class SearchCriteria:
    """
    Immutable SEARCH criteria: a sequence of terms, each a keyword followed
    by its (unquoted) string arguments. Terms are ANDed by the server.

        SEARCH_UNSEEN + by_subject('say "hi"')
    """

    terms: Tuple[Tuple[str, ...], ...] = ()

    def __post_init__(self) -> None:
        for term in self.terms:
            if not term:
                raise ValueError("empty search term")
            if not _ATOM_RE.match(term[0]):
                raise ValueError(f"invalid search keyword: {term[0]!r}")

    @classmethod
    def keyword(cls, name: str, *args: str) -> "SearchCriteria":
        return cls(terms=((name.upper(), *args),))

    @classmethod
    def of(cls, criteria: Union["SearchCriteria", str, Sequence[str]]) -> "SearchCriteria":
        """
        Coerce user input. A plain token sequence is one term: the first
        token is the keyword and every later token is a literal argument.
        """
        if isinstance(criteria, SearchCriteria):
            return criteria
        if isinstance(criteria, str):
            return cls.keyword(criteria)
        tokens = list(criteria)
        if not tokens:
            return cls()
        return cls.keyword(tokens[0], *tokens[1:])

    def __add__(self, other: Union["SearchCriteria", str, Sequence[str]]) -> "SearchCriteria":
        return SearchCriteria(terms=self.terms + SearchCriteria.of(other).terms)

    def __bool__(self) -> bool:
        return bool(self.terms)

    def tokens(self) -> Tuple[str, ...]:
        return tuple(tok for term in self.terms for tok in term)

    def encode(self) -> List[SearchToken]:
        """Wire tokens: keywords as atoms, arguments quoted. Never mutates self."""
        if not self.terms:
            return ["ALL"]
        out: List[SearchToken] = []
        for keyword, *args in self.terms:
            out.append(keyword)
            out.extend(quote(a) for a in args)
        return out

    def __str__(self) -> str:
        parts = []
        for tok in self.encode():
            parts.append(tok if isinstance(tok, str) else "{%d}" % len(tok))
        return " ".join(parts)


def _constant(name: str) -> SearchCriteria:
    return SearchCriteria.keyword(name)


SEARCH_ALL = _constant("ALL")
SEARCH_UNSEEN = _constant("UNSEEN")
SEARCH_SEEN = _constant("SEEN")
SEARCH_ANSWERED = _constant("ANSWERED")
SEARCH_UNANSWERED = _constant("UNANSWERED")
SEARCH_DELETED = _constant("DELETED")
SEARCH_UNDELETED = _constant("UNDELETED")
SEARCH_FLAGGED = _constant("FLAGGED")
SEARCH_UNFLAGGED = _constant("UNFLAGGED")
SEARCH_NEW = _constant("NEW")
SEARCH_OLD = _constant("OLD")
SEARCH_RECENT = _constant("RECENT")


def by_subject(subject: str) -> SearchCriteria:
    return SearchCriteria.keyword("SUBJECT", subject)


def by_from(sender: str) -> SearchCriteria:
    return SearchCriteria.keyword("FROM", sender)


def by_to(recipient: str) -> SearchCriteria:
    return SearchCriteria.keyword("TO", recipient)


def by_cc(recipient: str) -> SearchCriteria:
    return SearchCriteria.keyword("CC", recipient)


def by_body(text: str) -> SearchCriteria:
    """Match only in body text."""
    return SearchCriteria.keyword("BODY", text)


def by_text(text: str) -> SearchCriteria:
    """Match in headers OR body text."""
    return SearchCriteria.keyword("TEXT", text)


def since(day: Union[date, str]) -> SearchCriteria:
    return SearchCriteria.keyword("SINCE", imap_date(day))


def before(day: Union[date, str]) -> SearchCriteria:
    return SearchCriteria.keyword("BEFORE", imap_date(day))


def on(day: Union[date, str]) -> SearchCriteria:
    return SearchCriteria.keyword("ON", imap_date(day))


def all_of(criteria: Iterable[Union[SearchCriteria, str, Sequence[str]]]) -> SearchCriteria:
    out = SearchCriteria()
    for c in criteria:
        out = out + c
    return out
