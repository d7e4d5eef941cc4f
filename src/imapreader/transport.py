# imapreader/transport.py
from __future__ import annotations

import imaplib
import logging
import re
import ssl
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from imapreader.config import IMAPConfig
from imapreader.criteria import SearchToken
from imapreader.errors import AuthError, IMAPConnectionError, ProtocolError
from imapreader.fetch_response import FetchRecord, parse_fetch_records
from imapreader.uidset import parse_uid_list
from imapreader.utils import format_mailbox_arg, short

log = logging.getLogger(__name__)

# Anything that means "the command didn't complete" on an imaplib connection.
COMMAND_FAILED = (imaplib.IMAP4.error, OSError, ssl.SSLError)

FETCH_ITEMS = "(UID FLAGS BODY[])"

# characters a quoted string can't carry
_NEEDS_LITERAL = re.compile(rb"[\r\n\0]")


@dataclass(frozen=True)
class MailboxStatus:
    mailbox: str
    read_only: bool
    exists: Optional[int] = None
    uidvalidity: Optional[int] = None


class Transport(Protocol):
    """
    The command primitives the session needs. Each method raises
    ProtocolError (AuthError for login) when the server says NO/BAD or the
    connection fails mid-command.
    """

    def login(self, username: str, password: str) -> None: ...

    def select(self, mailbox: str, readonly: bool) -> MailboxStatus: ...

    def close(self) -> None: ...

    def uid_search(self, criteria: Sequence[SearchToken]) -> List[int]: ...

    def uid_fetch(self, uids: str, items: str = FETCH_ITEMS) -> List[FetchRecord]: ...

    def uid_store(self, uids: str, mode: str, flags: str) -> None: ...

    def logout(self, timeout: float) -> None: ...


TransportFactory = Callable[[IMAPConfig], Transport]


@dataclass
class _ConnState:
    conn: imaplib.IMAP4
    selected_mailbox: Optional[str] = None
    selected_readonly: Optional[bool] = None


def _first_int(data: Any) -> Optional[int]:
    if not data:
        return None
    raw = data[0] if isinstance(data, (list, tuple)) else data
    if raw is None:
        return None
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="ignore")
    try:
        return int(str(raw).split()[0])
    except (ValueError, IndexError):
        return None


def _search_terms(tokens: Sequence[SearchToken]) -> List[List[SearchToken]]:
    """Regroup flat SEARCH tokens into terms: an atom keyword plus its quoted or literal arguments."""
    terms: List[List[SearchToken]] = []
    for tok in tokens:
        if not terms or (isinstance(tok, str) and not tok.startswith('"')):
            terms.append([tok])
        else:
            terms[-1].append(tok)
    return terms


def _quoted_utf8(raw: bytes) -> bytes:
    return b'"' + raw.replace(b"\\", b"\\\\").replace(b'"', b'\\"') + b'"'


def search_args(criteria: Sequence[SearchToken]) -> Tuple[List[SearchToken], Optional[bytes]]:
    """
    Arrange SEARCH tokens for imaplib, which sends at most one literal and
    only at the end of the command line.

    Returns (args, literal). Terms are ANDed, so the term holding the single
    literal is moved last. With several non-ASCII arguments each is sent as
    a UTF-8 quoted string instead. Text containing CR, LF or NUL can only be
    a literal, so two such arguments can't be sent in one command.
    """
    terms = _search_terms(list(criteria) or ["ALL"])
    literal_terms = [t for t in terms if any(isinstance(tok, bytes) for tok in t)]
    if not literal_terms:
        return [tok for t in terms for tok in t], None

    n_literals = sum(isinstance(tok, bytes) for t in literal_terms for tok in t)
    if n_literals == 1 and isinstance(literal_terms[0][-1], bytes):
        term = literal_terms[0]
        rest = [tok for t in terms if t is not term for tok in t]
        return ["CHARSET", "UTF-8"] + rest + term[:-1], term[-1]

    args: List[SearchToken] = ["CHARSET", "UTF-8"]
    unquotable: List[List[SearchToken]] = []
    for t in terms:
        if any(isinstance(tok, bytes) and _NEEDS_LITERAL.search(tok) for tok in t):
            unquotable.append(t)
            continue
        args.extend(_quoted_utf8(tok) if isinstance(tok, bytes) else tok for tok in t)

    if not unquotable:
        return args, None
    term = unquotable[0]
    needs_literal = [tok for tok in term if isinstance(tok, bytes) and _NEEDS_LITERAL.search(tok)]
    last = term[-1]
    if (
        len(unquotable) > 1
        or len(needs_literal) > 1
        or not (isinstance(last, bytes) and _NEEDS_LITERAL.search(last))
    ):
        raise ProtocolError("SEARCH failed: only one trailing argument may contain CR, LF or NUL")
    args.extend(_quoted_utf8(tok) if isinstance(tok, bytes) else tok for tok in term[:-1])
    return args, term[-1]


class ImaplibTransport:
    """Transport over a standard library imaplib connection."""

    def __init__(self, conn: imaplib.IMAP4):
        self._state = _ConnState(conn)

    @classmethod
    def dial(
        cls,
        host: str,
        port: int,
        *,
        use_ssl: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
        timeout: Optional[float] = None,
    ) -> "ImaplibTransport":
        log.debug("Connecting to %s:%d (ssl=%s)", host, port, use_ssl)
        try:
            if use_ssl:
                ctx = ssl_context or ssl.create_default_context()
                conn = imaplib.IMAP4_SSL(host, port, ssl_context=ctx, timeout=timeout)
            else:
                conn = imaplib.IMAP4(host, port, timeout=timeout)
        except imaplib.IMAP4.error as e:
            raise IMAPConnectionError(f"IMAP greeting from {host}:{port} failed: {e}") from e
        except (OSError, ssl.SSLError) as e:
            raise IMAPConnectionError(f"IMAP network error connecting to {host}:{port}: {e}") from e
        return cls(conn)

    @property
    def conn(self) -> imaplib.IMAP4:
        return self._state.conn

    @property
    def capabilities(self) -> Tuple[str, ...]:
        return tuple(getattr(self.conn, "capabilities", ()) or ())

    def _call(self, what: str, fn: Callable[..., Tuple[str, Any]], *args: Any, **kwargs: Any) -> Any:
        """Run one imaplib command; anything but OK becomes ProtocolError."""
        try:
            typ, data = fn(*args, **kwargs)
        except COMMAND_FAILED as e:
            raise ProtocolError(f"{what} failed: {e}") from e
        if typ != "OK":
            raise ProtocolError(f"{what} failed: {typ} {short(data)}")
        return data

    # -----------------------
    # Authentication
    # -----------------------

    def login(self, username: str, password: str) -> None:
        log.debug("LOGIN %s", username)
        try:
            typ, data = self.conn.login(username, password)
        except imaplib.IMAP4.abort as e:
            raise ProtocolError(f"LOGIN failed: {e}") from e
        except imaplib.IMAP4.error as e:
            raise AuthError(f"IMAP login rejected for {username!r}: {e}") from e
        except OSError as e:
            raise ProtocolError(f"LOGIN failed: {e}") from e
        if typ != "OK":
            raise AuthError(f"IMAP login rejected for {username!r}: {short(data)}")

    def logout(self, timeout: float) -> None:
        conn = self.conn
        log.debug("LOGOUT (timeout=%.1fs)", timeout)
        try:
            conn.socket().settimeout(timeout)
        except (AttributeError, OSError):
            pass

        try:
            typ, data = conn.logout()
        except COMMAND_FAILED as e:
            try:
                conn.shutdown()
            except OSError:
                pass
            raise ProtocolError(f"LOGOUT failed: {e}") from e
        finally:
            self._state.selected_mailbox = None
            self._state.selected_readonly = None

        # imaplib reports the server's BYE as the status of a clean logout
        if typ not in ("OK", "BYE"):
            raise ProtocolError(f"LOGOUT not acknowledged: {typ} {short(data)}")

    # -----------------------
    # Mailbox selection
    # -----------------------

    def select(self, mailbox: str, readonly: bool) -> MailboxStatus:
        state = self._state
        log.debug("%s %r", "EXAMINE" if readonly else "SELECT", mailbox)

        # a failed SELECT leaves no mailbox selected on the server
        state.selected_mailbox = None
        state.selected_readonly = None

        data = self._call(
            f"select({mailbox!r}, readonly={readonly})",
            self.conn.select,
            format_mailbox_arg(mailbox),
            readonly=readonly,
        )

        _, validity = self.conn.response("UIDVALIDITY")
        state.selected_mailbox = mailbox
        state.selected_readonly = readonly
        return MailboxStatus(
            mailbox=mailbox,
            read_only=readonly,
            exists=_first_int(data),
            uidvalidity=_first_int(validity),
        )

    def close(self) -> None:
        """
        Leave the selected mailbox without expunging. CLOSE expunges only a
        read-write selection, so for those UNSELECT is used, or the mailbox
        is re-opened read-only first when the server lacks UNSELECT.
        """
        state = self._state
        mailbox = state.selected_mailbox
        try:
            if state.selected_readonly is False and mailbox is not None:
                if "UNSELECT" in self.capabilities:
                    log.debug("UNSELECT %r", mailbox)
                    self._call("UNSELECT", self.conn.unselect)
                    return
                log.debug("EXAMINE %r before CLOSE", mailbox)
                self._call(
                    f"select({mailbox!r}, readonly=True)",
                    self.conn.select,
                    format_mailbox_arg(mailbox),
                    readonly=True,
                )
            log.debug("CLOSE %r", mailbox)
            self._call("CLOSE", self.conn.close)
        finally:
            state.selected_mailbox = None
            state.selected_readonly = None

    # -----------------------
    # UID commands
    # -----------------------

    def uid_search(self, criteria: Sequence[SearchToken]) -> List[int]:
        args, literal = search_args(criteria)
        if literal is not None:
            self.conn.literal = literal

        log.debug(
            "UID SEARCH %s%s",
            " ".join(a if isinstance(a, str) else "<utf-8>" for a in args),
            " {%d}" % len(literal) if literal is not None else "",
        )
        data = self._call("SEARCH", self.conn.uid, "SEARCH", *args)

        uids: List[int] = []
        for raw in data or []:
            uids.extend(parse_uid_list(raw))
        return uids

    def uid_fetch(self, uids: str, items: str = FETCH_ITEMS) -> List[FetchRecord]:
        log.debug("UID FETCH %s %s", uids, items)
        data = self._call("FETCH", self.conn.uid, "FETCH", uids, items)
        return parse_fetch_records(data or [])

    def uid_store(self, uids: str, mode: str, flags: str) -> None:
        log.debug("UID STORE %s %s %s", uids, mode, flags)
        self._call("STORE", self.conn.uid, "STORE", uids, mode, flags)


def dial(config: IMAPConfig) -> ImaplibTransport:
    """Default transport factory: TLS or plain per config.use_ssl."""
    return ImaplibTransport.dial(config.host, config.port, use_ssl=config.use_ssl)
