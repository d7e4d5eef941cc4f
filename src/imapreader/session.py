# imapreader/session.py
from __future__ import annotations

import enum
import logging
from typing import List, Optional, Sequence, Union

from imapreader.config import IMAPConfig
from imapreader.constants import SEEN
from imapreader.criteria import SearchCriteria
from imapreader.errors import IMAPError, MailboxStateError, MarkSeenError, ProtocolError
from imapreader.models import EmailMessage
from imapreader.parser import messages_from_records
from imapreader.transport import FETCH_ITEMS, MailboxStatus, Transport, TransportFactory, dial
from imapreader.uidset import UIDSet

log = logging.getLogger(__name__)

Criteria = Union[SearchCriteria, str, Sequence[str]]


class SessionState(enum.Enum):
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    LOGGED_OUT = "logged_out"


class MailboxState(enum.Enum):
    UNSELECTED = "unselected"
    SELECTED_READ_ONLY = "selected_read_only"
    SELECTED_READ_WRITE = "selected_read_write"


_SELECTED = (MailboxState.SELECTED_READ_ONLY, MailboxState.SELECTED_READ_WRITE)


class MailboxSession:
    """
    Reads messages from one IMAP account over a single connection.

    Every command blocks until the server answers; one session must not be
    shared between threads. Typical use:

        with connect(IMAPConfig.from_env()) as session:
            for msg in session.list_messages("INBOX", SEARCH_UNSEEN):
                ...
    """

    def __init__(self, config: IMAPConfig, transport: Transport):
        self.config = config
        self._transport = transport
        self._state = SessionState.CONNECTED
        self._mailbox_state = MailboxState.UNSELECTED
        self._selected: Optional[MailboxStatus] = None

    def __repr__(self) -> str:
        return (
            f"MailboxSession(addr={self.config.addr!r}, state={self._state.value}, "
            f"mailbox={self.selected_mailbox!r})"
        )

    # -----------------------
    # State
    # -----------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mailbox_state(self) -> MailboxState:
        return self._mailbox_state

    @property
    def selected_mailbox(self) -> Optional[str]:
        return self._selected.mailbox if self._selected else None

    def _require_authenticated(self, op: str) -> None:
        if self._state is not SessionState.AUTHENTICATED:
            raise MailboxStateError(f"{op}() requires a logged-in session (state: {self._state.value})")

    def _require_selected(self, op: str, *, writable: bool = False) -> MailboxStatus:
        self._require_authenticated(op)
        if writable and self._mailbox_state is not MailboxState.SELECTED_READ_WRITE:
            raise MailboxStateError(
                f"{op}() requires a mailbox selected read-write (state: {self._mailbox_state.value})"
            )
        if self._mailbox_state not in _SELECTED or self._selected is None:
            raise MailboxStateError(f"{op}() requires a selected mailbox")
        return self._selected

    def _check_uidset(self, uids: UIDSet, op: str, *, writable: bool = False) -> None:
        selected = self._require_selected(op, writable=writable)
        if uids.mailbox != selected.mailbox:
            raise MailboxStateError(
                f"{op}() got UIDs from {uids.mailbox!r} while {selected.mailbox!r} is selected"
            )
        if (
            uids.uidvalidity is not None
            and selected.uidvalidity is not None
            and uids.uidvalidity != selected.uidvalidity
        ):
            raise ProtocolError(
                f"UIDVALIDITY of {selected.mailbox!r} changed "
                f"({uids.uidvalidity} -> {selected.uidvalidity}); UIDs are stale"
            )

    # -----------------------
    # Lifecycle
    # -----------------------

    def login(self) -> None:
        if self._state is not SessionState.CONNECTED:
            raise MailboxStateError(f"login() not allowed in state {self._state.value}")
        log.info("Logging in to %s as %s", self.config.addr, self.config.username)
        self._transport.login(self.config.username, self.config.password)
        self._state = SessionState.AUTHENTICATED

    def logout(self) -> None:
        if self._state is SessionState.LOGGED_OUT:
            raise MailboxStateError("session already logged out")
        log.info("Logging out of %s", self.config.addr)
        try:
            self._transport.logout(self.config.logout_timeout)
        finally:
            self._state = SessionState.LOGGED_OUT
            self._mailbox_state = MailboxState.UNSELECTED
            self._selected = None

    def __enter__(self) -> "MailboxSession":
        if self._state is SessionState.CONNECTED:
            self.login()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._state is SessionState.LOGGED_OUT:
            return
        if exc_type is None:
            self.logout()
            return
        # don't let a logout failure hide the original error
        try:
            self.logout()
        except IMAPError:
            log.exception("Logout after failed operation also failed")

    # -----------------------
    # Mailbox selection
    # -----------------------

    def select(self, mailbox: str, read_only: bool = True) -> MailboxStatus:
        self._require_authenticated("select")
        # the server deselects on a failed SELECT, so drop our state first
        self._mailbox_state = MailboxState.UNSELECTED
        self._selected = None

        status = self._transport.select(mailbox, read_only)

        self._selected = status
        self._mailbox_state = (
            MailboxState.SELECTED_READ_ONLY if read_only else MailboxState.SELECTED_READ_WRITE
        )
        log.debug(
            "Selected %r (%s, exists=%s, uidvalidity=%s)",
            mailbox,
            "read-only" if read_only else "read-write",
            status.exists,
            status.uidvalidity,
        )
        return status

    def close(self) -> None:
        """Leave the selected mailbox. Messages flagged \\Deleted are not expunged."""
        selected = self._require_selected("close")
        try:
            self._transport.close()
        finally:
            self._mailbox_state = MailboxState.UNSELECTED
            self._selected = None
        log.debug("Closed %r", selected.mailbox)

    # -----------------------
    # SEARCH / FETCH / STORE
    # -----------------------

    def search(self, criteria: Criteria) -> UIDSet:
        selected = self._require_selected("search")
        crit = SearchCriteria.of(criteria)

        uids = self._transport.uid_search(crit.encode())

        result = UIDSet.from_uids(uids, mailbox=selected.mailbox, uidvalidity=selected.uidvalidity)
        log.debug("SEARCH %s in %r matched %d message(s)", crit, selected.mailbox, len(result))
        return result

    def fetch(self, uids: UIDSet) -> List[EmailMessage]:
        if not uids:
            return []
        self._check_uidset(uids, "fetch")

        records = self._transport.uid_fetch(uids.to_imap(), FETCH_ITEMS)
        messages = messages_from_records(records, uids)
        log.debug("Fetched %d of %d message(s) from %r", len(messages), len(uids), uids.mailbox)
        return messages

    def mark_seen(self, uids: UIDSet) -> None:
        if not uids:
            return
        self._check_uidset(uids, "mark_seen", writable=True)
        self._transport.uid_store(uids.to_imap(), "+FLAGS.SILENT", f"({SEEN})")
        log.debug("Marked %d message(s) seen in %r", len(uids), uids.mailbox)

    # -----------------------
    # Orchestration
    # -----------------------

    def list_messages(self, mailbox: str, criteria: Criteria) -> List[EmailMessage]:
        """
        Return the messages in `mailbox` matching `criteria`.

        The mailbox is examined read-only for search and fetch, so reading
        has no side effects. When config.mark_seen is set and something
        matched, the mailbox is then selected read-write and the same UIDs
        are flagged \\Seen. A failure in that second phase raises
        MarkSeenError carrying the already fetched messages.
        """
        self.select(mailbox, read_only=True)
        uids = self.search(criteria)
        messages = self.fetch(uids)
        self.close()

        if not (self.config.mark_seen and messages):
            return messages

        try:
            self.select(mailbox, read_only=False)
            self.mark_seen(uids)
            self.close()
        except ProtocolError as e:
            raise MarkSeenError(
                f"fetched {len(messages)} message(s) from {mailbox!r} but marking them seen failed: {e}",
                messages,
            ) from e

        return messages


def connect(config: IMAPConfig, transport_factory: Optional[TransportFactory] = None) -> MailboxSession:
    """Open a connection for `config`. The returned session still needs login()."""
    factory = transport_factory or dial
    transport = factory(config)
    log.info("Connected to %s", config.addr)
    return MailboxSession(config, transport)
