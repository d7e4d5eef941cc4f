# imapreader/errors.py
from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from imapreader.models import EmailMessage


class IMAPError(Exception):
    """Base class for every failure reported by imapreader."""


class ConfigError(IMAPError):
    pass


class IMAPConnectionError(IMAPError):
    """Dialing the server or the TLS handshake failed."""


class AuthError(IMAPError):
    pass


class ProtocolError(IMAPError):
    """
    The server answered a command negatively, the connection broke while a
    command was in flight, or a bounded wait (logout) expired.
    """


class ParseError(IMAPError):
    """A FETCH record carried a missing or malformed message payload."""


class MarkSeenError(ProtocolError):
    """
    The mark-seen phase of list_messages() failed after the messages were
    fetched. The fetched messages are kept on `messages`.
    """

    def __init__(self, message: str, messages: Optional[List["EmailMessage"]] = None):
        super().__init__(message)
        self.messages: List["EmailMessage"] = list(messages or [])


class MailboxStateError(RuntimeError):
    """
    An operation was called in a session/mailbox state that does not allow it.
    This is a programming error, not a server condition.
    """
