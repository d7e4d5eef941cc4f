# imapreader/__init__.py
from imapreader.config import IMAPConfig
from imapreader.constants import GMAIL_ALL_MAIL, GMAIL_INBOX
from imapreader.criteria import (
    SEARCH_ALL,
    SEARCH_ANSWERED,
    SEARCH_DELETED,
    SEARCH_FLAGGED,
    SEARCH_NEW,
    SEARCH_OLD,
    SEARCH_RECENT,
    SEARCH_SEEN,
    SEARCH_UNANSWERED,
    SEARCH_UNDELETED,
    SEARCH_UNFLAGGED,
    SEARCH_UNSEEN,
    SearchCriteria,
    all_of,
    before,
    by_body,
    by_cc,
    by_from,
    by_subject,
    by_text,
    by_to,
    on,
    since,
)
from imapreader.errors import (
    AuthError,
    ConfigError,
    IMAPConnectionError,
    IMAPError,
    MailboxStateError,
    MarkSeenError,
    ParseError,
    ProtocolError,
)
from imapreader.models import EmailMessage, Headers
from imapreader.session import MailboxSession, MailboxState, SessionState, connect
from imapreader.uidset import UIDSet

__version__ = "0.1.0"

__all__ = [
    "IMAPConfig",
    "MailboxSession",
    "MailboxState",
    "SessionState",
    "connect",
    "EmailMessage",
    "Headers",
    "UIDSet",
    "SearchCriteria",
    "by_subject",
    "by_from",
    "by_to",
    "by_cc",
    "by_body",
    "by_text",
    "since",
    "before",
    "on",
    "all_of",
    "SEARCH_ALL",
    "SEARCH_UNSEEN",
    "SEARCH_SEEN",
    "SEARCH_ANSWERED",
    "SEARCH_UNANSWERED",
    "SEARCH_DELETED",
    "SEARCH_UNDELETED",
    "SEARCH_FLAGGED",
    "SEARCH_UNFLAGGED",
    "SEARCH_NEW",
    "SEARCH_OLD",
    "SEARCH_RECENT",
    "GMAIL_INBOX",
    "GMAIL_ALL_MAIL",
    "IMAPError",
    "ConfigError",
    "IMAPConnectionError",
    "AuthError",
    "ProtocolError",
    "ParseError",
    "MarkSeenError",
    "MailboxStateError",
]
