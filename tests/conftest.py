# tests/conftest.py
from __future__ import annotations

import pytest

from fake_transport import FakeTransport
from imapreader import IMAPConfig, MailboxSession

PONY_MSG = (
    b"Subject: Fancy ponies\r\n"
    b"From: Fancy pony <fancy@ponies.org>\r\n"
    b"\r\n"
    b"Hello, ponies\r\n"
)

MAILBOX = "MBOX_TEST"


def make_config(**overrides) -> IMAPConfig:
    values = dict(
        addr="imap.example.org:993",
        username="user",
        password="secret",
        use_ssl=True,
        logout_timeout=60.0,
        mark_seen=False,
    )
    values.update(overrides)
    return IMAPConfig(**values)


@pytest.fixture
def transport() -> FakeTransport:
    t = FakeTransport()
    t.create_mailbox(MAILBOX)
    t.append(MAILBOX, PONY_MSG)
    return t


def _session(transport: FakeTransport, mark_seen: bool) -> MailboxSession:
    s = MailboxSession(make_config(mark_seen=mark_seen), transport)
    s.login()
    transport.calls.clear()
    return s


@pytest.fixture
def session(transport: FakeTransport) -> MailboxSession:
    return _session(transport, mark_seen=False)


@pytest.fixture
def marking_session(transport: FakeTransport) -> MailboxSession:
    return _session(transport, mark_seen=True)
