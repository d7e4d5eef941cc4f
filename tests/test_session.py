from __future__ import annotations

import pytest

from conftest import MAILBOX, PONY_MSG, make_config
from fake_transport import FakeTransport
from imapreader import (
    SEARCH_ALL,
    SEARCH_UNSEEN,
    AuthError,
    MailboxSession,
    MailboxState,
    MailboxStateError,
    MarkSeenError,
    ParseError,
    ProtocolError,
    SessionState,
    UIDSet,
    by_from,
    by_subject,
    connect,
)


# --- list_messages ----------------------------------------------------------


def test_list_returns_message_with_headers_and_exact_body(session):
    msgs = session.list_messages(MAILBOX, SEARCH_UNSEEN)

    assert len(msgs) == 1
    msg = msgs[0]
    assert msg.body == b"Hello, ponies\r\n"
    assert msg.headers.first("Subject") == "Fancy ponies"
    assert msg.headers.first("From") == "Fancy pony <fancy@ponies.org>"
    assert msg.subject == "Fancy ponies"
    assert msg.flags == frozenset()


def test_list_without_mark_seen_is_repeatable(session, transport):
    first = session.list_messages(MAILBOX, SEARCH_UNSEEN)
    second = session.list_messages(MAILBOX, SEARCH_UNSEEN)

    assert len(first) == 1
    assert len(second) == 1
    assert first[0].body == second[0].body
    assert transport.flags_of(MAILBOX, 1) == set()
    assert transport.calls_of("UID STORE") == []


def test_list_with_mark_seen_marks_then_stops_matching_unseen(marking_session, transport):
    first = marking_session.list_messages(MAILBOX, SEARCH_UNSEEN)
    assert len(first) == 1
    assert first[0].flags == frozenset()

    second = marking_session.list_messages(MAILBOX, SEARCH_UNSEEN)
    assert second == []
    assert transport.flags_of(MAILBOX, 1) == {r"\Seen"}


def test_list_command_order_with_mark_seen(marking_session, transport):
    marking_session.list_messages(MAILBOX, SEARCH_UNSEEN)

    assert transport.command_names() == [
        "EXAMINE",
        "UID SEARCH",
        "UID FETCH",
        "CLOSE",
        "SELECT",
        "UID STORE",
        "CLOSE",
    ]
    store = transport.calls_of("UID STORE")[0]
    assert store == ("UID STORE", "1", "+FLAGS.SILENT", r"(\Seen)")
    assert marking_session.mailbox_state is MailboxState.UNSELECTED


def test_list_no_match_issues_no_fetch_or_store(marking_session, transport):
    msgs = marking_session.list_messages(MAILBOX, by_subject("no such subject"))

    assert msgs == []
    assert transport.calls_of("UID FETCH") == []
    assert transport.calls_of("UID STORE") == []
    assert transport.command_names() == ["EXAMINE", "UID SEARCH", "CLOSE"]


def test_list_empty_mailbox(session, transport):
    transport.create_mailbox("Empty")
    assert session.list_messages("Empty", SEARCH_ALL) == []
    assert transport.calls_of("UID FETCH") == []


def test_list_returns_messages_in_uid_order(session, transport):
    transport.append(MAILBOX, b"Subject: second\r\n\r\ntwo\r\n")
    transport.append(MAILBOX, b"Subject: third\r\n\r\nthree\r\n", flags=[r"\Flagged"])

    msgs = session.list_messages(MAILBOX, SEARCH_ALL)

    assert [m.uid for m in msgs] == [1, 2, 3]
    assert [m.subject for m in msgs] == ["Fancy ponies", "second", "third"]
    assert msgs[2].flags == frozenset({r"\Flagged"})
    assert transport.calls_of("UID FETCH")[0][1] == "1:3"


def test_list_by_from(session):
    assert len(session.list_messages(MAILBOX, by_from("fancy@ponies.org"))) == 1
    assert session.list_messages(MAILBOX, by_from("nobody@example.org")) == []


def test_list_accepts_plain_token_sequence(session, transport):
    msgs = session.list_messages(MAILBOX, ["SUBJECT", "Fancy ponies"])

    assert len(msgs) == 1
    sent = transport.calls_of("UID SEARCH")[0][1]
    assert sent == ("SUBJECT", '"Fancy ponies"')


def test_list_composed_criteria(session, transport):
    transport.append(MAILBOX, b"Subject: Fancy ponies\r\n\r\nseen one\r\n", flags=[r"\Seen"])

    msgs = session.list_messages(MAILBOX, SEARCH_UNSEEN + by_subject("ponies"))

    assert [m.uid for m in msgs] == [1]
    sent = transport.calls_of("UID SEARCH")[0][1]
    assert sent == ("UNSEEN", "SUBJECT", '"ponies"')


def test_search_quotes_double_quote_in_subject(session, transport):
    transport.append(MAILBOX, b'Subject: say "hi" to ponies\r\n\r\nhello\r\n')

    msgs = session.list_messages(MAILBOX, by_subject('say "hi"'))

    assert [m.uid for m in msgs] == [2]
    assert msgs[0].subject == 'say "hi" to ponies'
    sent = transport.calls_of("UID SEARCH")[0][1]
    assert sent == ("SUBJECT", r'"say \"hi\""')


def test_search_does_not_mutate_shared_criteria(session):
    crit = by_subject('a "b" c')
    before = crit.tokens()
    session.list_messages(MAILBOX, crit)
    session.list_messages(MAILBOX, crit)
    assert crit.tokens() == before == ("SUBJECT", 'a "b" c')
    assert SEARCH_UNSEEN.tokens() == ("UNSEEN",)


def test_list_nonexistent_mailbox(session, transport):
    with pytest.raises(ProtocolError):
        session.list_messages("does-not-exist", SEARCH_ALL)

    assert session.mailbox_state is MailboxState.UNSELECTED
    assert session.selected_mailbox is None
    assert transport.command_names() == ["EXAMINE"]


def test_list_parse_error_fails_whole_fetch_and_marks_nothing(marking_session, transport):
    transport.append(MAILBOX, b"Subject: fine\r\n\r\nok\r\n")
    transport.body_override[2] = b"this is not a message"

    with pytest.raises(ParseError):
        marking_session.list_messages(MAILBOX, SEARCH_ALL)

    assert transport.calls_of("UID STORE") == []
    assert transport.flags_of(MAILBOX, 1) == set()


def test_list_includes_headers_only_message(session, transport):
    transport.append(MAILBOX, b"Subject: no body\r\n")

    msgs = session.list_messages(MAILBOX, SEARCH_UNSEEN)

    assert [m.uid for m in msgs] == [1, 2]
    assert msgs[0].body == b"Hello, ponies\r\n"
    assert msgs[1].subject == "no body"
    assert msgs[1].body == b""


def test_list_missing_body_is_parse_error(session, transport):
    transport.body_override[1] = None
    with pytest.raises(ParseError):
        session.list_messages(MAILBOX, SEARCH_ALL)


def test_list_mark_seen_failure_keeps_fetched_messages(marking_session, transport):
    transport.fail_next["UID STORE"] = ProtocolError("NO [ALERT] store refused")

    with pytest.raises(MarkSeenError) as excinfo:
        marking_session.list_messages(MAILBOX, SEARCH_UNSEEN)

    err = excinfo.value
    assert isinstance(err, ProtocolError)
    assert [m.subject for m in err.messages] == ["Fancy ponies"]
    assert isinstance(err.__cause__, ProtocolError)
    assert transport.flags_of(MAILBOX, 1) == set()


def test_list_mark_seen_reselect_failure(marking_session, transport):
    transport.fail_next["SELECT"] = ProtocolError("NO mailbox is read-only")

    with pytest.raises(MarkSeenError) as excinfo:
        marking_session.list_messages(MAILBOX, SEARCH_UNSEEN)

    assert len(excinfo.value.messages) == 1
    assert transport.calls_of("UID STORE") == []
    assert marking_session.mailbox_state is MailboxState.UNSELECTED


def test_search_failure_aborts_without_close(session, transport):
    transport.fail_next["UID SEARCH"] = ProtocolError("BAD parse error")

    with pytest.raises(ProtocolError):
        session.list_messages(MAILBOX, SEARCH_ALL)

    assert transport.command_names() == ["EXAMINE", "UID SEARCH"]
    # still selected; the next list re-selects
    assert session.mailbox_state is MailboxState.SELECTED_READ_ONLY
    assert len(session.list_messages(MAILBOX, SEARCH_ALL)) == 1


# --- step-level operations --------------------------------------------------


def test_select_sets_state(session):
    status = session.select(MAILBOX)
    assert session.mailbox_state is MailboxState.SELECTED_READ_ONLY
    assert status.exists == 1
    assert status.uidvalidity is not None

    session.select(MAILBOX, read_only=False)
    assert session.mailbox_state is MailboxState.SELECTED_READ_WRITE

    session.close()
    assert session.mailbox_state is MailboxState.UNSELECTED


def test_search_returns_uidset_bound_to_selection(session):
    status = session.select(MAILBOX)
    uids = session.search(SEARCH_ALL)

    assert isinstance(uids, UIDSet)
    assert list(uids) == [1]
    assert uids.mailbox == MAILBOX
    assert uids.uidvalidity == status.uidvalidity


def test_search_no_match_is_empty_not_error(session):
    session.select(MAILBOX)
    uids = session.search(by_subject("nothing"))
    assert not uids
    assert len(uids) == 0


def test_fetch_and_mark_seen_empty_set_issue_nothing(session, transport):
    empty = UIDSet(mailbox=MAILBOX)
    assert session.fetch(empty) == []
    session.mark_seen(empty)
    assert transport.calls == []


def test_search_requires_selected_mailbox(session):
    with pytest.raises(MailboxStateError):
        session.search(SEARCH_ALL)


def test_close_requires_selected_mailbox(session):
    with pytest.raises(MailboxStateError):
        session.close()


def test_mark_seen_requires_read_write(session, transport):
    session.select(MAILBOX, read_only=True)
    uids = session.search(SEARCH_ALL)
    with pytest.raises(MailboxStateError):
        session.mark_seen(uids)
    assert transport.calls_of("UID STORE") == []


def test_uidset_from_other_mailbox_is_rejected(session, transport):
    transport.create_mailbox("Other")
    transport.append("Other", PONY_MSG)

    session.select(MAILBOX)
    uids = session.search(SEARCH_ALL)
    session.close()
    session.select("Other")

    with pytest.raises(MailboxStateError):
        session.fetch(uids)


def test_uidset_is_stale_after_uidvalidity_change(session, transport):
    session.select(MAILBOX)
    uids = session.search(SEARCH_ALL)
    session.close()

    transport.bump_uidvalidity(MAILBOX)
    session.select(MAILBOX, read_only=False)

    with pytest.raises(ProtocolError):
        session.mark_seen(uids)
    assert transport.calls_of("UID STORE") == []


# --- lifecycle --------------------------------------------------------------


def test_operations_before_login_are_rejected(transport):
    s = MailboxSession(make_config(), transport)
    assert s.state is SessionState.CONNECTED

    with pytest.raises(MailboxStateError):
        s.select(MAILBOX)
    with pytest.raises(MailboxStateError):
        s.list_messages(MAILBOX, SEARCH_ALL)
    assert transport.calls == []


def test_login_rejected(transport):
    s = MailboxSession(make_config(password="wrong"), transport)
    with pytest.raises(AuthError):
        s.login()
    assert s.state is SessionState.CONNECTED


def test_logout_invalidates_session(session, transport):
    session.logout()

    assert session.state is SessionState.LOGGED_OUT
    assert transport.calls_of("LOGOUT") == [("LOGOUT", 60.0)]
    with pytest.raises(MailboxStateError):
        session.list_messages(MAILBOX, SEARCH_ALL)
    with pytest.raises(MailboxStateError):
        session.logout()


def test_logout_failure_still_invalidates(session, transport):
    transport.fail_next["LOGOUT"] = ProtocolError("LOGOUT failed: timed out")

    with pytest.raises(ProtocolError):
        session.logout()
    assert session.state is SessionState.LOGGED_OUT


def test_context_manager_logs_in_and_out(transport):
    with MailboxSession(make_config(), transport) as s:
        assert s.state is SessionState.AUTHENTICATED
        assert len(s.list_messages(MAILBOX, SEARCH_ALL)) == 1

    assert s.state is SessionState.LOGGED_OUT
    assert transport.command_names()[0] == "LOGIN"
    assert transport.command_names()[-1] == "LOGOUT"


def test_context_manager_keeps_original_error_when_logout_fails(transport):
    transport.fail_next["LOGOUT"] = ProtocolError("LOGOUT failed")

    with pytest.raises(ProtocolError, match="does not exist"):
        with MailboxSession(make_config(), transport) as s:
            s.list_messages("missing", SEARCH_ALL)


def test_connect_uses_transport_factory():
    created = []

    def factory(config):
        t = FakeTransport()
        created.append((config, t))
        return t

    cfg = make_config()
    s = connect(cfg, transport_factory=factory)

    assert s.state is SessionState.CONNECTED
    assert created[0][0] is cfg
