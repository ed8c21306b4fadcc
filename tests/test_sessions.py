import time

import pytest

import chat
import config
from errors import PermissionDenied
from sessions import AuthSession, ChatSession


@pytest.fixture
def account(make_user):
    user = make_user("Dawit Alemu", password="p@ssw0rd")
    return user, "p@ssw0rd"


def test_login_notifies_listeners(account):
    user, password = account
    auth = AuthSession()
    seen = []
    auth.on_change(seen.append)
    auth.login(user["email"], password)
    assert auth.user_id == user["id"]
    assert seen[-1]["id"] == user["id"]
    auth.logout()
    assert auth.user_id is None
    assert seen[-1] is None


def test_chat_session_follows_login(account):
    user, password = account
    auth = AuthSession()
    session = ChatSession(auth, start_threads=False)
    assert session.messages == []

    auth.login(user["email"], password)
    session.send("Do you deliver to Bahir Dar?")
    assert [m["content"] for m in session.messages] == ["Do you deliver to Bahir Dar?"]

    chat.send_chat_message(user["id"], "Yes, within 5 days.", is_from_user=False)
    session.refresh()
    assert session.unread_count == 1
    session.mark_read()
    assert session.unread_count == 0


def test_logout_tears_down_subscriptions(account):
    user, password = account
    auth = AuthSession()
    auth.login(user["email"], password)
    session = ChatSession(auth, start_threads=False)
    message_sub = session._message_sub
    assert message_sub.active

    auth.logout()
    assert not message_sub.active
    assert session.messages == []
    assert session.unread_count == 0
    with pytest.raises(PermissionDenied):
        session.send("hello?")


def test_failed_login_keeps_session_empty(account):
    user, _ = account
    auth = AuthSession()
    with pytest.raises(PermissionDenied):
        auth.login(user["email"], "wrong")
    assert auth.current_user is None


def test_switching_user_drops_previous_chat(make_user):
    first = make_user("Dawit Alemu", password="one")
    second = make_user("Rahel Assefa", password="two")
    auth = AuthSession()
    session = ChatSession(auth, start_threads=False)

    auth.login(first["email"], "one")
    chat.send_chat_message(first["id"], "Where is my parcel?")
    session.refresh()
    old_sub = session._message_sub

    seen = []
    auth.on_change(seen.append)
    auth.login(second["email"], "two")
    assert not old_sub.active
    assert seen[0] is None
    assert seen[-1]["id"] == second["id"]

    chat.send_chat_message(first["id"], "secret from the first user")
    session.refresh()
    assert session.messages == []
    assert sum(1 for s in auth._subscriptions if s.active) == 2


def test_background_listeners_follow_user_switch(monkeypatch, make_user):
    monkeypatch.setattr(config, "CHAT_POLL_INTERVAL", 0.01)
    first = make_user(password="one")
    second = make_user(password="two")
    auth = AuthSession()
    session = ChatSession(auth)
    try:
        auth.login(first["email"], "one")
        auth.login(second["email"], "two")
        chat.send_chat_message(first["id"], "secret from the first user")
        time.sleep(0.3)
        assert session.messages == []
        assert sum(1 for s in auth._subscriptions if s.active) == 2
    finally:
        auth.logout()
