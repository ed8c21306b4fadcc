import pytest

import chat
from errors import NotFound, ValidationError


@pytest.fixture
def customer(make_user):
    return make_user("Hana Girma")


def test_first_message_opens_thread(customer):
    chat_id = chat.send_chat_message(customer["id"], "Where is my order?")
    thread = chat.get_chat_thread(customer["id"])
    assert thread["id"] == chat_id
    assert thread["status"] == "active"
    assert thread["last_message"] == "Where is my order?"
    assert thread["unread_count"] == 0


def test_messages_share_one_thread(customer):
    first = chat.send_chat_message(customer["id"], "Hello")
    second = chat.send_chat_message(customer["id"], "Anyone there?")
    assert first == second
    messages = chat.get_chat_messages(customer["id"])
    assert [m["content"] for m in messages] == ["Hello", "Anyone there?"]
    assert all(m["chat_id"] == first for m in messages)


def test_support_reply_is_unread_until_marked(customer):
    chat.send_chat_message(customer["id"], "Can I pay with telebirr?")
    chat.send_chat_message(customer["id"], "Yes, telebirr is supported.", is_from_user=False)
    assert chat.get_unread_chat_count(customer["id"]) == 1
    reply = chat.get_chat_messages(customer["id"])[-1]
    assert reply["is_from_user"] is False
    assert reply["read"] is False

    assert chat.mark_chat_as_read(customer["id"]) is True
    assert chat.get_unread_chat_count(customer["id"]) == 0
    assert all(m["read"] for m in chat.get_chat_messages(customer["id"]))


@pytest.mark.parametrize("message", ["", "   ", None])
def test_empty_message_rejected(customer, message):
    with pytest.raises(ValidationError):
        chat.send_chat_message(customer["id"], message)
    assert chat.get_chat_thread(customer["id"]) is None


def test_unknown_user_rejected(db):
    with pytest.raises(NotFound, match="User not found"):
        chat.send_chat_message("64b7f0c2a1b2c3d4e5f60718", "Hi")
    with pytest.raises(NotFound, match="User not found"):
        chat.send_chat_message("not-an-id", "Hi")


def test_no_thread_yet(customer):
    assert chat.get_chat_messages(customer["id"]) == []
    assert chat.get_unread_chat_count(customer["id"]) == 0
    assert chat.mark_chat_as_read(customer["id"]) is False
    assert chat.close_chat(customer["id"]) is False


def test_close_and_reopen(customer):
    chat.send_chat_message(customer["id"], "Thanks, solved")
    assert chat.close_chat(customer["id"]) is True
    assert chat.get_chat_thread(customer["id"])["status"] == "closed"
    chat.send_chat_message(customer["id"], "One more question")
    assert chat.get_chat_thread(customer["id"])["status"] == "active"


def test_message_subscription_delivers_changes(customer):
    seen = []
    sub = chat.subscribe_chat_messages(customer["id"], seen.append, start=False)
    assert seen == [[]]

    assert sub.poll() is False
    chat.send_chat_message(customer["id"], "Ping")
    assert sub.poll() is True
    assert [m["content"] for m in seen[-1]] == ["Ping"]

    sub.unsubscribe()
    chat.send_chat_message(customer["id"], "Pong")
    assert sub.poll() is False
    assert len(seen) == 2


def test_unread_subscription(customer):
    counts = []
    sub = chat.subscribe_unread_count(customer["id"], counts.append, start=False)
    chat.send_chat_message(customer["id"], "Hi")
    chat.send_chat_message(customer["id"], "Hello, how can we help?", is_from_user=False)
    sub.poll()
    chat.mark_chat_as_read(customer["id"])
    sub.poll()
    assert counts == [0, 1, 0]
