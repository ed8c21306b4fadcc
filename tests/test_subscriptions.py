import threading
import time

from subscriptions import Subscription


def test_first_poll_always_delivers():
    seen = []
    sub = Subscription(lambda: [], seen.append)
    assert sub.poll() is True
    assert seen == [[]]


def test_only_changes_are_delivered():
    values = iter([1, 1, 2, 2, 3])
    seen = []
    sub = Subscription(lambda: next(values), seen.append)
    for _ in range(5):
        sub.poll()
    assert seen == [1, 2, 3]


def test_unsubscribe_is_idempotent():
    seen = []
    sub = Subscription(lambda: 1, seen.append)
    sub.unsubscribe()
    sub()
    assert not sub.active
    assert sub.poll() is False
    assert seen == []


def test_callback_errors_do_not_stop_polling():
    values = iter(["a", "b"])
    calls = []

    def callback(value):
        calls.append(value)
        raise RuntimeError("listener broke")

    sub = Subscription(lambda: next(values), callback)
    assert sub.poll() is True
    assert sub.poll() is True
    assert calls == ["a", "b"]


def test_background_thread_polls_until_unsubscribed():
    state = {"value": 0}
    delivered = threading.Event()
    seen = []

    def callback(value):
        seen.append(value)
        if value == 2:
            delivered.set()

    sub = Subscription(lambda: state["value"], callback, interval=0.01).start()
    state["value"] = 2
    assert delivered.wait(timeout=5)
    sub.unsubscribe()
    assert not sub.active
    assert seen[-1] == 2


def test_slow_fetch_cannot_overwrite_newer_result():
    started = threading.Event()
    release = threading.Event()
    calls = []

    def fetch():
        calls.append(None)
        if len(calls) == 1:
            started.set()
            release.wait(timeout=5)
            return "old"
        return "new"

    seen = []
    sub = Subscription(fetch, seen.append)
    slow = threading.Thread(target=sub.poll)
    slow.start()
    assert started.wait(timeout=5)
    fast = threading.Thread(target=sub.poll)
    fast.start()
    time.sleep(0.05)
    release.set()
    slow.join(timeout=5)
    fast.join(timeout=5)
    assert seen == ["old", "new"]


def test_unsubscribe_during_fetch_skips_delivery():
    seen = []
    holder = {}

    def fetch():
        holder["sub"].unsubscribe()
        return 1

    sub = holder["sub"] = Subscription(fetch, seen.append)
    assert sub.poll() is False
    assert seen == []
