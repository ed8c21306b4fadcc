"""
Live subscriptions.

A Subscription re-runs a query and pushes the result to a callback whenever it
differs from the last delivered result. The first check always delivers.
"""
import logging
import threading
from typing import Any, Callable, Optional

import config

logger = logging.getLogger(__name__)

_UNSET = object()


class Subscription:
    def __init__(self, fetch: Callable[[], Any], callback: Callable[[Any], None], interval: float = None):
        self._fetch = fetch
        self._callback = callback
        self.interval = config.CHAT_POLL_INTERVAL if interval is None else interval
        self._last: Any = _UNSET
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # held across fetch, compare and deliver
        self._lock = threading.RLock()

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    def poll(self) -> bool:
        """Run one check. Returns True when the callback was invoked."""
        with self._lock:
            if not self.active:
                return False
            result = self._fetch()
            if not self.active:
                return False
            if self._last is not _UNSET and result == self._last:
                return False
            self._last = result
            try:
                self._callback(result)
            except Exception:
                logger.exception("Subscription callback failed")
            return True

    def _run(self) -> None:
        while self.active:
            try:
                self.poll()
            except Exception:
                logger.exception("Subscription query failed")
            self._stopped.wait(self.interval)

    def start(self) -> "Subscription":
        if self._thread is None and self.active:
            self._thread = threading.Thread(target=self._run, daemon=True)
            self._thread.start()
        return self

    def unsubscribe(self) -> None:
        self._stopped.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1)

    __call__ = unsubscribe
