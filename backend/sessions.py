"""
Process-wide session state for a signed-in customer.

AuthSession tracks who is signed in; ChatSession keeps that user's support
conversation and unread counter current through live subscriptions. Every
subscription is torn down when the user logs out.
"""
import logging
from typing import Callable, Dict, List, Optional

import chat
import users
from errors import PermissionDenied

logger = logging.getLogger(__name__)


class AuthSession:
    def __init__(self):
        self.current_user: Optional[Dict] = None
        self._listeners: List[Callable[[Optional[Dict]], None]] = []
        self._subscriptions = []

    def on_change(self, listener: Callable[[Optional[Dict]], None]) -> None:
        self._listeners.append(listener)

    def track(self, subscription) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.active]
        self._subscriptions.append(subscription)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.current_user)

    def login(self, email: str, password: str) -> Dict:
        user = users.login_user(email, password)
        if self.current_user and self.current_user["id"] != user["id"]:
            self.logout()
        self.current_user = user
        logger.info("User %s signed in", self.current_user["id"])
        self._notify()
        return self.current_user

    def logout(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        if self.current_user:
            logger.info("User %s signed out", self.current_user["id"])
        self.current_user = None
        self._notify()

    @property
    def user_id(self) -> Optional[str]:
        return self.current_user["id"] if self.current_user else None


class ChatSession:
    def __init__(self, auth: AuthSession, start_threads: bool = True):
        self.auth = auth
        self.messages: List[Dict] = []
        self.unread_count = 0
        self.start_threads = start_threads
        self._message_sub = None
        self._unread_sub = None
        auth.on_change(self._user_changed)
        if auth.user_id:
            self._user_changed(auth.current_user)

    def _set_messages(self, messages):
        self.messages = messages

    def _set_unread(self, count):
        self.unread_count = count

    def _user_changed(self, user: Optional[Dict]) -> None:
        for sub in (self._message_sub, self._unread_sub):
            if sub is not None:
                sub.unsubscribe()
        self._message_sub = self._unread_sub = None
        if not user:
            self.messages = []
            self.unread_count = 0
            return
        self._message_sub = chat.subscribe_chat_messages(user["id"], self._set_messages, start=self.start_threads)
        self._unread_sub = chat.subscribe_unread_count(user["id"], self._set_unread, start=self.start_threads)
        self.auth.track(self._message_sub)
        self.auth.track(self._unread_sub)

    def refresh(self) -> None:
        for sub in (self._message_sub, self._unread_sub):
            if sub is not None:
                sub.poll()

    def send(self, message: str) -> str:
        if not self.auth.user_id:
            raise PermissionDenied("User not authenticated")
        chat_id = chat.send_chat_message(self.auth.user_id, message)
        self.refresh()
        return chat_id

    def mark_read(self) -> None:
        if self.auth.user_id:
            chat.mark_chat_as_read(self.auth.user_id)
            self.refresh()
