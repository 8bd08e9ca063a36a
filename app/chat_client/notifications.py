"""
Unread message counter for the notification badge.

UnreadCountNotifier keeps the total unread count across the user's chats.
The server total fetched over REST is authoritative: every poll overwrites
the local value. Between polls the value moves optimistically with realtime
events and explicit signals from the chat screen.

Sources of change:
    - refresh(): GET notifications/unread-count/total/ (every 30 s after start)
    - message_notification events: +1 when not on the chat screen
    - new_message events: refresh when not on the chat screen
    - handle_signal({"increment"|"decrement"|"reset": ...}): chat screen updates

Usage:
    notifier = UnreadCountNotifier(api, socket=socket)
    notifier.subscribe(lambda total: print("badge", total))
    notifier.start()
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from chat_client.api import ChatAPIError
from chat_client.events import MessageNotification, NewMessage

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 30.0

Listener = Callable[[int], None]


class UnreadCountNotifier:
    def __init__(
        self,
        api,
        socket=None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        self.api = api
        self.socket = socket
        self.poll_interval = poll_interval
        self.on_chat_screen = False
        self._timer_factory = timer_factory
        self._timer = None
        self._running = False
        self._count = 0
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @property
    def count(self) -> int:
        return self._count

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Fetch the total, begin polling and listen to socket events."""
        if self._running:
            return
        self._running = True
        if self.socket is not None:
            self.socket.on(MessageNotification.type, self._on_message_notification)
            self.socket.on(NewMessage.type, self._on_new_message)
        self.refresh()
        self._schedule()

    def dispose(self) -> None:
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.socket is not None:
            self.socket.off(MessageNotification.type, self._on_message_notification)
            self.socket.off(NewMessage.type, self._on_new_message)

    def _schedule(self) -> None:
        if not self._running:
            return
        timer = self._timer_factory(self.poll_interval, self._poll)
        # threading.Timer must not keep the interpreter alive
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def _poll(self) -> None:
        try:
            self.refresh()
        finally:
            self._schedule()

    # =========================================================================
    # Counter
    # =========================================================================

    def refresh(self) -> int:
        """Overwrite the count with the server total; keep it on failure."""
        try:
            total = self.api.get_unread_total()
        except ChatAPIError as e:
            logger.warning("Unread count refresh failed: %s", e)
            return self._count
        self._set(total)
        return total

    def increment(self, n: int = 1) -> None:
        with self._lock:
            self._set(self._count + n)

    def decrement(self, n: int = 1) -> None:
        with self._lock:
            self._set(max(0, self._count - n))

    def reset(self) -> None:
        self._set(0)

    def handle_signal(self, detail: dict) -> None:
        """
        Apply a counter signal from the chat screen.

        Example:
            notifier.handle_signal({"decrement": 3})
            notifier.handle_signal({"reset": True})
        """
        if detail.get("reset"):
            self.reset()
        elif "decrement" in detail:
            self.decrement(int(detail["decrement"] or 0))
        elif "increment" in detail:
            self.increment(int(detail["increment"] or 0))

    def _set(self, value: int) -> None:
        with self._lock:
            if value == self._count:
                return
            self._count = value
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                logger.exception("Unread count listener failed")

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # Socket Events
    # =========================================================================

    def _on_message_notification(self, event: MessageNotification) -> None:
        if self.on_chat_screen:
            return
        self.increment(1)

    def _on_new_message(self, event: NewMessage) -> None:
        if self.on_chat_screen:
            return
        self.refresh()
