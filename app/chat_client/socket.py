"""
Client socket service for the realtime chat channel.

One SocketService per session. ``connect`` opens ``ws/chat/`` with the
access token in the query string and starts a reader thread that parses
each ``{"type", "data"}`` frame into a typed event and dispatches it to the
handlers registered with ``on``.

Lifecycle:
    - ``connected`` is emitted once the handshake completes
    - ``disconnected`` is emitted when the socket closes for any reason
    - There is no automatic reconnect; callers decide when to ``connect``
      again and re-fetch over REST afterwards

Usage:
    from chat_client.socket import SocketService

    socket = SocketService("wss://bloxmarket.example/ws/chat/")
    socket.on("new_message", lambda event: print(event.message.content))
    socket.connect(access_token)
    socket.join_chat(chat_id)
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from typing import Any, Callable
from urllib.parse import urlencode

from websockets.exceptions import ConnectionClosed
from websockets.sync.client import connect as ws_connect

from chat_client.events import (
    EVENT_TYPES,
    LOCAL_EVENTS,
    Connected,
    Disconnected,
    EventValidationError,
    parse_event,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class SocketService:
    def __init__(
        self,
        url: str,
        connect_factory: Callable[..., Any] = ws_connect,
        open_timeout: float = 10.0,
    ):
        self.url = url
        self._connect_factory = connect_factory
        self._open_timeout = open_timeout
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._connection = None
        self._reader: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    # =========================================================================
    # Connection
    # =========================================================================

    def connect(self, token: str) -> None:
        """
        Open the socket and start dispatching events.

        Calling connect while already connected is a no-op.
        """
        with self._lock:
            if self._connection is not None:
                return
            separator = "&" if "?" in self.url else "?"
            url = f"{self.url}{separator}{urlencode({'token': token})}"
            connection = self._connect_factory(url, open_timeout=self._open_timeout)
            self._connection = connection
            reader = threading.Thread(
                target=self._read_loop,
                args=(connection,),
                name="chat-socket-reader",
                daemon=True,
            )
            self._reader = reader

        logger.info("Chat socket connected")
        self._emit(Connected.type, Connected())
        reader.start()

    def disconnect(self) -> None:
        with self._lock:
            connection, self._connection = self._connection, None
            reader, self._reader = self._reader, None
        if connection is None:
            return

        connection.close()
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=5)

    def _read_loop(self, connection) -> None:
        code = None
        reason = ""
        try:
            for raw in connection:
                self._handle_frame(raw)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                code, reason = e.rcvd.code, e.rcvd.reason
        finally:
            if code is None:
                code = getattr(connection, "close_code", None)
                reason = getattr(connection, "close_reason", None) or ""
            with self._lock:
                if self._connection is connection:
                    self._connection = None
            logger.info("Chat socket disconnected (code=%s)", code)
            self._emit(Disconnected.type, Disconnected(code=code, reason=reason))

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            frame = json.loads(raw)
            if not isinstance(frame, dict):
                raise EventValidationError("Frame must be an object")
            event = parse_event(frame.get("type"), frame.get("data"))
        except (ValueError, EventValidationError) as e:
            logger.warning("Dropping invalid chat frame: %s", e)
            return
        self._emit(event.type, event)

    # =========================================================================
    # Handlers
    # =========================================================================

    def on(self, event_type: str, handler: Handler) -> None:
        if event_type not in EVENT_TYPES and event_type not in LOCAL_EVENTS:
            raise EventValidationError(
                f"Unknown event type: {event_type}", details={"type": event_type}
            )
        self._handlers[event_type].append(handler)

    def off(self, event_type: str, handler: Handler | None = None) -> None:
        """Remove one handler, or every handler for the event when none is given."""
        if handler is None:
            self._handlers.pop(event_type, None)
            return
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def _emit(self, event_type: str, event) -> None:
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Chat event handler failed for %s", event_type)

    # =========================================================================
    # Outgoing Frames
    # =========================================================================

    def _send(self, action: str, chat_id: str) -> bool:
        connection = self._connection
        if connection is None:
            logger.debug("Chat socket not connected; dropping %s", action)
            return False
        try:
            connection.send(json.dumps({"type": action, "chat_id": str(chat_id)}))
        except ConnectionClosed:
            logger.info("Chat socket closed while sending %s", action)
            return False
        return True

    def join_chat(self, chat_id: str) -> bool:
        return self._send("join_chat", chat_id)

    def leave_chat(self, chat_id: str) -> bool:
        return self._send("leave_chat", chat_id)

    def start_typing(self, chat_id: str) -> bool:
        return self._send("typing_start", chat_id)

    def stop_typing(self, chat_id: str) -> bool:
        return self._send("typing_stop", chat_id)
