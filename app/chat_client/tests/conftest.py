"""
Fixtures and fakes for chat client tests.

The client is tested without a server:
- FakeConnection stands in for a websockets sync connection
- FakeSocket records handlers and outgoing frames for state tests
- FakeTimer lets tests fire poll and typing timers by hand
- Payload builders live in factories.py
"""

import json
import queue
import threading
from collections import defaultdict

import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

_END = object()


class FakeConnection:
    """Iterable connection fed by ``push``; ``end`` closes it from the server side."""

    def __init__(self):
        self.url = None
        self.sent = []
        self.closed = False
        self._inbox = queue.Queue()

    def push(self, frame) -> None:
        self._inbox.put(frame if isinstance(frame, (str, bytes)) else json.dumps(frame))

    def end(self, code: int | None = None, reason: str = "") -> None:
        self._inbox.put((_END, code, reason))

    def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(json.loads(data))

    def close(self) -> None:
        self.closed = True
        self.end(1000, "")

    def __iter__(self):
        while True:
            item = self._inbox.get(timeout=5)
            if isinstance(item, tuple) and item[0] is _END:
                _, code, reason = item
                if code is not None and code != 1000:
                    raise ConnectionClosedError(Close(code, reason), None)
                return
            yield item


class FakeSocket:
    """SocketService double: records handlers and outgoing actions."""

    def __init__(self):
        self.handlers = defaultdict(list)
        self.frames = []

    def on(self, event_type, handler):
        self.handlers[event_type].append(handler)

    def off(self, event_type, handler=None):
        if handler is None:
            self.handlers.pop(event_type, None)
        elif handler in self.handlers.get(event_type, []):
            self.handlers[event_type].remove(handler)

    def emit(self, event):
        for handler in list(self.handlers.get(event.type, [])):
            handler(event)

    def join_chat(self, chat_id):
        self.frames.append(("join_chat", chat_id))

    def leave_chat(self, chat_id):
        self.frames.append(("leave_chat", chat_id))

    def start_typing(self, chat_id):
        self.frames.append(("typing_start", chat_id))

    def stop_typing(self, chat_id):
        self.frames.append(("typing_stop", chat_id))


class FakeTimer:
    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function()


class TimerLog(list):
    """Timers created through ``factory``; ``last`` is the most recent."""

    def factory(self, interval, function):
        timer = FakeTimer(interval, function)
        self.append(timer)
        return timer

    @property
    def last(self) -> FakeTimer:
        return self[-1]


@pytest.fixture
def timers():
    return TimerLog()


@pytest.fixture
def fake_socket():
    return FakeSocket()


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def disconnected():
    """Event set when a SocketService emits ``disconnected``."""
    return threading.Event()
