"""
Client-side chat state reconciled from REST pages and realtime events.

Classes:
    ChatList: Chat summaries ordered by recent activity with unread counters
    ChatWindow: Messages of the open chat (history, realtime, replies, grouping)
    TypingIndicator: Debounced typing_start / typing_stop frames
    CreateChatDialog: Validation in front of chat creation

State never trusts event order: messages are keyed by ``message_id`` so a
message seen over REST and again over the socket appears once.

Usage:
    chats = ChatList(api, current_user_id=me.id, notifier=notifier)
    chats.load()
    chats.bind(socket)

    window = ChatWindow(api, socket, chat_id, current_user_id=me.id)
    window.load()
    window.send("still available?")
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date, datetime, timezone, tzinfo
from itertools import groupby
from typing import Any, Callable

from chat_client.api import ChatAPIError
from chat_client.events import (
    ChatSummary,
    LastMessage,
    Message,
    MessageDeleted,
    MessageEdited,
    MessageNotification,
    NewMessage,
    ReactionAdded,
    ReactionRemoved,
    UserLeftGroup,
)
from core.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_GROUP_NAME_LENGTH = 100
MIN_GROUP_INVITEES = 2
TYPING_TIMEOUT_SECONDS = 1.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(chat: ChatSummary):
    activity = chat.activity_at
    return (activity is not None, activity or datetime.min.replace(tzinfo=timezone.utc))


# =============================================================================
# Chat List
# =============================================================================


class ChatList:
    """
    The user's chats with last-message previews and unread counters.

    Unread counters move with realtime events except for the open chat and
    the user's own messages. Opening a chat zeroes its counter and lowers
    the notifier total by exactly the counter it had.
    """

    def __init__(self, api, current_user_id: int, notifier=None):
        self.api = api
        self.current_user_id = current_user_id
        self.notifier = notifier
        self.current_chat_id: str | None = None
        self._chats: dict[str, ChatSummary] = {}
        self._socket = None

    @property
    def chats(self) -> list[ChatSummary]:
        return sorted(self._chats.values(), key=_sort_key, reverse=True)

    def get(self, chat_id: str) -> ChatSummary | None:
        return self._chats.get(str(chat_id))

    def load(self, limit: int = 20) -> list[ChatSummary]:
        chats, _ = self.api.list_chats(page=1, limit=limit)
        self._chats = {chat.chat_id: chat for chat in chats}
        return self.chats

    def add(self, chat: ChatSummary) -> None:
        self._chats[chat.chat_id] = chat

    def remove(self, chat_id: str) -> ChatSummary | None:
        chat_id = str(chat_id)
        chat = self._chats.pop(chat_id, None)
        if chat_id == self.current_chat_id:
            self.current_chat_id = None
        return chat

    def bind(self, socket) -> None:
        self._socket = socket
        socket.on(NewMessage.type, self.apply)
        socket.on(MessageNotification.type, self.apply)
        socket.on(UserLeftGroup.type, self.apply)

    def unbind(self) -> None:
        if self._socket is None:
            return
        for event_type in (NewMessage.type, MessageNotification.type, UserLeftGroup.type):
            self._socket.off(event_type, self.apply)
        self._socket = None

    def open_chat(self, chat_id: str) -> int:
        """Select a chat; returns the unread count it had."""
        chat_id = str(chat_id)
        self.current_chat_id = chat_id
        chat = self._chats.get(chat_id)
        if chat is None or chat.unread_count == 0:
            return 0

        prior = chat.unread_count
        self._chats[chat_id] = replace(chat, unread_count=0)
        if self.notifier is not None:
            self.notifier.decrement(prior)
        return prior

    def close_chat(self) -> None:
        self.current_chat_id = None

    def apply(self, event) -> None:
        if isinstance(event, NewMessage):
            self._on_message(event.message, unread_count=None)
        elif isinstance(event, MessageNotification):
            self._on_message(event.message, unread_count=event.unread_count, event=event)
        elif isinstance(event, UserLeftGroup):
            self._on_user_left(event)

    def _on_message(
        self,
        message: Message,
        unread_count: int | None,
        event: MessageNotification | None = None,
    ) -> None:
        chat = self._chats.get(message.chat_id)
        if chat is None:
            if event is None:
                return
            chat = ChatSummary(
                chat_id=event.chat_id,
                chat_type=event.chat_type,
                name=event.chat_name,
            )

        seen = chat.last_message is not None and chat.last_message.message_id == message.message_id
        own = message.sender is not None and message.sender.user_id == self.current_user_id
        is_open = message.chat_id == self.current_chat_id

        unread = chat.unread_count
        if not (is_open or own):
            if unread_count is not None:
                unread = unread_count
            elif not seen:
                unread += 1

        self._chats[message.chat_id] = replace(
            chat,
            last_message=LastMessage.from_message(message),
            updated_at=message.created_at,
            message_count=chat.message_count + (0 if seen else 1),
            unread_count=unread,
        )

    def _on_user_left(self, event: UserLeftGroup) -> None:
        chat = self._chats.get(event.chat_id)
        if chat is None:
            return
        if event.user_id == self.current_user_id:
            self.remove(event.chat_id)
            return

        remaining = chat.participants_count - 1
        if remaining <= 0:
            self.remove(event.chat_id)
            return
        self._chats[event.chat_id] = replace(chat, participants_count=remaining)


# =============================================================================
# Typing Indicator
# =============================================================================


class TypingIndicator:
    """
    Sends typing frames for one chat.

    The first keystroke sends ``typing_start``; every keystroke restarts a
    one second timer whose expiry sends ``typing_stop``. ``stop`` sends it
    immediately (for example after sending a message).
    """

    def __init__(
        self,
        socket,
        chat_id: str,
        timeout: float = TYPING_TIMEOUT_SECONDS,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        self.socket = socket
        self.chat_id = chat_id
        self.timeout = timeout
        self._timer_factory = timer_factory
        self._timer = None
        self._typing = False
        self._lock = threading.Lock()

    @property
    def is_typing(self) -> bool:
        return self._typing

    def input(self) -> None:
        with self._lock:
            started = not self._typing
            self._typing = True
            if self._timer is not None:
                self._timer.cancel()
            timer = self._timer_factory(self.timeout, lambda: self._expire(timer))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()
        if started:
            self.socket.start_typing(self.chat_id)

    def stop(self) -> None:
        self._stop()

    def _expire(self, timer) -> None:
        self._stop(expired=timer)

    def _stop(self, expired=None) -> None:
        with self._lock:
            # a newer keystroke replaced the expired timer
            if expired is not None and expired is not self._timer:
                return
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if not self._typing:
                return
            self._typing = False
        self.socket.stop_typing(self.chat_id)


# =============================================================================
# Chat Window
# =============================================================================


class ChatWindow:
    """
    Messages of one open chat.

    Status moves ``idle -> loading -> loaded`` (or ``error`` when the first
    page fails). Messages from REST pages and realtime events are merged by
    ``message_id`` and kept in chronological order.
    """

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"

    def __init__(
        self,
        api,
        socket,
        chat_id: str,
        current_user_id: int,
        page_size: int = 50,
        typing: TypingIndicator | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.socket = socket
        self.chat_id = str(chat_id)
        self.current_user_id = current_user_id
        self.page_size = page_size
        self.typing = typing or TypingIndicator(socket, self.chat_id)
        self.status = self.IDLE
        self.error: ChatAPIError | None = None
        self.replying_to: Message | None = None
        self.has_more = False
        self._page = 0
        self._messages: dict[str, Message] = {}
        self._clock = clock
        self._local_seq = 0

    @property
    def messages(self) -> list[Message]:
        return sorted(self._messages.values(), key=lambda m: m.created_at)

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(str(message_id))

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self) -> list[Message]:
        self.status = self.LOADING
        self.error = None
        try:
            messages, pagination = self.api.get_messages(
                self.chat_id, page=1, limit=self.page_size
            )
        except ChatAPIError as e:
            logger.warning("Loading chat %s failed: %s", self.chat_id, e)
            self.status = self.ERROR
            self.error = e
            return self.messages

        self._page = 1
        self.has_more = bool(pagination.get("has_more"))
        self.merge(messages)
        self.status = self.LOADED
        return self.messages

    def load_older(self) -> list[Message]:
        if not self.has_more:
            return []
        messages, pagination = self.api.get_messages(
            self.chat_id, page=self._page + 1, limit=self.page_size
        )
        self._page += 1
        self.has_more = bool(pagination.get("has_more"))
        self.merge(messages)
        return messages

    def merge(self, messages) -> None:
        for message in messages:
            if message.chat_id == self.chat_id:
                self._messages[message.message_id] = message

    # =========================================================================
    # Realtime
    # =========================================================================

    _EVENTS = (
        NewMessage,
        MessageEdited,
        MessageDeleted,
        ReactionAdded,
        ReactionRemoved,
        UserLeftGroup,
    )

    def bind(self) -> None:
        for event_cls in self._EVENTS:
            self.socket.on(event_cls.type, self.apply)
        self.socket.join_chat(self.chat_id)

    def close(self) -> None:
        self.typing.stop()
        for event_cls in self._EVENTS:
            self.socket.off(event_cls.type, self.apply)
        self.socket.leave_chat(self.chat_id)

    def apply(self, event) -> None:
        if getattr(event, "chat_id", None) != self.chat_id:
            return

        if isinstance(event, NewMessage):
            self.merge([event.message])
        elif isinstance(event, MessageEdited):
            self._update(
                event.message_id,
                content=event.content,
                edited=event.edited,
                edited_at=event.edited_at,
            )
        elif isinstance(event, MessageDeleted):
            self._messages.pop(event.message_id, None)
            if self.replying_to is not None and self.replying_to.message_id == event.message_id:
                self.replying_to = None
        elif isinstance(event, ReactionAdded):
            message = self._messages.get(event.message_id)
            if message is None:
                return
            exists = any(
                r.user_id == event.reaction.user_id and r.emoji == event.reaction.emoji
                for r in message.reactions
            )
            if not exists:
                self._update(event.message_id, reactions=message.reactions + (event.reaction,))
        elif isinstance(event, ReactionRemoved):
            message = self._messages.get(event.message_id)
            if message is None:
                return
            reactions = tuple(
                r
                for r in message.reactions
                if not (r.user_id == event.user_id and r.emoji == event.emoji)
            )
            self._update(event.message_id, reactions=reactions)
        elif isinstance(event, UserLeftGroup):
            self._append_notice(f"{event.username} left the group chat")

    def _update(self, message_id: str, **changes) -> None:
        message = self._messages.get(message_id)
        if message is not None:
            self._messages[message_id] = replace(message, **changes)

    def _append_notice(self, content: str) -> None:
        self._local_seq += 1
        notice = Message(
            message_id=f"local-{self._local_seq}",
            chat_id=self.chat_id,
            sender=None,
            content=content,
            message_type="system",
            created_at=self._clock(),
        )
        self._messages[notice.message_id] = notice

    # =========================================================================
    # Composing
    # =========================================================================

    def reply_to(self, message: Message) -> None:
        self.replying_to = message

    def cancel_reply(self) -> None:
        self.replying_to = None

    def send(self, content: str, **attachment) -> Message:
        """
        Send a message, quoting the reply context if one is set.

        The reply context is cleared only after the server accepts the
        message.
        """
        reply_to = self.replying_to.message_id if self.replying_to else None
        message = self.api.send_message(
            self.chat_id, content, reply_to=reply_to, **attachment
        )
        self.typing.stop()
        self.replying_to = None
        self.merge([message])
        return message

    def edit(self, message_id: str, content: str) -> Message:
        message = self.api.edit_message(self.chat_id, message_id, content)
        self.merge([message])
        return message

    def delete(self, message_id: str) -> None:
        self.api.delete_message(self.chat_id, message_id)
        self._messages.pop(str(message_id), None)

    def react(self, message_id: str, emoji: str) -> None:
        reaction = self.api.add_reaction(self.chat_id, message_id, emoji)
        self.apply(ReactionAdded(message_id=message_id, chat_id=self.chat_id, reaction=reaction))

    def unreact(self, message_id: str, emoji: str) -> None:
        self.api.remove_reaction(self.chat_id, message_id, emoji)
        self.apply(
            ReactionRemoved(
                message_id=message_id,
                chat_id=self.chat_id,
                user_id=self.current_user_id,
                emoji=emoji,
            )
        )

    # =========================================================================
    # Presentation
    # =========================================================================

    def grouped_by_date(self, tz: tzinfo = timezone.utc) -> list[tuple[date, list[Message]]]:
        """
        Messages grouped by calendar day in ``tz`` (UTC by default), oldest
        day first.
        """

        def day(message: Message) -> date:
            return message.created_at.astimezone(tz).date()

        return [(key, list(group)) for key, group in groupby(self.messages, key=day)]


# =============================================================================
# Create Chat Dialog
# =============================================================================


class CreateChatDialog:
    """
    Validates chat creation input before calling the API.

    Raises core ValidationError with the same error codes the server uses,
    so callers handle local and server rejections alike.
    """

    def __init__(self, api, current_user_id: int, chat_list: ChatList | None = None):
        self.api = api
        self.current_user_id = current_user_id
        self.chat_list = chat_list

    def create_direct(self, user_id: int) -> ChatSummary:
        if user_id == self.current_user_id:
            raise ValidationError("You cannot start a chat with yourself", error_code="SAME_USER")
        return self._created(self.api.create_direct_chat(user_id))

    def create_group(
        self, name: str, participant_ids: list[int], description: str = ""
    ) -> ChatSummary:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name is required", error_code="NAME_REQUIRED")
        if len(name) > MAX_GROUP_NAME_LENGTH:
            raise ValidationError(
                f"Group name must be at most {MAX_GROUP_NAME_LENGTH} characters",
                error_code="VALIDATION_ERROR",
            )

        invitees = list(dict.fromkeys(i for i in participant_ids if i != self.current_user_id))
        if len(invitees) < MIN_GROUP_INVITEES:
            raise ValidationError(
                f"Select at least {MIN_GROUP_INVITEES} other users",
                error_code="NOT_ENOUGH_PARTICIPANTS",
            )
        return self._created(
            self.api.create_group_chat(name, invitees, description=description)
        )

    def _created(self, chat: ChatSummary) -> ChatSummary:
        if self.chat_list is not None:
            self.chat_list.add(chat)
        return chat
