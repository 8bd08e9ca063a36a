"""
Typed realtime events and REST shapes for the chat client.

Every frame the server pushes over the socket is ``{"type": <name>, "data": {...}}``.
``parse_event`` turns that pair into one of the frozen dataclasses below,
validating the payload at the boundary so the rest of the client works with
typed values instead of raw dicts.

Shapes:
    Sender, Reaction, ReplyPreview, Message: message payloads
    LastMessage, ChatSummary: chat list entries

Events (ChatEvent union):
    NewMessage, MessageEdited, MessageDeleted, ReactionAdded, ReactionRemoved,
    UserLeftGroup, MessageNotification, UserTyping, UserStoppedTyping, ErrorEvent

Local lifecycle events (emitted by SocketService, never sent by the server):
    Connected, Disconnected

Usage:
    from chat_client.events import parse_event

    event = parse_event("new_message", frame["data"])
    print(event.message.content)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Union

from core.exceptions import ValidationError


class EventValidationError(ValidationError):
    """Raised when a realtime frame or REST payload does not match its shape."""

    default_error_code = "INVALID_EVENT"


# =============================================================================
# Field Readers
# =============================================================================


def _require(data: dict, key: str, kind: type | tuple[type, ...], shape: str) -> Any:
    if not isinstance(data, dict):
        raise EventValidationError(f"{shape} payload must be an object")
    if key not in data:
        raise EventValidationError(
            f"{shape} payload missing '{key}'", details={"field": key}
        )
    value = data[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in _as_tuple(kind):
        raise EventValidationError(
            f"{shape}.{key} has the wrong type", details={"field": key}
        )
    if not isinstance(value, kind):
        raise EventValidationError(
            f"{shape}.{key} has the wrong type", details={"field": key}
        )
    return value


def _optional(data: dict, key: str, kind: type | tuple[type, ...], shape: str, default=None):
    if data.get(key) is None:
        return default
    return _require(data, key, kind, shape)


def _as_tuple(kind) -> tuple:
    return kind if isinstance(kind, tuple) else (kind,)


def _id(data: dict, key: str, shape: str) -> str:
    """Ids arrive as strings (UUIDs) or ints (user ids); normalize to str."""
    return str(_require(data, key, (str, int), shape))


def _timestamp(data: dict, key: str, shape: str, required: bool = True) -> datetime | None:
    raw = _require(data, key, str, shape) if required else _optional(data, key, str, shape)
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as e:
        raise EventValidationError(
            f"{shape}.{key} is not an ISO timestamp", details={"field": key}
        ) from e


# =============================================================================
# REST Shapes
# =============================================================================


@dataclass(frozen=True)
class Sender:
    user_id: int
    username: str
    avatar_url: str = ""

    @classmethod
    def from_data(cls, data: dict) -> Sender:
        return cls(
            user_id=_require(data, "user_id", int, "sender"),
            username=_require(data, "username", str, "sender"),
            avatar_url=_optional(data, "avatar_url", str, "sender", default=""),
        )


@dataclass(frozen=True)
class Reaction:
    user_id: int
    emoji: str
    created_at: datetime | None = None

    @classmethod
    def from_data(cls, data: dict) -> Reaction:
        return cls(
            user_id=_require(data, "user_id", int, "reaction"),
            emoji=_require(data, "emoji", str, "reaction"),
            created_at=_timestamp(data, "created_at", "reaction", required=False),
        )


@dataclass(frozen=True)
class ReplyPreview:
    message_id: str
    content: str
    sender_username: str | None = None

    @classmethod
    def from_data(cls, data: dict) -> ReplyPreview:
        return cls(
            message_id=_id(data, "message_id", "reply_to"),
            content=_require(data, "content", str, "reply_to"),
            sender_username=_optional(data, "sender_username", str, "reply_to"),
        )


@dataclass(frozen=True)
class Message:
    """A chat message as returned by REST and carried by ``new_message``."""

    message_id: str
    chat_id: str
    sender: Sender | None
    content: str
    message_type: str
    created_at: datetime
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    is_read: bool = False
    read_at: datetime | None = None
    edited: bool = False
    edited_at: datetime | None = None
    reply_to: ReplyPreview | None = None
    reactions: tuple[Reaction, ...] = ()

    @property
    def is_system(self) -> bool:
        return self.message_type == "system"

    @classmethod
    def from_data(cls, data: dict) -> Message:
        sender = data.get("sender") if isinstance(data, dict) else None
        reply_to = data.get("reply_to") if isinstance(data, dict) else None
        reactions = _optional(data, "reactions", list, "message", default=[])
        return cls(
            message_id=_id(data, "message_id", "message"),
            chat_id=_id(data, "chat_id", "message"),
            sender=Sender.from_data(sender) if sender is not None else None,
            content=_require(data, "content", str, "message"),
            message_type=_require(data, "message_type", str, "message"),
            created_at=_timestamp(data, "created_at", "message"),
            file_url=_optional(data, "file_url", str, "message"),
            file_name=_optional(data, "file_name", str, "message"),
            file_size=_optional(data, "file_size", int, "message"),
            is_read=_optional(data, "is_read", bool, "message", default=False),
            read_at=_timestamp(data, "read_at", "message", required=False),
            edited=_optional(data, "edited", bool, "message", default=False),
            edited_at=_timestamp(data, "edited_at", "message", required=False),
            reply_to=ReplyPreview.from_data(reply_to) if reply_to is not None else None,
            reactions=tuple(Reaction.from_data(r) for r in reactions),
        )


@dataclass(frozen=True)
class LastMessage:
    content: str
    sent_at: datetime | None
    message_id: str | None = None
    sender_id: int | None = None
    sender_username: str | None = None

    @classmethod
    def from_data(cls, data: dict) -> LastMessage:
        message_id = _optional(data, "message_id", (str, int), "last_message")
        return cls(
            content=_require(data, "content", str, "last_message"),
            sent_at=_timestamp(data, "sent_at", "last_message", required=False),
            message_id=str(message_id) if message_id is not None else None,
            sender_id=_optional(data, "sender_id", int, "last_message"),
            sender_username=_optional(data, "sender_username", str, "last_message"),
        )

    @classmethod
    def from_message(cls, message: Message) -> LastMessage:
        return cls(
            content=message.content or message.file_name or f"[{message.message_type}]",
            sent_at=message.created_at,
            message_id=message.message_id,
            sender_id=message.sender.user_id if message.sender else None,
            sender_username=message.sender.username if message.sender else None,
        )


@dataclass(frozen=True)
class ChatSummary:
    """A chat list entry."""

    chat_id: str
    chat_type: str
    name: str
    unread_count: int = 0
    participants_count: int = 0
    message_count: int = 0
    avatar_url: str = ""
    description: str = ""
    last_message: LastMessage | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def activity_at(self) -> datetime | None:
        """Timestamp used to order the chat list."""
        if self.last_message is not None and self.last_message.sent_at is not None:
            return self.last_message.sent_at
        return self.updated_at or self.created_at

    @classmethod
    def from_data(cls, data: dict) -> ChatSummary:
        last = data.get("last_message") if isinstance(data, dict) else None
        return cls(
            chat_id=_id(data, "chat_id", "chat"),
            chat_type=_require(data, "chat_type", str, "chat"),
            name=_optional(data, "name", str, "chat", default=""),
            unread_count=_optional(data, "unread_count", int, "chat", default=0),
            participants_count=_optional(data, "participants_count", int, "chat", default=0),
            message_count=_optional(data, "message_count", int, "chat", default=0),
            avatar_url=_optional(data, "avatar_url", str, "chat", default=""),
            description=_optional(data, "description", str, "chat", default=""),
            last_message=LastMessage.from_data(last) if last is not None else None,
            created_at=_timestamp(data, "created_at", "chat", required=False),
            updated_at=_timestamp(data, "updated_at", "chat", required=False),
        )


# =============================================================================
# Server Events
# =============================================================================


@dataclass(frozen=True)
class NewMessage:
    type: ClassVar[str] = "new_message"
    message: Message

    @property
    def chat_id(self) -> str:
        return self.message.chat_id

    @classmethod
    def from_data(cls, data: dict) -> NewMessage:
        return cls(message=Message.from_data(data))


@dataclass(frozen=True)
class MessageEdited:
    type: ClassVar[str] = "message_edited"
    message_id: str
    chat_id: str
    content: str
    edited: bool
    edited_at: datetime | None

    @classmethod
    def from_data(cls, data: dict) -> MessageEdited:
        return cls(
            message_id=_id(data, "message_id", cls.type),
            chat_id=_id(data, "chat_id", cls.type),
            content=_require(data, "content", str, cls.type),
            edited=_optional(data, "edited", bool, cls.type, default=True),
            edited_at=_timestamp(data, "edited_at", cls.type, required=False),
        )


@dataclass(frozen=True)
class MessageDeleted:
    type: ClassVar[str] = "message_deleted"
    message_id: str
    chat_id: str

    @classmethod
    def from_data(cls, data: dict) -> MessageDeleted:
        return cls(
            message_id=_id(data, "message_id", cls.type),
            chat_id=_id(data, "chat_id", cls.type),
        )


@dataclass(frozen=True)
class ReactionAdded:
    type: ClassVar[str] = "reaction_added"
    message_id: str
    chat_id: str
    reaction: Reaction

    @classmethod
    def from_data(cls, data: dict) -> ReactionAdded:
        return cls(
            message_id=_id(data, "message_id", cls.type),
            chat_id=_id(data, "chat_id", cls.type),
            reaction=Reaction.from_data(_require(data, "reaction", dict, cls.type)),
        )


@dataclass(frozen=True)
class ReactionRemoved:
    type: ClassVar[str] = "reaction_removed"
    message_id: str
    chat_id: str
    user_id: int
    emoji: str

    @classmethod
    def from_data(cls, data: dict) -> ReactionRemoved:
        return cls(
            message_id=_id(data, "message_id", cls.type),
            chat_id=_id(data, "chat_id", cls.type),
            user_id=_require(data, "user_id", int, cls.type),
            emoji=_require(data, "emoji", str, cls.type),
        )


@dataclass(frozen=True)
class UserLeftGroup:
    type: ClassVar[str] = "user_left_group"
    chat_id: str
    user_id: int
    username: str
    message: str = ""
    reason: str = "left"

    @classmethod
    def from_data(cls, data: dict) -> UserLeftGroup:
        return cls(
            chat_id=_id(data, "chat_id", cls.type),
            user_id=_require(data, "user_id", int, cls.type),
            username=_require(data, "username", str, cls.type),
            message=_optional(data, "message", str, cls.type, default=""),
            reason=_optional(data, "reason", str, cls.type, default="left"),
        )


@dataclass(frozen=True)
class MessageNotification:
    type: ClassVar[str] = "message_notification"
    chat_id: str
    chat_type: str
    chat_name: str
    message: Message
    unread_count: int

    @classmethod
    def from_data(cls, data: dict) -> MessageNotification:
        return cls(
            chat_id=_id(data, "chat_id", cls.type),
            chat_type=_require(data, "chat_type", str, cls.type),
            chat_name=_optional(data, "chat_name", str, cls.type, default=""),
            message=Message.from_data(_require(data, "message", dict, cls.type)),
            unread_count=_require(data, "unread_count", int, cls.type),
        )


@dataclass(frozen=True)
class UserTyping:
    type: ClassVar[str] = "user_typing"
    chat_id: str
    user_id: int
    username: str

    @classmethod
    def from_data(cls, data: dict) -> UserTyping:
        return cls(
            chat_id=_id(data, "chat_id", cls.type),
            user_id=_require(data, "user_id", int, cls.type),
            username=_require(data, "username", str, cls.type),
        )


@dataclass(frozen=True)
class UserStoppedTyping(UserTyping):
    type: ClassVar[str] = "user_stopped_typing"


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    message: str

    @classmethod
    def from_data(cls, data: dict) -> ErrorEvent:
        return cls(message=_require(data, "message", str, cls.type))


# =============================================================================
# Local Lifecycle Events
# =============================================================================


@dataclass(frozen=True)
class Connected:
    type: ClassVar[str] = "connected"


@dataclass(frozen=True)
class Disconnected:
    type: ClassVar[str] = "disconnected"
    code: int | None = None
    reason: str = ""


ChatEvent = Union[
    NewMessage,
    MessageEdited,
    MessageDeleted,
    ReactionAdded,
    ReactionRemoved,
    UserLeftGroup,
    MessageNotification,
    UserTyping,
    UserStoppedTyping,
    ErrorEvent,
]

EVENT_TYPES: dict[str, type] = {
    cls.type: cls
    for cls in (
        NewMessage,
        MessageEdited,
        MessageDeleted,
        ReactionAdded,
        ReactionRemoved,
        UserLeftGroup,
        MessageNotification,
        UserTyping,
        UserStoppedTyping,
        ErrorEvent,
    )
}

LOCAL_EVENTS = frozenset({Connected.type, Disconnected.type})


def parse_event(event_type: str, data: Any) -> ChatEvent:
    """
    Build a typed event from a frame's ``type`` and ``data``.

    Raises:
        EventValidationError: Unknown event name or malformed payload
    """
    event_cls = EVENT_TYPES.get(event_type)
    if event_cls is None:
        raise EventValidationError(
            f"Unknown event type: {event_type}",
            details={"type": event_type},
        )
    if not isinstance(data, dict):
        raise EventValidationError(f"{event_type} payload must be an object")
    return event_cls.from_data(data)
