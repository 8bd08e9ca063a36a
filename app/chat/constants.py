"""
Constants and configuration for the chat module.

This module centralizes:
- Chat tunables (page sizes, content limits) overridable via settings.CHAT
- Error codes returned by the service layer and their HTTP status
- Realtime event names and group (room) naming

Import example:
    from chat.constants import CHAT_CONFIG, ErrorCode, RealtimeEvent
"""

from typing import Final

from django.conf import settings
from rest_framework import status


# =============================================================================
# Chat Configuration
# =============================================================================


DEFAULTS: Final[dict] = {
    "CHAT_PAGE_SIZE": 20,
    "MESSAGE_PAGE_SIZE": 50,
    "MAX_PAGE_SIZE": 100,
    "MAX_MESSAGE_LENGTH": 2000,
    "MAX_GROUP_NAME_LENGTH": 100,
    "MAX_DESCRIPTION_LENGTH": 500,
    "MIN_GROUP_INVITEES": 2,
    "MAX_EMOJI_LENGTH": 32,
    "DELETED_MESSAGE_RETENTION_DAYS": 30,
}


class _ChatConfig:
    """Attribute access to chat settings, falling back to DEFAULTS."""

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(name)
        return getattr(settings, "CHAT", {}).get(name, DEFAULTS[name])


CHAT_CONFIG = _ChatConfig()


# =============================================================================
# Error Codes
# =============================================================================


class ErrorCode:
    """Machine-readable error codes carried in ``{"error_code": ...}``."""

    INVALID_ID = "INVALID_ID"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SAME_USER = "SAME_USER"
    NOT_GROUP = "NOT_GROUP"
    NAME_REQUIRED = "NAME_REQUIRED"
    NOT_ENOUGH_PARTICIPANTS = "NOT_ENOUGH_PARTICIPANTS"
    ALREADY_PARTICIPANT = "ALREADY_PARTICIPANT"
    LAST_ADMIN = "LAST_ADMIN"
    INVALID_ROLE = "INVALID_ROLE"
    EMPTY_CONTENT = "EMPTY_CONTENT"
    CONTENT_TOO_LONG = "CONTENT_TOO_LONG"
    INVALID_REPLY = "INVALID_REPLY"
    REPLIES_DISABLED = "REPLIES_DISABLED"
    REACTION_EXISTS = "REACTION_EXISTS"
    INVALID_EMOJI = "INVALID_EMOJI"

    NOT_PARTICIPANT = "NOT_PARTICIPANT"
    ADMIN_REQUIRED = "ADMIN_REQUIRED"
    NOT_SENDER = "NOT_SENDER"
    SEND_RESTRICTED = "SEND_RESTRICTED"
    INVITES_DISABLED = "INVITES_DISABLED"
    REACTIONS_DISABLED = "REACTIONS_DISABLED"
    FILE_SHARING_DISABLED = "FILE_SHARING_DISABLED"

    CHAT_NOT_FOUND = "CHAT_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MESSAGE_NOT_FOUND = "MESSAGE_NOT_FOUND"
    PARTICIPANT_NOT_FOUND = "PARTICIPANT_NOT_FOUND"
    REACTION_NOT_FOUND = "REACTION_NOT_FOUND"


ERROR_STATUS_CODES: Final[dict] = {
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SAME_USER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_GROUP: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NAME_REQUIRED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_ENOUGH_PARTICIPANTS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.ALREADY_PARTICIPANT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.LAST_ADMIN: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_ROLE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EMPTY_CONTENT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.CONTENT_TOO_LONG: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REPLY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.REPLIES_DISABLED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.REACTION_EXISTS: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_EMOJI: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_PARTICIPANT: status.HTTP_403_FORBIDDEN,
    ErrorCode.ADMIN_REQUIRED: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_SENDER: status.HTTP_403_FORBIDDEN,
    ErrorCode.SEND_RESTRICTED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVITES_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.REACTIONS_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.FILE_SHARING_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorCode.CHAT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.USER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.MESSAGE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PARTICIPANT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REACTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


def status_for_error(error_code: str | None) -> int:
    """HTTP status for a service error code (400 when unmapped)."""
    return ERROR_STATUS_CODES.get(error_code, status.HTTP_400_BAD_REQUEST)


# =============================================================================
# Realtime Events
# =============================================================================


class RealtimeEvent:
    """Names of server-to-client realtime events."""

    NEW_MESSAGE = "new_message"
    MESSAGE_EDITED = "message_edited"
    MESSAGE_DELETED = "message_deleted"
    REACTION_ADDED = "reaction_added"
    REACTION_REMOVED = "reaction_removed"
    USER_LEFT_GROUP = "user_left_group"
    MESSAGE_NOTIFICATION = "message_notification"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"
    ERROR = "error"


class ClientAction:
    """Frame types accepted from clients."""

    JOIN_CHAT = "join_chat"
    LEAVE_CHAT = "leave_chat"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"


def chat_group_name(chat_id) -> str:
    """Channel layer group for everyone viewing a chat."""
    return f"chat_{chat_id}"


def user_group_name(user_id) -> str:
    """Channel layer group for all sockets of one user."""
    return f"user_{user_id}"
