"""
Realtime event publishing for the chat system.

Services call ChatEventPublisher after a state change; events are sent to
channel layer groups once the surrounding transaction commits, so clients
never see an event for a row that was rolled back.

Groups:
    chat_<id>: Sockets that joined a chat (via ``join_chat``)
    user_<id>: Every socket of one user (joined on connect)

Channel layer message:
    {"type": "chat.event", "event": <event name>, "data": <payload>}

ChatConsumer.chat_event forwards it to the socket as
``{"type": <event name>, "data": <payload>}``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from chat.constants import RealtimeEvent, chat_group_name, user_group_name
from chat.serializers import MessageSerializer, ReactionSerializer

if TYPE_CHECKING:
    from authentication.models import User
    from chat.models import Chat, ChatParticipant, Message, MessageReaction

logger = logging.getLogger(__name__)


class ChatEventPublisher:
    """
    Publishes chat events to channel layer groups.

    Methods:
        new_message: New message to the chat room plus per-user notifications
        message_edited / message_deleted: Message changes to the chat room
        reaction_added / reaction_removed: Reaction changes to the chat room
        user_left_group: Departure notice to remaining members' user rooms
    """

    @classmethod
    def send(cls, group: str, event: str, data: dict) -> None:
        """Schedule ``event`` for ``group`` after the current transaction commits."""
        transaction.on_commit(
            lambda: cls._group_send(group, event, data),
            robust=True,
        )

    @classmethod
    def _group_send(cls, group: str, event: str, data: dict) -> None:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            logger.warning(f"No channel layer configured; dropping {event} for {group}")
            return
        async_to_sync(channel_layer.group_send)(
            group,
            {"type": "chat.event", "event": event, "data": data},
        )
        logger.debug(f"Sent {event} to {group}")

    @classmethod
    def new_message(
        cls,
        message: Message,
        recipients: list[ChatParticipant],
    ) -> None:
        """
        Broadcast a new message.

        ``new_message`` goes to the chat room; each recipient (active
        participants other than the sender) also gets a
        ``message_notification`` with their updated unread counter.
        """
        chat = message.chat
        payload = dict(MessageSerializer(message).data)
        cls.send(chat_group_name(chat.id), RealtimeEvent.NEW_MESSAGE, payload)

        for participant in recipients:
            cls.send(
                user_group_name(participant.user_id),
                RealtimeEvent.MESSAGE_NOTIFICATION,
                {
                    "chat_id": str(chat.id),
                    "chat_type": chat.chat_type,
                    "chat_name": cls._chat_name_for(chat, message.sender),
                    "message": payload,
                    "unread_count": participant.unread_count,
                },
            )

    @staticmethod
    def _chat_name_for(chat: Chat, sender: User | None) -> str:
        """Name shown in a notification: group name, or the sender for direct chats."""
        if chat.is_direct and sender is not None:
            return sender.username
        return chat.name

    @classmethod
    def message_edited(cls, message: Message) -> None:
        cls.send(
            chat_group_name(message.chat_id),
            RealtimeEvent.MESSAGE_EDITED,
            {
                "message_id": str(message.id),
                "chat_id": str(message.chat_id),
                "content": message.content,
                "edited": message.edited,
                "edited_at": message.edited_at.isoformat() if message.edited_at else None,
            },
        )

    @classmethod
    def message_deleted(cls, message: Message) -> None:
        cls.send(
            chat_group_name(message.chat_id),
            RealtimeEvent.MESSAGE_DELETED,
            {"message_id": str(message.id), "chat_id": str(message.chat_id)},
        )

    @classmethod
    def reaction_added(cls, reaction: MessageReaction, chat_id) -> None:
        cls.send(
            chat_group_name(chat_id),
            RealtimeEvent.REACTION_ADDED,
            {
                "message_id": str(reaction.message_id),
                "chat_id": str(chat_id),
                "reaction": dict(ReactionSerializer(reaction).data),
            },
        )

    @classmethod
    def reaction_removed(cls, message: Message, user_id: int, emoji: str) -> None:
        cls.send(
            chat_group_name(message.chat_id),
            RealtimeEvent.REACTION_REMOVED,
            {
                "message_id": str(message.id),
                "chat_id": str(message.chat_id),
                "user_id": user_id,
                "emoji": emoji,
            },
        )

    @classmethod
    def user_left_group(
        cls,
        chat: Chat,
        departed: User,
        remaining_user_ids: list[int],
        reason: str,
    ) -> None:
        """
        Notify remaining members (and the departed user) that someone left.

        The departed user receives the event too so their other sessions
        drop the chat from the list.
        """
        verb = "left" if reason == "left" else "was removed from"
        payload = {
            "chat_id": str(chat.id),
            "user_id": departed.id,
            "username": departed.username,
            "message": f"{departed.username} {verb} the group",
            "reason": reason,
        }
        for user_id in [*remaining_user_ids, departed.id]:
            cls.send(user_group_name(user_id), RealtimeEvent.USER_LEFT_GROUP, payload)
