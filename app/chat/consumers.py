"""
WebSocket consumers for the chat application.

This module implements the single realtime socket each client session
opens. Chat mutations happen over REST; the socket delivers their events
and carries room membership and typing indicators.

Consumers:
    ChatConsumer: One connection per authenticated session

Authentication:
    JWTAuthMiddleware attaches the token's user to self.scope["user"].
    Anonymous sockets are closed with code 4001.

Channel Groups:
    user_<id>: Joined on connect; account-wide events
        (message_notification, user_left_group)
    chat_<id>: Joined on join_chat; events for the open chat
        (new_message, message_edited, message_deleted, reactions, typing)

Frames from client:
    {"type": "join_chat" | "leave_chat" | "typing_start" | "typing_stop", "chat_id": "<uuid>"}

Frames to client:
    {"type": "<event>", "data": {...}}
"""

from __future__ import annotations

import json
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.utils import timezone

from core.helpers import parse_uuid

from chat.constants import (
    ClientAction,
    RealtimeEvent,
    chat_group_name,
    user_group_name,
)
from chat.models import ChatParticipant

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for realtime chat events.

    Handles:
        - Connection authentication and the per-user group
        - Joining/leaving chat groups (active participants only)
        - Typing indicators (never echoed to the sending socket)
        - Forwarding chat.event messages published by the service layer

    Attributes:
        user: Authenticated user (after connect)
        joined_chats: Chat group names this socket has joined
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user = None
        self.user_group: str | None = None
        self.joined_chats: set[str] = set()

    async def connect(self):
        """
        Handle WebSocket connection.

        Rejects anonymous users with close code 4001; otherwise joins the
        user's group and accepts.
        """
        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=4001)
            return

        self.user = user
        self.user_group = user_group_name(user.id)
        await self.channel_layer.group_add(self.user_group, self.channel_name)

        if "jwt" in self.scope.get("subprotocols", []):
            await self.accept(subprotocol="jwt")
        else:
            await self.accept()

        await self._touch_last_active()
        logger.info(f"User {user.id} connected to realtime channel")

    async def disconnect(self, close_code):
        """Leave every group this socket joined."""
        if self.user_group is None:
            return

        for group in list(self.joined_chats):
            await self.channel_layer.group_discard(group, self.channel_name)
        self.joined_chats.clear()
        await self.channel_layer.group_discard(self.user_group, self.channel_name)

        logger.info(f"User {self.user.id} disconnected (code {close_code})")

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        """Decode JSON, answering malformed frames with an error frame."""
        if text_data is None:
            await self.send_error("Binary frames are not supported")
            return
        try:
            content = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON")
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        """
        Handle a client frame.

        Expected format:
            {"type": "join_chat", "chat_id": "6f1c..."}
            {"type": "typing_start", "chat_id": "6f1c..."}
        """
        if not isinstance(content, dict):
            await self.send_error("Frame must be a JSON object")
            return

        action = content.get("type")
        chat_id = parse_uuid(content.get("chat_id"))

        handlers = {
            ClientAction.JOIN_CHAT: self._handle_join,
            ClientAction.LEAVE_CHAT: self._handle_leave,
            ClientAction.TYPING_START: self._handle_typing,
            ClientAction.TYPING_STOP: self._handle_typing,
        }
        handler = handlers.get(action)
        if handler is None:
            await self.send_error(f"Unknown message type: {action}")
            return
        if chat_id is None:
            await self.send_error("A valid chat_id is required")
            return

        await handler(action, chat_id)

    async def _handle_join(self, action, chat_id):
        if not await self._is_active_participant(chat_id):
            logger.warning(f"User {self.user.id} tried to join chat {chat_id} without access")
            await self.send_error("You are not a participant in this chat")
            return

        group = chat_group_name(chat_id)
        await self.channel_layer.group_add(group, self.channel_name)
        self.joined_chats.add(group)
        logger.debug(f"User {self.user.id} joined {group}")

    async def _handle_leave(self, action, chat_id):
        group = chat_group_name(chat_id)
        if group in self.joined_chats:
            await self.channel_layer.group_discard(group, self.channel_name)
            self.joined_chats.discard(group)
            logger.debug(f"User {self.user.id} left {group}")

    async def _handle_typing(self, action, chat_id):
        group = chat_group_name(chat_id)
        if group not in self.joined_chats:
            await self.send_error("Join the chat before sending typing indicators")
            return

        event = (
            RealtimeEvent.USER_TYPING
            if action == ClientAction.TYPING_START
            else RealtimeEvent.USER_STOPPED_TYPING
        )
        await self.channel_layer.group_send(
            group,
            {
                "type": "chat.typing",
                "event": event,
                "sender_channel": self.channel_name,
                "data": {
                    "chat_id": str(chat_id),
                    "user_id": self.user.id,
                    "username": self.user.username,
                },
            },
        )

    async def send_error(self, message: str):
        await self.send_json({"type": RealtimeEvent.ERROR, "data": {"message": message}})

    async def chat_event(self, event):
        """Forward a chat.event published by ChatEventPublisher."""
        await self.send_json({"type": event["event"], "data": event["data"]})

    async def chat_typing(self, event):
        """Forward typing indicators to every socket except the sender's."""
        if event.get("sender_channel") == self.channel_name:
            return
        await self.send_json({"type": event["event"], "data": event["data"]})

    @database_sync_to_async
    def _is_active_participant(self, chat_id) -> bool:
        return ChatParticipant.objects.filter(
            chat_id=chat_id,
            chat__is_active=True,
            user_id=self.user.id,
            is_active=True,
        ).exists()

    @database_sync_to_async
    def _touch_last_active(self) -> None:
        type(self.user).objects.filter(pk=self.user.pk).update(
            last_active_at=timezone.now()
        )
