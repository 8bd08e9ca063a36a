"""
Serializers for chat API.

This module provides serializers for the chat system:
- Read serializers producing the snake_case REST and realtime payloads
- Write serializers validating camelCase request bodies

Serializer Hierarchy:
    MessageSerializer: Full message with sender, reply preview and reactions
    ReactionSerializer: Single reaction (user_id, emoji, created_at)
    ChatSummarySerializer: Chat list entry with last message and unread count
    ChatDetailSerializer: Summary plus participants, creator and settings
    ParticipantSerializer: Active member with role

    DirectChatCreateSerializer / GroupChatCreateSerializer: Chat creation
    ChatUpdateSerializer: Group name/description/avatar/settings
    ParticipantCreateSerializer / ParticipantRoleSerializer: Membership
    MessageCreateSerializer / MessageUpdateSerializer: Messages
    ReactionCreateSerializer: Reactions

Design Decisions:
    - Read and write serializers are separate
    - The viewing user comes from context["user"] (falling back to the
      request user) so services can render payloads outside a request
    - Business rules (name required, invitee count, roles) live in services;
      write serializers only check shape
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import PublicUserSerializer
from chat.constants import CHAT_CONFIG
from chat.models import (
    CHAT_SETTING_FIELDS,
    Chat,
    ChatParticipant,
    Message,
    MessageReaction,
    MessageType,
)


def _context_user(context: dict):
    """Return the viewing user from serializer context, if any."""
    user = context.get("user")
    if user is not None:
        return user
    request = context.get("request")
    if request is not None and request.user.is_authenticated:
        return request.user
    return None


# =============================================================================
# Message Serializers
# =============================================================================


class ReactionSerializer(serializers.ModelSerializer):
    """Reaction as embedded in messages and ``reaction_added`` events."""

    user_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = MessageReaction
        fields = ["user_id", "emoji", "created_at"]
        read_only_fields = fields


class ReplyPreviewSerializer(serializers.ModelSerializer):
    """Context of the message being replied to."""

    message_id = serializers.UUIDField(source="id", read_only=True)
    sender_username = serializers.SerializerMethodField()

    class Meta:
        model = Message
        fields = ["message_id", "content", "sender_username"]
        read_only_fields = fields

    def get_sender_username(self, obj: Message) -> str | None:
        return obj.sender.username if obj.sender_id else None


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer.

    Used for message history, send/edit responses and ``new_message``
    realtime payloads, so the client reconciles both sources by
    ``message_id``.
    """

    message_id = serializers.UUIDField(source="id", read_only=True)
    chat_id = serializers.UUIDField(read_only=True)
    sender = PublicUserSerializer(read_only=True, allow_null=True)
    reply_to = serializers.SerializerMethodField()
    reactions = ReactionSerializer(many=True, read_only=True)

    class Meta:
        model = Message
        fields = [
            "message_id",
            "chat_id",
            "sender",
            "content",
            "message_type",
            "file_url",
            "file_name",
            "file_size",
            "is_read",
            "read_at",
            "edited",
            "edited_at",
            "reply_to",
            "reactions",
            "created_at",
        ]
        read_only_fields = fields

    def get_reply_to(self, obj: Message) -> dict | None:
        if obj.reply_to_id is None or obj.reply_to is None:
            return None
        return ReplyPreviewSerializer(obj.reply_to).data


# =============================================================================
# Participant Serializers
# =============================================================================


class ParticipantSerializer(serializers.ModelSerializer):
    """Active member of a chat with public user info and role."""

    user_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source="user.username", read_only=True)
    avatar_url = serializers.CharField(source="user.avatar_url", read_only=True)
    last_seen = serializers.DateTimeField(source="last_seen_at", read_only=True)

    class Meta:
        model = ChatParticipant
        fields = ["user_id", "username", "avatar_url", "role", "joined_at", "last_seen"]
        read_only_fields = fields


# =============================================================================
# Chat Serializers
# =============================================================================


class ChatSummarySerializer(serializers.ModelSerializer):
    """
    Serializer for the chat list.

    Computed fields:
    - name / avatar_url: group values, or the counterpart's for direct chats
    - last_message: cached preview of the newest message
    - unread_count: viewing user's counter
    - participants_count: active members
    """

    chat_id = serializers.UUIDField(source="id", read_only=True)
    name = serializers.SerializerMethodField()
    avatar_url = serializers.SerializerMethodField()
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()
    participants_count = serializers.SerializerMethodField()

    class Meta:
        model = Chat
        fields = [
            "chat_id",
            "chat_type",
            "name",
            "avatar_url",
            "description",
            "last_message",
            "unread_count",
            "participants_count",
            "message_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def _counterpart(self, obj: Chat):
        user = _context_user(self.context)
        if user is None or not obj.is_direct:
            return None
        return obj.get_counterpart(user)

    def get_name(self, obj: Chat) -> str:
        counterpart = self._counterpart(obj)
        if counterpart is not None:
            return counterpart.username
        return obj.name

    def get_avatar_url(self, obj: Chat) -> str:
        counterpart = self._counterpart(obj)
        if counterpart is not None:
            return counterpart.avatar_url
        return obj.avatar_url

    def get_last_message(self, obj: Chat) -> dict | None:
        if obj.last_message_id is None:
            return None
        sender = obj.last_message_sender
        return {
            "message_id": str(obj.last_message_id),
            "content": obj.last_message_content,
            "sender_id": sender.id if sender else None,
            "sender_username": sender.username if sender else None,
            "sent_at": serializers.DateTimeField().to_representation(
                obj.last_message_at
            )
            if obj.last_message_at
            else None,
        }

    def get_unread_count(self, obj: Chat) -> int:
        annotated = getattr(obj, "viewer_unread_count", None)
        if annotated is not None:
            return annotated
        user = _context_user(self.context)
        if user is None:
            return 0
        participant = obj.get_active_participant_for_user(user)
        return participant.unread_count if participant else 0

    def get_participants_count(self, obj: Chat) -> int:
        annotated = getattr(obj, "active_participants_count", None)
        if annotated is not None:
            return annotated
        return obj.get_active_participants().count()


class ChatDetailSerializer(ChatSummarySerializer):
    """Chat summary plus active participants, creator and settings."""

    participants = serializers.SerializerMethodField()
    created_by = serializers.SerializerMethodField()
    settings = serializers.SerializerMethodField()

    class Meta(ChatSummarySerializer.Meta):
        fields = ChatSummarySerializer.Meta.fields + [
            "participants",
            "created_by",
            "settings",
        ]
        read_only_fields = fields

    def get_participants(self, obj: Chat) -> list[dict]:
        participants = obj.get_active_participants().select_related("user")
        return ParticipantSerializer(participants, many=True).data

    def get_created_by(self, obj: Chat) -> dict | None:
        if obj.created_by is None:
            return None
        return {"user_id": obj.created_by.id, "username": obj.created_by.username}

    def get_settings(self, obj: Chat) -> dict:
        return obj.settings_dict


# =============================================================================
# Write Serializers
# =============================================================================


class DirectChatCreateSerializer(serializers.Serializer):
    """Body for ``POST chats/direct/``."""

    otherUserId = serializers.IntegerField(help_text="User to chat with")


class GroupChatCreateSerializer(serializers.Serializer):
    """Body for ``POST chats/group/``."""

    name = serializers.CharField(
        max_length=100,
        allow_blank=True,
        default="",
        help_text="Group name (required, max 100 characters)",
    )
    participantIds = serializers.ListField(
        child=serializers.IntegerField(),
        default=list,
        help_text="Users to invite (at least two besides the creator)",
    )
    description = serializers.CharField(
        max_length=500, allow_blank=True, required=False, default=""
    )
    avatarUrl = serializers.URLField(
        max_length=500, allow_blank=True, required=False, default=""
    )


class ChatSettingsSerializer(serializers.Serializer):
    """Partial settings flags for group updates."""

    allow_reactions = serializers.BooleanField(required=False)
    allow_replies = serializers.BooleanField(required=False)
    allow_file_sharing = serializers.BooleanField(required=False)
    only_admins_can_send = serializers.BooleanField(required=False)
    allow_member_invites = serializers.BooleanField(required=False)


class ChatUpdateSerializer(serializers.Serializer):
    """Body for ``PATCH chats/{chatId}/``."""

    name = serializers.CharField(max_length=100, required=False, allow_blank=True)
    description = serializers.CharField(
        max_length=500, required=False, allow_blank=True
    )
    avatarUrl = serializers.URLField(max_length=500, required=False, allow_blank=True)
    settings = ChatSettingsSerializer(required=False)

    def to_service_kwargs(self) -> dict:
        """Flatten validated data into ChatService.update_group keyword args."""
        data = dict(self.validated_data)
        kwargs = {}
        for key in ("name", "description"):
            if key in data:
                kwargs[key] = data[key]
        if "avatarUrl" in data:
            kwargs["avatar_url"] = data["avatarUrl"]
        for key, value in (data.get("settings") or {}).items():
            if key in CHAT_SETTING_FIELDS:
                kwargs[key] = value
        return kwargs


class ParticipantCreateSerializer(serializers.Serializer):
    """Body for ``POST chats/{chatId}/participants/``."""

    userId = serializers.IntegerField(help_text="User to add")


class ParticipantRoleSerializer(serializers.Serializer):
    """Body for ``PATCH chats/{chatId}/participants/{userId}/``."""

    role = serializers.CharField(max_length=10, help_text="admin or member")


class MessageCreateSerializer(serializers.Serializer):
    """
    Body for ``POST chats/{chatId}/messages/``.

    Image and file messages carry attachment metadata; content is an
    optional caption for them.
    """

    content = serializers.CharField(
        allow_blank=True,
        required=False,
        default="",
        trim_whitespace=False,
    )
    type = serializers.ChoiceField(
        choices=[MessageType.TEXT, MessageType.IMAGE, MessageType.FILE],
        default=MessageType.TEXT,
    )
    replyTo = serializers.UUIDField(required=False, allow_null=True)
    fileUrl = serializers.URLField(max_length=1000, required=False, allow_null=True)
    fileName = serializers.CharField(max_length=255, required=False, allow_null=True)
    fileSize = serializers.IntegerField(min_value=0, required=False, allow_null=True)

    def validate(self, attrs: dict) -> dict:
        if attrs.get("type") in (MessageType.IMAGE, MessageType.FILE) and not attrs.get(
            "fileUrl"
        ):
            raise serializers.ValidationError(
                {"fileUrl": "Attachment messages require a file URL."}
            )
        return attrs


class MessageUpdateSerializer(serializers.Serializer):
    """Body for ``PATCH chats/{chatId}/messages/{messageId}/``."""

    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class ReactionCreateSerializer(serializers.Serializer):
    """Body for ``POST .../messages/{messageId}/reactions/``."""

    emoji = serializers.CharField(
        max_length=CHAT_CONFIG.MAX_EMOJI_LENGTH,
        help_text="Emoji character(s)",
    )
