"""
Chat system models.

This module defines the data models for marketplace chat:
- Direct (1:1) chats between two traders
- Group chats with admin/member roles and per-chat settings

Models:
    Chat: Container for messages between participants
    DirectChatPair: Enforces one direct chat per unordered user pair
    ChatParticipant: User membership with role and unread tracking
    Message: Individual message within a chat
    MessageReaction: Emoji reaction by a user on a message

Design Decisions:
    - Chats are soft deleted via is_active=False and never hard deleted
    - Membership rows are reactivated on re-add so history is preserved
    - The last message is cached on Chat so list views avoid a subquery
    - Messages are soft deleted; a periodic task purges them after retention
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q

from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from authentication.models import User


class ChatType(models.TextChoices):
    """
    Type of chat.

    DIRECT: Exactly two participants, unique per user pair
    GROUP: Creator plus at least two invitees, admin/member roles
    """

    DIRECT = "direct", "Direct"
    GROUP = "group", "Group"


class ParticipantRole(models.TextChoices):
    """Role within a chat. Direct chat participants are both members."""

    ADMIN = "admin", "Admin"
    MEMBER = "member", "Member"


class MessageType(models.TextChoices):
    """
    Type of message content.

    TEXT: User-authored text
    IMAGE / FILE: Attachment metadata (url, name, size) with optional caption
    SYSTEM: Auto-generated notice such as "Group created"
    """

    TEXT = "text", "Text"
    IMAGE = "image", "Image"
    FILE = "file", "File"
    SYSTEM = "system", "System"


# Settings flags exposed as ``settings{...}`` in chat detail responses.
CHAT_SETTING_FIELDS = (
    "allow_reactions",
    "allow_replies",
    "allow_file_sharing",
    "only_admins_can_send",
    "allow_member_invites",
)


class Chat(UUIDPrimaryKeyMixin, BaseModel):
    """
    A direct or group chat.

    Fields:
        chat_type: direct or group
        name: Group name (empty for direct; derived from counterpart in responses)
        description: Optional group description
        avatar_url: Optional group avatar
        created_by: User who created the chat
        last_message / last_message_content / last_message_sender / last_message_at:
            Cached preview of the newest non-deleted message
        message_count: Number of non-deleted messages
        is_active: False once the chat is deleted or every member has left

    Relationships:
        participants: ChatParticipant rows (active and inactive)
        messages: Message rows
        direct_pair: DirectChatPair if type is DIRECT
    """

    chat_type = models.CharField(
        max_length=10,
        choices=ChatType.choices,
        default=ChatType.DIRECT,
        db_index=True,
        help_text="Type of chat (direct or group)",
    )

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Group name (empty for direct chats)",
    )

    description = models.CharField(
        max_length=500,
        blank=True,
        default="",
        help_text="Optional group description",
    )

    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Optional group avatar URL",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_chats",
        help_text="User who created this chat",
    )

    last_message = models.ForeignKey(
        "chat.Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent non-deleted message (cached)",
    )

    last_message_content = models.TextField(
        blank=True,
        default="",
        help_text="Content of the most recent message (cached)",
    )

    last_message_sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Sender of the most recent message (cached)",
    )

    last_message_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Timestamp of the most recent message (for sorting chat lists)",
    )

    message_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of non-deleted messages (cached)",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="False once the chat has been deleted",
    )

    allow_reactions = models.BooleanField(default=True, help_text="Members may react")
    allow_replies = models.BooleanField(default=True, help_text="Members may reply")
    allow_file_sharing = models.BooleanField(
        default=True, help_text="Image/file messages are accepted"
    )
    only_admins_can_send = models.BooleanField(
        default=False, help_text="Only admins may post messages"
    )
    allow_member_invites = models.BooleanField(
        default=False, help_text="Non-admin members may add participants"
    )

    class Meta:
        db_table = "chat_chat"
        ordering = ["-last_message_at", "-updated_at"]
        indexes = [
            models.Index(
                fields=["chat_type", "is_active"],
                name="chat_chat_type_active_idx",
            ),
            models.Index(
                fields=["-last_message_at", "-updated_at"],
                name="chat_chat_activity_idx",
                condition=Q(is_active=True),
            ),
        ]

    def __str__(self) -> str:
        if self.chat_type == ChatType.DIRECT:
            return f"Direct({self.pk})"
        return f"Group: {self.name}"

    @property
    def is_direct(self) -> bool:
        return self.chat_type == ChatType.DIRECT

    @property
    def is_group(self) -> bool:
        return self.chat_type == ChatType.GROUP

    @property
    def settings_dict(self) -> dict:
        return {field: getattr(self, field) for field in CHAT_SETTING_FIELDS}

    def get_active_participants(self):
        """Active ChatParticipant rows, oldest membership first."""
        return self.participants.filter(is_active=True).order_by("joined_at", "id")

    def get_active_participant_for_user(self, user: User) -> ChatParticipant | None:
        """
        Get the active participant row for a user.

        Returns:
            ChatParticipant if the user is active in this chat, None otherwise
        """
        return self.participants.filter(user=user, is_active=True).first()

    def get_counterpart(self, user: User):
        """For direct chats, the other participant's user (None otherwise)."""
        if not self.is_direct:
            return None
        participant = (
            self.participants.exclude(user=user).select_related("user").first()
        )
        return participant.user if participant else None


class DirectChatPair(models.Model):
    """
    Enforces uniqueness of direct chats between two users.

    The pair is stored in canonical order (lower user id first), so a
    lookup for (A, B) and (B, A) hits the same row.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One chat per pair
        - CheckConstraint(user_lower_id < user_higher_id): Canonical order
    """

    chat = models.OneToOneField(
        Chat,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct chat this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this pair",
    )

    class Meta:
        db_table = "chat_direct_chat_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_chat_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="direct_pair_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"

    @staticmethod
    def canonical_ids(user_a_id: int, user_b_id: int) -> tuple[int, int]:
        """Return the pair ordered (lower, higher)."""
        return (user_a_id, user_b_id) if user_a_id < user_b_id else (user_b_id, user_a_id)


class ChatParticipant(models.Model):
    """
    Tracks a user's membership in a chat.

    Membership Lifecycle:
        1. User joins: row created with is_active=True
        2. User leaves or is removed: is_active=False, left_at set
        3. User is re-added: the same row is reactivated

    Fields:
        chat: Chat this membership belongs to
        user: Member
        role: admin or member
        is_active: Whether the membership is current
        joined_at: When the user (re)joined
        last_seen_at: Last time the user opened the chat
        last_read_at: Read marker used to reconcile unread_count
        unread_count: Messages from others since last_read_at
        left_at: When the user left (null while active)
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Chat this membership belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_participations",
        help_text="User participating in the chat",
    )

    role = models.CharField(
        max_length=10,
        choices=ParticipantRole.choices,
        default=ParticipantRole.MEMBER,
        db_index=True,
        help_text="Role in the chat",
    )

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether the user is currently a member",
    )

    joined_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user joined this chat",
    )

    last_seen_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the user opened this chat",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the user read this chat (for unread reconciliation)",
    )

    unread_count = models.PositiveIntegerField(
        default=0,
        help_text="Messages from others not yet read by this user",
    )

    left_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user left (null if still active)",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["joined_at", "id"]
        indexes = [
            models.Index(
                fields=["chat", "is_active"],
                name="chat_part_chat_active_idx",
            ),
            models.Index(
                fields=["user", "is_active"],
                name="chat_part_user_active_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["chat", "user"],
                name="unique_chat_participant",
            ),
        ]

    def __str__(self) -> str:
        state = "active" if self.is_active else "left"
        return f"Participant: {self.user_id} in {self.chat_id} ({self.role}) [{state}]"

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN


class Message(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A message within a chat.

    Soft Delete Behavior:
        Deleted messages are hidden from listings, excluded from
        message_count and from the last-message cache, and purged by
        ``purge_deleted_messages`` after the retention window.

    Replies:
        reply_to points at another message in the same chat.

    Fields:
        chat: Chat this message belongs to
        sender: Author (null for system notices)
        content: Text (caption for image/file messages)
        message_type: text, image, file or system
        file_url / file_name / file_size: Attachment metadata
        is_read / read_at: Whether any other participant has read it
        edited / edited_at: Set by the author's first edit
        reply_to: Message this one replies to
    """

    chat = models.ForeignKey(
        Chat,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Chat this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="chat_messages",
        help_text="User who sent this message (null for system messages)",
    )

    content = models.TextField(
        blank=True,
        default="",
        help_text="Message text (max length from CHAT_CONFIG)",
    )

    message_type = models.CharField(
        max_length=10,
        choices=MessageType.choices,
        default=MessageType.TEXT,
        help_text="Type of message",
    )

    file_url = models.URLField(
        max_length=1000,
        null=True,
        blank=True,
        help_text="Attachment URL for image/file messages",
    )
    file_name = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Original attachment file name",
    )
    file_size = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Attachment size in bytes",
    )

    is_read = models.BooleanField(
        default=False,
        help_text="Whether another participant has read this message",
    )
    read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message was first read",
    )

    edited = models.BooleanField(
        default=False,
        help_text="Whether the content was edited after sending",
    )
    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the message was last edited",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["chat", "-created_at"],
                name="chat_msg_chat_created_idx",
            ),
            models.Index(
                fields=["sender", "-created_at"],
                name="chat_msg_sender_idx",
            ),
            models.Index(
                fields=["is_deleted", "deleted_at"],
                name="chat_msg_deleted_idx",
                condition=Q(is_deleted=True),
            ),
        ]

    def __str__(self) -> str:
        sender_str = f"User {self.sender_id}" if self.sender_id else "System"
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"{sender_str}: {preview}{deleted_str}"

    @property
    def is_system_message(self) -> bool:
        return self.message_type == MessageType.SYSTEM


class MessageReaction(models.Model):
    """
    An emoji reaction by a user on a message.

    A user may react with several different emojis, but each
    (message, user, emoji) combination exists at most once.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message being reacted to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="chat_reactions",
        help_text="User who reacted",
    )

    emoji = models.CharField(
        max_length=32,
        help_text="Emoji character(s)",
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the reaction was added",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_message_user_emoji",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} reacted {self.emoji} to {self.message_id}"
