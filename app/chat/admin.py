"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Chat management
- Participant viewing
- Message moderation
"""

from django.contrib import admin

from chat.models import (
    Chat,
    ChatParticipant,
    DirectChatPair,
    Message,
    MessageReaction,
)


class ChatParticipantInline(admin.TabularInline):
    """Inline display of participants in chat admin."""

    model = ChatParticipant
    extra = 0
    readonly_fields = ["joined_at", "left_at", "last_read_at", "unread_count"]
    raw_id_fields = ["user"]


@admin.register(Chat)
class ChatAdmin(admin.ModelAdmin):
    """Admin interface for Chat model."""

    list_display = [
        "id",
        "chat_type",
        "name",
        "message_count",
        "is_active",
        "created_at",
        "last_message_at",
    ]
    list_filter = ["chat_type", "is_active", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = [
        "created_at",
        "updated_at",
        "message_count",
        "last_message_at",
        "last_message_content",
    ]
    raw_id_fields = ["created_by", "last_message", "last_message_sender"]
    inlines = [ChatParticipantInline]
    ordering = ["-created_at"]


@admin.register(DirectChatPair)
class DirectChatPairAdmin(admin.ModelAdmin):
    list_display = ["chat", "user_lower", "user_higher"]
    raw_id_fields = ["chat", "user_lower", "user_higher"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "chat",
        "sender",
        "message_type",
        "content_preview",
        "edited",
        "is_deleted",
        "created_at",
    ]
    list_filter = ["message_type", "is_deleted", "edited", "created_at"]
    search_fields = ["content", "sender__username"]
    readonly_fields = ["created_at", "updated_at", "deleted_at", "edited_at"]
    raw_id_fields = ["chat", "sender", "reply_to"]
    ordering = ["-created_at"]

    @admin.display(description="Content Preview")
    def content_preview(self, obj: Message) -> str:
        """Return truncated content for list display."""
        max_length = 50
        if len(obj.content) > max_length:
            return obj.content[:max_length] + "..."
        return obj.content


@admin.register(MessageReaction)
class MessageReactionAdmin(admin.ModelAdmin):
    list_display = ["message", "user", "emoji", "created_at"]
    raw_id_fields = ["message", "user"]
