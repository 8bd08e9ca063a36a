"""
Chat application configuration.

This app provides the marketplace chat system with:
- Direct (1:1) and group chats
- Admin/member roles and per-chat settings
- Messages with replies, reactions and soft deletion
- Unread counters and realtime events over Django Channels
"""

from django.apps import AppConfig


class ChatConfig(AppConfig):
    """Configuration for the chat application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "chat"
    verbose_name = "Chat"
