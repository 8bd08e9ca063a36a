"""
Chat app for marketplace messaging.

This app handles:
- Direct and group chats between traders
- Message history, sending, editing and deletion
- Reactions and unread counters
- WebSocket realtime events

Related apps:
    - authentication: User model for participants
    - notifications: Unread total for the badge

WebSocket Support:
    Uses Django Channels for realtime delivery.
    See consumers.py for the socket consumer.
    See realtime.py for event publishing.

Usage:
    from chat.services import ChatService, MessageService

    result = ChatService.find_or_create_direct(user, other_user.id)
    chat, created = result.data

    MessageService.send_message(chat=chat, sender=user, content="Hello!")
"""
