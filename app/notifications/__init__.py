"""
Notifications app for the unread message badge.

This app provides:
- GET /api/v1/notifications/unread-count/total/ returning the total unread
  chat messages across the user's active chats

Counters are maintained by chat.services; this app only exposes them.
Realtime increments arrive as ``message_notification`` events on the
user's socket.
"""
