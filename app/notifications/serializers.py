"""
Serializers for notification API.

Serializers:
    UnreadTotalSerializer: Response for the unread badge endpoint
"""

from rest_framework import serializers


class UnreadTotalSerializer(serializers.Serializer):
    """
    Response serializer for the unread total endpoint.

    Fields:
        totalUnreadCount: Sum of unread messages across active chats
        chatCount: Number of chats with at least one unread message
    """

    totalUnreadCount = serializers.IntegerField()
    chatCount = serializers.IntegerField()
