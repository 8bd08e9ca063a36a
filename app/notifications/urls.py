"""
URL configuration for notifications API.

Routes:
    /unread-count/total/  - Unread chat message badge (GET)

All URLs are prefixed with /api/v1/notifications/ in the main URL configuration.
"""

from django.urls import path

from notifications.views import UnreadChatCountView

app_name = "notifications"

urlpatterns = [
    path(
        "unread-count/total/",
        UnreadChatCountView.as_view(),
        name="unread-count-total",
    ),
]
