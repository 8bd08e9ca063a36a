"""
URL configuration for chat API.

URL Structure:
    Chats:
        /                                   GET
        /direct/                            POST
        /group/                             POST
        /{id}/                              GET, PATCH, DELETE
        /{id}/read/                         POST
        /{id}/leave/                        POST

    Participants:
        /{id}/participants/                 POST
        /{id}/participants/{userId}/        PATCH, DELETE

    Messages:
        /{id}/messages/                     GET, POST
        /{id}/messages/{messageId}/         PATCH, DELETE

    Reactions:
        /{id}/messages/{messageId}/reactions/          POST
        /{id}/messages/{messageId}/reactions/{emoji}/  DELETE

All URLs are prefixed with /api/v1/chats/ in the main URL configuration.
"""

from django.urls import path

from chat.views import ChatViewSet, MessageViewSet, ParticipantViewSet

app_name = "chat"

urlpatterns = [
    path("", ChatViewSet.as_view({"get": "list"}), name="chat-list"),
    path("direct/", ChatViewSet.as_view({"post": "direct"}), name="chat-direct"),
    path("group/", ChatViewSet.as_view({"post": "group"}), name="chat-group"),
    path(
        "<str:chat_pk>/",
        ChatViewSet.as_view(
            {"get": "retrieve", "patch": "partial_update", "delete": "destroy"}
        ),
        name="chat-detail",
    ),
    path(
        "<str:chat_pk>/read/",
        ChatViewSet.as_view({"post": "read"}),
        name="chat-read",
    ),
    path(
        "<str:chat_pk>/leave/",
        ChatViewSet.as_view({"post": "leave"}),
        name="chat-leave",
    ),
    # Nested routes for participants
    path(
        "<str:chat_pk>/participants/",
        ParticipantViewSet.as_view({"post": "create"}),
        name="chat-participant-list",
    ),
    path(
        "<str:chat_pk>/participants/<str:user_pk>/",
        ParticipantViewSet.as_view({"patch": "partial_update", "delete": "destroy"}),
        name="chat-participant-detail",
    ),
    # Nested routes for messages
    path(
        "<str:chat_pk>/messages/",
        MessageViewSet.as_view({"get": "list", "post": "create"}),
        name="chat-message-list",
    ),
    path(
        "<str:chat_pk>/messages/<str:message_pk>/",
        MessageViewSet.as_view({"patch": "partial_update", "delete": "destroy"}),
        name="chat-message-detail",
    ),
    # Reaction routes
    path(
        "<str:chat_pk>/messages/<str:message_pk>/reactions/",
        MessageViewSet.as_view({"post": "add_reaction"}),
        name="chat-message-reactions",
    ),
    path(
        "<str:chat_pk>/messages/<str:message_pk>/reactions/<str:emoji>/",
        MessageViewSet.as_view({"delete": "remove_reaction"}),
        name="chat-message-reaction-detail",
    ),
]
