"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/ - The session's realtime socket (rooms are joined by frame)

Authentication:
    JWT access token passed as ?token=<jwt> or via the "jwt, <token>"
    subprotocol pair; see chat.middleware.JWTAuthMiddleware.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path("ws/chat/", consumers.ChatConsumer.as_asgi()),
]
