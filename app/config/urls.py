"""
Root URL configuration for the BloxMarket chat backend.

URL Structure:
    /                                  - ReDoc API documentation
    /admin/                            - Django admin interface
    /health/                           - Health check endpoint (load balancers, Docker)
    /schema/                           - OpenAPI schema (YAML)
    /api/v1/auth/                      - Authentication
        token/                         - Obtain JWT pair
        token/refresh/                 - Refresh JWT
        me/                            - Current user
    /api/v1/chats/                     - Chats, participants, messages, reactions
                                         (see chat.urls)
    /api/v1/notifications/             - Notification badge
        unread-count/total/            - Total unread messages across chats

WebSocket routes live in chat.routing and are mounted by config.asgi.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("chats/", include("chat.urls")),
    path("notifications/", include("notifications.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "BloxMarket Chat Admin"
admin.site.site_title = "BloxMarket Chat"
admin.site.index_title = "Chat administration"
