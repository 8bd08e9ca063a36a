"""
Views for notification API.

Endpoints:
    GET /api/v1/notifications/unread-count/total/ - Unread chat message badge
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.services import UnreadCountService
from chat.views import failure_response
from notifications.serializers import UnreadTotalSerializer


class UnreadChatCountView(APIView):
    """
    Total unread chat messages for the authenticated user.

    The client polls this endpoint and treats it as authoritative,
    overwriting any optimistic increments from realtime events.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_unread_chat_total",
        summary="Get unread chat message total",
        responses={200: UnreadTotalSerializer},
        tags=["Notifications"],
    )
    def get(self, request):
        result = UnreadCountService.get_total(request.user)
        if not result.success:
            return failure_response(result)

        return Response(UnreadTotalSerializer(result.data).data)
