"""
Pagination classes for chat API.

Chat lists and message history are paged by ``page`` and ``limit`` query
parameters. Services fetch one extra row to compute ``has_more``; these
classes parse and clamp the parameters and render the envelope:

    {"<results_key>": [...], "pagination": {"page": 1, "limit": 20, "has_more": false}}

Design Decisions:
    - Chats ordered by most recent activity, messages newest first
    - Invalid or out-of-range values fall back to defaults instead of 400
"""

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response

from chat.constants import CHAT_CONFIG


class ChatPagePagination(PageNumberPagination):
    """
    Base page/limit pagination.

    Query parameters:
        page: 1-based page number (default 1)
        limit: Page size (clamped to max_page_size)
    """

    page_query_param = "page"
    page_size_query_param = "limit"
    results_key = "results"
    # Row offsets must fit a signed 32-bit SQL integer
    max_offset = 2**31 - 1

    def __init__(self):
        self.max_page_size = CHAT_CONFIG.MAX_PAGE_SIZE

    def get_page_number_value(self, request) -> int:
        try:
            page = int(request.query_params.get(self.page_query_param, 1))
        except (TypeError, ValueError):
            return 1
        if page < 1 or (page - 1) * self.max_page_size > self.max_offset:
            return 1
        return page

    def get_limit(self, request) -> int:
        return self.get_page_size(request) or self.page_size

    def build_response(self, items, page: int, limit: int, has_more: bool) -> Response:
        return Response(
            {
                self.results_key: items,
                "pagination": {"page": page, "limit": limit, "has_more": has_more},
            }
        )


class ChatListPagination(ChatPagePagination):
    """Chat list: 20 per page by default."""

    results_key = "chats"

    def __init__(self):
        super().__init__()
        self.page_size = CHAT_CONFIG.CHAT_PAGE_SIZE


class MessagePagination(ChatPagePagination):
    """Message history: 50 per page by default."""

    results_key = "messages"

    def __init__(self):
        super().__init__()
        self.page_size = CHAT_CONFIG.MESSAGE_PAGE_SIZE
