"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ChatViewSet: Chat list/detail/update/delete, direct and group creation, read, leave
- ParticipantViewSet: Participant management (nested under chat)
- MessageViewSet: Message history, send, edit, delete and reactions (nested under chat)

URL Structure:
    /api/v1/chats/                                            GET
    /api/v1/chats/direct/                                     POST
    /api/v1/chats/group/                                      POST
    /api/v1/chats/{id}/                                       GET, PATCH, DELETE
    /api/v1/chats/{id}/read/                                  POST
    /api/v1/chats/{id}/leave/                                 POST
    /api/v1/chats/{id}/participants/                          POST
    /api/v1/chats/{id}/participants/{userId}/                 PATCH, DELETE
    /api/v1/chats/{id}/messages/                              GET, POST
    /api/v1/chats/{id}/messages/{messageId}/                  PATCH, DELETE
    /api/v1/chats/{id}/messages/{messageId}/reactions/        POST
    /api/v1/chats/{id}/messages/{messageId}/reactions/{emoji}/ DELETE

Design Decisions:
    - All business rules live in chat.services; views parse input,
      call a service and render the result
    - Service failures render as {"error", "error_code"} with the status
      from chat.constants.ERROR_STATUS_CODES
    - Chat and message ids are taken as strings so malformed ids reach the
      service and come back as 400 INVALID_ID
"""

from __future__ import annotations

from urllib.parse import unquote

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from chat.constants import ErrorCode, status_for_error
from chat.pagination import ChatListPagination, MessagePagination
from chat.serializers import (
    ChatDetailSerializer,
    ChatSummarySerializer,
    ChatUpdateSerializer,
    DirectChatCreateSerializer,
    GroupChatCreateSerializer,
    MessageCreateSerializer,
    MessageSerializer,
    MessageUpdateSerializer,
    ParticipantCreateSerializer,
    ParticipantRoleSerializer,
    ParticipantSerializer,
    ReactionCreateSerializer,
    ReactionSerializer,
)
from chat.services import (
    ChatService,
    MessageService,
    ParticipantService,
    ReactionService,
)


def failure_response(result) -> Response:
    """Render a failed ServiceResult with its mapped HTTP status."""
    return Response(result.to_response(), status=status_for_error(result.error_code))


def validation_error_response(serializer) -> Response:
    return Response(
        {
            "error": "Invalid request data",
            "error_code": ErrorCode.VALIDATION_ERROR,
            "errors": serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST,
    )


class ChatContextMixin:
    """Resolve the chat from ``chat_pk`` with participant authorization."""

    permission_classes = [IsAuthenticated]

    def get_chat_result(self):
        return ChatService.get_chat_for_user(self.kwargs["chat_pk"], self.request.user)

    def serializer_context(self) -> dict:
        return {"request": self.request, "user": self.request.user}


@extend_schema_view(
    list=extend_schema(
        operation_id="list_chats",
        summary="List chats",
        tags=["Chat - Chats"],
    ),
    retrieve=extend_schema(
        operation_id="get_chat",
        summary="Get chat",
        tags=["Chat - Chats"],
        responses={200: ChatDetailSerializer},
    ),
    partial_update=extend_schema(
        operation_id="update_chat",
        summary="Update group chat",
        tags=["Chat - Chats"],
        request=ChatUpdateSerializer,
        responses={200: ChatDetailSerializer},
    ),
    destroy=extend_schema(
        operation_id="delete_chat",
        summary="Delete chat",
        tags=["Chat - Chats"],
    ),
    direct=extend_schema(
        operation_id="find_or_create_direct_chat",
        summary="Find or create direct chat",
        tags=["Chat - Chats"],
        request=DirectChatCreateSerializer,
        responses={200: ChatDetailSerializer, 201: ChatDetailSerializer},
    ),
    group=extend_schema(
        operation_id="create_group_chat",
        summary="Create group chat",
        tags=["Chat - Chats"],
        request=GroupChatCreateSerializer,
        responses={201: ChatDetailSerializer},
    ),
    read=extend_schema(
        operation_id="mark_chat_read",
        summary="Mark chat as read",
        tags=["Chat - Chats"],
        request=None,
    ),
    leave=extend_schema(
        operation_id="leave_chat",
        summary="Leave group chat",
        tags=["Chat - Chats"],
        request=None,
    ),
)
class ChatViewSet(ChatContextMixin, viewsets.ViewSet):
    """
    ViewSet for chat operations.

    list:
        The user's active chats, most recent activity first, with unread
        counts and last message preview.

    direct:
        Find or create the direct chat with another user. Returns 201
        when created, 200 when it already existed.

    group:
        Create a group chat; the caller becomes admin.

    retrieve / partial_update / destroy:
        Chat detail, group metadata update (admin), soft delete.

    read / leave:
        Reset the caller's unread counter; leave a group.
    """

    def list(self, request):
        paginator = ChatListPagination()
        page = paginator.get_page_number_value(request)
        limit = paginator.get_limit(request)

        result = ChatService.get_user_chats(request.user, page=page, limit=limit)
        if not result.success:
            return failure_response(result)

        chats, has_more = result.data
        items = ChatSummarySerializer(
            chats, many=True, context=self.serializer_context()
        ).data
        return paginator.build_response(items, page, limit, has_more)

    def direct(self, request):
        serializer = DirectChatCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = ChatService.find_or_create_direct(
            request.user, serializer.validated_data["otherUserId"]
        )
        if not result.success:
            return failure_response(result)

        chat, created = result.data
        return Response(
            ChatDetailSerializer(chat, context=self.serializer_context()).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    def group(self, request):
        serializer = GroupChatCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        data = serializer.validated_data
        result = ChatService.create_group(
            creator=request.user,
            name=data["name"],
            participant_ids=data["participantIds"],
            description=data.get("description", ""),
            avatar_url=data.get("avatarUrl", ""),
        )
        if not result.success:
            return failure_response(result)

        return Response(
            ChatDetailSerializer(result.data, context=self.serializer_context()).data,
            status=status.HTTP_201_CREATED,
        )

    def retrieve(self, request, chat_pk=None):
        result = self.get_chat_result()
        if not result.success:
            return failure_response(result)

        return Response(
            ChatDetailSerializer(result.data, context=self.serializer_context()).data
        )

    def partial_update(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        serializer = ChatUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = ChatService.update_group(
            chat_result.data, request.user, **serializer.to_service_kwargs()
        )
        if not result.success:
            return failure_response(result)

        return Response(
            ChatDetailSerializer(result.data, context=self.serializer_context()).data
        )

    def destroy(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        result = ChatService.delete_chat(chat_result.data, request.user)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)

    def read(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        result = MessageService.mark_chat_read(chat_result.data, request.user)
        if not result.success:
            return failure_response(result)

        return Response({"chat_id": str(chat_result.data.id), "cleared": result.data})

    def leave(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        result = ParticipantService.leave(chat_result.data, request.user)
        if not result.success:
            return failure_response(result)

        return Response({"chat_id": str(chat_result.data.id), "status": "left"})


@extend_schema_view(
    create=extend_schema(
        operation_id="add_chat_participant",
        summary="Add participant",
        tags=["Chat - Participants"],
        request=ParticipantCreateSerializer,
        responses={201: ParticipantSerializer},
    ),
    partial_update=extend_schema(
        operation_id="update_chat_participant_role",
        summary="Update participant role",
        tags=["Chat - Participants"],
        request=ParticipantRoleSerializer,
        responses={200: ParticipantSerializer},
    ),
    destroy=extend_schema(
        operation_id="remove_chat_participant",
        summary="Remove participant",
        tags=["Chat - Participants"],
    ),
)
class ParticipantViewSet(ChatContextMixin, viewsets.ViewSet):
    """
    ViewSet for group membership.

    create:
        Add a user (admin, or any member when invites are enabled).

    partial_update:
        Change a participant's role (admin only).

    destroy:
        Remove a participant (admin) or yourself. The last admin cannot
        be removed.
    """

    def create(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        serializer = ParticipantCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = ParticipantService.add_participant(
            chat_result.data, request.user, serializer.validated_data["userId"]
        )
        if not result.success:
            return failure_response(result)

        return Response(
            ParticipantSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    def partial_update(self, request, chat_pk=None, user_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        serializer = ParticipantRoleSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = ParticipantService.update_role(
            chat_result.data, request.user, user_pk, serializer.validated_data["role"]
        )
        if not result.success:
            return failure_response(result)

        return Response(ParticipantSerializer(result.data).data)

    def destroy(self, request, chat_pk=None, user_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        result = ParticipantService.remove_participant(
            chat_result.data, request.user, user_pk
        )
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_chat_messages",
        summary="List messages",
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="send_chat_message",
        summary="Send message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
    ),
    partial_update=extend_schema(
        operation_id="edit_chat_message",
        summary="Edit message",
        tags=["Chat - Messages"],
        request=MessageUpdateSerializer,
        responses={200: MessageSerializer},
    ),
    destroy=extend_schema(
        operation_id="delete_chat_message",
        summary="Delete message",
        tags=["Chat - Messages"],
    ),
    add_reaction=extend_schema(
        operation_id="add_message_reaction",
        summary="Add reaction",
        tags=["Chat - Reactions"],
        request=ReactionCreateSerializer,
        responses={201: ReactionSerializer},
    ),
    remove_reaction=extend_schema(
        operation_id="remove_message_reaction",
        summary="Remove reaction",
        tags=["Chat - Reactions"],
    ),
)
class MessageViewSet(ChatContextMixin, viewsets.ViewSet):
    """
    ViewSet for messages within a chat.

    list:
        Message history, newest first. Fetching marks the chat read.

    create:
        Send a text, image or file message (optionally replying).

    partial_update / destroy:
        Edit or soft delete your own message.

    add_reaction / remove_reaction:
        Emoji reactions, unique per user and emoji.
    """

    def get_message_result(self, chat):
        return MessageService.get_message_for_user(chat, self.kwargs["message_pk"])

    def list(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        paginator = MessagePagination()
        page = paginator.get_page_number_value(request)
        limit = paginator.get_limit(request)

        result = MessageService.get_messages(
            chat_result.data, request.user, page=page, limit=limit
        )
        if not result.success:
            return failure_response(result)

        messages, has_more = result.data
        items = MessageSerializer(messages, many=True).data
        return paginator.build_response(items, page, limit, has_more)

    def create(self, request, chat_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        serializer = MessageCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        data = serializer.validated_data
        result = MessageService.send_message(
            chat=chat_result.data,
            sender=request.user,
            content=data.get("content", ""),
            message_type=data["type"],
            reply_to_id=data.get("replyTo"),
            file_url=data.get("fileUrl"),
            file_name=data.get("fileName"),
            file_size=data.get("fileSize"),
        )
        if not result.success:
            return failure_response(result)

        return Response(
            MessageSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    def partial_update(self, request, chat_pk=None, message_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        message_result = self.get_message_result(chat_result.data)
        if not message_result.success:
            return failure_response(message_result)

        serializer = MessageUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = MessageService.edit_message(
            message_result.data, request.user, serializer.validated_data["content"]
        )
        if not result.success:
            return failure_response(result)

        return Response(MessageSerializer(result.data).data)

    def destroy(self, request, chat_pk=None, message_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        message_result = self.get_message_result(chat_result.data)
        if not message_result.success:
            return failure_response(message_result)

        result = MessageService.delete_message(message_result.data, request.user)
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)

    def add_reaction(self, request, chat_pk=None, message_pk=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        message_result = self.get_message_result(chat_result.data)
        if not message_result.success:
            return failure_response(message_result)

        serializer = ReactionCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer)

        result = ReactionService.add_reaction(
            message_result.data, request.user, serializer.validated_data["emoji"]
        )
        if not result.success:
            return failure_response(result)

        return Response(
            ReactionSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    def remove_reaction(self, request, chat_pk=None, message_pk=None, emoji=None):
        chat_result = self.get_chat_result()
        if not chat_result.success:
            return failure_response(chat_result)

        message_result = self.get_message_result(chat_result.data)
        if not message_result.success:
            return failure_response(message_result)

        result = ReactionService.remove_reaction(
            message_result.data, request.user, unquote(emoji)
        )
        if not result.success:
            return failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)
