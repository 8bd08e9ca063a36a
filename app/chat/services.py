"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on chats, participants, messages, reactions and unread counts.

Services:
    ChatService: Chat lifecycle (list, detail, direct find-or-create, group create/update, delete)
    ParticipantService: Membership (add, remove, leave, role change)
    MessageService: Messages (history, send, edit, delete, mark read)
    ReactionService: Emoji reactions (add, remove)
    UnreadCountService: Unread totals and counter reconciliation

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure() with an error code
      from chat.constants.ErrorCode
    - Unexpected failures raise exceptions
    - Realtime events are published through ChatEventPublisher and only
      leave the process after the transaction commits

Usage:
    from chat.services import ChatService, MessageService

    result = ChatService.find_or_create_direct(user, other_user.id)
    if result.success:
        chat, created = result.data

    result = MessageService.send_message(chat, user, "Still selling the Shadow Dragon?")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count, F, OuterRef, Q, Subquery, Sum
from django.utils import timezone

from core.helpers import parse_uuid
from core.services import BaseService, ServiceResult

from chat.constants import CHAT_CONFIG, ErrorCode
from chat.models import (
    CHAT_SETTING_FIELDS,
    Chat,
    ChatParticipant,
    ChatType,
    DirectChatPair,
    Message,
    MessageReaction,
    MessageType,
    ParticipantRole,
)
from chat.realtime import ChatEventPublisher

if TYPE_CHECKING:
    from authentication.models import User


def _not_participant() -> ServiceResult:
    return ServiceResult.failure(
        "You are not a participant in this chat",
        error_code=ErrorCode.NOT_PARTICIPANT,
    )


def _get_active_user(user_id) -> User | None:
    """Look up an active user by id, tolerating malformed ids."""
    try:
        return get_user_model().objects.filter(id=int(user_id), is_active=True).first()
    except (TypeError, ValueError):
        return None


class ChatService(BaseService):
    """
    Service for chat lifecycle operations.

    Methods:
        get_user_chats: Paginated list of the user's active chats
        get_chat_for_user: Resolve a chat id with participant authorization
        find_or_create_direct: Idempotent direct chat between two users
        create_group: Create a group chat with an admin creator
        update_group: Update group metadata and settings (admin only)
        delete_chat: Soft delete a chat
    """

    @classmethod
    def get_user_chats(
        cls,
        user: User,
        page: int = 1,
        limit: int = 20,
    ) -> ServiceResult[tuple[list[Chat], bool]]:
        """
        List the user's active chats, most recent activity first.

        Each chat is annotated with ``viewer_unread_count`` and
        ``active_participants_count`` for the list serializer.

        Returns:
            ServiceResult with (chats, has_more)
        """
        viewer = ChatParticipant.objects.filter(chat=OuterRef("pk"), user=user)
        member_of = ChatParticipant.objects.filter(user=user, is_active=True).values(
            "chat_id"
        )
        queryset = (
            Chat.objects.filter(is_active=True, id__in=member_of)
            .annotate(
                viewer_unread_count=Subquery(viewer.values("unread_count")[:1]),
                active_participants_count=Count(
                    "participants",
                    filter=Q(participants__is_active=True),
                    distinct=True,
                ),
            )
            .select_related("last_message_sender", "created_by")
            .order_by(F("last_message_at").desc(nulls_last=True), "-updated_at")
        )

        offset = (page - 1) * limit
        rows = list(queryset[offset : offset + limit + 1])
        has_more = len(rows) > limit
        return ServiceResult.success((rows[:limit], has_more))

    @classmethod
    def get_chat_for_user(cls, chat_id, user: User) -> ServiceResult[Chat]:
        """
        Resolve a chat the user is allowed to see.

        Error codes:
            INVALID_ID: chat_id is not a valid UUID
            CHAT_NOT_FOUND: No active chat with this id
            NOT_PARTICIPANT: User is not an active participant
        """
        parsed = parse_uuid(chat_id)
        if parsed is None:
            return ServiceResult.failure(
                "Invalid chat ID",
                error_code=ErrorCode.INVALID_ID,
            )

        chat = (
            Chat.objects.select_related("created_by", "last_message_sender")
            .filter(id=parsed, is_active=True)
            .first()
        )
        if chat is None:
            return ServiceResult.failure(
                "Chat not found",
                error_code=ErrorCode.CHAT_NOT_FOUND,
            )

        if chat.get_active_participant_for_user(user) is None:
            return _not_participant()

        return ServiceResult.success(chat)

    @classmethod
    def find_or_create_direct(
        cls,
        user: User,
        other_user_id,
    ) -> ServiceResult[tuple[Chat, bool]]:
        """
        Find or create the direct chat between ``user`` and another user.

        The pair is looked up in canonical order, so calls with the users
        in either order return the same chat. An inactive (deleted) direct
        chat is reactivated instead of creating a second one.

        Returns:
            ServiceResult with (chat, created)

        Error codes:
            SAME_USER: Cannot chat with yourself
            USER_NOT_FOUND: Other user does not exist or is inactive
        """
        other = _get_active_user(other_user_id)
        if other is None:
            return ServiceResult.failure(
                "User not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )

        if other.id == user.id:
            return ServiceResult.failure(
                "Cannot create a direct chat with yourself",
                error_code=ErrorCode.SAME_USER,
            )

        lower_id, higher_id = DirectChatPair.canonical_ids(user.id, other.id)

        pair = (
            DirectChatPair.objects.select_related("chat")
            .filter(user_lower_id=lower_id, user_higher_id=higher_id)
            .first()
        )
        if pair is not None:
            chat = cls._reactivate_direct(pair.chat)
            cls.get_logger().debug(
                f"Found existing direct chat {chat.id} between users {lower_id} and {higher_id}"
            )
            return ServiceResult.success((chat, False))

        try:
            with transaction.atomic():
                now = timezone.now()
                chat = Chat.objects.create(
                    chat_type=ChatType.DIRECT,
                    created_by=user,
                )
                DirectChatPair.objects.create(
                    chat=chat,
                    user_lower_id=lower_id,
                    user_higher_id=higher_id,
                )
                for member in (user, other):
                    ChatParticipant.objects.create(
                        chat=chat,
                        user=member,
                        role=ParticipantRole.MEMBER,
                        last_read_at=now,
                    )
        except IntegrityError:
            # Concurrent request created the pair first
            pair = DirectChatPair.objects.select_related("chat").get(
                user_lower_id=lower_id, user_higher_id=higher_id
            )
            return ServiceResult.success((cls._reactivate_direct(pair.chat), False))

        cls.get_logger().info(
            f"Created direct chat {chat.id} between users {lower_id} and {higher_id}"
        )
        return ServiceResult.success((chat, True))

    @classmethod
    def _reactivate_direct(cls, chat: Chat) -> Chat:
        """Bring a deleted direct chat and both memberships back."""
        if chat.is_active and not chat.participants.filter(is_active=False).exists():
            return chat

        with transaction.atomic():
            chat.is_active = True
            chat.save(update_fields=["is_active", "updated_at"])
            chat.participants.filter(is_active=False).update(
                is_active=True,
                left_at=None,
                unread_count=0,
                last_read_at=timezone.now(),
            )

        cls.get_logger().info(f"Reactivated direct chat {chat.id}")
        return chat

    @classmethod
    def create_group(
        cls,
        creator: User,
        name: str,
        participant_ids: list,
        description: str = "",
        avatar_url: str = "",
    ) -> ServiceResult[Chat]:
        """
        Create a group chat.

        The creator joins as admin, invitees as members. A system message
        records the creation.

        Error codes:
            NAME_REQUIRED: Group name is blank
            NOT_ENOUGH_PARTICIPANTS: Fewer than two distinct other users
            USER_NOT_FOUND: An invitee does not exist or is inactive
        """
        name = name.strip() if name else ""
        if not name:
            return ServiceResult.failure(
                "Group name is required",
                error_code=ErrorCode.NAME_REQUIRED,
            )

        invitee_ids = []
        for raw_id in participant_ids or []:
            try:
                user_id = int(raw_id)
            except (TypeError, ValueError):
                return ServiceResult.failure(
                    f"Invalid user ID: {raw_id}",
                    error_code=ErrorCode.INVALID_ID,
                )
            if user_id != creator.id and user_id not in invitee_ids:
                invitee_ids.append(user_id)

        if len(invitee_ids) < CHAT_CONFIG.MIN_GROUP_INVITEES:
            return ServiceResult.failure(
                f"A group needs at least {CHAT_CONFIG.MIN_GROUP_INVITEES} other participants",
                error_code=ErrorCode.NOT_ENOUGH_PARTICIPANTS,
            )

        invitees = {
            u.id: u
            for u in get_user_model().objects.filter(id__in=invitee_ids, is_active=True)
        }
        missing = [uid for uid in invitee_ids if uid not in invitees]
        if missing:
            return ServiceResult.failure(
                f"Users not found: {missing}",
                error_code=ErrorCode.USER_NOT_FOUND,
            )

        with transaction.atomic():
            now = timezone.now()
            chat = Chat.objects.create(
                chat_type=ChatType.GROUP,
                name=name,
                description=description or "",
                avatar_url=avatar_url or "",
                created_by=creator,
            )
            ChatParticipant.objects.create(
                chat=chat,
                user=creator,
                role=ParticipantRole.ADMIN,
                last_read_at=now,
            )
            for user_id in invitee_ids:
                ChatParticipant.objects.create(
                    chat=chat,
                    user=invitees[user_id],
                    role=ParticipantRole.MEMBER,
                    last_read_at=now,
                )

            MessageService.create_system_message(
                chat, f'{creator.username} created the group "{name}"'
            )

        cls.get_logger().info(
            f"Created group chat {chat.id} '{name}' with {1 + len(invitee_ids)} participants"
        )
        return ServiceResult.success(chat)

    @classmethod
    def update_group(cls, chat: Chat, user: User, **fields) -> ServiceResult[Chat]:
        """
        Update group name, description, avatar and settings flags.

        Unknown keyword arguments are ignored.

        Error codes:
            NOT_GROUP: Direct chats have no editable metadata
            NOT_PARTICIPANT: User is not in this chat
            ADMIN_REQUIRED: Only admins can update the group
            NAME_REQUIRED: Name given but blank
        """
        if not chat.is_group:
            return ServiceResult.failure(
                "Only group chats can be updated",
                error_code=ErrorCode.NOT_GROUP,
            )

        participant = chat.get_active_participant_for_user(user)
        if participant is None:
            return _not_participant()
        if not participant.is_admin:
            return ServiceResult.failure(
                "Only admins can update the group",
                error_code=ErrorCode.ADMIN_REQUIRED,
            )

        update_fields = []
        if "name" in fields:
            name = (fields["name"] or "").strip()
            if not name:
                return ServiceResult.failure(
                    "Group name cannot be empty",
                    error_code=ErrorCode.NAME_REQUIRED,
                )
            chat.name = name
            update_fields.append("name")

        for key in ("description", "avatar_url"):
            if key in fields:
                setattr(chat, key, fields[key] or "")
                update_fields.append(key)

        for key in CHAT_SETTING_FIELDS:
            if key in fields:
                setattr(chat, key, bool(fields[key]))
                update_fields.append(key)

        if update_fields:
            chat.save(update_fields=[*update_fields, "updated_at"])
            cls.get_logger().info(
                f"Updated group chat {chat.id} fields {update_fields} by user {user.id}"
            )

        return ServiceResult.success(chat)

    @classmethod
    def delete_chat(cls, chat: Chat, user: User) -> ServiceResult[None]:
        """
        Soft delete a chat (is_active=False).

        Direct chats can be deleted by either participant; group chats
        only by an admin.

        Error codes:
            NOT_PARTICIPANT: User is not in this chat
            ADMIN_REQUIRED: Group chat and user is not an admin
        """
        participant = chat.get_active_participant_for_user(user)
        if participant is None:
            return _not_participant()

        if chat.is_group and not participant.is_admin:
            return ServiceResult.failure(
                "Only admins can delete a group chat",
                error_code=ErrorCode.ADMIN_REQUIRED,
            )

        chat.is_active = False
        chat.save(update_fields=["is_active", "updated_at"])

        cls.get_logger().info(f"Soft deleted chat {chat.id} by user {user.id}")
        return ServiceResult.success(None)


class ParticipantService(BaseService):
    """
    Service for group membership operations.

    Methods:
        add_participant: Add (or re-add) a user to a group
        remove_participant: Remove a user (admin, or self-removal)
        leave: User leaves a group
        update_role: Promote/demote a participant (admin only)
    """

    @classmethod
    def _admin_count(cls, chat: Chat) -> int:
        return chat.participants.filter(
            is_active=True, role=ParticipantRole.ADMIN
        ).count()

    @classmethod
    def add_participant(
        cls,
        chat: Chat,
        user: User,
        user_id,
    ) -> ServiceResult[ChatParticipant]:
        """
        Add a user to a group chat.

        Admins can always add; members only when the chat allows member
        invites. A previously removed user's row is reactivated.

        Error codes:
            NOT_GROUP: Direct chats have fixed membership
            NOT_PARTICIPANT: Adding user is not in this chat
            INVITES_DISABLED: Member tried to add while invites are off
            USER_NOT_FOUND: Target user does not exist
            ALREADY_PARTICIPANT: Target is already an active member
        """
        if not chat.is_group:
            return ServiceResult.failure(
                "Cannot add participants to a direct chat",
                error_code=ErrorCode.NOT_GROUP,
            )

        actor = chat.get_active_participant_for_user(user)
        if actor is None:
            return _not_participant()

        if not actor.is_admin and not chat.allow_member_invites:
            return ServiceResult.failure(
                "Only admins can add participants to this group",
                error_code=ErrorCode.INVITES_DISABLED,
            )

        target_user = _get_active_user(user_id)
        if target_user is None:
            return ServiceResult.failure(
                "User not found",
                error_code=ErrorCode.USER_NOT_FOUND,
            )

        existing = chat.participants.filter(user=target_user).first()
        if existing is not None and existing.is_active:
            return ServiceResult.failure(
                "User is already a participant in this chat",
                error_code=ErrorCode.ALREADY_PARTICIPANT,
            )

        with transaction.atomic():
            now = timezone.now()
            if existing is not None:
                existing.is_active = True
                existing.role = ParticipantRole.MEMBER
                existing.joined_at = now
                existing.left_at = None
                existing.unread_count = 0
                existing.last_read_at = now
                existing.save()
                participant = existing
            else:
                participant = ChatParticipant.objects.create(
                    chat=chat,
                    user=target_user,
                    role=ParticipantRole.MEMBER,
                    last_read_at=now,
                )

            MessageService.create_system_message(
                chat, f"{user.username} added {target_user.username}"
            )

        cls.get_logger().info(
            f"Added user {target_user.id} to chat {chat.id} by user {user.id}"
        )
        return ServiceResult.success(participant)

    @classmethod
    def remove_participant(
        cls,
        chat: Chat,
        user: User,
        user_id,
    ) -> ServiceResult[None]:
        """
        Remove a participant from a group chat.

        Admins can remove anyone; any member can remove themselves. The
        last active admin can never be removed.

        Error codes:
            NOT_GROUP, NOT_PARTICIPANT, ADMIN_REQUIRED,
            PARTICIPANT_NOT_FOUND, LAST_ADMIN
        """
        if not chat.is_group:
            return ServiceResult.failure(
                "Cannot remove participants from a direct chat",
                error_code=ErrorCode.NOT_GROUP,
            )

        actor = chat.get_active_participant_for_user(user)
        if actor is None:
            return _not_participant()

        try:
            target_user_id = int(user_id)
        except (TypeError, ValueError):
            return ServiceResult.failure(
                "Invalid user ID",
                error_code=ErrorCode.INVALID_ID,
            )

        is_self = target_user_id == user.id
        if not is_self and not actor.is_admin:
            return ServiceResult.failure(
                "Only admins can remove other participants",
                error_code=ErrorCode.ADMIN_REQUIRED,
            )

        target = (
            chat.participants.select_related("user")
            .filter(user_id=target_user_id, is_active=True)
            .first()
        )
        if target is None:
            return ServiceResult.failure(
                "Participant not found",
                error_code=ErrorCode.PARTICIPANT_NOT_FOUND,
            )

        if target.is_admin and cls._admin_count(chat) <= 1:
            return ServiceResult.failure(
                "Cannot remove the last admin of the group",
                error_code=ErrorCode.LAST_ADMIN,
            )

        reason = "left" if is_self else "removed"
        with transaction.atomic():
            cls._deactivate(target)
            verb = "left the group" if is_self else f"was removed by {user.username}"
            MessageService.create_system_message(chat, f"{target.user.username} {verb}")
            remaining_ids = list(
                chat.participants.filter(is_active=True).values_list("user_id", flat=True)
            )
            ChatEventPublisher.user_left_group(chat, target.user, remaining_ids, reason)

        cls.get_logger().info(
            f"Removed user {target_user_id} from chat {chat.id} by user {user.id} ({reason})"
        )
        return ServiceResult.success(None)

    @classmethod
    def leave(cls, chat: Chat, user: User) -> ServiceResult[None]:
        """
        User leaves a group chat.

        When the last admin leaves, the longest-standing remaining member
        is promoted to admin. When nobody remains the chat is soft deleted.

        Error codes:
            NOT_GROUP: Direct chats are deleted, not left
            NOT_PARTICIPANT: User is not in this chat
        """
        if not chat.is_group:
            return ServiceResult.failure(
                "Direct chats cannot be left; delete the chat instead",
                error_code=ErrorCode.NOT_GROUP,
            )

        participant = chat.get_active_participant_for_user(user)
        if participant is None:
            return _not_participant()

        with transaction.atomic():
            cls._deactivate(participant)

            remaining = list(chat.get_active_participants().select_related("user"))
            if not remaining:
                chat.is_active = False
                chat.save(update_fields=["is_active", "updated_at"])
                cls.get_logger().info(
                    f"Soft deleted chat {chat.id} (no remaining participants)"
                )
            else:
                MessageService.create_system_message(
                    chat, f"{user.username} left the group"
                )
                if participant.is_admin and not any(p.is_admin for p in remaining):
                    successor = remaining[0]
                    successor.role = ParticipantRole.ADMIN
                    successor.save(update_fields=["role"])
                    MessageService.create_system_message(
                        chat, f"{successor.user.username} is now an admin"
                    )
                    cls.get_logger().info(
                        f"Promoted user {successor.user_id} to admin in chat {chat.id} "
                        f"(last admin left)"
                    )

            ChatEventPublisher.user_left_group(
                chat, user, [p.user_id for p in remaining], "left"
            )

        cls.get_logger().info(f"User {user.id} left chat {chat.id}")
        return ServiceResult.success(None)

    @staticmethod
    def _deactivate(participant: ChatParticipant) -> None:
        participant.is_active = False
        participant.left_at = timezone.now()
        participant.unread_count = 0
        participant.save(update_fields=["is_active", "left_at", "unread_count"])

    @classmethod
    def update_role(
        cls,
        chat: Chat,
        user: User,
        user_id,
        role: str,
    ) -> ServiceResult[ChatParticipant]:
        """
        Change a participant's role.

        Error codes:
            NOT_GROUP, NOT_PARTICIPANT, ADMIN_REQUIRED, INVALID_ROLE,
            PARTICIPANT_NOT_FOUND, LAST_ADMIN (demoting the only admin)
        """
        if not chat.is_group:
            return ServiceResult.failure(
                "Direct chats do not have roles",
                error_code=ErrorCode.NOT_GROUP,
            )

        if role not in ParticipantRole.values:
            return ServiceResult.failure(
                f"Invalid role: {role}",
                error_code=ErrorCode.INVALID_ROLE,
            )

        actor = chat.get_active_participant_for_user(user)
        if actor is None:
            return _not_participant()
        if not actor.is_admin:
            return ServiceResult.failure(
                "Only admins can change roles",
                error_code=ErrorCode.ADMIN_REQUIRED,
            )

        try:
            target_user_id = int(user_id)
        except (TypeError, ValueError):
            return ServiceResult.failure(
                "Invalid user ID",
                error_code=ErrorCode.INVALID_ID,
            )

        target = (
            chat.participants.select_related("user")
            .filter(user_id=target_user_id, is_active=True)
            .first()
        )
        if target is None:
            return ServiceResult.failure(
                "Participant not found",
                error_code=ErrorCode.PARTICIPANT_NOT_FOUND,
            )

        if target.role == role:
            return ServiceResult.success(target)

        if target.is_admin and cls._admin_count(chat) <= 1:
            return ServiceResult.failure(
                "Cannot demote the last admin of the group",
                error_code=ErrorCode.LAST_ADMIN,
            )

        old_role = target.role
        target.role = role
        target.save(update_fields=["role"])

        cls.get_logger().info(
            f"Changed role of user {target_user_id} in chat {chat.id} "
            f"from {old_role} to {role} by user {user.id}"
        )
        return ServiceResult.success(target)


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        get_messages: Paginated history; marks the chat read for the caller
        mark_chat_read: Reset the caller's unread counter
        get_message_for_user: Resolve a message id within a chat
        send_message: Send a text/image/file message
        edit_message: Edit own message
        delete_message: Soft delete own message
        create_system_message: Internal notice (group created, member left, ...)
    """

    @classmethod
    def get_messages(
        cls,
        chat: Chat,
        user: User,
        page: int = 1,
        limit: int = 50,
    ) -> ServiceResult[tuple[list[Message], bool]]:
        """
        Get a page of messages, newest first.

        Fetching history counts as reading the chat: other participants'
        messages are marked read and the caller's counter is reset.

        Returns:
            ServiceResult with (messages, has_more)
        """
        participant = chat.get_active_participant_for_user(user)
        if participant is None:
            return _not_participant()

        cls._mark_read(chat, participant)

        queryset = (
            Message.objects.filter(chat=chat, is_deleted=False)
            .select_related("sender", "reply_to__sender")
            .prefetch_related("reactions")
            .order_by("-created_at", "-id")
        )
        offset = (page - 1) * limit
        rows = list(queryset[offset : offset + limit + 1])
        has_more = len(rows) > limit
        return ServiceResult.success((rows[:limit], has_more))

    @classmethod
    def mark_chat_read(cls, chat: Chat, user: User) -> ServiceResult[int]:
        """
        Reset the caller's unread counter.

        Returns:
            ServiceResult with the counter value before the reset
        """
        participant = chat.get_active_participant_for_user(user)
        if participant is None:
            return _not_participant()

        cleared = cls._mark_read(chat, participant)
        cls.get_logger().debug(
            f"User {user.id} marked chat {chat.id} read ({cleared} cleared)"
        )
        return ServiceResult.success(cleared)

    @classmethod
    def _mark_read(cls, chat: Chat, participant: ChatParticipant) -> int:
        now = timezone.now()
        prior = participant.unread_count
        with transaction.atomic():
            Message.objects.filter(chat=chat, is_read=False, is_deleted=False).exclude(
                sender_id=participant.user_id
            ).update(is_read=True, read_at=now)
            participant.unread_count = 0
            participant.last_read_at = now
            participant.last_seen_at = now
            participant.save(update_fields=["unread_count", "last_read_at", "last_seen_at"])
        return prior

    @classmethod
    def get_message_for_user(cls, chat: Chat, message_id) -> ServiceResult[Message]:
        """
        Resolve a non-deleted message in ``chat``.

        Error codes:
            INVALID_ID: message_id is not a valid UUID
            MESSAGE_NOT_FOUND: No such message in this chat
        """
        parsed = parse_uuid(message_id)
        if parsed is None:
            return ServiceResult.failure(
                "Invalid message ID",
                error_code=ErrorCode.INVALID_ID,
            )

        message = (
            Message.objects.select_related("chat", "sender")
            .filter(id=parsed, chat=chat, is_deleted=False)
            .first()
        )
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code=ErrorCode.MESSAGE_NOT_FOUND,
            )
        return ServiceResult.success(message)

    @classmethod
    def _validate_content(cls, content: str, required: bool) -> ServiceResult | None:
        if required and not content:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code=ErrorCode.EMPTY_CONTENT,
            )
        if len(content) > CHAT_CONFIG.MAX_MESSAGE_LENGTH:
            return ServiceResult.failure(
                f"Message content exceeds {CHAT_CONFIG.MAX_MESSAGE_LENGTH} characters",
                error_code=ErrorCode.CONTENT_TOO_LONG,
            )
        return None

    @classmethod
    def send_message(
        cls,
        chat: Chat,
        sender: User,
        content: str,
        message_type: str = MessageType.TEXT,
        reply_to_id=None,
        file_url: str | None = None,
        file_name: str | None = None,
        file_size: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a message to a chat.

        Side effects:
            - Updates the chat's last-message cache and message_count
            - Increments every other active participant's unread counter
            - Publishes new_message to the chat room and
              message_notification to each recipient's user room

        Error codes:
            CHAT_NOT_FOUND: Chat is inactive
            NOT_PARTICIPANT: Sender is not an active participant
            SEND_RESTRICTED: Only admins can send in this group
            FILE_SHARING_DISABLED: Attachment sent while sharing is off
            EMPTY_CONTENT / CONTENT_TOO_LONG: Content validation
            REPLIES_DISABLED / INVALID_REPLY: Reply validation
        """
        if not chat.is_active:
            return ServiceResult.failure(
                "Chat not found",
                error_code=ErrorCode.CHAT_NOT_FOUND,
            )

        participant = chat.get_active_participant_for_user(sender)
        if participant is None:
            return _not_participant()

        if chat.is_group and chat.only_admins_can_send and not participant.is_admin:
            return ServiceResult.failure(
                "Only admins can send messages in this group",
                error_code=ErrorCode.SEND_RESTRICTED,
            )

        if message_type not in (MessageType.TEXT, MessageType.IMAGE, MessageType.FILE):
            return ServiceResult.failure(
                f"Invalid message type: {message_type}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )

        is_attachment = message_type != MessageType.TEXT
        if is_attachment and not chat.allow_file_sharing:
            return ServiceResult.failure(
                "File sharing is disabled in this chat",
                error_code=ErrorCode.FILE_SHARING_DISABLED,
            )

        content = content.strip() if content else ""
        invalid = cls._validate_content(content, required=not is_attachment)
        if invalid:
            return invalid

        reply_to = None
        if reply_to_id:
            if not chat.allow_replies:
                return ServiceResult.failure(
                    "Replies are disabled in this chat",
                    error_code=ErrorCode.REPLIES_DISABLED,
                )
            parsed = parse_uuid(reply_to_id)
            reply_to = (
                Message.objects.select_related("sender")
                .filter(id=parsed, chat=chat, is_deleted=False)
                .first()
                if parsed
                else None
            )
            if reply_to is None:
                return ServiceResult.failure(
                    "Reply target not found in this chat",
                    error_code=ErrorCode.INVALID_REPLY,
                )

        with transaction.atomic():
            message = Message.objects.create(
                chat=chat,
                sender=sender,
                content=content,
                message_type=message_type,
                reply_to=reply_to,
                file_url=file_url if is_attachment else None,
                file_name=file_name if is_attachment else None,
                file_size=file_size if is_attachment else None,
            )
            cls._set_last_message(chat, message, increment=True)

            others = ChatParticipant.objects.filter(chat=chat, is_active=True).exclude(
                user=sender
            )
            others.update(unread_count=F("unread_count") + 1)
            ChatParticipant.objects.filter(pk=participant.pk).update(
                last_read_at=message.created_at,
                last_seen_at=message.created_at,
            )

            recipients = list(others.select_related("user"))
            ChatEventPublisher.new_message(message, recipients)

        cls.get_logger().info(
            f"User {sender.id} sent {message_type} message {message.id} to chat {chat.id}"
        )
        return ServiceResult.success(message)

    @staticmethod
    def _preview(message: Message) -> str:
        if message.content:
            return message.content
        return message.file_name or f"[{message.message_type}]"

    @classmethod
    def _set_last_message(cls, chat: Chat, message: Message, increment: bool) -> None:
        chat.last_message = message
        chat.last_message_content = cls._preview(message)
        chat.last_message_sender = message.sender
        chat.last_message_at = message.created_at
        update_fields = [
            "last_message",
            "last_message_content",
            "last_message_sender",
            "last_message_at",
            "updated_at",
        ]
        if increment:
            chat.message_count = F("message_count") + 1
            update_fields.append("message_count")
        chat.save(update_fields=update_fields)
        if increment:
            chat.refresh_from_db(fields=["message_count"])

    @classmethod
    def _recompute_last_message(cls, chat: Chat) -> None:
        latest = (
            Message.objects.filter(chat=chat, is_deleted=False)
            .select_related("sender")
            .order_by("-created_at", "-id")
            .first()
        )
        if latest is not None:
            cls._set_last_message(chat, latest, increment=False)
            return

        chat.last_message = None
        chat.last_message_content = ""
        chat.last_message_sender = None
        chat.last_message_at = None
        chat.save(
            update_fields=[
                "last_message",
                "last_message_content",
                "last_message_sender",
                "last_message_at",
                "updated_at",
            ]
        )

    @classmethod
    def edit_message(
        cls,
        message: Message,
        user: User,
        content: str,
    ) -> ServiceResult[Message]:
        """
        Edit the content of the caller's own message.

        Error codes:
            MESSAGE_NOT_FOUND: Message is deleted
            NOT_SENDER: Only the author can edit
            EMPTY_CONTENT / CONTENT_TOO_LONG: Content validation
        """
        if message.is_deleted:
            return ServiceResult.failure(
                "Message not found",
                error_code=ErrorCode.MESSAGE_NOT_FOUND,
            )

        if message.sender_id != user.id:
            return ServiceResult.failure(
                "You can only edit your own messages",
                error_code=ErrorCode.NOT_SENDER,
            )

        content = content.strip() if content else ""
        invalid = cls._validate_content(
            content, required=message.message_type == MessageType.TEXT
        )
        if invalid:
            return invalid

        with transaction.atomic():
            message.content = content
            message.edited = True
            message.edited_at = timezone.now()
            message.save(update_fields=["content", "edited", "edited_at", "updated_at"])

            chat = message.chat
            if chat.last_message_id == message.id:
                chat.last_message_content = cls._preview(message)
                chat.save(update_fields=["last_message_content", "updated_at"])

            ChatEventPublisher.message_edited(message)

        cls.get_logger().info(f"User {user.id} edited message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def delete_message(cls, message: Message, user: User) -> ServiceResult[None]:
        """
        Soft delete the caller's own message.

        Decrements the chat's message_count and recomputes the
        last-message cache from the newest remaining message.

        Error codes:
            MESSAGE_NOT_FOUND: Already deleted
            NOT_SENDER: Only the author can delete
        """
        if message.is_deleted:
            return ServiceResult.failure(
                "Message not found",
                error_code=ErrorCode.MESSAGE_NOT_FOUND,
            )

        if message.sender_id != user.id:
            return ServiceResult.failure(
                "You can only delete your own messages",
                error_code=ErrorCode.NOT_SENDER,
            )

        with transaction.atomic():
            message.soft_delete()
            chat = message.chat
            Chat.objects.filter(pk=chat.pk, message_count__gt=0).update(
                message_count=F("message_count") - 1
            )
            chat.refresh_from_db(fields=["message_count"])
            if chat.last_message_id == message.id:
                cls._recompute_last_message(chat)

            ChatEventPublisher.message_deleted(message)

        cls.get_logger().info(
            f"User {user.id} deleted message {message.id} in chat {message.chat_id}"
        )
        return ServiceResult.success(None)

    @classmethod
    def create_system_message(cls, chat: Chat, content: str) -> Message:
        """
        Record a system notice in the chat.

        System messages update the last-message cache but never touch
        unread counters. Must be called inside the caller's transaction.
        """
        message = Message.objects.create(
            chat=chat,
            sender=None,
            content=content,
            message_type=MessageType.SYSTEM,
        )
        cls._set_last_message(chat, message, increment=True)
        return message


class ReactionService(BaseService):
    """
    Service for emoji reactions.

    Methods:
        add_reaction: Add a reaction (unique per user + emoji)
        remove_reaction: Remove the caller's reaction
    """

    @classmethod
    def _check_access(cls, message: Message, user: User) -> ServiceResult | None:
        if message.is_deleted:
            return ServiceResult.failure(
                "Message not found",
                error_code=ErrorCode.MESSAGE_NOT_FOUND,
            )
        if message.chat.get_active_participant_for_user(user) is None:
            return _not_participant()
        return None

    @classmethod
    def add_reaction(
        cls,
        message: Message,
        user: User,
        emoji: str,
    ) -> ServiceResult[MessageReaction]:
        """
        Add an emoji reaction to a message.

        Error codes:
            MESSAGE_NOT_FOUND, NOT_PARTICIPANT, REACTIONS_DISABLED,
            INVALID_EMOJI, REACTION_EXISTS
        """
        denied = cls._check_access(message, user)
        if denied:
            return denied

        if not message.chat.allow_reactions:
            return ServiceResult.failure(
                "Reactions are disabled in this chat",
                error_code=ErrorCode.REACTIONS_DISABLED,
            )

        emoji = emoji.strip() if emoji else ""
        if not emoji or len(emoji) > CHAT_CONFIG.MAX_EMOJI_LENGTH:
            return ServiceResult.failure(
                "Invalid emoji",
                error_code=ErrorCode.INVALID_EMOJI,
            )

        try:
            with transaction.atomic():
                reaction = MessageReaction.objects.create(
                    message=message,
                    user=user,
                    emoji=emoji,
                )
                ChatEventPublisher.reaction_added(reaction, message.chat_id)
        except IntegrityError:
            return ServiceResult.failure(
                "You already reacted with this emoji",
                error_code=ErrorCode.REACTION_EXISTS,
            )

        cls.get_logger().info(
            f"User {user.id} reacted {emoji} to message {message.id}"
        )
        return ServiceResult.success(reaction)

    @classmethod
    def remove_reaction(
        cls,
        message: Message,
        user: User,
        emoji: str,
    ) -> ServiceResult[None]:
        """
        Remove the caller's reaction.

        Error codes:
            MESSAGE_NOT_FOUND, NOT_PARTICIPANT, REACTION_NOT_FOUND
        """
        denied = cls._check_access(message, user)
        if denied:
            return denied

        with transaction.atomic():
            deleted, _ = MessageReaction.objects.filter(
                message=message, user=user, emoji=emoji
            ).delete()
            if not deleted:
                return ServiceResult.failure(
                    "Reaction not found",
                    error_code=ErrorCode.REACTION_NOT_FOUND,
                )
            ChatEventPublisher.reaction_removed(message, user.id, emoji)

        cls.get_logger().info(
            f"User {user.id} removed reaction {emoji} from message {message.id}"
        )
        return ServiceResult.success(None)


class UnreadCountService(BaseService):
    """
    Service for unread counters.

    Methods:
        get_total: Sum of the user's unread counters across active chats
        reconcile: Recompute counters from messages newer than last_read_at
    """

    @classmethod
    def get_total(cls, user: User) -> ServiceResult[dict]:
        """
        Total unread messages for the badge.

        Returns:
            ServiceResult with {"totalUnreadCount": int, "chatCount": int}
        """
        totals = ChatParticipant.objects.filter(
            user=user,
            is_active=True,
            chat__is_active=True,
        ).aggregate(
            total=Sum("unread_count"),
            chats=Count("id", filter=Q(unread_count__gt=0)),
        )
        return ServiceResult.success(
            {
                "totalUnreadCount": totals["total"] or 0,
                "chatCount": totals["chats"] or 0,
            }
        )

    @classmethod
    def reconcile(cls, chat: Chat | None = None) -> ServiceResult[int]:
        """
        Rewrite drifted unread counters.

        The expected counter is the number of non-deleted, non-system
        messages from other users created after the participant's
        last_read_at (or joined_at when never read).

        Returns:
            ServiceResult with the number of corrected participants
        """
        participants = ChatParticipant.objects.filter(
            is_active=True, chat__is_active=True
        )
        if chat is not None:
            participants = participants.filter(chat=chat)

        corrected = 0
        for participant in participants.iterator():
            since = participant.last_read_at or participant.joined_at
            expected = (
                Message.objects.filter(
                    chat_id=participant.chat_id,
                    is_deleted=False,
                    created_at__gt=since,
                )
                .exclude(message_type=MessageType.SYSTEM)
                .exclude(sender_id=participant.user_id)
                .count()
            )
            if expected != participant.unread_count:
                ChatParticipant.objects.filter(pk=participant.pk).update(
                    unread_count=expected
                )
                corrected += 1

        if corrected:
            cls.get_logger().info(f"Reconciled {corrected} unread counters")
        return ServiceResult.success(corrected)
