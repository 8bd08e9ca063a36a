"""
Tests for chat API views.

This module tests the chat REST endpoints:
- ChatViewSet: list, direct, group, detail, update, delete, read, leave
- ParticipantViewSet: add, role change, remove
- MessageViewSet: history, send, edit, delete, reactions

Test Organization:
    - Each ViewSet has its own test class group
    - Each test validates ONE specific HTTP interaction
    - Tests follow pattern: test_<method>_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable HTTP behavior:
    - Response status codes and {"error", "error_code"} bodies
    - Response body structure
    - Authentication enforcement
"""

import uuid
from urllib.parse import quote

import pytest
from rest_framework import status

from chat.models import ChatParticipant, Message, ParticipantRole
from chat.services import MessageService, ParticipantService, ReactionService


# =============================================================================
# URL Helpers
# =============================================================================


CHATS_URL = "/api/v1/chats/"
DIRECT_URL = f"{CHATS_URL}direct/"
GROUP_URL = f"{CHATS_URL}group/"


def chat_url(chat_id):
    return f"{CHATS_URL}{chat_id}/"


def read_url(chat_id):
    return f"{CHATS_URL}{chat_id}/read/"


def leave_url(chat_id):
    return f"{CHATS_URL}{chat_id}/leave/"


def participants_url(chat_id):
    return f"{CHATS_URL}{chat_id}/participants/"


def participant_url(chat_id, user_id):
    return f"{CHATS_URL}{chat_id}/participants/{user_id}/"


def messages_url(chat_id):
    return f"{CHATS_URL}{chat_id}/messages/"


def message_url(chat_id, message_id):
    return f"{CHATS_URL}{chat_id}/messages/{message_id}/"


def reactions_url(chat_id, message_id):
    return f"{CHATS_URL}{chat_id}/messages/{message_id}/reactions/"


def reaction_url(chat_id, message_id, emoji):
    return f"{CHATS_URL}{chat_id}/messages/{message_id}/reactions/{quote(emoji)}/"


# =============================================================================
# ChatViewSet
# =============================================================================


class TestChatList:
    """
    Tests for GET /api/v1/chats/.

    Verifies:
    - Envelope with chats and pagination
    - Direct chats show the counterpart as name
    - Unread count of the viewer
    - Authentication requirement
    """

    def test_returns_chats_with_pagination(self, alice_client, direct_chat, group_chat):
        response = alice_client.get(CHATS_URL)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert {c["chat_id"] for c in body["chats"]} == {
            str(direct_chat.id),
            str(group_chat.id),
        }
        assert body["pagination"] == {"page": 1, "limit": 20, "has_more": False}

    def test_direct_chat_named_after_counterpart(self, alice_client, bob, direct_chat):
        """
        Direct chats have no name of their own.

        Why it matters: The list must show who the conversation is with.
        """
        response = alice_client.get(CHATS_URL)

        entry = response.json()["chats"][0]
        assert entry["chat_type"] == "direct"
        assert entry["name"] == "bob"
        assert entry["avatar_url"] == bob.avatar_url

    def test_shows_unread_count_and_last_message(self, alice, bob_client, direct_chat):
        MessageService.send_message(direct_chat, alice, "still selling?")

        entry = bob_client.get(CHATS_URL).json()["chats"][0]

        assert entry["unread_count"] == 1
        assert entry["participants_count"] == 2
        assert entry["last_message"]["content"] == "still selling?"
        assert entry["last_message"]["sender_username"] == "alice"

    def test_limit_query_param(self, alice_client, direct_chat, group_chat):
        body = alice_client.get(CHATS_URL, {"limit": 1}).json()

        assert len(body["chats"]) == 1
        assert body["pagination"]["has_more"] is True

    @pytest.mark.parametrize("page", ["100000000000000000000", "-3", "abc"])
    def test_out_of_range_page_falls_back_to_first(self, alice_client, direct_chat, page):
        response = alice_client.get(CHATS_URL, {"page": page})

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["pagination"]["page"] == 1
        assert len(body["chats"]) == 1

    def test_page_past_the_end_is_empty(self, alice_client, direct_chat):
        body = alice_client.get(CHATS_URL, {"page": 50}).json()

        assert body["chats"] == []
        assert body["pagination"] == {"page": 50, "limit": 20, "has_more": False}

    def test_requires_authentication(self, db, api_client):
        response = api_client.get(CHATS_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestDirectChatCreate:
    def test_creates_direct_chat_201(self, alice_client, bob):
        response = alice_client.post(DIRECT_URL, {"otherUserId": bob.id}, format="json")

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["chat_type"] == "direct"
        assert {p["username"] for p in body["participants"]} == {"alice", "bob"}
        assert body["created_by"]["username"] == "alice"

    def test_existing_direct_chat_200(self, bob_client, alice, direct_chat):
        """
        Calling again (from either side) returns the same chat.

        Why it matters: Two users must never end up with two direct chats.
        """
        response = bob_client.post(DIRECT_URL, {"otherUserId": alice.id}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["chat_id"] == str(direct_chat.id)

    def test_self_chat_400(self, alice_client, alice):
        response = alice_client.post(DIRECT_URL, {"otherUserId": alice.id}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "SAME_USER"

    def test_unknown_user_404(self, alice_client):
        response = alice_client.post(DIRECT_URL, {"otherUserId": 999999}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_missing_user_id_validation_error(self, alice_client):
        response = alice_client.post(DIRECT_URL, {}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert "otherUserId" in body["errors"]


class TestGroupChatCreate:
    def test_creates_group_201(self, alice_client, bob, carol):
        response = alice_client.post(
            GROUP_URL,
            {
                "name": "Trading Hub",
                "participantIds": [bob.id, carol.id],
                "description": "Pets and limiteds",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["name"] == "Trading Hub"
        assert body["description"] == "Pets and limiteds"
        assert len(body["participants"]) == 3
        assert body["settings"]["allow_reactions"] is True

    def test_missing_name_400(self, alice_client, bob, carol):
        response = alice_client.post(
            GROUP_URL, {"participantIds": [bob.id, carol.id]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "NAME_REQUIRED"

    def test_too_few_participants_400(self, alice_client, bob):
        response = alice_client.post(
            GROUP_URL, {"name": "Duo", "participantIds": [bob.id]}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "NOT_ENOUGH_PARTICIPANTS"


class TestChatDetail:
    def test_participant_gets_detail(self, alice_client, group_chat):
        response = alice_client.get(chat_url(group_chat.id))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["chat_id"] == str(group_chat.id)
        roles = {p["username"]: p["role"] for p in body["participants"]}
        assert roles == {"alice": "admin", "bob": "member", "carol": "member"}

    def test_malformed_id_400(self, alice_client):
        response = alice_client.get(chat_url("not-a-uuid"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_ID"

    def test_unknown_chat_404(self, alice_client):
        response = alice_client.get(chat_url(uuid.uuid4()))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"error": "Chat not found", "error_code": "CHAT_NOT_FOUND"}

    def test_non_participant_403(self, outsider_client, group_chat):
        response = outsider_client.get(chat_url(group_chat.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_PARTICIPANT"


class TestChatUpdate:
    def test_admin_updates_group(self, alice_client, group_chat):
        response = alice_client.patch(
            chat_url(group_chat.id),
            {"name": "Legendary Pets", "settings": {"allow_member_invites": True}},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["name"] == "Legendary Pets"
        assert body["settings"]["allow_member_invites"] is True

    def test_member_update_403(self, bob_client, group_chat):
        response = bob_client.patch(chat_url(group_chat.id), {"name": "x"}, format="json")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "ADMIN_REQUIRED"

    def test_direct_chat_update_400(self, alice_client, direct_chat):
        response = alice_client.patch(chat_url(direct_chat.id), {"name": "x"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "NOT_GROUP"


class TestChatDeleteReadLeave:
    def test_delete_direct_chat_204(self, bob_client, direct_chat):
        response = bob_client.delete(chat_url(direct_chat.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        direct_chat.refresh_from_db()
        assert direct_chat.is_active is False

    def test_member_cannot_delete_group(self, bob_client, group_chat):
        response = bob_client.delete(chat_url(group_chat.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_mark_read(self, alice, bob_client, direct_chat):
        MessageService.send_message(direct_chat, alice, "one")
        MessageService.send_message(direct_chat, alice, "two")

        response = bob_client.post(read_url(direct_chat.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"chat_id": str(direct_chat.id), "cleared": 2}

    def test_leave_group(self, bob_client, bob, group_chat):
        response = bob_client.post(leave_url(group_chat.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "left"
        assert not ChatParticipant.objects.get(chat=group_chat, user=bob).is_active

    def test_leave_twice_403(self, bob_client, group_chat):
        bob_client.post(leave_url(group_chat.id))

        response = bob_client.post(leave_url(group_chat.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN


# =============================================================================
# ParticipantViewSet
# =============================================================================


class TestParticipants:
    def test_admin_adds_participant_201(self, alice_client, outsider, group_chat):
        response = alice_client.post(
            participants_url(group_chat.id), {"userId": outsider.id}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["user_id"] == outsider.id
        assert response.json()["role"] == "member"

    def test_member_add_when_invites_disabled_403(self, bob_client, outsider, group_chat):
        response = bob_client.post(
            participants_url(group_chat.id), {"userId": outsider.id}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "INVITES_DISABLED"

    def test_promote_participant(self, alice_client, bob, group_chat):
        response = alice_client.patch(
            participant_url(group_chat.id, bob.id), {"role": "admin"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["role"] == ParticipantRole.ADMIN

    def test_invalid_role_400(self, alice_client, bob, group_chat):
        response = alice_client.patch(
            participant_url(group_chat.id, bob.id), {"role": "owner"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_ROLE"

    def test_remove_participant_204(self, alice_client, bob, group_chat):
        response = alice_client.delete(participant_url(group_chat.id, bob.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT

    def test_remove_second_admin_204(self, alice, alice_client, bob, group_chat):
        ParticipantService.update_role(group_chat, alice, bob.id, ParticipantRole.ADMIN)

        response = alice_client.delete(participant_url(group_chat.id, bob.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not ChatParticipant.objects.get(chat=group_chat, user=bob).is_active

    def test_remove_last_admin_400(self, alice_client, alice, group_chat):
        response = alice_client.delete(participant_url(group_chat.id, alice.id))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "LAST_ADMIN"

    def test_remove_unknown_participant_404(self, alice_client, outsider, group_chat):
        response = alice_client.delete(participant_url(group_chat.id, outsider.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND


# =============================================================================
# MessageViewSet
# =============================================================================


class TestMessageList:
    def test_returns_messages_newest_first(self, alice, bob_client, direct_chat):
        MessageService.send_message(direct_chat, alice, "first")
        MessageService.send_message(direct_chat, alice, "second")

        response = bob_client.get(messages_url(direct_chat.id))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert [m["content"] for m in body["messages"]] == ["second", "first"]
        assert body["pagination"] == {"page": 1, "limit": 50, "has_more": False}
        assert body["messages"][0]["sender"]["username"] == "alice"

    def test_listing_clears_unread(self, alice, bob, bob_client, direct_chat):
        MessageService.send_message(direct_chat, alice, "first")

        bob_client.get(messages_url(direct_chat.id))

        assert ChatParticipant.objects.get(chat=direct_chat, user=bob).unread_count == 0

    def test_huge_page_falls_back_to_first(self, alice, bob_client, direct_chat):
        MessageService.send_message(direct_chat, alice, "first")

        response = bob_client.get(
            messages_url(direct_chat.id), {"page": "100000000000000000000"}
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["pagination"]["page"] == 1
        assert [m["content"] for m in body["messages"]] == ["first"]

    def test_non_participant_403(self, outsider_client, direct_chat):
        response = outsider_client.get(messages_url(direct_chat.id))

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestMessageSend:
    def test_send_text_201(self, alice_client, direct_chat):
        response = alice_client.post(
            messages_url(direct_chat.id), {"content": "hello"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["content"] == "hello"
        assert body["message_type"] == "text"
        assert body["chat_id"] == str(direct_chat.id)
        assert body["edited"] is False
        assert body["reactions"] == []

    def test_send_reply_includes_preview(self, alice, bob_client, direct_chat):
        original = MessageService.send_message(direct_chat, alice, "Shadow Dragon for sale").data

        response = bob_client.post(
            messages_url(direct_chat.id),
            {"content": "how much?", "replyTo": str(original.id)},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["reply_to"] == {
            "message_id": str(original.id),
            "content": "Shadow Dragon for sale",
            "sender_username": "alice",
        }

    def test_empty_content_400(self, alice_client, direct_chat):
        response = alice_client.post(
            messages_url(direct_chat.id), {"content": "   "}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "EMPTY_CONTENT"

    def test_too_long_400(self, alice_client, direct_chat):
        response = alice_client.post(
            messages_url(direct_chat.id), {"content": "x" * 2001}, format="json"
        )

        assert response.json()["error_code"] == "CONTENT_TOO_LONG"

    def test_image_requires_file_url(self, alice_client, direct_chat):
        response = alice_client.post(
            messages_url(direct_chat.id), {"type": "image"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_send_image(self, alice_client, direct_chat):
        response = alice_client.post(
            messages_url(direct_chat.id),
            {
                "type": "image",
                "fileUrl": "https://cdn.example.com/pet.png",
                "fileName": "pet.png",
                "fileSize": 2048,
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["file_size"] == 2048

    def test_restricted_group_403(self, alice, bob_client, group_chat):
        group_chat.only_admins_can_send = True
        group_chat.save()

        response = bob_client.post(
            messages_url(group_chat.id), {"content": "hi"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "SEND_RESTRICTED"


class TestMessageEditDelete:
    def test_edit_own_message(self, alice, alice_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "typo").data

        response = alice_client.patch(
            message_url(direct_chat.id, message.id), {"content": "fixed"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["content"] == "fixed"
        assert response.json()["edited"] is True

    def test_edit_others_message_403(self, alice, bob_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "mine").data

        response = bob_client.patch(
            message_url(direct_chat.id, message.id), {"content": "x"}, format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error_code"] == "NOT_SENDER"

    def test_delete_own_message_204(self, alice, alice_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "oops").data

        response = alice_client.delete(message_url(direct_chat.id, message.id))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert Message.objects.get(pk=message.pk).is_deleted

    def test_unknown_message_404(self, alice_client, direct_chat):
        response = alice_client.delete(message_url(direct_chat.id, uuid.uuid4()))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error_code"] == "MESSAGE_NOT_FOUND"

    def test_malformed_message_id_400(self, alice_client, direct_chat):
        response = alice_client.delete(message_url(direct_chat.id, "123"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "INVALID_ID"


class TestReactions:
    def test_add_reaction_201(self, alice, bob_client, bob, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "sold!").data

        response = bob_client.post(
            reactions_url(direct_chat.id, message.id), {"emoji": "🎉"}, format="json"
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["user_id"] == bob.id
        assert response.json()["emoji"] == "🎉"

    def test_duplicate_reaction_400(self, alice, bob, bob_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "sold!").data
        ReactionService.add_reaction(message, bob, "🎉")

        response = bob_client.post(
            reactions_url(direct_chat.id, message.id), {"emoji": "🎉"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error_code"] == "REACTION_EXISTS"

    def test_remove_reaction_204(self, alice, bob, bob_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "sold!").data
        ReactionService.add_reaction(message, bob, "🎉")

        response = bob_client.delete(reaction_url(direct_chat.id, message.id, "🎉"))

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not message.reactions.exists()

    def test_remove_missing_reaction_404(self, alice, bob_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "sold!").data

        response = bob_client.delete(reaction_url(direct_chat.id, message.id, "🎉"))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_reactions_listed_on_message(self, alice, bob, bob_client, direct_chat):
        message = MessageService.send_message(direct_chat, alice, "sold!").data
        ReactionService.add_reaction(message, bob, "🔥")

        body = bob_client.get(messages_url(direct_chat.id)).json()

        assert body["messages"][0]["reactions"][0]["emoji"] == "🔥"
