"""
Tests for the chat WebSocket consumer.

Exercises ChatConsumer through channels' WebsocketCommunicator against the
in-memory channel layer. Database lookups made by the consumer
(_is_active_participant, _touch_last_active) are patched, so these tests
run without a database.

Verifies:
- Anonymous sockets are closed with 4001
- join_chat requires membership; joined sockets receive room events
- Per-user events arrive without joining any chat
- Typing indicators reach other sockets but not the sender
- Invalid frames produce error frames and keep the socket open
"""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser

from chat.consumers import ChatConsumer

CHAT_ID = uuid.uuid4()


def make_user(user_id, username):
    return SimpleNamespace(id=user_id, pk=user_id, username=username, is_authenticated=True)


ALICE = make_user(1, "alice")
BOB = make_user(2, "bob")


def communicator_for(user, subprotocols=None):
    communicator = WebsocketCommunicator(
        ChatConsumer.as_asgi(), "/ws/chat/", subprotocols=subprotocols
    )
    communicator.scope["user"] = user
    return communicator


@pytest.fixture(autouse=True)
def consumer_db_calls():
    """Patch the consumer's database helpers; membership defaults to True."""
    with (
        patch.object(
            ChatConsumer, "_is_active_participant", new_callable=AsyncMock
        ) as is_member,
        patch.object(ChatConsumer, "_touch_last_active", new_callable=AsyncMock) as touch,
    ):
        is_member.return_value = True
        yield SimpleNamespace(is_member=is_member, touch=touch)


def run(scenario):
    """Run an async scenario on a fresh event loop with a clean channel layer."""

    async def wrapper():
        await get_channel_layer().flush()
        await scenario()

    async_to_sync(wrapper)()


# =============================================================================
# Connection
# =============================================================================


class TestConnect:
    def test_anonymous_rejected_with_4001(self):
        async def scenario():
            communicator = communicator_for(AnonymousUser())
            connected, code = await communicator.connect()
            assert connected is False
            assert code == 4001

        run(scenario)

    def test_authenticated_accepted(self, consumer_db_calls):
        async def scenario():
            communicator = communicator_for(ALICE)
            connected, _ = await communicator.connect()
            assert connected is True
            await communicator.disconnect()

        run(scenario)
        consumer_db_calls.touch.assert_awaited_once()

    def test_jwt_subprotocol_echoed(self):
        async def scenario():
            communicator = communicator_for(ALICE, subprotocols=["jwt", "token-value"])
            connected, subprotocol = await communicator.connect()
            assert connected is True
            assert subprotocol == "jwt"
            await communicator.disconnect()

        run(scenario)

    def test_user_group_event_delivered_without_join(self):
        async def scenario():
            communicator = communicator_for(BOB)
            await communicator.connect()

            await get_channel_layer().group_send(
                "user_2",
                {
                    "type": "chat.event",
                    "event": "message_notification",
                    "data": {"chat_id": str(CHAT_ID), "unread_count": 1},
                },
            )

            frame = await communicator.receive_json_from()
            assert frame == {
                "type": "message_notification",
                "data": {"chat_id": str(CHAT_ID), "unread_count": 1},
            }
            await communicator.disconnect()

        run(scenario)


# =============================================================================
# Rooms
# =============================================================================


class TestRooms:
    def test_joined_socket_receives_room_events(self):
        async def scenario():
            communicator = communicator_for(ALICE)
            await communicator.connect()
            await communicator.send_json_to({"type": "join_chat", "chat_id": str(CHAT_ID)})
            assert await communicator.receive_nothing()

            await get_channel_layer().group_send(
                f"chat_{CHAT_ID}",
                {
                    "type": "chat.event",
                    "event": "new_message",
                    "data": {"message_id": "m1", "content": "hello"},
                },
            )

            frame = await communicator.receive_json_from()
            assert frame["type"] == "new_message"
            assert frame["data"]["content"] == "hello"
            await communicator.disconnect()

        run(scenario)

    def test_join_denied_for_non_participant(self, consumer_db_calls):
        consumer_db_calls.is_member.return_value = False

        async def scenario():
            communicator = communicator_for(ALICE)
            await communicator.connect()
            await communicator.send_json_to({"type": "join_chat", "chat_id": str(CHAT_ID)})

            frame = await communicator.receive_json_from()
            assert frame["type"] == "error"

            await get_channel_layer().group_send(
                f"chat_{CHAT_ID}",
                {"type": "chat.event", "event": "new_message", "data": {}},
            )
            assert await communicator.receive_nothing()
            await communicator.disconnect()

        run(scenario)

    def test_leave_stops_room_events(self):
        async def scenario():
            communicator = communicator_for(ALICE)
            await communicator.connect()
            await communicator.send_json_to({"type": "join_chat", "chat_id": str(CHAT_ID)})
            await communicator.send_json_to({"type": "leave_chat", "chat_id": str(CHAT_ID)})
            assert await communicator.receive_nothing()

            await get_channel_layer().group_send(
                f"chat_{CHAT_ID}",
                {"type": "chat.event", "event": "new_message", "data": {}},
            )
            assert await communicator.receive_nothing()
            await communicator.disconnect()

        run(scenario)


# =============================================================================
# Typing
# =============================================================================


class TestTyping:
    def test_typing_reaches_others_but_not_sender(self):
        async def scenario():
            alice = communicator_for(ALICE)
            bob = communicator_for(BOB)
            await alice.connect()
            await bob.connect()
            for communicator in (alice, bob):
                await communicator.send_json_to(
                    {"type": "join_chat", "chat_id": str(CHAT_ID)}
                )
            assert await alice.receive_nothing()

            await alice.send_json_to({"type": "typing_start", "chat_id": str(CHAT_ID)})

            frame = await bob.receive_json_from()
            assert frame == {
                "type": "user_typing",
                "data": {"chat_id": str(CHAT_ID), "user_id": 1, "username": "alice"},
            }
            assert await alice.receive_nothing()

            await alice.send_json_to({"type": "typing_stop", "chat_id": str(CHAT_ID)})
            frame = await bob.receive_json_from()
            assert frame["type"] == "user_stopped_typing"

            await alice.disconnect()
            await bob.disconnect()

        run(scenario)

    def test_typing_requires_join(self):
        async def scenario():
            communicator = communicator_for(ALICE)
            await communicator.connect()
            await communicator.send_json_to(
                {"type": "typing_start", "chat_id": str(CHAT_ID)}
            )

            frame = await communicator.receive_json_from()
            assert frame["type"] == "error"
            await communicator.disconnect()

        run(scenario)


# =============================================================================
# Invalid Frames
# =============================================================================


class TestInvalidFrames:
    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            '"just a string"',
            '{"type": "dance", "chat_id": "x"}',
            '{"type": "join_chat"}',
            '{"type": "join_chat", "chat_id": "not-a-uuid"}',
        ],
    )
    def test_error_frame_and_socket_stays_open(self, payload):
        async def scenario():
            communicator = communicator_for(ALICE)
            await communicator.connect()
            await communicator.send_to(text_data=payload)

            frame = await communicator.receive_json_from()
            assert frame["type"] == "error"
            assert frame["data"]["message"]

            await communicator.send_json_to({"type": "join_chat", "chat_id": str(CHAT_ID)})
            assert await communicator.receive_nothing()
            await communicator.disconnect()

        run(scenario)
