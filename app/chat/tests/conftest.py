"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures for the people trading in a chat
- Chat fixtures (direct and group) built through the service layer
- API client helpers for authenticated requests
- A capture of realtime events published after commit

Usage:
    def test_example(group_chat, alice_client):
        response = alice_client.get(f"/api/v1/chats/{group_chat.id}/")
        assert response.status_code == 200
"""

from unittest.mock import patch

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.realtime import ChatEventPublisher
from chat.services import ChatService


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    """Seller who creates most test chats."""
    return UserFactory(username="alice")


@pytest.fixture
def bob(db):
    """Buyer; counterpart in the direct chat."""
    return UserFactory(username="bob")


@pytest.fixture
def carol(db):
    """Second group member."""
    return UserFactory(username="carol")


@pytest.fixture
def outsider(db):
    """User who is not a participant in any test chat."""
    return UserFactory(username="outsider")


# =============================================================================
# Chat Fixtures
# =============================================================================


@pytest.fixture
def direct_chat(alice, bob):
    """Direct chat between alice and bob."""
    chat, _ = ChatService.find_or_create_direct(alice, bob.id).data
    return chat


@pytest.fixture
def group_chat(alice, bob, carol):
    """
    Group chat "Trading Hub".

    alice is the only admin; bob and carol are members. Contains the
    "created the group" system message.
    """
    return ChatService.create_group(alice, "Trading Hub", [bob.id, carol.id]).data


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def client_factory(db):
    """
    Factory for API clients authenticated with a JWT access token.

    Usage:
        def test_example(client_factory, bob):
            client = client_factory(bob)
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def alice_client(client_factory, alice):
    return client_factory(alice)


@pytest.fixture
def bob_client(client_factory, bob):
    return client_factory(bob)


@pytest.fixture
def outsider_client(client_factory, outsider):
    return client_factory(outsider)


# =============================================================================
# Realtime Fixtures
# =============================================================================


@pytest.fixture
def published_events(django_capture_on_commit_callbacks):
    """
    Record events handed to the channel layer.

    Yields a list of (group, event, data) tuples. Events are published
    from transaction.on_commit callbacks, which only run for service
    calls made inside ``capture()``.

    Usage:
        def test_example(published_events, direct_chat, alice):
            with published_events.capture():
                MessageService.send_message(direct_chat, alice, "hi")
            assert published_events[0][1] == "new_message"
    """

    class EventLog(list):
        def capture(self):
            return django_capture_on_commit_callbacks(execute=True)

    log = EventLog()

    def _record(group, event, data):
        log.append((group, event, data))

    with patch.object(ChatEventPublisher, "_group_send", side_effect=_record):
        yield log
