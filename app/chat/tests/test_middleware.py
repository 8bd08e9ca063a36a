"""
Tests for WebSocket JWT authentication middleware.

Verifies:
- Token extraction from query string and subprotocol
- Valid tokens resolve to the user; bad tokens resolve to AnonymousUser
- The middleware sets scope["user"] for the inner application
"""

from asgiref.sync import async_to_sync
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.middleware import JWTAuthMiddleware, get_token_from_scope, get_user_from_token


class TestGetTokenFromScope:
    def test_query_string(self):
        scope = {"query_string": b"token=abc.def.ghi"}

        assert get_token_from_scope(scope) == "abc.def.ghi"

    def test_subprotocol_pair(self):
        scope = {"query_string": b"", "subprotocols": ["jwt", "abc.def.ghi"]}

        assert get_token_from_scope(scope) == "abc.def.ghi"

    def test_query_string_wins(self):
        scope = {"query_string": b"token=from-query", "subprotocols": ["jwt", "from-proto"]}

        assert get_token_from_scope(scope) == "from-query"

    def test_no_token(self):
        assert get_token_from_scope({"query_string": b"", "subprotocols": ["graphql"]}) is None


class TestGetUserFromToken:
    def test_valid_token(self, db):
        user = UserFactory()
        token = str(AccessToken.for_user(user))

        assert async_to_sync(get_user_from_token)(token) == user

    def test_garbage_token(self, db):
        result = async_to_sync(get_user_from_token)("not-a-jwt")

        assert isinstance(result, AnonymousUser)

    def test_deleted_user(self, db):
        user = UserFactory()
        token = str(AccessToken.for_user(user))
        user.delete()

        result = async_to_sync(get_user_from_token)(token)

        assert isinstance(result, AnonymousUser)

    def test_inactive_user(self, db):
        user = UserFactory()
        token = str(AccessToken.for_user(user))
        user.is_active = False
        user.save()

        result = async_to_sync(get_user_from_token)(token)

        assert isinstance(result, AnonymousUser)


class TestJWTAuthMiddleware:
    def _call(self, scope):
        seen = {}

        async def inner(scope, receive, send):
            seen["user"] = scope["user"]

        async def noop(*args):
            return None

        async_to_sync(JWTAuthMiddleware(inner))(scope, noop, noop)
        return seen["user"]

    def test_sets_user_from_query_token(self, db):
        user = UserFactory()
        token = str(AccessToken.for_user(user))

        assert self._call({"type": "websocket", "query_string": f"token={token}".encode()}) == user

    def test_missing_token_is_anonymous(self, db):
        result = self._call({"type": "websocket", "query_string": b""})

        assert isinstance(result, AnonymousUser)
