"""
Serializers for authentication API.

Serializers:
    UserSerializer: Current user (``/api/v1/auth/me/``)
    PublicUserSerializer: Public identity embedded in chat payloads
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for the authenticated user's own account.

    Includes the email, which is never exposed to other participants.
    """

    user_id = serializers.IntegerField(source="id", read_only=True)

    class Meta:
        model = User
        fields = [
            "user_id",
            "email",
            "username",
            "avatar_url",
            "date_joined",
        ]
        read_only_fields = fields


class PublicUserSerializer(serializers.ModelSerializer):
    """Public user identity (id, username, avatar) shown to other traders."""

    user_id = serializers.IntegerField(source="id", read_only=True)

    class Meta:
        model = User
        fields = ["user_id", "username", "avatar_url"]
        read_only_fields = fields
