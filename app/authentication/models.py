"""
Authentication models.

This module defines the marketplace user account:
- User: Custom user model with email login and a public username

Related files:
    - managers.py: Custom user manager for email-based creation
    - serializers.py: Public user shapes embedded in chat payloads

Security:
    - User passwords hashed with Django's password hashers
    - Session/token issuance is handled by SimpleJWT
"""

import re

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.core.exceptions import ValidationError
from django.db import models

from authentication.managers import UserManager


def validate_username_format(value):
    """Validate username format: 3-30 chars, alphanumeric + _ + -."""
    if not re.match(r"^[a-zA-Z0-9_-]{3,30}$", value):
        raise ValidationError(
            "Username must be 3-30 characters and contain only "
            "letters, numbers, underscores, and hyphens."
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the login identifier.

    The public identity shown in chats is ``username`` plus the optional
    ``avatar_url``; direct chats derive their display name and avatar
    from the counterpart's values.

    Fields:
        email: Login identifier, unique
        username: Public handle, unique, shown to other traders
        avatar_url: Optional avatar image URL
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        last_active_at: Last authenticated realtime activity
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Usage:
        user = User.objects.create_user(
            email="trader@example.com",
            username="trader",
            password="securepassword",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (login identifier)",
    )

    username = models.CharField(
        max_length=30,
        unique=True,
        validators=[validate_username_format],
        help_text="Public username (3-30 chars, alphanumeric + _ + -)",
    )

    avatar_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="URL of the user's avatar image",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    last_active_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user last opened a realtime connection",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["username"]

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.username or self.email
