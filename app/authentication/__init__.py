"""
Authentication application.

Provides the trader account model and JWT token endpoints used by both the
REST API and the realtime socket.

Key components:
    - User model: email login with a public username and avatar
    - MeView: the authenticated user's own profile

Usage:
    from authentication.models import User
"""
