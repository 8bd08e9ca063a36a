"""
Small, dependency-free helper functions.

Helpers:
    parse_uuid: Parse a UUID string, returning None when malformed
"""

from __future__ import annotations

import uuid
from typing import Any


def parse_uuid(value: Any) -> uuid.UUID | None:
    """
    Parse a UUID from a string (or pass a UUID through).

    Args:
        value: Candidate identifier from a URL, JSON body or socket frame

    Returns:
        The parsed UUID, or None if the value is not a valid UUID

    Example:
        chat_id = parse_uuid(request_kwargs["chat_pk"])
        if chat_id is None:
            return invalid_id_response()
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None
