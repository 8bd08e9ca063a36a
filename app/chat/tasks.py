"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Unread counter reconciliation
- Purging soft-deleted messages after retention

Related files:
    - services.py: UnreadCountService
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import reconcile_unread_counts

    reconcile_unread_counts.delay()
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

from chat.constants import CHAT_CONFIG

logger = logging.getLogger(__name__)


@shared_task
def reconcile_unread_counts(chat_id: str | None = None) -> int:
    """
    Rewrite unread counters that drifted from the message log.

    Runs every 15 minutes. Counters drift when a message is deleted after
    it was counted, or when a realtime increment raced a read.

    Args:
        chat_id: Limit reconciliation to one chat (all chats when None)

    Returns:
        Number of corrected participant counters
    """
    from chat.models import Chat
    from chat.services import UnreadCountService

    chat = None
    if chat_id is not None:
        chat = Chat.objects.filter(id=chat_id).first()
        if chat is None:
            logger.warning(f"reconcile_unread_counts: chat {chat_id} not found")
            return 0

    result = UnreadCountService.reconcile(chat=chat)
    return result.data


@shared_task
def purge_deleted_messages(days: int | None = None) -> int:
    """
    Hard delete messages soft-deleted more than ``days`` ago.

    Args:
        days: Retention window (default CHAT_CONFIG.DELETED_MESSAGE_RETENTION_DAYS)

    Returns:
        Number of messages purged
    """
    from chat.models import Message

    if days is None:
        days = CHAT_CONFIG.DELETED_MESSAGE_RETENTION_DAYS

    cutoff = timezone.now() - timedelta(days=days)
    _, deleted_by_model = Message.objects.filter(
        is_deleted=True,
        deleted_at__lt=cutoff,
    ).delete()
    purged = deleted_by_model.get("chat.Message", 0)

    if purged:
        logger.info(f"Purged {purged} deleted messages older than {days} days")
    return purged
