"""
Celery application for the BloxMarket chat backend.

Background jobs (see chat.tasks):
    - reconcile_unread_counts: Recompute unread counters from messages
    - purge_deleted_messages: Hard-delete soft-deleted messages past retention

The beat schedule is declared in settings.CELERY_BEAT_SCHEDULE and stored
by django-celery-beat's DatabaseScheduler.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("bloxmarket")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
