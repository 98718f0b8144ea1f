"""Shared Celery client for enqueueing worker tasks from the API side."""

import logging
from typing import Optional

from celery import Celery

from meetapp_api.settings import get_settings

logger = logging.getLogger(__name__)

_celery_app: Optional[Celery] = None


def get_celery_app() -> Celery:
    """
    Get or create singleton Celery app instance.

    Configured to match the worker: JSON serializer, UTC timezone, Redis
    broker and backend. Tasks are sent by name so the API never imports
    worker code.
    """
    global _celery_app

    if _celery_app is None:
        settings = get_settings()

        _celery_app = Celery("meetapp_api")
        _celery_app.conf.update(
            broker_url=settings.redis_url,
            result_backend=settings.redis_url,
            task_serializer="json",
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
            task_track_started=True,
            task_time_limit=30 * 60,  # 30 minutes (matches worker config)
            task_soft_time_limit=25 * 60,  # 25 minutes (matches worker config)
        )

        logger.info("Initialized Celery client for meetapp_api")

    return _celery_app
