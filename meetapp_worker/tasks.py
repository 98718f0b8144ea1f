"""Celery tasks for meeting application generation."""

import logging
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from meetapp_api.errors import GenerationError
from meetapp_api.generation.factory import build_orchestrator, build_resumer
from meetapp_api.settings import get_settings
from meetapp_worker.celery_app import celery_app
from meetapp_worker.db import get_db

logger = logging.getLogger(__name__)
settings = get_settings()


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = next(get_db())
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


def is_retryable(error: Exception) -> bool:
    if isinstance(error, GenerationError):
        return error.retryable
    return True


@celery_app.task(base=DatabaseTask, bind=True, max_retries=settings.generation_max_retries)
def generate_meeting_application(
    self,
    application_id: int,
    continue_after_callback: bool = False,
    user_id: Optional[int] = None,
):
    """Run one generation pass; failures are re-raised for the queue."""
    log_extra = {
        "task": "generate_meeting_application",
        "meeting_application_id": application_id,
        "continue_after_callback": continue_after_callback,
        "user_id": user_id,
    }

    try:
        outcome = build_orchestrator(self.db).generate(
            application_id,
            continue_after_callback=continue_after_callback,
            user_id=user_id,
        )
    except Exception as e:
        logger.error(f"Meeting application generation task failed: {e}", extra=log_extra)
        if is_retryable(e) and self.request.retries < self.max_retries:
            raise self.retry(exc=e, countdown=settings.generation_retry_delay_seconds)
        raise

    logger.info(f"Meeting application generation task finished: {outcome.value}", extra=log_extra)
    return outcome.value


@celery_app.task(base=DatabaseTask, bind=True)
def check_message_timeout(self, application_id: int):
    """Expire overdue message requests and resume generation when nothing is pending."""
    log_extra = {"task": "check_message_timeout", "meeting_application_id": application_id}
    try:
        return build_resumer(self.db).check_timeouts(application_id)
    except Exception as e:
        logger.error(f"Message timeout check failed: {e}", exc_info=True, extra=log_extra)
        return False
