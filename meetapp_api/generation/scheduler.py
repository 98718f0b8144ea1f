"""Enqueues generation and timeout-check jobs on the worker queue."""

import logging
from typing import Optional

from meetapp_api.celery_client import get_celery_app

logger = logging.getLogger(__name__)

GENERATE_TASK = "meetapp_worker.tasks.generate_meeting_application"
CHECK_TIMEOUT_TASK = "meetapp_worker.tasks.check_message_timeout"


class GenerationScheduler:
    """Thin wrapper over ``send_task`` so callers do not import the worker."""

    def __init__(self, celery_app=None):
        self._celery_app = celery_app

    @property
    def celery_app(self):
        if self._celery_app is None:
            self._celery_app = get_celery_app()
        return self._celery_app

    def start_generation(
        self,
        application_id: int,
        continue_after_callback: bool = False,
        user_id: Optional[int] = None,
    ):
        logger.info(
            f"Enqueueing generation of meeting application {application_id}",
            extra={"meeting_application_id": application_id, "continue_after_callback": continue_after_callback},
        )
        return self.celery_app.send_task(
            GENERATE_TASK,
            args=[application_id, continue_after_callback, user_id],
        )

    def resume_generation(self, application_id: int, user_id: Optional[int] = None):
        return self.start_generation(application_id, continue_after_callback=True, user_id=user_id)

    def schedule_timeout_check(self, application_id: int, delay_seconds: int):
        logger.info(
            f"Scheduling message timeout check for meeting application {application_id} in {delay_seconds}s",
            extra={"meeting_application_id": application_id},
        )
        return self.celery_app.send_task(
            CHECK_TIMEOUT_TASK,
            args=[application_id],
            countdown=delay_seconds,
        )
