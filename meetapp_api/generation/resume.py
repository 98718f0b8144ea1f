"""Resumption of suspended generations: registry callbacks and request timeouts."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from meetapp_api.generation.scheduler import GenerationScheduler
from meetapp_api.models import GenerationTask, MeetingApplication
from meetapp_api.registry.ledger import RequestLedger
from meetapp_api.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class CallbackPayload:
    message_id: int
    message_uuid: str
    succeeded: bool
    error: Optional[str] = None
    meeting_application_id: Optional[int] = None


class GenerationResumer:
    """Resolves ledger entries and re-enqueues generation once nothing is pending."""

    def __init__(
        self,
        db: Session,
        ledger: RequestLedger,
        scheduler: GenerationScheduler,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.ledger = ledger
        self.scheduler = scheduler
        self.settings = settings or get_settings()

    def check_timeouts(self, application_id: int) -> bool:
        """Expire requests older than the wait window; returns whether generation was resumed."""
        minutes = self.settings.registry_timeout_minutes
        error = f"Timed out waiting for the message text ({minutes} minutes)"
        older_than = datetime.utcnow() - timedelta(minutes=minutes)

        expired = self.ledger.expire_pending(application_id, older_than, error)
        if not expired:
            logger.info(
                f"No expired message requests for meeting application {application_id}",
                extra={"meeting_application_id": application_id},
            )
            return False

        application = self.db.get(MeetingApplication, application_id)
        if application is not None:
            messages = application.registry_messages
            for entry in expired:
                ref = messages.find(entry.message_id)
                if ref is not None:
                    ref.mark_error(error)
            application.registry_messages = messages
            application.mark_documents_modified()
            self.db.commit()

        return self.resume_if_settled(application_id)

    def handle_callback(self, payload: CallbackPayload) -> Optional[int]:
        """Apply a registry callback; returns the affected application id, if known."""
        self.ledger.apply_callback(
            payload.message_id,
            payload.succeeded,
            error=payload.error,
            application_id=payload.meeting_application_id,
        )

        application_id = payload.meeting_application_id or self.ledger.application_for_message(payload.message_id)
        if application_id is None:
            logger.warning(
                f"No meeting application waits for message {payload.message_id}",
                extra={"message_id": payload.message_id},
            )
            return None

        if self.db.get(MeetingApplication, application_id) is None:
            logger.error(
                f"Meeting application {application_id} from callback not found",
                extra={"message_id": payload.message_id},
            )
            return None

        self.resume_if_settled(application_id)
        return application_id

    def resume_if_settled(self, application_id: int) -> bool:
        pending = self.ledger.pending_count(application_id)
        if pending > 0:
            logger.info(
                f"Meeting application {application_id} still waits for {pending} message texts",
                extra={"meeting_application_id": application_id},
            )
            return False

        task = (
            self.db.query(GenerationTask)
            .filter(GenerationTask.meeting_application_id == application_id)
            .order_by(GenerationTask.started_at.desc(), GenerationTask.id.desc())
            .first()
        )
        self.scheduler.resume_generation(application_id, user_id=task.user_id if task else None)
        return True
