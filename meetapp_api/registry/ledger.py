"""Ledger of outstanding registry message body requests."""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from meetapp_api.enums import RequestStatus
from meetapp_api.models import MessageRequest

logger = logging.getLogger(__name__)


class RequestLedger:
    """Tracks which message bodies an application is still waiting for.

    An application may only resume once it has no ``PENDING`` rows.
    """

    def __init__(self, db: Session):
        self.db = db

    def record_pending(self, application_id: int, message_id: int) -> MessageRequest:
        """Record a new request; earlier rows for the same pair are replaced."""
        (
            self.db.query(MessageRequest)
            .filter(
                MessageRequest.meeting_application_id == application_id,
                MessageRequest.message_id == message_id,
            )
            .delete(synchronize_session=False)
        )
        entry = MessageRequest(
            meeting_application_id=application_id,
            message_id=message_id,
            requested_at=datetime.utcnow(),
            status=RequestStatus.PENDING,
        )
        self.db.add(entry)
        self.db.commit()
        return entry

    def discard(self, application_id: int, message_ids: Iterable[int]) -> int:
        message_ids = list(message_ids)
        if not message_ids:
            return 0
        count = (
            self.db.query(MessageRequest)
            .filter(
                MessageRequest.meeting_application_id == application_id,
                MessageRequest.message_id.in_(message_ids),
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return count

    def _pending_query(self, application_id: int):
        return self.db.query(MessageRequest).filter(
            MessageRequest.meeting_application_id == application_id,
            MessageRequest.status == RequestStatus.PENDING,
        )

    def complete_pending(self, application_id: int, message_ids: Iterable[int]) -> int:
        message_ids = list(message_ids)
        if not message_ids:
            return 0
        entries = self._pending_query(application_id).filter(MessageRequest.message_id.in_(message_ids)).all()
        for entry in entries:
            entry.status = RequestStatus.COMPLETED
            entry.error = None
        if entries:
            self.db.commit()
        return len(entries)

    def pending_message_ids(self, application_id: int) -> list:
        return [entry.message_id for entry in self._pending_query(application_id).all()]

    def pending_count(self, application_id: int) -> int:
        return self._pending_query(application_id).count()

    def latest_for_message(self, application_id: int, message_id: int) -> Optional[MessageRequest]:
        return (
            self.db.query(MessageRequest)
            .filter(
                MessageRequest.meeting_application_id == application_id,
                MessageRequest.message_id == message_id,
            )
            .order_by(MessageRequest.requested_at.desc(), MessageRequest.id.desc())
            .first()
        )

    def expire_pending(self, application_id: int, older_than: datetime, error: str) -> list:
        """Move pending rows requested before ``older_than`` to ``TIMEOUT``."""
        entries = self._pending_query(application_id).filter(MessageRequest.requested_at < older_than).all()
        for entry in entries:
            entry.status = RequestStatus.TIMEOUT
            entry.error = error
        if entries:
            self.db.commit()
            logger.info(
                f"Expired {len(entries)} message requests",
                extra={"meeting_application_id": application_id},
            )
        return entries

    def apply_callback(
        self,
        message_id: int,
        succeeded: bool,
        error: Optional[str] = None,
        application_id: Optional[int] = None,
    ) -> list:
        """Resolve pending rows of a message from a registry callback."""
        query = self.db.query(MessageRequest).filter(
            MessageRequest.message_id == message_id,
            MessageRequest.status == RequestStatus.PENDING,
        )
        if application_id is not None:
            query = query.filter(MessageRequest.meeting_application_id == application_id)

        entries = query.all()
        for entry in entries:
            if succeeded:
                entry.status = RequestStatus.COMPLETED
                entry.error = None
            else:
                entry.status = RequestStatus.ERROR
                entry.error = error or "Unknown error"
        if entries:
            self.db.commit()
        return entries

    def application_for_message(self, message_id: int) -> Optional[int]:
        """Application of the most recently resolved request for a message."""
        entry = (
            self.db.query(MessageRequest)
            .filter(
                MessageRequest.message_id == message_id,
                MessageRequest.status.in_([RequestStatus.COMPLETED, RequestStatus.ERROR]),
            )
            .order_by(MessageRequest.updated_at.desc(), MessageRequest.id.desc())
            .first()
        )
        return entry.meeting_application_id if entry else None
