"""Registry message and message request ledger models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text

from meetapp_api.db.base import Base
from meetapp_api.db.types import IntEnumType
from meetapp_api.enums import RequestStatus


class RegistryMessage(Base):
    """Registry message; ``body_html`` is filled in by the registry service."""

    __tablename__ = "registry_messages"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(64), nullable=False, index=True)
    number = Column(String(64), nullable=True)
    title = Column(String(512), nullable=True)
    body_html = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class MessageRequest(Base):
    """Ledger entry for an outstanding message body request."""

    __tablename__ = "message_requests"
    __table_args__ = (
        Index("ix_message_requests_application_status", "meeting_application_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    meeting_application_id = Column(Integer, ForeignKey("meeting_applications.id"), nullable=False)
    message_id = Column(Integer, nullable=False, index=True)
    requested_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    status = Column(IntEnumType(RequestStatus), default=RequestStatus.PENDING, nullable=False)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
