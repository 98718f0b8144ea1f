"""Meeting application and generation task models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.orm.attributes import flag_modified

from meetapp_api.db.base import Base
from meetapp_api.db.types import IntEnumType, RegistryMessagesType, StatusHistoryType, StorageFilesType
from meetapp_api.documents.refs import RegistryMessages, StatusHistory, StorageFiles
from meetapp_api.enums import ApplicationStatus, TaskStatus

# JSON columns holding mutable value objects
DOCUMENT_COLUMNS = ("statuses", "storage_files", "registry_messages", "meta")


class MeetingApplication(Base):
    """Meeting application assembled from storage files and registry messages."""

    __tablename__ = "meeting_applications"

    id = Column(Integer, primary_key=True, index=True)
    procedure_id = Column(Integer, ForeignKey("procedures.id"), nullable=False, index=True)
    latest_status = Column(IntEnumType(ApplicationStatus), default=ApplicationStatus.DRAFT, nullable=False)
    statuses = Column(StatusHistoryType, nullable=True)
    storage_files = Column(StorageFilesType, nullable=True)
    registry_messages = Column(RegistryMessagesType, nullable=True)
    meta = Column(JSON, nullable=True)
    start_generation = Column(DateTime, nullable=True)
    end_generation = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    procedure = relationship("Procedure")
    tasks = relationship("GenerationTask", back_populates="application", cascade="all, delete-orphan")
    output_files = relationship("ApplicationOutputFile", back_populates="application")

    def __init__(self, **kwargs):
        kwargs.setdefault("latest_status", ApplicationStatus.DRAFT)
        kwargs.setdefault("statuses", StatusHistory())
        kwargs.setdefault("storage_files", StorageFiles.from_dict(None))
        kwargs.setdefault("registry_messages", RegistryMessages())
        kwargs.setdefault("meta", {})
        super().__init__(**kwargs)

    def add_status(
        self,
        status: ApplicationStatus,
        user_text: Optional[str] = None,
        system_text: Optional[str] = None,
    ):
        """Append a history entry and move ``latest_status`` to it."""
        self.statuses = (self.statuses or StatusHistory()).append(status, user_text, system_text)
        self.latest_status = status

    def set_meta(self, key: str, value):
        meta = dict(self.meta or {})
        meta[key] = value
        self.meta = meta

    def mark_documents_modified(self):
        """Flag loaded JSON columns whose value objects were changed in place."""
        loaded = inspect(self).dict
        for column in DOCUMENT_COLUMNS:
            if column in loaded:
                flag_modified(self, column)


class GenerationTask(Base):
    """A single generation run of an application."""

    __tablename__ = "generation_tasks"

    id = Column(Integer, primary_key=True, index=True)
    meeting_application_id = Column(
        Integer, ForeignKey("meeting_applications.id"), nullable=False, index=True
    )
    user_id = Column(Integer, nullable=True)
    status = Column(IntEnumType(TaskStatus), default=TaskStatus.PENDING, nullable=False)
    started_at = Column(DateTime, nullable=True, index=True)
    finished_at = Column(DateTime, nullable=True)

    # Relationships
    application = relationship("MeetingApplication", back_populates="tasks")
