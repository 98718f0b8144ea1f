"""Owner, procedure and stored file models."""

from datetime import datetime

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from meetapp_api.db.base import Base
from meetapp_api.db.types import IntEnumType
from meetapp_api.enums import StorageProviderKind


class Owner(Base):
    """Account owning procedures and choosing where files are stored."""

    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), nullable=False, unique=True, index=True)
    storage_provider = Column(IntEnumType(StorageProviderKind), nullable=True)
    drive_token = Column(String(512), nullable=True)
    storage_quota_bytes = Column(BigInteger, nullable=True)
    subscription_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    procedures = relationship("Procedure", back_populates="owner")


class Procedure(Base):
    """Procedure a meeting application belongs to."""

    __tablename__ = "procedures"

    id = Column(Integer, primary_key=True, index=True)
    uuid = Column(String(36), nullable=False, unique=True, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    owner = relationship("Owner", back_populates="procedures")


class StorageFile(Base):
    """File uploaded by a user into external storage."""

    __tablename__ = "storage_files"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(50), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    procedure_id = Column(Integer, ForeignKey("procedures.id"), nullable=True, index=True)
    provider = Column(IntEnumType(StorageProviderKind), nullable=False)
    remote_path = Column(String(1024), nullable=False)
    name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    owner = relationship("Owner")

    @property
    def extension(self) -> str:
        source = self.name or self.remote_path or ""
        if "." not in source:
            return ""
        return source.rsplit(".", 1)[-1].lower()


class ApplicationOutputFile(Base):
    """Merged PDF uploaded for a meeting application."""

    __tablename__ = "application_output_files"

    id = Column(Integer, primary_key=True, index=True)
    meeting_application_id = Column(
        Integer, ForeignKey("meeting_applications.id"), nullable=False, index=True
    )
    owner_id = Column(Integer, ForeignKey("owners.id"), nullable=False, index=True)
    procedure_id = Column(Integer, ForeignKey("procedures.id"), nullable=False)
    user_id = Column(Integer, nullable=True)
    provider = Column(IntEnumType(StorageProviderKind), nullable=False)
    remote_path = Column(String(1024), nullable=False)
    name = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=True)
    mime = Column(String(100), default="application/pdf", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    application = relationship("MeetingApplication", back_populates="output_files")
    owner = relationship("Owner")
