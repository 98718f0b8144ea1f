"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import base64
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from meetapp_api.db.base import Base
from meetapp_api.documents.refs import RegistryMessages, StorageFiles
from meetapp_api.enums import StorageProviderKind
from meetapp_api.generation.orchestrator import GenerationOrchestrator
from meetapp_api.models import MeetingApplication, Owner, Procedure, RegistryMessage, StorageFile
from meetapp_api.pdf.merger import GhostscriptMergeEngine, PdfMerger, PypdfMergeEngine
from meetapp_api.pdf.page_counter import PageCounter
from meetapp_api.registry.ledger import RequestLedger
from meetapp_api.rendering.html import HtmlRenderer
from meetapp_api.settings import Settings
from meetapp_api.storage.base import DeleteResult, StorageError, StorageNotFoundError, StorageProvider
from meetapp_api.storage.service import FileStorageService

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


def write_pdf(path, pages: int = 1, size=A4) -> Path:
    """Write a simple PDF with ``pages`` pages."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pdf = canvas.Canvas(str(path), pagesize=size)
    for number in range(pages):
        pdf.drawString(72, 72, f"Page {number + 1}")
        pdf.showPage()
    pdf.save()
    return path


def pdf_bytes(tmp_path, pages: int = 1, size=A4) -> bytes:
    path = write_pdf(tmp_path / f"source_{pages}_{size[0]:.0f}.pdf", pages, size)
    return path.read_bytes()


LANDSCAPE_A4 = landscape(A4)


class FakeStorageProvider(StorageProvider):
    """In-memory storage provider."""

    name = "fake"

    def __init__(self):
        self.objects = {}
        self.uploads = {}
        self.deleted = []
        self.failing_downloads = set()
        self.fail_uploads = False
        self.fail_deletes = False

    def download(self, remote_path, local_path):
        if remote_path in self.failing_downloads:
            raise StorageError(f"Connection reset while reading {remote_path}")
        if remote_path not in self.objects:
            raise StorageNotFoundError(f"Object not found: {remote_path}")
        Path(local_path).write_bytes(self.objects[remote_path])
        return Path(local_path)

    def upload(self, local_path, remote_path):
        if self.fail_uploads:
            raise StorageError("Storage is read-only")
        data = Path(local_path).read_bytes()
        self.uploads[remote_path] = data
        self.objects[remote_path] = data
        return {"path": remote_path}

    def delete(self, remote_path):
        if self.fail_deletes:
            raise StorageError("Delete failed")
        self.deleted.append(remote_path)
        if self.objects.pop(remote_path, None) is None:
            return DeleteResult(deleted=False, not_found=True)
        return DeleteResult(deleted=True)


class FakePdfEngine:
    """Render engine writing a one-page PDF per call."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.documents = []

    def render(self, html, output_path, paper_size="A4", landscape=False):
        if self.fail:
            raise RuntimeError("Browser crashed")
        self.documents.append(html)
        write_pdf(output_path, 1)


@pytest.fixture(scope="function")
def db():
    """Create a test database session."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        temp_root=tmp_path / "work",
        registry_timeout_minutes=5,
        object_storage_root="/onb",
        output_timezone="UTC",
    )


@pytest.fixture
def owner(db: Session) -> Owner:
    owner = Owner(
        uuid="owner-uuid",
        storage_provider=StorageProviderKind.OBJECT_STORAGE,
        subscription_expires_at=datetime.utcnow() + timedelta(days=30),
    )
    db.add(owner)
    db.commit()
    return owner


@pytest.fixture
def procedure(db: Session, owner: Owner) -> Procedure:
    procedure = Procedure(uuid="procedure-uuid", owner_id=owner.id)
    db.add(procedure)
    db.commit()
    return procedure


@pytest.fixture
def make_application(db: Session, procedure: Procedure):
    """Create an application referencing the given files and messages."""

    def _make(files: dict = None, messages: list = None, application_id: int = None) -> MeetingApplication:
        application = MeetingApplication(
            id=application_id,
            procedure_id=procedure.id,
            storage_files=StorageFiles.from_dict(files or {}),
            registry_messages=RegistryMessages.from_list(messages or []),
        )
        db.add(application)
        db.commit()
        return application

    return _make


@pytest.fixture
def fake_provider() -> FakeStorageProvider:
    return FakeStorageProvider()


@pytest.fixture
def add_storage_file(db: Session, owner: Owner, procedure: Procedure, fake_provider: FakeStorageProvider):
    """Create a storage file row, optionally backed by content in the fake provider."""

    def _add(file_id: int, category: str, name: str, content: bytes = None) -> StorageFile:
        remote_path = f"/onb/{owner.uuid}/files/{file_id}_{name}"
        row = StorageFile(
            id=file_id,
            category=category,
            owner_id=owner.id,
            procedure_id=procedure.id,
            provider=StorageProviderKind.OBJECT_STORAGE,
            remote_path=remote_path,
            name=name,
            size=len(content) if content else 0,
        )
        db.add(row)
        db.commit()
        if content is not None:
            fake_provider.objects[remote_path] = content
        return row

    return _add


@pytest.fixture
def add_message(db: Session):
    """Create a registry message row; ``body`` is stored base64-encoded."""

    def _add(message_id: int, body: str = None, title: str = None) -> RegistryMessage:
        encoded = base64.b64encode(body.encode("utf-8")).decode("ascii") if body else None
        row = RegistryMessage(
            id=message_id,
            uuid=f"uuid-{message_id}",
            number=str(message_id),
            title=title or f"Message {message_id}",
            body_html=encoded,
        )
        db.add(row)
        db.commit()
        return row

    return _add


@pytest.fixture
def render_engine() -> FakePdfEngine:
    return FakePdfEngine()


@pytest.fixture
def orchestrator(db, settings, fake_provider, render_engine) -> GenerationOrchestrator:
    """Orchestrator with in-memory storage, fake rendering and mocked outer services."""
    registry = MagicMock()
    registry.request_bodies.return_value = {"success": True}
    storage = FileStorageService(
        db,
        settings,
        builders={StorageProviderKind.OBJECT_STORAGE: lambda *args: fake_provider},
    )
    return GenerationOrchestrator(
        db=db,
        storage=storage,
        renderer=HtmlRenderer(render_engine),
        merger=PdfMerger(
            primary=PypdfMergeEngine(),
            fallback=GhostscriptMergeEngine(discover=False),
            prefer_toolchain=False,
        ),
        page_counter=PageCounter(discover=False),
        registry=registry,
        ledger=RequestLedger(db),
        notifier=MagicMock(),
        scheduler=MagicMock(),
        settings=settings,
    )
