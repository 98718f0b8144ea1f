"""Meeting application generation.

A run downloads the application's storage files, renders registry messages
whose bodies are available, asks the registry service for the missing bodies
and suspends until they arrive (or time out). Once nothing is pending the
sources are merged into one PDF, published to the owner's storage and the
application is classified as generated, partially generated or failed.

The document refs of a run live in ``GenerationRun`` and are written back to
the application on every persist, because commits expire ORM attributes.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from meetapp_api.documents.refs import CATEGORIES, RegistryMessages, StorageFiles
from meetapp_api.enums import ApplicationStatus, RefStatus, RequestStatus, TaskStatus
from meetapp_api.errors import (
    AllSourcesFailedError,
    ApplicationNotFoundError,
    MergeError,
    NoSourcesError,
    NothingToMergeError,
    PageCountError,
    RegistryRequestError,
)
from meetapp_api.generation.scheduler import GenerationScheduler
from meetapp_api.generation.workspace import GenerationWorkspace
from meetapp_api.models import GenerationTask, MeetingApplication, RegistryMessage
from meetapp_api.notifications.service import Notifier
from meetapp_api.pdf.merger import PdfMerger
from meetapp_api.pdf.page_counter import PageCounter
from meetapp_api.registry.client import RegistryClient
from meetapp_api.registry.ledger import RequestLedger
from meetapp_api.rendering.html import HtmlRenderer, decode_body
from meetapp_api.settings import Settings, get_settings
from meetapp_api.storage.service import FileStorageService
from meetapp_api.utils.metrics import generation_duration, generation_runs

logger = logging.getLogger(__name__)

FILE_NOT_FOUND = "File not found in the database"
ONLY_PDF = "Only PDF files can be merged"
MESSAGE_NOT_FOUND = "Message not found in the database"
MESSAGE_TEXT_FAILED = "Failed to get the message text"
MESSAGE_PDF_FAILED = "Failed to build a PDF from the message text"
MESSAGE_NOT_RECEIVED = "The registry did not return the message text"
REGISTRY_UNAVAILABLE = "Registry service unavailable, the message text was not received"

PARTIAL_USER_TEXT = "Generated partially: some documents could not be added"

TOASTS = {
    ApplicationStatus.GENERATED: ("Meeting application generated", "success"),
    ApplicationStatus.PARTIALLY_GENERATED: ("Meeting application partially generated", "warn"),
    ApplicationStatus.ERROR: ("Meeting application generation failed", "error"),
}


class GenerationOutcome(str, Enum):
    SUSPENDED = "suspended"
    GENERATED = "generated"
    PARTIALLY_GENERATED = "partially_generated"


@dataclass
class PreparedSource:
    """A source document ready for merging."""

    path: Path
    ref: object


@dataclass
class GenerationRun:
    application: MeetingApplication
    workspace: GenerationWorkspace
    files: StorageFiles
    messages: RegistryMessages
    task_id: Optional[int] = None
    user_id: Optional[int] = None
    downloaded: list = field(default_factory=list)
    rendered: list = field(default_factory=list)

    @property
    def sources(self) -> list:
        return self.downloaded + self.rendered


class GenerationOrchestrator:
    """Drives one generation pass of a meeting application."""

    def __init__(
        self,
        db: Session,
        storage: FileStorageService,
        renderer: HtmlRenderer,
        merger: PdfMerger,
        page_counter: PageCounter,
        registry: RegistryClient,
        ledger: RequestLedger,
        notifier: Notifier,
        scheduler: GenerationScheduler,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.storage = storage
        self.renderer = renderer
        self.merger = merger
        self.page_counter = page_counter
        self.registry = registry
        self.ledger = ledger
        self.notifier = notifier
        self.scheduler = scheduler
        self.settings = settings or get_settings()

    def generate(
        self,
        application_id: int,
        continue_after_callback: bool = False,
        user_id: Optional[int] = None,
    ) -> GenerationOutcome:
        """Run one generation pass.

        Args:
            application_id: Meeting application to generate
            continue_after_callback: Resume a pass suspended on message bodies
            user_id: User to notify about the result

        Returns:
            ``SUSPENDED`` when message bodies are still pending, otherwise the
            final classification

        Raises:
            GenerationError: Any failure, after the application has been marked ``ERROR``
        """
        log_extra = {
            "meeting_application_id": application_id,
            "continue_after_callback": continue_after_callback,
            "user_id": user_id,
        }
        logger.info(f"Starting generation of meeting application {application_id}", extra=log_extra)

        application = self.db.get(MeetingApplication, application_id)
        if application is None:
            raise ApplicationNotFoundError(f"Meeting application {application_id} not found")

        started = time.monotonic()
        run = GenerationRun(
            application=application,
            workspace=GenerationWorkspace(self.settings.temp_root, application_id),
            files=application.storage_files,
            messages=application.registry_messages,
            user_id=user_id,
        )

        try:
            self._open_task(run, continue_after_callback)
            self._start_run(run)

            self._download_storage_files(run)
            if continue_after_callback:
                self._render_received_messages(run)
            else:
                self._process_messages(run)
            self._persist(run)

            pending = self._reconcile_pending(run)
            if pending > 0:
                logger.info(
                    f"Meeting application {application_id} waits for {pending} message texts",
                    extra=log_extra,
                )
                run.workspace.cleanup()
                generation_runs.labels(outcome=GenerationOutcome.SUSPENDED.value).inc()
                return GenerationOutcome.SUSPENDED

            if not run.sources:
                self._ensure_sources_succeeded(run)

            merged = self._merge(run)
            pages = self._count_pages(merged)

            for source in run.downloaded:
                source.ref.mark_generated()
            self._persist(run)

            self._publish(run, merged)
            if pages is not None:
                run.application.set_meta("pages", pages)
            run.workspace.cleanup()

            outcome = self._complete(run)
        except Exception as exc:
            run.workspace.cleanup()
            self._record_failure(application_id, run, exc)
            raise
        finally:
            generation_duration.observe(time.monotonic() - started)

        generation_runs.labels(outcome=outcome.value).inc()
        logger.info(f"Meeting application {application_id} finished: {outcome.value}", extra=log_extra)
        self._notify(run.application, run.user_id)
        return outcome

    # Run lifecycle

    def _open_task(self, run: GenerationRun, continue_after_callback: bool):
        application_id = run.application.id
        if continue_after_callback:
            task = (
                self.db.query(GenerationTask)
                .filter(GenerationTask.meeting_application_id == application_id)
                .order_by(GenerationTask.started_at.desc(), GenerationTask.id.desc())
                .first()
            )
            if task is None:
                logger.warning(
                    f"No generation task to resume for meeting application {application_id}",
                    extra={"meeting_application_id": application_id},
                )
                return
            task.status = TaskStatus.GENERATING
            if run.user_id is None:
                run.user_id = task.user_id
        else:
            task = GenerationTask(
                meeting_application_id=application_id,
                user_id=run.user_id,
                status=TaskStatus.GENERATING,
                started_at=datetime.utcnow(),
            )
            self.db.add(task)
        self.db.commit()
        run.task_id = task.id

    def _start_run(self, run: GenerationRun):
        run.files = run.files.for_new_run()
        run.messages = run.messages.for_new_run()
        application = run.application
        if application.latest_status != ApplicationStatus.GENERATING:
            application.add_status(ApplicationStatus.GENERATING, system_text="Generation started")
            application.start_generation = datetime.utcnow()
        self._persist(run)

    def _persist(self, run: GenerationRun):
        application = run.application
        application.storage_files = run.files
        application.registry_messages = run.messages
        application.mark_documents_modified()
        self.db.commit()

    def _finish_task(self, task_id: Optional[int], status: TaskStatus):
        if task_id is None:
            return
        task = self.db.get(GenerationTask, task_id)
        if task is None:
            return
        task.status = status
        task.finished_at = datetime.utcnow()
        self.db.commit()

    # Storage files

    def _download_storage_files(self, run: GenerationRun):
        for category in CATEGORIES:
            refs = run.files.get(category)
            if not refs:
                continue

            try:
                rows = self.storage.fetch_files(category, [ref.id for ref in refs])
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Failed to load {category} files: {e}",
                    extra={"meeting_application_id": run.application.id},
                )
                for ref in refs:
                    ref.mark_error(f"Failed to load the file: {e}")
                continue

            for ref in refs:
                row = rows.get(ref.id)
                if row is None:
                    ref.mark_error(FILE_NOT_FOUND)
                    continue
                if row.extension != "pdf":
                    ref.mark_error(ONLY_PDF)
                    continue
                try:
                    local_path = run.workspace.file_path(row.name or f"{category}_{row.id}.pdf")
                    self.storage.download(row, local_path)
                except Exception as e:
                    logger.error(
                        f"Failed to download file {row.id}: {e}",
                        extra={"meeting_application_id": run.application.id, "category": category},
                    )
                    ref.mark_error(f"Failed to download the file: {e}")
                    continue
                run.downloaded.append(PreparedSource(local_path, ref))

    # Registry messages

    def _fetch_messages(self, run: GenerationRun) -> dict:
        ids = [ref.id for ref in run.messages]
        if not ids:
            return {}
        rows = (
            self.db.query(RegistryMessage)
            .filter(RegistryMessage.id.in_(ids))
            .populate_existing()
            .all()
        )
        return {row.id: row for row in rows}

    def _render_message(self, run: GenerationRun, ref, row: RegistryMessage, failure_text: str):
        try:
            html = decode_body(row.body_html)
            output_path = run.workspace.file_path(f"message_{row.id}.pdf")
            self.renderer.render(html, output_path, title=ref.title or row.title)
        except Exception as e:
            logger.error(
                f"Failed to render message {row.id}: {e}",
                extra={"meeting_application_id": run.application.id},
            )
            ref.mark_error(failure_text)
            return
        ref.mark_generated()
        run.rendered.append(PreparedSource(output_path, ref))

    def _process_messages(self, run: GenerationRun):
        application_id = run.application.id
        rows = self._fetch_messages(run)
        to_request = []

        for ref in run.messages:
            row = rows.get(ref.id)
            if row is None:
                ref.mark_error(MESSAGE_NOT_FOUND)
                continue
            if not row.body_html:
                ref.mark_generating()
                to_request.append(row)
                continue
            self.ledger.complete_pending(application_id, [row.id])
            self._render_message(run, ref, row, MESSAGE_TEXT_FAILED)

        if to_request:
            self._request_bodies(run, to_request)

    def _request_bodies(self, run: GenerationRun, rows: list):
        application_id = run.application.id
        for row in rows:
            self.ledger.record_pending(application_id, row.id)

        payload = [{"message_id": row.id, "message_uuid": row.uuid} for row in rows]
        try:
            response = self.registry.request_bodies(payload, application_id=application_id)
            if not response.get("success"):
                raise RegistryRequestError(
                    f"Registry rejected the request: {response.get('message') or response}"
                )
        except RegistryRequestError as e:
            logger.error(
                f"Failed to request {len(rows)} message texts: {e}",
                extra={"meeting_application_id": application_id},
            )
            for row in rows:
                run.messages.find(row.id).mark_error(REGISTRY_UNAVAILABLE)
            self.ledger.discard(application_id, [row.id for row in rows])
            return

        self.scheduler.schedule_timeout_check(application_id, self.settings.registry_timeout_seconds)

    def _render_received_messages(self, run: GenerationRun):
        application_id = run.application.id
        rows = self._fetch_messages(run)

        for ref in run.messages:
            row = rows.get(ref.id)
            if row is None:
                ref.mark_error(MESSAGE_NOT_FOUND)
                continue
            if not row.body_html:
                entry = self.ledger.latest_for_message(application_id, row.id)
                if entry is not None and entry.status in (RequestStatus.ERROR, RequestStatus.TIMEOUT) and entry.error:
                    ref.mark_error(entry.error)
                else:
                    ref.mark_error(MESSAGE_NOT_RECEIVED)
                continue
            self._render_message(run, ref, row, MESSAGE_PDF_FAILED)

    def _reconcile_pending(self, run: GenerationRun) -> int:
        """Render pending messages whose bodies already arrived; return what is left."""
        application_id = run.application.id
        pending_ids = self.ledger.pending_message_ids(application_id)
        if pending_ids:
            received = (
                self.db.query(RegistryMessage)
                .filter(
                    RegistryMessage.id.in_(pending_ids),
                    RegistryMessage.body_html.isnot(None),
                    RegistryMessage.body_html != "",
                )
                .populate_existing()
                .all()
            )
            if received:
                self.ledger.complete_pending(application_id, [row.id for row in received])
                for row in received:
                    ref = run.messages.find(row.id)
                    if ref is not None and ref.status == RefStatus.GENERATING:
                        self._render_message(run, ref, row, MESSAGE_PDF_FAILED)
                self._persist(run)
        return self.ledger.pending_count(application_id)

    # Merge and publish

    def _ensure_sources_succeeded(self, run: GenerationRun):
        if run.files.is_empty() and run.messages.is_empty():
            raise NoSourcesError("Meeting application has no files and no messages")
        if not run.files.has_generated() and not run.messages.has_generated():
            raise AllSourcesFailedError("All documents failed to download or render")

    def _merge(self, run: GenerationRun) -> Path:
        paths = [source.path for source in run.sources]
        if not paths:
            raise NothingToMergeError("No documents to merge")

        output_path = run.workspace.output_path(f"merged_{run.application.id}.pdf")
        self.merger.merge(paths, output_path)
        if not output_path.exists():
            raise MergeError(f"Merged file was not created: {output_path.name}")
        return output_path

    def _count_pages(self, path: Path) -> Optional[int]:
        try:
            return self.page_counter.count_pages(path)
        except PageCountError as e:
            logger.warning(f"Failed to count pages of {path.name}: {e}")
            return None

    def _publish(self, run: GenerationRun, merged: Path):
        application = run.application
        self.storage.delete_existing_outputs(application)

        stamp = datetime.now(ZoneInfo(self.settings.output_timezone)).strftime("%Y-%m-%d_%H-%M-%S")
        filename = f"meeting_application_{application.id}_{stamp}.pdf"
        self.storage.upload_output(application, merged, filename, user_id=run.user_id)

    def _complete(self, run: GenerationRun) -> GenerationOutcome:
        application = run.application
        for ref in run.messages:
            if ref.status == RefStatus.GENERATING:
                ref.mark_error(MESSAGE_NOT_RECEIVED)
        if run.files.has_errors() or run.messages.has_errors():
            application.add_status(
                ApplicationStatus.PARTIALLY_GENERATED,
                user_text=PARTIAL_USER_TEXT,
                system_text="Some documents failed to download or render",
            )
            outcome = GenerationOutcome.PARTIALLY_GENERATED
        else:
            application.add_status(ApplicationStatus.GENERATED, system_text="Generation completed")
            outcome = GenerationOutcome.GENERATED
        application.end_generation = datetime.utcnow()
        self._persist(run)
        self._finish_task(run.task_id, TaskStatus.COMPLETED)
        return outcome

    # Failure handling and notifications

    def _record_failure(self, application_id: int, run: GenerationRun, exc: Exception):
        log_extra = {"meeting_application_id": application_id, "error_kind": getattr(getattr(exc, "kind", None), "value", None)}
        if getattr(exc, "expected", False):
            logger.warning(f"Meeting application {application_id} was not generated: {exc}", extra=log_extra)
        else:
            logger.error(f"Meeting application {application_id} generation failed: {exc}", extra=log_extra, exc_info=True)
        generation_runs.labels(outcome="error").inc()

        try:
            self.db.rollback()
            application = self.db.get(MeetingApplication, application_id)
            application.add_status(
                ApplicationStatus.ERROR,
                user_text=getattr(exc, "user_text", None) or "Generation failed",
                system_text=f"Generation error: {exc}",
            )
            application.end_generation = datetime.utcnow()
            self.db.commit()
            self._finish_task(run.task_id, TaskStatus.ERROR)
        except Exception as record_error:
            self.db.rollback()
            logger.error(
                f"Failed to record generation failure of meeting application {application_id}: {record_error}",
                extra=log_extra,
                exc_info=True,
            )
            return

        self._notify(application, run.user_id)

    def _notify(self, application: MeetingApplication, user_id: Optional[int]):
        if user_id is None:
            return
        status = application.latest_status
        title, toast_type = TOASTS.get(status, TOASTS[ApplicationStatus.ERROR])
        last = application.statuses.last if application.statuses else None
        message = f"Meeting application #{application.id}: {status.text()}"
        if last is not None and last.user_text:
            message = f"{message}. {last.user_text}"

        self.notifier.status_updated(user_id, application)
        self.notifier.toast(
            user_id,
            title,
            message,
            type=toast_type,
            life=self.settings.notification_toast_life_ms,
        )
