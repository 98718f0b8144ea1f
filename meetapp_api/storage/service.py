"""File storage service: source downloads and output publishing."""

import logging
from pathlib import Path
from typing import Callable, Optional

import redis
from minio import Minio
from sqlalchemy import func
from sqlalchemy.orm import Session

from meetapp_api.enums import StorageProviderKind
from meetapp_api.errors import DownloadError, UploadError
from meetapp_api.models import ApplicationOutputFile, MeetingApplication, Owner, StorageFile
from meetapp_api.settings import Settings, get_settings
from meetapp_api.storage.base import StorageError, StorageNotConfiguredError, StorageProvider
from meetapp_api.storage.cloud_drive import CloudDriveProvider
from meetapp_api.storage.object_storage import ObjectStorageProvider
from meetapp_api.storage.usage_cache import StorageUsageCache
from meetapp_api.utils.text import slugify

logger = logging.getLogger(__name__)


def build_object_storage(
    owner: Owner,
    settings: Settings,
    usage_cache: Optional[StorageUsageCache],
    compute_usage: Callable[[], int],
) -> StorageProvider:
    if not settings.object_storage_access_key or not settings.object_storage_secret_key:
        raise StorageNotConfiguredError("Object storage credentials are not configured")
    client = Minio(
        settings.object_storage_endpoint,
        access_key=settings.object_storage_access_key,
        secret_key=settings.object_storage_secret_key,
        secure=settings.object_storage_use_ssl,
        region=settings.object_storage_region,
    )
    return ObjectStorageProvider(
        client,
        settings.object_storage_bucket,
        owner=owner,
        usage_cache=usage_cache,
        compute_usage=compute_usage,
    )


def build_cloud_drive(
    owner: Owner,
    settings: Settings,
    usage_cache: Optional[StorageUsageCache],
    compute_usage: Callable[[], int],
) -> StorageProvider:
    if owner is None or not owner.drive_token:
        raise StorageNotConfiguredError("Cloud drive token is not configured for the owner")
    return CloudDriveProvider(
        owner.drive_token,
        api_url=settings.cloud_drive_api_url,
        timeout=settings.cloud_drive_timeout_seconds,
    )


# Provider registry keyed by storage kind
PROVIDER_BUILDERS = {
    StorageProviderKind.OBJECT_STORAGE: build_object_storage,
    StorageProviderKind.CLOUD_DRIVE: build_cloud_drive,
}


class FileStorageService:
    """Resolves storage providers per owner and moves files in and out of them."""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        usage_cache: Optional[StorageUsageCache] = None,
        builders: Optional[dict] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.usage_cache = usage_cache
        self.builders = builders if builders is not None else PROVIDER_BUILDERS
        self._providers = {}

    def provider_for(self, owner: Owner, kind: StorageProviderKind) -> StorageProvider:
        if kind is None:
            raise StorageNotConfiguredError("Storage provider is not selected for the owner")
        cache_key = (owner.id if owner else None, kind)
        if cache_key not in self._providers:
            builder = self.builders.get(kind)
            if builder is None:
                raise StorageNotConfiguredError(f"Unsupported storage provider: {kind}")
            owner_id = owner.id if owner else None
            self._providers[cache_key] = builder(
                owner, self.settings, self.usage_cache, lambda: self.used_bytes(owner_id)
            )
        return self._providers[cache_key]

    def used_bytes(self, owner_id: int) -> int:
        """Bytes the owner keeps in object storage."""
        files_total = (
            self.db.query(func.coalesce(func.sum(StorageFile.size), 0))
            .filter(
                StorageFile.owner_id == owner_id,
                StorageFile.provider == StorageProviderKind.OBJECT_STORAGE,
            )
            .scalar()
        )
        outputs_total = (
            self.db.query(func.coalesce(func.sum(ApplicationOutputFile.size), 0))
            .filter(
                ApplicationOutputFile.owner_id == owner_id,
                ApplicationOutputFile.provider == StorageProviderKind.OBJECT_STORAGE,
            )
            .scalar()
        )
        return int(files_total or 0) + int(outputs_total or 0)

    def fetch_files(self, category: str, ids: list) -> dict:
        """Batch fetch referenced file rows of one category, keyed by id."""
        if not ids:
            return {}
        rows = (
            self.db.query(StorageFile)
            .filter(StorageFile.id.in_(ids), StorageFile.category == category)
            .all()
        )
        return {row.id: row for row in rows}

    def download(self, file: StorageFile, local_path: Path) -> Path:
        try:
            provider = self.provider_for(file.owner, file.provider)
            return provider.download(file.remote_path, Path(local_path))
        except (StorageError, OSError) as e:
            raise DownloadError(f"Failed to download file {file.id}: {e}") from e

    def root_for(self, kind: StorageProviderKind) -> str:
        if kind == StorageProviderKind.CLOUD_DRIVE:
            return self.settings.cloud_drive_root.rstrip("/")
        return self.settings.object_storage_root.rstrip("/")

    def build_remote_path(self, application: MeetingApplication, kind: StorageProviderKind, filename: str) -> str:
        procedure = application.procedure
        owner = procedure.owner
        created = application.created_at.strftime("%Y_%m_%d")
        slug = slugify(Path(filename).stem)
        return (
            f"{self.root_for(kind)}/{owner.uuid}/procedures/{procedure.uuid}"
            f"/meeting_applications/{created}_{application.id}/{slug}.pdf"
        )

    def upload_output(
        self,
        application: MeetingApplication,
        local_path: Path,
        filename: str,
        user_id: Optional[int] = None,
    ) -> ApplicationOutputFile:
        """Upload the merged PDF and record it as the application's output file."""
        procedure = application.procedure
        owner = procedure.owner
        kind = owner.storage_provider
        local_path = Path(local_path)
        try:
            provider = self.provider_for(owner, kind)
            remote_path = self.build_remote_path(application, kind, filename)
            result = provider.upload(local_path, remote_path)
        except (StorageError, OSError) as e:
            raise UploadError(f"Failed to upload {filename}: {e}") from e

        size = local_path.stat().st_size
        output = ApplicationOutputFile(
            meeting_application_id=application.id,
            owner_id=owner.id,
            procedure_id=procedure.id,
            user_id=user_id,
            provider=kind,
            remote_path=result.get("path", remote_path),
            name=filename,
            size=size,
            mime="application/pdf",
        )
        self.db.add(output)
        self.db.commit()

        if kind == StorageProviderKind.OBJECT_STORAGE:
            self._adjust_usage(owner.id, size)

        logger.info(
            f"Uploaded meeting application {application.id} output to {output.remote_path}",
            extra={"meeting_application_id": application.id, "size": size},
        )
        return output

    def delete_existing_outputs(self, application: MeetingApplication) -> int:
        """Delete previously published outputs; provider failures do not stop row removal."""
        outputs = (
            self.db.query(ApplicationOutputFile)
            .filter(ApplicationOutputFile.meeting_application_id == application.id)
            .all()
        )
        deleted = 0
        for output in outputs:
            try:
                provider = self.provider_for(output.owner, output.provider)
                result = provider.delete(output.remote_path)
                if result.not_found:
                    logger.info(f"Output file already missing from storage: {output.remote_path}")
            except Exception as e:
                logger.warning(
                    f"Failed to delete output file {output.id} from storage: {e}",
                    extra={"meeting_application_id": application.id},
                )
            if output.provider == StorageProviderKind.OBJECT_STORAGE:
                self._adjust_usage(output.owner_id, -(output.size or 0))
            self.db.delete(output)
            deleted += 1

        if deleted:
            self.db.commit()
        return deleted

    def _adjust_usage(self, owner_id: int, delta: int):
        """Apply a usage delta to the cache; on Redis failure drop the counter instead."""
        if self.usage_cache is None:
            return
        try:
            if delta >= 0:
                self.usage_cache.increment(owner_id, delta)
            else:
                self.usage_cache.decrement(owner_id, -delta)
        except redis.RedisError as e:
            logger.warning(f"Failed to update storage usage of owner {owner_id}: {e}")
            try:
                self.usage_cache.forget(owner_id)
            except redis.RedisError as forget_error:
                logger.warning(f"Failed to drop storage usage of owner {owner_id}: {forget_error}")
