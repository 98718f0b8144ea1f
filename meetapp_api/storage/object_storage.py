"""S3-compatible object storage provider (MinIO client)."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import redis
from minio import Minio
from minio.error import S3Error

from meetapp_api.storage.base import (
    DeleteResult,
    StorageError,
    StorageLimitError,
    StorageNotFoundError,
    StorageProvider,
)
from meetapp_api.storage.usage_cache import StorageUsageCache

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ("NoSuchKey", "NoSuchObject", "NotFound", "404")


def _is_not_found(error: S3Error) -> bool:
    return str(getattr(error, "code", "")) in NOT_FOUND_CODES


def _format_size(size: int) -> str:
    if size >= 1024 ** 3:
        return f"{size / 1024 ** 3:.2f} GB"
    return f"{size / 1024 ** 2:.2f} MB"


class ObjectStorageProvider(StorageProvider):
    """Object storage bucket shared by all owners.

    Uploads are gated by the owner's subscription and storage quota. Used
    bytes come from ``usage_cache`` and fall back to ``compute_usage``.
    """

    name = "object_storage"

    def __init__(
        self,
        client: Minio,
        bucket: str,
        owner=None,
        usage_cache: Optional[StorageUsageCache] = None,
        compute_usage: Optional[Callable[[], int]] = None,
    ):
        self.client = client
        self.bucket = bucket
        self.owner = owner
        self.usage_cache = usage_cache
        self.compute_usage = compute_usage

    @staticmethod
    def object_key(remote_path: str) -> str:
        return remote_path.lstrip("/")

    def download(self, remote_path: str, local_path: Path) -> Path:
        key = self.object_key(remote_path)
        local_path = Path(local_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.client.fget_object(self.bucket, key, str(local_path))
        except S3Error as e:
            if _is_not_found(e):
                raise StorageNotFoundError(f"Object not found: {remote_path}") from e
            raise StorageError(f"Failed to download {remote_path}: {e}") from e
        logger.debug(f"Downloaded object {key} to {local_path}")
        return local_path

    def upload(self, local_path: Path, remote_path: str) -> dict:
        local_path = Path(local_path)
        size = local_path.stat().st_size
        self.check_subscription()
        self.check_storage_limit(size)

        key = self.object_key(remote_path)
        try:
            self.client.fput_object(self.bucket, key, str(local_path), content_type="application/pdf")
        except S3Error as e:
            raise StorageError(f"Failed to upload {remote_path}: {e}") from e
        logger.debug(f"Uploaded object {key} ({size} bytes)")
        return {"path": remote_path}

    def delete(self, remote_path: str) -> DeleteResult:
        key = self.object_key(remote_path)
        try:
            self.client.stat_object(self.bucket, key)
        except S3Error as e:
            if _is_not_found(e):
                return DeleteResult(deleted=False, not_found=True)
            raise StorageError(f"Failed to inspect {remote_path}: {e}") from e

        try:
            self.client.remove_object(self.bucket, key)
        except S3Error as e:
            raise StorageError(f"Failed to delete {remote_path}: {e}") from e
        return DeleteResult(deleted=True)

    def check_subscription(self):
        if self.owner is None:
            return
        expires_at = self.owner.subscription_expires_at
        if expires_at is None or expires_at < datetime.utcnow():
            raise StorageLimitError("Object storage subscription is not active")

    def check_storage_limit(self, file_size: int):
        if self.owner is None or not self.owner.storage_quota_bytes:
            return
        limit = int(self.owner.storage_quota_bytes)
        current = self.current_usage()
        if current + file_size > limit:
            raise StorageLimitError(
                f"Storage limit exceeded: used {_format_size(current)}, "
                f"file {_format_size(file_size)}, limit {_format_size(limit)}"
            )

    def current_usage(self) -> int:
        compute = self.compute_usage or (lambda: 0)
        if self.usage_cache is None or self.owner is None:
            return int(compute() or 0)
        try:
            return self.usage_cache.get_or_compute(self.owner.id, compute)
        except redis.RedisError as e:
            logger.warning(f"Storage usage cache unavailable, computing usage directly: {e}")
            return int(compute() or 0)
