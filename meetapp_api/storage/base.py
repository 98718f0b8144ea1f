"""Storage provider contract and errors."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class StorageError(Exception):
    """Storage backend failure."""


class StorageNotFoundError(StorageError):
    """Remote object does not exist."""


class StorageNotConfiguredError(StorageError):
    """Provider cannot be built for the owner (missing token or credentials)."""


class StorageLimitError(StorageError):
    """Upload rejected by subscription or quota checks."""


@dataclass(frozen=True)
class DeleteResult:
    deleted: bool
    not_found: bool = False


class StorageProvider(ABC):
    """Remote file storage used for source files and generated outputs."""

    name: str = "storage"

    @abstractmethod
    def download(self, remote_path: str, local_path: Path) -> Path:
        """Download ``remote_path`` into ``local_path`` and return the local path."""

    @abstractmethod
    def upload(self, local_path: Path, remote_path: str) -> dict:
        """Upload a local file. Returns ``{"path": <remote path>}``."""

    @abstractmethod
    def delete(self, remote_path: str) -> DeleteResult:
        """Delete a remote file; a missing file is reported, not raised."""
