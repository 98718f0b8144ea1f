"""Status and provider enumerations shared by models and services."""

from enum import Enum, IntEnum


class ApplicationStatus(IntEnum):
    """Lifecycle status of a meeting application."""

    DRAFT = 1
    GENERATING = 2
    GENERATED = 3
    PARTIALLY_GENERATED = 4
    ERROR = 99

    def text(self) -> str:
        return _APPLICATION_STATUS_TEXT[self]


_APPLICATION_STATUS_TEXT = {
    ApplicationStatus.DRAFT: "Draft",
    ApplicationStatus.GENERATING: "Generating",
    ApplicationStatus.GENERATED: "Generated",
    ApplicationStatus.PARTIALLY_GENERATED: "Partially generated",
    ApplicationStatus.ERROR: "Error",
}


class TaskStatus(IntEnum):
    """Status of a single generation run."""

    PENDING = 1
    GENERATING = 2
    COMPLETED = 3
    ERROR = 4


class RequestStatus(IntEnum):
    """Status of a registry message body request."""

    PENDING = 1
    COMPLETED = 2
    ERROR = 3
    TIMEOUT = 4


class StorageProviderKind(IntEnum):
    """Storage backend an owner keeps files in."""

    CLOUD_DRIVE = 1
    OBJECT_STORAGE = 2


class RefStatus(str, Enum):
    """Per-run status of a source document reference."""

    GENERATING = "generating"
    GENERATED = "generated"
    ERROR = "error"
