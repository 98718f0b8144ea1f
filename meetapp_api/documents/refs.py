"""Value objects stored in the meeting application JSON columns.

Each object knows how to build itself from the loosely-shaped JSON found in
the database (missing keys, ``None`` collections, unknown categories) and how
to serialize back to plain dicts. Everything past the ``from_*`` boundary is
typed.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterator, Optional

from meetapp_api.enums import ApplicationStatus, RefStatus

# Merge order of storage file categories
CATEGORIES = (
    "insurance",
    "incoming_letters",
    "outgoing_letters",
    "inventory",
    "estimate",
    "trade",
    "trade_contract",
)


def _parse_ref_status(value: Any) -> Optional[RefStatus]:
    if not value:
        return None
    try:
        return RefStatus(value)
    except ValueError:
        return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class StorageFileRef:
    """Reference from an application to a file held in external storage."""

    id: int
    category: str
    title: Optional[str] = None
    status: Optional[RefStatus] = None
    error: Optional[str] = None
    size: Optional[int] = None

    def mark_generated(self):
        self.status = RefStatus.GENERATED
        self.error = None

    def mark_error(self, message: str):
        self.status = RefStatus.ERROR
        self.error = message

    @property
    def failed(self) -> bool:
        return self.status == RefStatus.ERROR or bool(self.error)

    def for_new_run(self) -> "StorageFileRef":
        return replace(self, status=None, error=None)

    @classmethod
    def from_dict(cls, data: dict, category: str) -> "StorageFileRef":
        return cls(
            id=int(data["id"]),
            category=data.get("type") or category,
            title=data.get("title"),
            status=_parse_ref_status(data.get("status")),
            error=data.get("error") or None,
            size=_optional_int(data.get("size")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.category,
            "title": self.title,
            "status": self.status.value if self.status else None,
            "error": self.error,
            "size": self.size,
        }


@dataclass
class RegistryMessageRef:
    """Reference from an application to a registry message."""

    id: int
    number: Optional[str] = None
    title: Optional[str] = None
    status: Optional[RefStatus] = None
    error: Optional[str] = None
    size: Optional[int] = None

    def mark_generating(self):
        self.status = RefStatus.GENERATING
        self.error = None

    def mark_generated(self):
        self.status = RefStatus.GENERATED
        self.error = None

    def mark_error(self, message: str):
        self.status = RefStatus.ERROR
        self.error = message

    @property
    def failed(self) -> bool:
        return self.status == RefStatus.ERROR or bool(self.error)

    def for_new_run(self) -> "RegistryMessageRef":
        return replace(self, status=None, error=None)

    @classmethod
    def from_dict(cls, data: dict) -> "RegistryMessageRef":
        number = data.get("number")
        return cls(
            id=int(data["id"]),
            number=str(number) if number is not None else None,
            title=data.get("title"),
            status=_parse_ref_status(data.get("status")),
            error=data.get("error") or None,
            size=_optional_int(data.get("size")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "title": self.title,
            "status": self.status.value if self.status else None,
            "error": self.error,
            "size": self.size,
        }


@dataclass
class StorageFiles:
    """Storage file references grouped by category."""

    by_category: dict = field(default_factory=dict)

    def get(self, category: str) -> list:
        return self.by_category.get(category, [])

    def __iter__(self) -> Iterator[StorageFileRef]:
        for category in CATEGORIES:
            yield from self.get(category)

    def find(self, category: str, file_id: int) -> Optional[StorageFileRef]:
        for ref in self.get(category):
            if ref.id == file_id:
                return ref
        return None

    def is_empty(self) -> bool:
        return not any(True for _ in self)

    def has_errors(self) -> bool:
        return any(ref.failed for ref in self)

    def has_generated(self) -> bool:
        return any(ref.status == RefStatus.GENERATED for ref in self)

    def for_new_run(self) -> "StorageFiles":
        return StorageFiles(
            {category: [ref.for_new_run() for ref in refs] for category, refs in self.by_category.items()}
        )

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "StorageFiles":
        by_category = {}
        for category in CATEGORIES:
            items = (data or {}).get(category) or []
            by_category[category] = [StorageFileRef.from_dict(item, category) for item in items]
        return cls(by_category)

    def to_dict(self) -> dict:
        return {category: [ref.to_dict() for ref in self.get(category)] for category in CATEGORIES}


@dataclass
class RegistryMessages:
    """Ordered list of registry message references."""

    items: list = field(default_factory=list)

    def __iter__(self) -> Iterator[RegistryMessageRef]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def find(self, message_id: int) -> Optional[RegistryMessageRef]:
        for ref in self.items:
            if ref.id == message_id:
                return ref
        return None

    def is_empty(self) -> bool:
        return not self.items

    def has_errors(self) -> bool:
        return any(ref.failed for ref in self.items)

    def has_generated(self) -> bool:
        return any(ref.status == RefStatus.GENERATED for ref in self.items)

    def for_new_run(self) -> "RegistryMessages":
        return RegistryMessages([ref.for_new_run() for ref in self.items])

    @classmethod
    def from_list(cls, data: Optional[list]) -> "RegistryMessages":
        return cls([RegistryMessageRef.from_dict(item) for item in data or []])

    def to_list(self) -> list:
        return [ref.to_dict() for ref in self.items]


@dataclass
class StatusEntry:
    """One entry of the application status history."""

    id: int
    status: ApplicationStatus
    date: datetime
    user_text: Optional[str] = None
    system_text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "StatusEntry":
        date = data.get("date")
        if isinstance(date, str):
            date = datetime.fromisoformat(date)
        return cls(
            id=int(data["id"]),
            status=ApplicationStatus(int(data["status"])),
            date=date,
            user_text=data.get("user_text"),
            system_text=data.get("system_text"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": int(self.status),
            "date": self.date.isoformat() if self.date else None,
            "user_text": self.user_text,
            "system_text": self.system_text,
        }

    def to_display_dict(self) -> dict:
        """Serialized entry with human-readable status and date fields."""
        data = self.to_dict()
        data["status_name"] = self.status.name.lower()
        data["status_text"] = self.status.text()
        data["date_format"] = self.date.strftime("%d.%m.%Y") if self.date else None
        return data


@dataclass
class StatusHistory:
    """Append-only status history."""

    entries: list = field(default_factory=list)

    def __iter__(self) -> Iterator[StatusEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def last(self) -> Optional[StatusEntry]:
        return self.entries[-1] if self.entries else None

    def append(
        self,
        status: ApplicationStatus,
        user_text: Optional[str] = None,
        system_text: Optional[str] = None,
        date: Optional[datetime] = None,
    ) -> "StatusHistory":
        """Return a new history with one more entry."""
        next_id = max((entry.id for entry in self.entries), default=0) + 1
        entry = StatusEntry(
            id=next_id,
            status=status,
            date=date or datetime.utcnow(),
            user_text=user_text,
            system_text=system_text,
        )
        return StatusHistory(self.entries + [entry])

    @classmethod
    def from_list(cls, data: Optional[list]) -> "StatusHistory":
        return cls([StatusEntry.from_dict(item) for item in data or []])

    def to_list(self) -> list:
        return [entry.to_dict() for entry in self.entries]
