"""Value objects for application source documents and status history."""

from meetapp_api.documents.refs import (
    CATEGORIES,
    RegistryMessageRef,
    RegistryMessages,
    StatusEntry,
    StatusHistory,
    StorageFileRef,
    StorageFiles,
)

__all__ = [
    "CATEGORIES",
    "RegistryMessageRef",
    "RegistryMessages",
    "StatusEntry",
    "StatusHistory",
    "StorageFileRef",
    "StorageFiles",
]
