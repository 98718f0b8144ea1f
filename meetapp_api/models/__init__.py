"""Database models - import all models here for metadata discovery."""

from meetapp_api.models.application import GenerationTask, MeetingApplication
from meetapp_api.models.files import ApplicationOutputFile, Owner, Procedure, StorageFile
from meetapp_api.models.registry import MessageRequest, RegistryMessage

__all__ = [
    "ApplicationOutputFile",
    "GenerationTask",
    "MeetingApplication",
    "MessageRequest",
    "Owner",
    "Procedure",
    "RegistryMessage",
    "StorageFile",
]
