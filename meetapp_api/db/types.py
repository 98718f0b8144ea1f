"""Custom column types mapping JSON and integer columns to typed values."""

from sqlalchemy import JSON, Integer
from sqlalchemy.types import TypeDecorator

from meetapp_api.documents.refs import RegistryMessages, StatusHistory, StorageFiles


class IntEnumType(TypeDecorator):
    """Stores an IntEnum as its integer value."""

    impl = Integer
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)


class StorageFilesType(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, StorageFiles):
            return value.to_dict()
        return value

    def process_result_value(self, value, dialect):
        return StorageFiles.from_dict(value)


class RegistryMessagesType(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, RegistryMessages):
            return value.to_list()
        return value

    def process_result_value(self, value, dialect):
        return RegistryMessages.from_list(value)


class StatusHistoryType(TypeDecorator):
    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, StatusHistory):
            return value.to_list()
        return value

    def process_result_value(self, value, dialect):
        return StatusHistory.from_list(value)
