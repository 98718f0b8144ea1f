"""Error taxonomy for meeting application generation."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Classification of generation failures."""

    NOT_FOUND = "not_found"
    NO_SOURCES = "no_sources"
    ALL_SOURCES_FAILED = "all_sources_failed"
    NOTHING_TO_MERGE = "nothing_to_merge"
    DOWNLOAD_FAILED = "download_failed"
    RENDER_FAILED = "render_failed"
    MERGE_FAILED = "merge_failed"
    PAGE_COUNT_FAILED = "page_count_failed"
    UPLOAD_FAILED = "upload_failed"
    REGISTRY_REQUEST_FAILED = "registry_request_failed"


# Outcomes caused by the input data rather than by the system
EXPECTED_KINDS = frozenset(
    {ErrorKind.NO_SOURCES, ErrorKind.ALL_SOURCES_FAILED, ErrorKind.NOTHING_TO_MERGE}
)


class GenerationError(Exception):
    """Base class for generation failures.

    ``user_text`` is shown to the end user in the status history; the
    exception message goes into the system text.
    """

    kind: ErrorKind = ErrorKind.MERGE_FAILED
    default_user_text: Optional[str] = None

    def __init__(self, message: str, user_text: Optional[str] = None):
        super().__init__(message)
        self.user_text = user_text or self.default_user_text

    @property
    def expected(self) -> bool:
        return self.kind in EXPECTED_KINDS

    @property
    def retryable(self) -> bool:
        return not self.expected and self.kind != ErrorKind.NOT_FOUND


class ApplicationNotFoundError(GenerationError):
    kind = ErrorKind.NOT_FOUND


class NoSourcesError(GenerationError):
    kind = ErrorKind.NO_SOURCES
    default_user_text = "The application has no files and no messages"


class AllSourcesFailedError(GenerationError):
    kind = ErrorKind.ALL_SOURCES_FAILED
    default_user_text = "None of the documents could be prepared"


class NothingToMergeError(GenerationError):
    kind = ErrorKind.NOTHING_TO_MERGE
    default_user_text = "There are no documents to merge"


class DownloadError(GenerationError):
    kind = ErrorKind.DOWNLOAD_FAILED


class RenderError(GenerationError):
    kind = ErrorKind.RENDER_FAILED


class MergeError(GenerationError):
    kind = ErrorKind.MERGE_FAILED


class UnsupportedCompressionError(MergeError):
    """Raised by the primary merge engine to request the fallback engine."""


class PageCountError(GenerationError):
    kind = ErrorKind.PAGE_COUNT_FAILED


class UploadError(GenerationError):
    kind = ErrorKind.UPLOAD_FAILED
    default_user_text = "Failed to upload the generated file"


class RegistryRequestError(GenerationError):
    kind = ErrorKind.REGISTRY_REQUEST_FAILED
