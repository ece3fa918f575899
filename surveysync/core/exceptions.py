"""Exceptions raised by the offline sync layer."""
from typing import Optional


class SyncError(Exception):
    """Base class for sync failures that should be retried on a later pass."""


class UploadError(SyncError):
    """A single media upload failed (network, server, or malformed response)."""

    def __init__(self, message: str, local_uri: Optional[str] = None):
        super().__init__(message)
        self.local_uri = local_uri


class SubmissionError(SyncError):
    """
    The backend did not accept a survey answer submission.

    Carries the backend error envelope fields when present
    (``{"code", "message", "retriable"}``).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        retriable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.retriable = retriable


class UnresolvedMediaError(SyncError):
    """A payload still references local media that has no remote URL."""

    def __init__(self, local_uris):
        self.local_uris = list(local_uris)
        super().__init__(f"Unresolved local media: {', '.join(self.local_uris)}")
