"""Offline queue schemas."""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from surveysync.schemas.submission import SubmissionPayload

QUEUE_SCHEMA_VERSION = 1


class MediaKind(str, Enum):
    """Kinds of media captured by the survey form."""
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


class _QueueModel(BaseModel):
    """Persisted with camelCase keys; attributes are snake_case. Unknown keys are kept."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class MediaItem(_QueueModel):
    """One captured local file waiting for (or done with) upload."""
    id: str
    local_uri: str = Field(..., min_length=1)
    kind: MediaKind
    remote_url: Optional[str] = None
    survey_id: Optional[int] = None
    question_id: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        # Timestamp-based ids arrive as integers
        return str(value) if isinstance(value, int) else value

    @property
    def is_resolved(self) -> bool:
        return bool(self.remote_url)


class QueuedSubmission(_QueueModel):
    """One survey answer payload waiting to be sent."""
    id: str
    survey_id: int
    payload_with_local_uris: SubmissionPayload
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if isinstance(value, int) else value


class Queue(_QueueModel):
    """The durable aggregate: pending submissions and media, in insertion order."""
    version: int = QUEUE_SCHEMA_VERSION
    submissions: List[QueuedSubmission] = []
    media: List[MediaItem] = []

    @property
    def is_empty(self) -> bool:
        return not self.submissions and not self.media
