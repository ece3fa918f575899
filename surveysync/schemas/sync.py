"""Sync pass and status schemas."""
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from surveysync.schemas.submission import SubmissionReceipt


class SyncReport(BaseModel):
    """Outcome of one sync pass."""
    skipped_offline: bool = False
    uploaded: int = 0
    upload_failures: int = 0
    submitted: int = 0
    deferred: int = 0
    submit_failures: int = 0
    collected_media: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def made_progress(self) -> bool:
        return bool(self.uploaded or self.submitted)


class SyncStatus(BaseModel):
    """Sync status for display (badge counts, last sync time)."""
    pending_submissions: int
    pending_media: int
    unresolved_media: int
    last_sync: Optional[datetime] = None
    online: Optional[bool] = None


class SubmitStatus(str, Enum):
    """Result of a foreground submit attempt."""
    SUBMITTED = "submitted"
    QUEUED = "queued"


class SubmitOutcome(BaseModel):
    """What the form should tell the user after pressing submit."""
    status: SubmitStatus
    submission_id: str
    message: str
    receipt: Optional[SubmissionReceipt] = None
