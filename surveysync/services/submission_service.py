"""Foreground survey submission with offline fallback."""
import logging
import uuid
from typing import Callable, Iterable, Optional, Union

from sqlalchemy.orm import Session

from surveysync.core.database import SessionLocal
from surveysync.core.exceptions import SyncError
from surveysync.repositories.queue_repository import QueueRepository
from surveysync.schemas.queue import MediaItem, QueuedSubmission
from surveysync.schemas.submission import SubmissionPayload
from surveysync.schemas.sync import SubmitOutcome, SubmitStatus
from surveysync.services.answer_service import AnswerService
from surveysync.services.connectivity import ConnectivityMonitor
from surveysync.services.payload_rewrite import referenced_local_uris
from surveysync.services.sync_service import SyncService

logger = logging.getLogger(__name__)

MSG_SUBMITTED = "Responses submitted"
MSG_SAVED_OFFLINE = "Submission queued and will sync when back online."
MSG_SAVED_TO_QUEUE = "Could not submit now. It will auto-sync later."


def new_client_id() -> str:
    """Client-side id, assigned before any network call."""
    return uuid.uuid4().hex


class SubmissionService:
    """
    Submit a completed form, falling back to the offline queue.

    Offline: queue immediately. Online: send directly; on failure queue it
    and try one sync pass so a brief outage clears right away.
    Payloads that still reference local media are queued together with
    their media and a sync pass is attempted right away.
    """

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        answers: AnswerService,
        sync_service: Optional[SyncService] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.monitor = monitor
        self.answers = answers
        self.sync_service = sync_service
        self.session_factory = session_factory

    async def submit(
        self,
        survey_id: Union[int, str],
        payload: SubmissionPayload,
        media: Iterable[MediaItem] = (),
    ) -> SubmitOutcome:
        # Non-numeric ids fail here, before anything is sent or queued
        survey_id = int(survey_id)
        submission_id = new_client_id()
        media = list(media)

        if not await self.monitor.is_online():
            self._enqueue(submission_id, survey_id, payload, media)
            return SubmitOutcome(
                status=SubmitStatus.QUEUED, submission_id=submission_id, message=MSG_SAVED_OFFLINE
            )

        if referenced_local_uris(payload):
            self._enqueue(submission_id, survey_id, payload, media)
            return await self._flush(submission_id)

        try:
            receipt = await self.answers.submit(survey_id, payload)
        except SyncError as exc:
            logger.warning("Direct submission to survey %s failed, queueing: %s", survey_id, exc)
            self._enqueue(submission_id, survey_id, payload, media)
            return await self._flush(submission_id)

        return SubmitOutcome(
            status=SubmitStatus.SUBMITTED,
            submission_id=submission_id,
            message=MSG_SUBMITTED,
            receipt=receipt,
        )

    async def _flush(self, submission_id: str) -> SubmitOutcome:
        """Try one sync pass right away; report whether the submission left the queue."""
        if self.sync_service is not None:
            try:
                await self.sync_service.run_sync()
            except Exception:
                logger.exception("Immediate sync after queueing %s failed", submission_id)
            if not self._is_queued(submission_id):
                return SubmitOutcome(
                    status=SubmitStatus.SUBMITTED, submission_id=submission_id, message=MSG_SUBMITTED
                )
        return SubmitOutcome(
            status=SubmitStatus.QUEUED, submission_id=submission_id, message=MSG_SAVED_TO_QUEUE
        )

    def _enqueue(self, submission_id, survey_id, payload, media) -> None:
        db = self.session_factory()
        try:
            repo = QueueRepository(db)
            # Media first, so a concurrent pass never sees the submission without it
            for item in media:
                repo.enqueue_media(item)
            repo.enqueue_submission(
                QueuedSubmission(
                    id=submission_id,
                    survey_id=survey_id,
                    payload_with_local_uris=payload,
                )
            )
        finally:
            db.close()

    def _is_queued(self, submission_id: str) -> bool:
        db = self.session_factory()
        try:
            queue = QueueRepository(db).load_queue()
        finally:
            db.close()
        return any(s.id == submission_id for s in queue.submissions)
