"""Offline queue sync service."""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from surveysync.core import ops_metrics
from surveysync.core.config import settings
from surveysync.core.database import SessionLocal
from surveysync.core.exceptions import SyncError
from surveysync.repositories.queue_repository import QueueRepository
from surveysync.schemas.sync import SyncReport, SyncStatus
from surveysync.services.answer_service import AnswerService
from surveysync.services.connectivity import ConnectivityMonitor
from surveysync.services.payload_rewrite import referenced_local_uris, rewrite_payload
from surveysync.services.upload_service import UploadService

logger = logging.getLogger(__name__)


class SyncService:
    """Drains the offline queue: uploads pending media, then sends ready submissions."""

    def __init__(
        self,
        monitor: ConnectivityMonitor,
        uploader: UploadService,
        answers: AnswerService,
        session_factory: Callable[[], Session] = SessionLocal,
        gc_resolved_media: Optional[bool] = None,
    ):
        self.monitor = monitor
        self.uploader = uploader
        self.answers = answers
        self.session_factory = session_factory
        self.gc_resolved_media = (
            settings.SYNC_GC_RESOLVED_MEDIA if gc_resolved_media is None else gc_resolved_media
        )
        self.last_sync: Optional[datetime] = None
        # Overlapping calls wait for the running pass, then run their own.
        self._pass_lock = asyncio.Lock()

    async def run_sync(self) -> SyncReport:
        """
        Run one sync pass and return what it did.

        Makes as much progress as current connectivity allows and returns;
        it never waits for connectivity or retries internally. Offline and
        per-item failures are reported, not raised: failed uploads and
        submissions stay queued for the next pass.
        """
        async with self._pass_lock:
            return await self._run_pass()

    async def _run_pass(self) -> SyncReport:
        report = SyncReport(started_at=datetime.now(timezone.utc))

        if not await self.monitor.is_online():
            ops_metrics.increment("offline_skips")
            report.skipped_offline = True
            report.finished_at = datetime.now(timezone.utc)
            return report

        ops_metrics.increment("passes")
        db = self.session_factory()
        try:
            repo = QueueRepository(db)
            url_map = await self._upload_pending_media(repo, report)
            await self._send_ready_submissions(repo, url_map, report)
            if self.gc_resolved_media:
                report.collected_media = len(repo.collect_orphaned_media())
        finally:
            db.close()

        report.finished_at = datetime.now(timezone.utc)
        self.last_sync = report.finished_at
        logger.info(
            "Sync pass done: uploaded=%s upload_failures=%s submitted=%s deferred=%s submit_failures=%s",
            report.uploaded,
            report.upload_failures,
            report.submitted,
            report.deferred,
            report.submit_failures,
        )
        return report

    async def _upload_pending_media(self, repo: QueueRepository, report: SyncReport) -> Dict[str, str]:
        """Upload every unresolved media item; returns local_uri -> remote_url for this pass."""
        queue = repo.load_queue()

        url_map: Dict[str, str] = {}
        for media in queue.media:
            if media.remote_url:
                url_map.setdefault(media.local_uri, media.remote_url)

        for media in queue.media:
            if media.remote_url:
                continue

            if media.local_uri in url_map:
                # Same file already uploaded for another item
                repo.replace_media(media.id, {"remote_url": url_map[media.local_uri]})
                continue

            try:
                remote_url = await self.uploader.upload(media.local_uri, media.kind)
            except SyncError as exc:
                report.upload_failures += 1
                ops_metrics.increment("media_upload_failed")
                logger.warning("Media upload failed, will retry: %s (%s)", media.local_uri, exc)
                continue

            url_map[media.local_uri] = remote_url
            repo.replace_media(media.id, {"remote_url": remote_url})
            report.uploaded += 1
            ops_metrics.increment("media_uploaded")

        return url_map

    async def _send_ready_submissions(
        self, repo: QueueRepository, url_map: Dict[str, str], report: SyncReport
    ) -> None:
        """Send each submission whose local media is all resolved; defer the rest."""
        # Reload to pick up remote URLs persisted by the upload step
        queue = repo.load_queue()

        known_urls: Dict[str, str] = {}
        for media in queue.media:
            if media.remote_url:
                known_urls.setdefault(media.local_uri, media.remote_url)

        for submission in queue.submissions:
            payload = submission.payload_with_local_uris
            resolved: Dict[str, str] = {}
            missing = []
            for local_uri in referenced_local_uris(payload):
                remote_url = url_map.get(local_uri) or known_urls.get(local_uri)
                if remote_url:
                    resolved[local_uri] = remote_url
                else:
                    missing.append(local_uri)

            if missing:
                report.deferred += 1
                ops_metrics.increment("submissions_deferred")
                logger.debug("Submission %s waiting on media: %s", submission.id, missing)
                continue

            try:
                await self.answers.submit(submission.survey_id, rewrite_payload(payload, resolved))
            except SyncError as exc:
                report.submit_failures += 1
                ops_metrics.increment("submissions_failed")
                logger.warning("Submission sync failed, will retry: %s (%s)", submission.id, exc)
                continue

            repo.remove_submission(submission.id)
            report.submitted += 1
            ops_metrics.increment("submissions_sent")

    def get_status(self) -> SyncStatus:
        """Pending counts plus last sync time and last known connectivity."""
        db = self.session_factory()
        try:
            counts = QueueRepository(db).pending_counts()
        finally:
            db.close()

        state = self.monitor.state
        return SyncStatus(
            pending_submissions=counts["submissions"],
            pending_media=counts["media"],
            unresolved_media=counts["unresolved_media"],
            last_sync=self.last_sync,
            online=state.online if state is not None else None,
        )
