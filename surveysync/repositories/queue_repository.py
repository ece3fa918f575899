"""Offline queue repository."""
import json
import logging
from threading import RLock
from typing import Callable, Dict, Any, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from surveysync.core import ops_metrics
from surveysync.core.config import settings
from surveysync.models.queue_record import QueueRecord
from surveysync.schemas.queue import Queue, MediaItem, QueuedSubmission, QUEUE_SCHEMA_VERSION
from surveysync.services.payload_rewrite import referenced_local_uris

ModelT = TypeVar("ModelT", MediaItem, QueuedSubmission)

logger = logging.getLogger(__name__)

# Every read-modify-write cycle runs under this lock, so a sync pass and a
# UI enqueue cannot overwrite each other's changes.
_QUEUE_LOCK = RLock()


def _merged(model: ModelT, patch: Dict[str, Any]) -> ModelT:
    """Shallow-merge ``patch`` into ``model``; keys may be field names or camelCase aliases."""
    fields = type(model).model_fields
    data = model.model_dump(by_alias=True)
    for key, value in patch.items():
        field = fields.get(key)
        data[field.alias if field is not None and field.alias else key] = value
    return type(model).model_validate(data)


class QueueRepository:
    """
    Durable store for the offline queue.

    The queue is a single JSON document. Each operation loads it, mutates it
    in memory and writes the whole document back in one transaction.
    """

    def __init__(self, db: Session, key: Optional[str] = None):
        self.db = db
        self.key = key or settings.QUEUE_STORAGE_KEY

    # ── whole-queue access ──────────────────────────────────────────────

    def _get_record(self) -> Optional[QueueRecord]:
        return self.db.query(QueueRecord)\
            .populate_existing()\
            .filter(QueueRecord.key == self.key)\
            .first()

    def load_queue(self) -> Queue:
        """
        Load the queue.

        Returns an empty queue when nothing is stored yet or when the stored
        value cannot be parsed; a corrupt value is logged and counted, never
        raised.
        """
        record = self._get_record()
        if record is None or not record.value:
            return Queue()

        try:
            raw = json.loads(record.value)
            if not isinstance(raw, dict):
                raise ValueError("queue document is not an object")
            version = raw.setdefault("version", QUEUE_SCHEMA_VERSION)  # unversioned legacy value
            if not isinstance(version, int) or version > QUEUE_SCHEMA_VERSION:
                raise ValueError(f"unsupported queue version {version!r}")
            return Queue.model_validate(raw)
        except (ValueError, TypeError) as exc:
            ops_metrics.increment("corrupt_queue_loads")
            logger.warning(
                "Stored offline queue %r is unreadable, starting empty: %s", self.key, exc
            )
            return Queue()

    def save_queue(self, queue: Queue) -> None:
        """Overwrite the stored queue in a single transaction."""
        value = queue.model_dump_json(by_alias=True)
        try:
            record = self._get_record()
            if record is None:
                self.db.add(QueueRecord(key=self.key, value=value))
            else:
                record.value = value
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def _mutate(self, change: Callable[[Queue], bool]) -> Queue:
        """Run load → change → save under the queue lock; skip save when unchanged."""
        with _QUEUE_LOCK:
            queue = self.load_queue()
            if change(queue):
                self.save_queue(queue)
            return queue

    # ── media ───────────────────────────────────────────────────────────

    def enqueue_media(self, item: MediaItem) -> None:
        """Append a media item unless one with the same id is queued."""
        def change(queue: Queue) -> bool:
            if any(m.id == item.id for m in queue.media):
                return False
            queue.media.append(item)
            return True

        self._mutate(change)

    def replace_media(self, media_id: str, patch: Dict[str, Any]) -> None:
        """Merge ``patch`` (field names, e.g. ``{"remote_url": ...}``) into a media item."""
        def change(queue: Queue) -> bool:
            for index, media in enumerate(queue.media):
                if media.id == str(media_id):
                    queue.media[index] = _merged(media, patch)
                    return True
            return False

        self._mutate(change)

    def remove_media(self, media_id: str) -> None:
        """Delete a media item by id (no-op if absent)."""
        def change(queue: Queue) -> bool:
            before = len(queue.media)
            queue.media = [m for m in queue.media if m.id != str(media_id)]
            return len(queue.media) != before

        self._mutate(change)

    def get_media_by_local_uri(self, local_uri: str) -> List[MediaItem]:
        """All media items captured from ``local_uri`` (it is not unique)."""
        return [m for m in self.load_queue().media if m.local_uri == local_uri]

    # ── submissions ─────────────────────────────────────────────────────

    def enqueue_submission(self, submission: QueuedSubmission) -> None:
        """Append a submission unless one with the same id is queued."""
        def change(queue: Queue) -> bool:
            if any(s.id == submission.id for s in queue.submissions):
                return False
            queue.submissions.append(submission)
            return True

        self._mutate(change)

    def update_submission(self, submission_id: str, patch: Dict[str, Any]) -> None:
        """Merge ``patch`` into a queued submission (no-op if absent)."""
        def change(queue: Queue) -> bool:
            for index, submission in enumerate(queue.submissions):
                if submission.id == str(submission_id):
                    queue.submissions[index] = _merged(submission, patch)
                    return True
            return False

        self._mutate(change)

    def remove_submission(self, submission_id: str) -> None:
        """Delete a submission by id (no-op if absent)."""
        def change(queue: Queue) -> bool:
            before = len(queue.submissions)
            queue.submissions = [s for s in queue.submissions if s.id != str(submission_id)]
            return len(queue.submissions) != before

        self._mutate(change)

    # ── housekeeping ────────────────────────────────────────────────────

    def collect_orphaned_media(self) -> List[MediaItem]:
        """
        Remove uploaded media no queued submission references anymore.

        Unresolved media is always kept. Returns the removed items.
        """
        removed: List[MediaItem] = []

        def change(queue: Queue) -> bool:
            still_needed = set()
            for submission in queue.submissions:
                still_needed.update(referenced_local_uris(submission.payload_with_local_uris))

            kept = []
            for media in queue.media:
                if media.is_resolved and media.local_uri not in still_needed:
                    removed.append(media)
                else:
                    kept.append(media)
            queue.media = kept
            return bool(removed)

        self._mutate(change)
        if removed:
            ops_metrics.increment("media_collected", len(removed))
        return removed

    def pending_counts(self) -> Dict[str, int]:
        """Counts used for status badges."""
        queue = self.load_queue()
        return {
            "submissions": len(queue.submissions),
            "media": len(queue.media),
            "unresolved_media": sum(1 for m in queue.media if not m.is_resolved),
        }
