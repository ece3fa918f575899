#!/usr/bin/env python3
"""Print the offline queue stored on this device"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from surveysync.core.database import SessionLocal, init_db
from surveysync.core.ops_metrics import get_sync_ops_metrics
from surveysync.repositories.queue_repository import QueueRepository
from surveysync.services.payload_rewrite import referenced_local_uris


def main():
    init_db()
    db = SessionLocal()
    try:
        queue = QueueRepository(db).load_queue()
        print(f'\n=== Queue v{queue.version}: {len(queue.submissions)} submissions, {len(queue.media)} media ===\n')

        if queue.is_empty:
            print("✅ Nothing pending")
            return

        for sub in queue.submissions:
            waiting = referenced_local_uris(sub.payload_with_local_uris)
            print(f'Submission {sub.id}')
            print(f'  Survey: {sub.survey_id}')
            print(f'  Queued: {sub.created_at}')
            print(f'  Answers: {len(sub.payload_with_local_uris.answers)}')
            print(f'  Local media: {", ".join(waiting) if waiting else "-"}')
            print()

        for media in queue.media:
            status = "✅" if media.is_resolved else "⏳"
            print(f'{status} Media {media.id} [{media.kind.value}] {media.local_uri}')
            if media.remote_url:
                print(f'     -> {media.remote_url}')

        if get_sync_ops_metrics()["corrupt_queue_loads"]:
            print("\n❌ Stored queue was unreadable and has been treated as empty")
    finally:
        db.close()


if __name__ == "__main__":
    main()
