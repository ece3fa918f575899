"""Offline sync runtime: wires the queue, uploader, sync pass and triggers together."""
import logging
from typing import Optional

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from surveysync.core.database import SessionLocal, engine as default_engine, init_db
from surveysync.services.answer_service import AnswerService
from surveysync.services.api_client import create_api_client, set_auth_token
from surveysync.services.connectivity import ConnectivityMonitor
from surveysync.services.submission_service import SubmissionService
from surveysync.services.sync_service import SyncService
from surveysync.services.sync_trigger import SyncTrigger
from surveysync.services.upload_service import UploadService

logger = logging.getLogger(__name__)


class OfflineSync:
    """
    One instance per app process.

    Usage:
        offline = OfflineSync()
        await offline.start()          # app start: create table, run first pass
        outcome = await offline.submissions.submit(7, payload, media)
        ...
        await offline.stop()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        db_engine: Optional[Engine] = None,
    ):
        self.db_engine = db_engine or default_engine
        self.session_factory = (
            SessionLocal
            if db_engine is None
            else sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
        )
        self.client = client or create_api_client()
        self.monitor = monitor or ConnectivityMonitor()

        self.uploader = UploadService(self.client)
        self.answers = AnswerService(self.client)
        self.sync_service = SyncService(
            self.monitor, self.uploader, self.answers, session_factory=self.session_factory
        )
        self.submissions = SubmissionService(
            self.monitor, self.answers, self.sync_service, session_factory=self.session_factory
        )
        self.trigger = SyncTrigger(self.monitor, self.sync_service)

    def set_auth_token(self, token: Optional[str]) -> None:
        set_auth_token(self.client, token)

    async def start(self, watch_connectivity: bool = True) -> None:
        """
        Prepare storage, begin watching connectivity and run the startup pass.

        Pass ``watch_connectivity=False`` when the platform pushes network
        state through ``monitor.report()`` instead.
        """
        init_db(self.db_engine)
        if watch_connectivity:
            self.monitor.start()
        await self.trigger.start()
        logger.info("Offline sync started")

    async def stop(self) -> None:
        self.trigger.stop()
        await self.monitor.stop()
        await self.trigger.wait_idle()
        await self.client.aclose()
        logger.info("Offline sync stopped")
