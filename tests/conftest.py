"""
Pytest configuration and fixtures for the offline sync tests.
"""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.orm import sessionmaker

from surveysync.core import ops_metrics
from surveysync.core.database import build_engine, init_db
from surveysync.repositories.queue_repository import QueueRepository
from surveysync.services.answer_service import AnswerService
from surveysync.services.api_client import create_api_client
from surveysync.services.sync_service import SyncService
from surveysync.services.upload_service import UploadService

from fake_backend import FakeBackend
from helpers import ONLINE, NO_INTERNET, make_monitor

BASE_URL = "http://testserver"


# ============================================
# Storage
# ============================================

@pytest.fixture
def db_engine(tmp_path):
    """A fresh SQLite queue database per test."""
    engine = build_engine(f"sqlite:///{tmp_path / 'queue.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repo(db):
    return QueueRepository(db)


@pytest.fixture(autouse=True)
def reset_metrics():
    ops_metrics.reset_sync_ops_metrics()
    yield


# ============================================
# Connectivity
# ============================================

@pytest.fixture
def online_monitor():
    return make_monitor(ONLINE)


@pytest.fixture
def offline_monitor():
    return make_monitor(NO_INTERNET)


# ============================================
# Backend
# ============================================

@pytest.fixture
def backend():
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend):
    api = create_api_client(
        base_url=BASE_URL, token="test-token", transport=httpx.ASGITransport(app=backend.app)
    )
    yield api
    await api.aclose()


@pytest.fixture
def make_sync_service(client, session_factory):
    """Factory for a SyncService wired to the fake backend."""
    def _make(monitor, **kwargs):
        return SyncService(
            monitor,
            UploadService(client),
            AnswerService(client),
            session_factory=session_factory,
            **kwargs,
        )
    return _make


# ============================================
# Media files
# ============================================

@pytest.fixture
def media_file(tmp_path):
    """Create a captured file and return its file:// URI; content defaults to the name."""
    def _create(name: str, content: bytes = None) -> str:
        path = tmp_path / "captures" / name
        path.parent.mkdir(exist_ok=True)
        path.write_bytes(content if content is not None else name.encode())
        return path.as_uri()
    return _create
