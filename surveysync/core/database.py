"""Local database configuration and session management."""
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from surveysync.core.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine for the on-device queue database."""
    connect_args = {}
    if url.startswith("sqlite"):
        # Sync passes and UI callers may use different threads
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args, future=True)


# Create engine
engine = build_engine(settings.QUEUE_DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


def init_db(bind: Engine = engine) -> None:
    """Create the queue table if it does not exist yet."""
    from surveysync.models import QueueRecord  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and close it afterwards.

    Usage:
        db = next(get_db())
        QueueRepository(db).load_queue()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
