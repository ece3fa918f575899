"""Database models."""
from surveysync.models.queue_record import QueueRecord

__all__ = [
    "QueueRecord",
]
