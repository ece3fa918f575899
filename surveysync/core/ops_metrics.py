"""In-memory operational counters for the offline sync queue.

Keeps lightweight runtime counters to expose:
- media uploads succeeded / failed
- submissions sent / failed / deferred on missing media
- sync passes run and passes skipped while offline
- corrupt queue loads (stored value dropped and replaced by an empty queue)

Counters reset on process restart.
"""

from threading import Lock
from typing import Dict


_LOCK = Lock()

_COUNTER_NAMES = (
    "passes",
    "offline_skips",
    "media_uploaded",
    "media_upload_failed",
    "submissions_sent",
    "submissions_failed",
    "submissions_deferred",
    "media_collected",
    "corrupt_queue_loads",
)

_COUNTERS: Dict[str, int] = {name: 0 for name in _COUNTER_NAMES}


def increment(name: str, amount: int = 1) -> None:
    if name not in _COUNTERS:
        raise KeyError(f"Unknown sync counter: {name}")
    with _LOCK:
        _COUNTERS[name] += max(amount, 0)


def get_sync_ops_metrics() -> dict:
    with _LOCK:
        snapshot = dict(_COUNTERS)

    attempted = snapshot["media_uploaded"] + snapshot["media_upload_failed"]
    snapshot["upload_failure_rate_pct"] = (
        round((snapshot["media_upload_failed"] / attempted) * 100, 2)
        if attempted > 0
        else 0.0
    )
    return snapshot


def reset_sync_ops_metrics() -> None:
    with _LOCK:
        for name in _COUNTERS:
            _COUNTERS[name] = 0
