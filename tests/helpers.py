"""Shared test helpers."""
from surveysync.schemas.queue import MediaItem, MediaKind, QueuedSubmission
from surveysync.schemas.submission import SubmissionPayload
from surveysync.services.connectivity import ConnectivityMonitor, NetworkState

ONLINE = NetworkState(is_connected=True, is_internet_reachable=True)
NO_INTERNET = NetworkState(is_connected=True, is_internet_reachable=False)
NO_LINK = NetworkState(is_connected=False, is_internet_reachable=False)


def make_monitor(state: NetworkState) -> ConnectivityMonitor:
    """Monitor whose probe always answers ``state``, already reporting it."""
    async def probe():
        return state

    monitor = ConnectivityMonitor(probe=probe, poll_interval=0.01)
    monitor.report(state)
    return monitor


def media(id, local_uri, kind="image", **extra) -> MediaItem:
    return MediaItem(id=id, local_uri=local_uri, kind=MediaKind(kind), **extra)


def submission(id, survey_id, payload: dict) -> QueuedSubmission:
    return QueuedSubmission(
        id=id,
        survey_id=survey_id,
        payload_with_local_uris=SubmissionPayload.model_validate(payload),
    )
