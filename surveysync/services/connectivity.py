"""
Network connectivity monitor.

"Online" means the device has a network link AND the internet is
reachable. Platform integrations push state through ``report()``; without
one, ``start()`` runs a background prober that does the same. Listeners are
only told about transitions.
"""
import asyncio
import logging
import socket
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import httpx

from surveysync.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkState:
    is_connected: bool
    is_internet_reachable: bool

    @property
    def online(self) -> bool:
        return self.is_connected and self.is_internet_reachable


OFFLINE = NetworkState(is_connected=False, is_internet_reachable=False)

Probe = Callable[[], Awaitable[NetworkState]]
Listener = Callable[[bool], None]


def _has_route(host: str, port: int) -> bool:
    # Connecting a UDP socket sends nothing; it only fails without a route.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect((host, port))
        return True
    except OSError:
        return False


async def _internet_reachable(
    url: str,
    timeout: float,
    expected_status: int = 204,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    # Redirects are not followed, so a captive portal answers 302 here
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.get(url)
        return resp.status_code == expected_status
    except httpx.HTTPError:
        return False


async def default_probe() -> NetworkState:
    """Check link (route to a public resolver) then HTTP reachability."""
    connected = await asyncio.to_thread(
        _has_route, settings.CONNECTIVITY_CHECK_HOST, settings.CONNECTIVITY_CHECK_PORT
    )
    if not connected:
        return OFFLINE
    reachable = await _internet_reachable(
        settings.CONNECTIVITY_CHECK_URL,
        settings.CONNECTIVITY_CHECK_TIMEOUT_SECONDS,
        settings.CONNECTIVITY_CHECK_EXPECTED_STATUS,
    )
    return NetworkState(is_connected=True, is_internet_reachable=reachable)


class ConnectivityMonitor:
    """Holds the last known network state and notifies subscribers on change."""

    def __init__(self, probe: Optional[Probe] = None, poll_interval: Optional[float] = None):
        self._probe = probe or default_probe
        self._poll_interval = (
            poll_interval if poll_interval is not None else settings.CONNECTIVITY_POLL_SECONDS
        )
        self._state: Optional[NetworkState] = None
        self._listeners: List[Listener] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> Optional[NetworkState]:
        return self._state

    async def refresh(self) -> NetworkState:
        """Probe now and report the result."""
        try:
            state = await self._probe()
        except Exception:
            logger.exception("Connectivity probe failed, assuming offline")
            state = OFFLINE
        self.report(state)
        return state

    async def is_online(self) -> bool:
        """Last known state; probes once if nothing is known yet."""
        state = self._state if self._state is not None else await self.refresh()
        return state.online

    def report(self, state: NetworkState) -> None:
        """Record a new state and notify listeners if online/offline flipped."""
        previous = self._state
        self._state = state
        if previous is not None and previous.online == state.online:
            return

        logger.info("Connectivity: %s", "online" if state.online else "offline")
        for listener in list(self._listeners):
            try:
                listener(state.online)
            except Exception:
                logger.exception("Connectivity listener %r failed", listener)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(is_online)``; returns the matching unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Start background probing on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._watch())
        logger.info("ConnectivityMonitor started (poll interval: %ss)", self._poll_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _watch(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._poll_interval)
