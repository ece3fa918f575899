"""
Unit tests for the connectivity monitor and the sync trigger.
"""

import asyncio
import threading
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from surveysync.schemas.sync import SyncReport
from surveysync.services.connectivity import ConnectivityMonitor, NetworkState, _internet_reachable
from surveysync.services.sync_trigger import SyncTrigger

from helpers import ONLINE, NO_INTERNET, NO_LINK, make_monitor


class TestNetworkState:

    def test_online_needs_link_and_internet(self):
        assert ONLINE.online
        assert not NO_INTERNET.online
        assert not NO_LINK.online
        assert not NetworkState(is_connected=False, is_internet_reachable=True).online


class TestInternetReachable:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response, expected",
        [
            (httpx.Response(204), True),
            (httpx.Response(302, headers={"Location": "http://portal.local/login"}), False),
            (httpx.Response(200, text="<html>Sign in to Wi-Fi</html>"), False),
            (httpx.Response(403), False),
            (httpx.Response(503), False),
        ],
    )
    async def test_only_expected_status_counts(self, response, expected):
        transport = httpx.MockTransport(lambda request: response)
        assert await _internet_reachable("http://check.local/generate_204", 1.0, transport=transport) is expected

    @pytest.mark.asyncio
    async def test_network_error_is_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("no route", request=request)

        transport = httpx.MockTransport(handler)
        assert await _internet_reachable("http://check.local/generate_204", 1.0, transport=transport) is False


class TestConnectivityMonitor:

    def test_listeners_only_hear_transitions(self):
        monitor = ConnectivityMonitor(probe=AsyncMock(return_value=ONLINE))
        events = []
        monitor.subscribe(events.append)

        monitor.report(NO_LINK)
        monitor.report(NO_INTERNET)
        monitor.report(ONLINE)
        monitor.report(ONLINE)
        monitor.report(NO_LINK)

        assert events == [False, True, False]

    def test_unsubscribe(self):
        monitor = make_monitor(NO_LINK)
        events = []
        unsubscribe = monitor.subscribe(events.append)

        unsubscribe()
        unsubscribe()
        monitor.report(ONLINE)

        assert events == []

    def test_failing_listener_does_not_break_others(self):
        monitor = make_monitor(NO_LINK)
        events = []
        monitor.subscribe(Mock(side_effect=RuntimeError("boom")))
        monitor.subscribe(events.append)

        monitor.report(ONLINE)

        assert events == [True]

    @pytest.mark.asyncio
    async def test_is_online_probes_when_unknown(self):
        probe = AsyncMock(return_value=ONLINE)
        monitor = ConnectivityMonitor(probe=probe)

        assert await monitor.is_online() is True
        assert await monitor.is_online() is True
        probe.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_probe_failure_means_offline(self):
        monitor = ConnectivityMonitor(probe=AsyncMock(side_effect=OSError("netlink")))
        assert await monitor.is_online() is False
        assert monitor.state == NO_LINK

    @pytest.mark.asyncio
    async def test_background_probing_reports_changes(self):
        states = iter([NO_LINK, NO_LINK, ONLINE])

        async def probe():
            return next(states, ONLINE)

        monitor = ConnectivityMonitor(probe=probe, poll_interval=0.001)
        events = []
        monitor.subscribe(events.append)

        monitor.start()
        for _ in range(200):
            if events == [False, True]:
                break
            await asyncio.sleep(0.005)
        await monitor.stop()

        assert events == [False, True]


def _trigger(monitor, run_sync):
    service = Mock()
    service.run_sync = run_sync
    return SyncTrigger(monitor, service)


class TestSyncTrigger:

    @pytest.mark.asyncio
    async def test_start_runs_one_pass(self):
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(make_monitor(ONLINE), run_sync)

        await trigger.start()

        run_sync.assert_awaited_once()
        assert trigger.started

    @pytest.mark.asyncio
    async def test_coming_online_runs_pass(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        await trigger.start(run_now=False)

        monitor.report(ONLINE)
        await trigger.wait_idle()

        run_sync.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_going_offline_runs_nothing(self):
        monitor = make_monitor(ONLINE)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        await trigger.start(run_now=False)

        monitor.report(NO_INTERNET)
        await trigger.wait_idle()

        run_sync.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_each_reconnect_runs_a_pass(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        await trigger.start(run_now=False)

        for _ in range(3):
            monitor.report(ONLINE)
            monitor.report(NO_LINK)
        await trigger.wait_idle()

        assert run_sync.await_count == 3

    @pytest.mark.asyncio
    async def test_sync_errors_are_swallowed(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(side_effect=RuntimeError("unexpected"))
        trigger = _trigger(monitor, run_sync)

        await trigger.start()
        monitor.report(ONLINE)
        await trigger.wait_idle()

        assert run_sync.await_count == 2

    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        await trigger.start(run_now=False)

        trigger.stop()
        monitor.report(ONLINE)
        await trigger.wait_idle()

        run_sync.assert_not_awaited()
        assert not trigger.started

    @pytest.mark.asyncio
    async def test_online_reported_from_another_thread_runs_pass(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        await trigger.start(run_now=False)

        reporter = threading.Thread(target=monitor.report, args=(ONLINE,))
        reporter.start()
        reporter.join()
        for _ in range(100):
            if run_sync.await_count:
                break
            await asyncio.sleep(0.01)
        await trigger.wait_idle()

        run_sync.assert_awaited_once()

    def test_transition_without_event_loop_is_ignored(self):
        monitor = make_monitor(NO_LINK)
        run_sync = AsyncMock(return_value=SyncReport())
        trigger = _trigger(monitor, run_sync)
        monitor.subscribe(trigger._on_connectivity_change)

        monitor.report(ONLINE)

        run_sync.assert_not_called()
