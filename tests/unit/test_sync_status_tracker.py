"""Tests for SyncStatusTracker."""

from __future__ import annotations

import asyncio

import aiohttp
import pytest

from nodewatch.node_api_client import ConnectionCredentials
from nodewatch.sync_status_tracker import SyncStatusTracker
from nodewatch.sync_status_tracker_helpers import NetworkStage
from tests.helpers.node_fakes import FakeClock, FakeStatusClient, status_payload

CREDENTIALS = ConnectionCredentials(hostname="localhost", port=8090, scheme="http")


def build_tracker(monitor_config, response=None, *, gated=False):
    clock = FakeClock()
    client = FakeStatusClient(response, gated=gated)
    tracker = SyncStatusTracker(client, monitor_config, clock=clock)
    tracker.set_credentials(CREDENTIALS)
    return tracker, client, clock


async def poll(tracker: SyncStatusTracker, *, force: bool = False) -> None:
    await tracker.update_network_status(force_ntp_check=force)
    await tracker.wait_idle()


class TestConnectivity:
    @pytest.mark.asyncio
    async def test_subscribed_and_advancing_node_is_connected(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(10, 20))

        await poll(tracker)

        assert tracker.signals.is_node_responding
        assert tracker.signals.is_node_subscribed
        assert tracker.signals.is_node_syncing
        assert tracker.is_connected
        assert not tracker.signals.is_node_in_sync
        assert tracker.stage is NetworkStage.SYNCING

    @pytest.mark.asyncio
    async def test_unsubscribed_node_is_not_connected(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(10, 20, subscribed=False))

        await poll(tracker)

        assert tracker.signals.is_node_responding
        assert not tracker.signals.is_node_subscribed
        assert not tracker.is_connected
        assert tracker.stage is NetworkStage.CONNECTING

    @pytest.mark.asyncio
    async def test_node_without_network_blocks_is_not_syncing(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(10, 0))

        await poll(tracker)

        assert not tracker.signals.is_node_syncing
        assert not tracker.is_connected

    @pytest.mark.asyncio
    async def test_connecting_schedules_a_forced_time_check(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20))

        await poll(tracker)

        assert client.calls == [False, True]

    @pytest.mark.asyncio
    async def test_no_request_without_credentials(self, monitor_config):
        client = FakeStatusClient(status_payload(10, 20))
        tracker = SyncStatusTracker(client, monitor_config, clock=FakeClock())

        await tracker.update_network_status()

        assert client.calls == []

    @pytest.mark.asyncio
    async def test_forced_check_requires_connection(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20))

        await tracker.force_check_local_time_difference()

        assert client.calls == []


class TestStallDetection:
    @pytest.mark.asyncio
    async def test_heights_stalled_beyond_limit_disconnect(self, monitor_config):
        tracker, _, clock = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)
        assert tracker.is_connected

        clock.advance(121)
        await poll(tracker)

        assert not tracker.signals.is_node_syncing
        assert not tracker.is_connected
        assert tracker.signals.has_been_connected

    @pytest.mark.asyncio
    async def test_heights_stalled_within_limit_stay_syncing(self, monitor_config):
        tracker, _, clock = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)

        clock.advance(119)
        await poll(tracker)

        assert tracker.signals.is_node_syncing
        assert tracker.is_connected

    @pytest.mark.asyncio
    async def test_local_stall_with_advancing_network_keeps_syncing(self, monitor_config):
        tracker, client, clock = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)

        client.response = status_payload(10, 30)
        clock.advance(200)
        await poll(tracker)

        assert tracker.signals.is_node_syncing
        assert tracker.is_connected

    @pytest.mark.asyncio
    async def test_forced_check_pushes_stall_deadlines_past_request(self, monitor_config):
        tracker, client, clock = build_tracker(monitor_config, status_payload(10, 20), gated=True)

        forced = asyncio.create_task(tracker.update_network_status(force_ntp_check=True))
        await client.entered.wait()

        deadline = clock.now + monitor_config.request_timeout_seconds
        assert tracker._local_side.last_increase_at == deadline
        assert tracker._network_side.last_increase_at == deadline

        client.gate.set()
        await forced
        await tracker.wait_idle()

    @pytest.mark.asyncio
    async def test_forced_check_after_long_pause_is_not_a_stall(self, monitor_config):
        tracker, _, clock = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)

        clock.advance(300)
        await poll(tracker, force=True)

        assert tracker.signals.is_node_syncing
        assert tracker.is_connected

    @pytest.mark.asyncio
    async def test_incorrect_clock_holds_stall_timer(self, monitor_config):
        tracker, client, clock = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)

        client.response = status_payload(10, 20, time_difference=20_000_000)
        clock.advance(300)
        await poll(tracker)

        assert tracker.signals.is_node_syncing
        assert not tracker.signals.is_node_time_correct
        assert not tracker.is_system_time_correct
        assert not tracker.is_synced

    @pytest.mark.asyncio
    async def test_ignored_time_checks_report_system_time_correct(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(20, 20, time_difference=20_000_000))
        tracker.ignore_system_time_checks(True)

        await poll(tracker)

        assert not tracker.signals.is_node_time_correct
        assert tracker.is_system_time_correct
        assert tracker.is_synced


class TestSyncedAndReady:
    @pytest.mark.asyncio
    async def test_in_sync_node_reaches_running_once(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(20, 20))
        calls = []
        tracker.on_synced_and_ready(lambda: calls.append("ready"))

        await poll(tracker)
        await poll(tracker)

        assert tracker.stage is NetworkStage.RUNNING
        assert tracker.is_synced
        assert tracker.sync_percentage == 100.0
        assert calls == ["ready"]

    @pytest.mark.asyncio
    async def test_gap_above_allowance_is_not_in_sync(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(13, 20))

        await poll(tracker)

        assert not tracker.signals.is_node_in_sync
        assert not tracker.is_synced


class TestFailures:
    @pytest.mark.asyncio
    async def test_request_failure_resets_signals(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20))
        await poll(tracker)
        assert tracker.is_connected

        client.response = aiohttp.ClientConnectionError("refused")
        await poll(tracker)

        assert not tracker.signals.is_node_responding
        assert not tracker.signals.is_node_subscribed
        assert not tracker.signals.is_node_syncing
        assert not tracker.signals.is_node_in_sync
        assert tracker.signals.has_been_connected

    @pytest.mark.asyncio
    async def test_malformed_payload_is_treated_as_failure(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, {"subscriptionStatus": {}})

        await poll(tracker)

        assert not tracker.signals.is_node_responding
        assert not tracker.signals.has_been_connected

    @pytest.mark.asyncio
    async def test_credentials_cleared_mid_request_discard_result(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20), gated=True)

        pending = asyncio.create_task(tracker.update_network_status())
        await client.entered.wait()
        tracker.clear_credentials()
        client.gate.set()
        await pending

        assert not tracker.signals.is_node_responding
        assert not tracker.is_connected


class TestInFlightRule:
    @pytest.mark.asyncio
    async def test_regular_poll_skipped_while_forced_check_runs(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20, subscribed=False), gated=True)

        forced = asyncio.create_task(tracker.update_network_status(force_ntp_check=True))
        await client.entered.wait()
        await tracker.update_network_status()
        assert client.calls == [True]

        client.gate.set()
        await forced
        assert client.calls == [True]

    @pytest.mark.asyncio
    async def test_forced_check_joins_running_forced_check(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20, subscribed=False), gated=True)

        first = asyncio.create_task(tracker.update_network_status(force_ntp_check=True))
        await client.entered.wait()
        second = asyncio.create_task(tracker.update_network_status(force_ntp_check=True))
        await asyncio.sleep(0)

        client.gate.set()
        await asyncio.gather(first, second)

        assert client.calls == [True]

    @pytest.mark.asyncio
    async def test_forced_check_runs_after_regular_poll(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config, status_payload(10, 20, subscribed=False), gated=True)

        regular = asyncio.create_task(tracker.update_network_status())
        await client.entered.wait()
        forced = asyncio.create_task(tracker.update_network_status(force_ntp_check=True))
        await asyncio.sleep(0)
        assert client.calls == [False]

        client.gate.set()
        await asyncio.gather(regular, forced)

        assert client.calls == [False, True]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_ignores_time_checks_for_grace_period(self, monitor_config):
        monitor_config.time_checks_grace_period_seconds = 0.01
        tracker, _, _ = build_tracker(monitor_config)

        tracker.start()
        assert tracker.timers_active
        assert tracker.signals.is_system_time_ignored

        await asyncio.sleep(0.05)
        assert not tracker.signals.is_system_time_ignored

        tracker.stop()
        assert not tracker.timers_active

    @pytest.mark.asyncio
    async def test_timer_toggles_are_idempotent(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config)

        assert tracker.start_timers() is True
        assert tracker.start_timers() is False
        assert tracker.cancel_timers() is True
        assert tracker.cancel_timers() is False

    def test_unchanged_credentials_are_not_reapplied(self, monitor_config):
        tracker, client, _ = build_tracker(monitor_config)

        assert tracker.set_credentials(ConnectionCredentials(hostname="localhost", port=8090, scheme="http")) is False
        assert tracker.set_credentials(ConnectionCredentials(hostname="localhost", port=8091, scheme="http")) is True
        assert len(client.request_configs) == 2

    @pytest.mark.asyncio
    async def test_listeners_receive_snapshots(self, monitor_config):
        tracker, _, _ = build_tracker(monitor_config, status_payload(10, 20))
        snapshots = []
        tracker.add_listener(snapshots.append)

        await poll(tracker)
        received = len(snapshots)
        tracker.remove_listener(snapshots.append)
        tracker.ignore_system_time_checks(True)

        assert received == 2
        assert len(snapshots) == received
        assert snapshots[0].is_connected
        assert snapshots[0].local_block_height == 10
