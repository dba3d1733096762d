"""Tests for NetworkStatusService."""

from __future__ import annotations

import asyncio

import pytest

from nodewatch.network_status_service import MonitorChannels, NetworkStatusService, current_epoch
from tests.helpers.node_fakes import CREDENTIALS_PAYLOAD, FakeClock, FakeStatusClient, drain_event_loop, status_payload

EPOCH = 432_000


class HostResponders:
    """Plays the node host on the other end of every channel."""

    def __init__(self, channels: MonitorChannels, *, cached_status=None, disk_space=None):
        self.cached_status = cached_status
        self.disk_space = disk_space if disk_space is not None else {"isNotEnoughDiskSpace": False}
        self.pushed = []
        self.restarts = 0
        self.start_time_requests = 0
        channels.lifecycle_state.handle(lambda _payload: "running")
        channels.credentials.handle(lambda _payload: CREDENTIALS_PAYLOAD)
        channels.status.handle(self._status)
        channels.restart.handle(self._restart)
        channels.system_start_time.handle(self._start_time)
        channels.epochs_consolidated.handle(lambda _payload: 5)
        channels.disk_space.handle(lambda _payload: self.disk_space)

    def _status(self, payload):
        if payload is None:
            return self.cached_status
        self.pushed.append(payload)
        return None

    def _restart(self, _payload):
        self.restarts += 1

    def _start_time(self, _payload):
        self.start_time_requests += 1
        return 1000.0


def build_service(monitor_config, **host_options):
    channels = MonitorChannels.in_memory()
    host = HostResponders(channels, **host_options)
    clock = FakeClock()
    client = FakeStatusClient(status_payload(10, 20))
    service = NetworkStatusService(channels, monitor_config, client=client, clock=clock)
    return service, host, client, clock


@pytest.mark.parametrize(
    ("start", "now", "expected"),
    [
        (0, 5_000_000, 0),
        (1000.0, 500.0, 0),
        (1000.0, 1000.0, 0),
        (1000.0, 1000.0 + 2.5 * EPOCH, 2),
    ],
)
def test_current_epoch(start, now, expected):
    assert current_epoch(start, now, EPOCH) == expected


class TestSetup:
    @pytest.mark.asyncio
    async def test_setup_adopts_credentials_and_starts_polling(self, monitor_config):
        service, host, client, _ = build_service(monitor_config)

        await service.setup()

        assert service.state_machine.state.value == "running"
        assert service.tracker.credentials.port == 8090
        assert service.tracker.timers_active
        assert service.channels.disk_space.listener_count == 1
        assert host.start_time_requests == 0

        await service.teardown()
        assert not service.tracker.timers_active
        assert service.channels.lifecycle_state.listener_count == 0
        assert service.channels.disk_space.listener_count == 0
        assert client.closed

    @pytest.mark.asyncio
    async def test_teardown_waits_for_request_in_flight(self, monitor_config):
        service, _, client, _ = build_service(monitor_config)
        await service.setup()
        await service.tracker.wait_idle()
        client.gate = asyncio.Event()
        client.entered.clear()

        poll = asyncio.create_task(service.tracker.update_network_status())
        await client.entered.wait()
        teardown = asyncio.create_task(service.teardown())
        await drain_event_loop()
        assert not teardown.done()
        assert not client.closed

        client.gate.set()
        await teardown
        await poll

        assert client.closed
        assert service.tracker.signals.is_node_responding

    @pytest.mark.asyncio
    async def test_development_mode_fetches_system_start_time(self, monitor_config):
        monitor_config.is_development = True
        service, host, _, _ = build_service(monitor_config)

        await service.setup()
        await service.teardown()

        assert host.start_time_requests == 1
        assert service.system_start_time == 1000.0

    @pytest.mark.asyncio
    async def test_cached_status_bootstraps_signals(self, monitor_config):
        cached = {"isNodeResponding": True, "isNodeSubscribed": True, "isNodeSyncing": True, "hasBeenConnected": True}
        service, _, _, _ = build_service(monitor_config, cached_status=cached)

        await service.setup()
        connected = service.is_connected
        await service.teardown()

        assert connected
        assert service.tracker.signals.has_been_connected

    @pytest.mark.asyncio
    async def test_insufficient_disk_space_at_startup_suspends_polling(self, monitor_config):
        service, _, _, _ = build_service(monitor_config, disk_space={"isNotEnoughDiskSpace": True})

        await service.setup()

        assert service.is_not_enough_disk_space
        assert not service.tracker.timers_active
        await service.teardown()


class TestStatusPush:
    @pytest.mark.asyncio
    async def test_connected_status_is_pushed_once_per_change(self, monitor_config):
        service, host, _, _ = build_service(monitor_config)
        await service.setup()

        await service.tracker.update_network_status()
        await service.tracker.wait_idle()
        await drain_event_loop()
        await service.teardown()

        assert host.pushed == [
            {
                "isNodeResponding": True,
                "isNodeSubscribed": True,
                "isNodeSyncing": True,
                "isNodeInSync": False,
                "hasBeenConnected": False,
            }
        ]

    @pytest.mark.asyncio
    async def test_disconnected_status_is_not_pushed(self, monitor_config):
        service, host, client, _ = build_service(monitor_config)
        client.response = status_payload(10, 20, subscribed=False)
        await service.setup()

        await service.tracker.update_network_status()
        await service.tracker.wait_idle()
        await drain_event_loop()
        await service.teardown()

        assert host.pushed == []


class TestOperations:
    @pytest.mark.asyncio
    async def test_restart_node_requests_restart(self, monitor_config):
        service, host, _, _ = build_service(monitor_config)

        await service.restart_node()

        assert host.restarts == 1

    @pytest.mark.asyncio
    async def test_restart_failure_is_logged(self, monitor_config, caplog):
        service, _, _, _ = build_service(monitor_config)
        service.channels.restart.handle(None)

        await service.restart_node()

        assert "Restart of the node failed" in caplog.text

    @pytest.mark.asyncio
    async def test_epochs_data_uses_system_start_time(self, monitor_config):
        service, _, _, clock = build_service(monitor_config)
        service.system_start_time = 1000.0
        clock.now = 1000.0 + 3.2 * monitor_config.epoch_length_seconds

        await service.get_epochs_data()

        assert service.epochs_consolidated == 5
        assert service.current_epoch == 3

    @pytest.mark.asyncio
    async def test_epochs_data_without_start_time_is_epoch_zero(self, monitor_config):
        service, _, _, _ = build_service(monitor_config)

        await service.get_epochs_data()

        assert service.epochs_consolidated == 5
        assert service.current_epoch == 0
