"""Tests for sync signal derivations."""

from __future__ import annotations

import pytest

from nodewatch.sync_status_tracker_helpers import (
    NodeStatus,
    SyncSignals,
    SyncStatusSnapshot,
    is_connected,
    is_synced,
    is_system_time_correct,
    sync_percentage,
)


def connected_signals(**overrides) -> SyncSignals:
    values = dict(is_node_responding=True, is_node_subscribed=True, is_node_syncing=True)
    values.update(overrides)
    return SyncSignals(**values)


@pytest.mark.parametrize(
    ("local", "network", "expected"),
    [
        (0, 0, 0.0),
        (10, 0, 0.0),
        (100, 100, 100.0),
        (150, 100, 100.0),
        (25, 100, 25.0),
    ],
)
def test_sync_percentage(local, network, expected):
    assert sync_percentage(local, network) == expected


@pytest.mark.parametrize("missing", ["is_node_responding", "is_node_subscribed", "is_node_syncing"])
def test_connected_needs_all_three_signals(missing):
    assert is_connected(connected_signals())
    assert not is_connected(connected_signals(**{missing: False}))


def test_synced_needs_correct_or_ignored_time():
    signals = connected_signals(is_node_in_sync=True, is_node_time_correct=False)
    assert not is_system_time_correct(signals)
    assert not is_synced(signals)

    signals.is_system_time_ignored = True
    assert is_system_time_correct(signals)
    assert is_synced(signals)


def test_reset_connectivity_keeps_history():
    signals = connected_signals(is_node_in_sync=True, has_been_connected=True, local_block_height=7)

    signals.reset_connectivity()

    assert not is_connected(signals)
    assert not signals.is_node_in_sync
    assert signals.has_been_connected
    assert signals.local_block_height == 7


def test_node_status_wire_format():
    status = NodeStatus.from_signals(connected_signals(has_been_connected=True))

    assert status.to_wire() == {
        "isNodeResponding": True,
        "isNodeSubscribed": True,
        "isNodeSyncing": True,
        "isNodeInSync": False,
        "hasBeenConnected": True,
    }


def test_cached_status_overwrites_connectivity_signals():
    signals = SyncSignals(local_block_height=9)

    NodeStatus.from_wire({"isNodeResponding": True, "isNodeSubscribed": True, "isNodeSyncing": True}).apply_to(signals)

    assert is_connected(signals)
    assert not signals.has_been_connected
    assert signals.local_block_height == 9


def test_snapshot_carries_derived_values():
    snapshot = SyncStatusSnapshot.capture(connected_signals(local_block_height=50, network_block_height=200))

    assert snapshot.is_connected
    assert snapshot.sync_percentage == 25.0
    assert snapshot.as_dict()["network_block_height"] == 200
