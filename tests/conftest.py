"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import logging
import os

import pytest

from nodewatch.config import runtime
from nodewatch.monitor_config import NodeMonitorConfig, SupervisorConfig


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep host .env files and NODEWATCH_* variables out of every test."""
    monkeypatch.setattr(runtime, "_DEFAULT_VALUES", {})
    for name in list(os.environ):
        if name.startswith("NODEWATCH_") or name == "LOG_APPEND":
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def monitor_config() -> NodeMonitorConfig:
    return NodeMonitorConfig(
        poll_interval_seconds=60.0,
        request_timeout_seconds=30.0,
        force_check_interval_seconds=1800.0,
        time_checks_grace_period_seconds=30.0,
        allowed_time_difference_us=15_000_000,
        max_allowed_stall_seconds=120.0,
        allowed_unsynced_blocks=6,
        is_development=False,
    )


@pytest.fixture
def supervisor_config() -> SupervisorConfig:
    return SupervisorConfig(
        node_path="/opt/mantis",
        node_command="./bin/mantis",
        node_args=("-Dconfig.file=./conf/mantis.conf",),
        supported_networks=("etc", "eth"),
    )
