"""
Configuration for node supervision and sync-status tracking.

All durations are in seconds except ``allowed_time_difference_us`` which is in
microseconds, the unit the node reports its local time difference in. Every
value can be overridden through the environment (or ``.env`` /
``config/runtime_env.json`` defaults).
"""

from dataclasses import dataclass, field
from functools import partial
from typing import Tuple

from nodewatch.config import ConfigurationError, env_bool, env_int, env_list, env_seconds, env_str

DEFAULT_SUPPORTED_NETWORKS: Tuple[str, ...] = ("etc", "eth")
DEFAULT_NETWORK_ARG_TEMPLATE = "-Dmantis.blockchains.network={network}"

# 21600 slots of 20 seconds each
DEFAULT_EPOCH_LENGTH_SECONDS = 21600 * 20


def _env_tuple(name: str, or_value: Tuple[str, ...], *, separator: str = ",") -> Tuple[str, ...]:
    value = env_list(name, or_value=or_value, separator=separator, unique=False)
    return tuple(value) if value is not None else or_value


@dataclass
class NodeMonitorConfig:
    """
    Timing and threshold settings for the sync-status tracker.

    Attributes:
        poll_interval_seconds: Interval of the regular network-status poll
        request_timeout_seconds: Upper bound on a single network-status request
        force_check_interval_seconds: Interval of the forced time-difference check
        time_checks_grace_period_seconds: Warm-up window during which time drift is ignored
        allowed_time_difference_us: Largest local/network clock difference considered correct
        max_allowed_stall_seconds: How long a chain side may stop advancing before it is stalling
        allowed_unsynced_blocks: Largest network/local height gap still considered in sync
        is_development: Enables development-only startup requests
        epoch_length_seconds: Duration of one epoch for current-epoch derivation
    """

    poll_interval_seconds: float = field(default_factory=partial(env_seconds, "NODEWATCH_POLL_INTERVAL_SECONDS", 2.0))
    request_timeout_seconds: float = field(default_factory=partial(env_seconds, "NODEWATCH_REQUEST_TIMEOUT_SECONDS", 30.0))
    force_check_interval_seconds: float = field(
        default_factory=partial(env_seconds, "NODEWATCH_FORCE_CHECK_INTERVAL_SECONDS", 30 * 60.0)
    )
    time_checks_grace_period_seconds: float = field(
        default_factory=partial(env_seconds, "NODEWATCH_TIME_CHECKS_GRACE_PERIOD_SECONDS", 30.0)
    )
    allowed_time_difference_us: int = field(default_factory=partial(env_int, "NODEWATCH_ALLOWED_TIME_DIFFERENCE_US", 15_000_000))
    max_allowed_stall_seconds: float = field(default_factory=partial(env_seconds, "NODEWATCH_MAX_ALLOWED_STALL_SECONDS", 120.0))
    allowed_unsynced_blocks: int = field(default_factory=partial(env_int, "NODEWATCH_ALLOWED_UNSYNCED_BLOCKS", 6))
    is_development: bool = field(default_factory=partial(env_bool, "NODEWATCH_DEVELOPMENT", False))
    epoch_length_seconds: float = field(
        default_factory=partial(env_seconds, "NODEWATCH_EPOCH_LENGTH_SECONDS", float(DEFAULT_EPOCH_LENGTH_SECONDS))
    )

    def __post_init__(self) -> None:
        for name in ("poll_interval_seconds", "request_timeout_seconds", "force_check_interval_seconds", "epoch_length_seconds"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError.invalid_value(name, value, "Must be greater than zero")
        if self.allowed_unsynced_blocks < 0:
            raise ConfigurationError.invalid_value("allowed_unsynced_blocks", self.allowed_unsynced_blocks, "Must be non-negative")


@dataclass
class SupervisorConfig:
    """Where and how to launch the node executable."""

    node_path: str = field(default_factory=partial(env_str, "NODEWATCH_NODE_PATH", "."))
    node_command: str = field(default_factory=partial(env_str, "NODEWATCH_NODE_COMMAND", "./bin/mantis"))
    node_args: Tuple[str, ...] = field(default_factory=partial(_env_tuple, "NODEWATCH_NODE_ARGS", (), separator=" "))
    supported_networks: Tuple[str, ...] = field(
        default_factory=partial(_env_tuple, "NODEWATCH_SUPPORTED_NETWORKS", DEFAULT_SUPPORTED_NETWORKS)
    )
    network_arg_template: str = DEFAULT_NETWORK_ARG_TEMPLATE

    def __post_init__(self) -> None:
        if not self.node_command:
            raise ConfigurationError.missing_value("node_command", "set NODEWATCH_NODE_COMMAND")
        if "{network}" not in self.network_arg_template:
            raise ConfigurationError.invalid_value(
                "network_arg_template", self.network_arg_template, "Template must contain a {network} placeholder"
            )

    def network_arg(self, network_id: str) -> str:
        return self.network_arg_template.format(network=network_id)


__all__ = [
    "DEFAULT_EPOCH_LENGTH_SECONDS",
    "DEFAULT_NETWORK_ARG_TEMPLATE",
    "DEFAULT_SUPPORTED_NETWORKS",
    "NodeMonitorConfig",
    "SupervisorConfig",
]
