"""
Canonical node lifecycle state definitions.

These are the node's own process states as broadcast by the host over the
lifecycle control channel, not operating-system process states.
"""

from enum import Enum
from typing import FrozenSet, Optional, Union


class NodeLifecycleState(Enum):
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    EXITING = "exiting"
    UPDATING = "updating"
    CRASHED = "crashed"
    ERRORED = "errored"
    STOPPED = "stopped"
    UPDATED = "updated"
    UNRECOVERABLE = "unrecoverable"


NODE_STOPPING_STATES: FrozenSet[NodeLifecycleState] = frozenset(
    {
        NodeLifecycleState.EXITING,
        NodeLifecycleState.STOPPING,
        NodeLifecycleState.UPDATING,
    }
)

NODE_STOPPED_STATES: FrozenSet[NodeLifecycleState] = frozenset(
    {
        NodeLifecycleState.CRASHED,
        NodeLifecycleState.ERRORED,
        NodeLifecycleState.STOPPED,
        NodeLifecycleState.UPDATED,
        NodeLifecycleState.UNRECOVERABLE,
    }
)


def coerce_state(raw: Union[NodeLifecycleState, str, None]) -> Optional[Union[NodeLifecycleState, str]]:
    """
    Map a channel payload to a lifecycle state.

    Unknown strings are returned unchanged so the state machine can still
    record them and treat them as "any other" state.
    """
    if raw is None or isinstance(raw, NodeLifecycleState):
        return raw
    try:
        return NodeLifecycleState(str(raw).lower())
    except ValueError:
        return str(raw)


__all__ = ["NODE_STOPPED_STATES", "NODE_STOPPING_STATES", "NodeLifecycleState", "coerce_state"]
