"""Helpers for spawning and terminating the node process tree."""

from .process_tree import ProcessTreeLookup, PsutilProcessTreeLookup
from .spawner import detached_popen_kwargs, spawn_detached
from .terminators import (
    ProcessTreeTerminator,
    SignalTreeTerminator,
    TaskkillTreeTerminator,
    default_terminator,
)

__all__ = [
    "ProcessTreeLookup",
    "ProcessTreeTerminator",
    "PsutilProcessTreeLookup",
    "SignalTreeTerminator",
    "TaskkillTreeTerminator",
    "default_terminator",
    "detached_popen_kwargs",
    "spawn_detached",
]
