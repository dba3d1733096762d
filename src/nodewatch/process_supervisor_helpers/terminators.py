"""Terminate the node process together with every process it spawned."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
import sys
from typing import Callable, List, Optional, Protocol

from .process_tree import ProcessTreeLookup, PsutilProcessTreeLookup

logger = logging.getLogger(__name__)

TASKKILL_TIMEOUT_SECONDS = 10


class ProcessTreeTerminator(Protocol):
    async def terminate_tree(self, pid: int) -> None: ...


class TaskkillTreeTerminator:
    """Windows: one forced, recursive ``taskkill`` call kills the root and all descendants."""

    def __init__(self, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run) -> None:
        self._runner = runner

    def build_command(self, pid: int) -> List[str]:
        return ["taskkill", "/F", "/T", "/PID", str(pid)]

    async def terminate_tree(self, pid: int) -> None:
        command = self.build_command(pid)
        logger.info("Stopping node (PID %s) with taskkill", pid)
        try:
            result = await asyncio.to_thread(
                self._runner,
                command,
                capture_output=True,
                check=False,
                timeout=TASKKILL_TIMEOUT_SECONDS,
            )
        except (OSError, subprocess.SubprocessError):  # policy_guard: allow-silent-handler
            logger.exception("taskkill failed for node process %s", pid)
            return
        if result.returncode != 0:
            logger.warning("taskkill exited with %s for node process %s", result.returncode, pid)
            return
        logger.info("taskkill done for node process %s", pid)


class SignalTreeTerminator:
    """POSIX: enumerate descendants, signal each of them, then the root."""

    def __init__(
        self,
        lookup: Optional[ProcessTreeLookup] = None,
        *,
        sig: int = signal.SIGTERM,
        kill_func: Callable[[int, int], None] = os.kill,
    ) -> None:
        self._lookup = lookup if lookup is not None else PsutilProcessTreeLookup()
        self._sig = sig
        self._kill = kill_func

    async def terminate_tree(self, pid: int) -> None:
        logger.info("Stopping node (PID %s) with signal %s", pid, self._sig)
        try:
            children = await asyncio.to_thread(self._lookup.descendants, pid)
        except (OSError, RuntimeError):  # policy_guard: allow-silent-handler
            logger.exception("Could not enumerate children of node process %s", pid)
            children = []

        for child_pid in children:
            logger.info("Stopping node child process %s", child_pid)
            self._signal(child_pid)
        self._signal(pid)

    def _signal(self, pid: int) -> None:
        try:
            self._kill(pid, self._sig)
        except ProcessLookupError:  # policy_guard: allow-silent-handler
            logger.debug("Process %s already exited", pid)
        except OSError as exc:  # policy_guard: allow-silent-handler
            logger.warning("Could not signal process %s: %s", pid, exc)


def default_terminator(platform: str = sys.platform) -> ProcessTreeTerminator:
    """Pick the tree-termination strategy for *platform*."""
    if platform == "win32":
        return TaskkillTreeTerminator()
    return SignalTreeTerminator()


__all__ = [
    "ProcessTreeTerminator",
    "SignalTreeTerminator",
    "TaskkillTreeTerminator",
    "default_terminator",
]
