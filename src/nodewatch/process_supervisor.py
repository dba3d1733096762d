"""
Node Process Supervisor

Owns the operating-system process of the node. At most one process handle
exists at a time: ``start`` is a no-op while a handle is held and ``stop`` is a
no-op without one.

Stopping is optimistic. The handle is released immediately and the tree
teardown (native recursive kill on Windows, descendant enumeration plus
signals elsewhere) runs in the background; kill failures are logged and never
raised. Callers that must not overlap two node processes, such as a network
switch, await :meth:`ProcessSupervisor.wait_stopped` before starting again.

Usage:
    supervisor = ProcessSupervisor(SupervisorConfig())
    supervisor.start("etc")
    ...
    await supervisor.switch_to("eth")
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
import threading
from typing import Callable, Optional, Sequence, Set

from .errors import UnsupportedNetworkError
from .monitor_config import SupervisorConfig
from .process_supervisor_helpers import ProcessTreeTerminator, default_terminator, spawn_detached

logger = logging.getLogger(__name__)

# Upper bound on waiting for the root process to exit after it was signalled
REAP_TIMEOUT_SECONDS = 10

Spawner = Callable[[str, Sequence[str], str], subprocess.Popen]


class ProcessSupervisor:
    """Start, stop and switch the node process."""

    def __init__(
        self,
        config: Optional[SupervisorConfig] = None,
        *,
        terminator: Optional[ProcessTreeTerminator] = None,
        spawner: Spawner = spawn_detached,
    ) -> None:
        self.config = config if config is not None else SupervisorConfig()
        self._terminator = terminator if terminator is not None else default_terminator()
        self._spawner = spawner
        self._process: Optional[subprocess.Popen] = None
        self._network: Optional[str] = None
        self._teardown_tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._process is not None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    @property
    def network(self) -> Optional[str]:
        return self._network

    @property
    def supported_networks(self) -> Sequence[str]:
        return self.config.supported_networks

    def build_args(self, network_id: Optional[str] = None) -> list[str]:
        args = list(self.config.node_args)
        if network_id:
            args.append(self.config.network_arg(network_id))
        return args

    def start(self, network_id: Optional[str] = None) -> None:
        """
        Spawn the node unless it is already running.

        Raises:
            UnsupportedNetworkError: If *network_id* is given and not supported;
                nothing is spawned in that case.
        """
        if self._process is not None:
            return

        if network_id and network_id not in self.config.supported_networks:
            raise UnsupportedNetworkError(network_id, self.config.supported_networks)

        logger.info("Starting node%s...", f" on network {network_id}" if network_id else "")
        self._process = self._spawner(self.config.node_command, self.build_args(network_id), self.config.node_path)
        self._network = network_id
        logger.info("Node started (PID %s)", self._process.pid)

    def stop(self) -> Optional[asyncio.Task]:
        """
        Release the process handle and tear down the process tree in the background.

        Returns the teardown task when an event loop is running. Without a loop
        the tree is signalled before returning, the exit is reaped on a daemon
        thread and ``None`` is returned.
        """
        if self._process is None:
            return None

        process = self._process
        self._process = None
        self._network = None
        logger.info("Stopping node (PID %s)...", process.pid)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            asyncio.run(self._terminator.terminate_tree(process.pid))
            threading.Thread(target=self._reap, args=(process,), name=f"reap-{process.pid}", daemon=True).start()
            return None

        task = loop.create_task(self._teardown(process))
        self._teardown_tasks.add(task)
        task.add_done_callback(self._teardown_tasks.discard)
        return task

    async def wait_stopped(self) -> None:
        """Wait for every pending teardown to finish."""
        pending = list(self._teardown_tasks)
        if pending:
            await asyncio.gather(*pending)

    async def switch_to(self, network_id: Optional[str] = None) -> None:
        """Stop the current node, wait for its tree to go away, then start on *network_id*."""
        if network_id and network_id not in self.config.supported_networks:
            raise UnsupportedNetworkError(network_id, self.config.supported_networks)
        self.stop()
        await self.wait_stopped()
        self.start(network_id)

    async def restart(self) -> None:
        """Restart the node on the network it is currently running on."""
        await self.switch_to(self._network)

    async def _teardown(self, process: subprocess.Popen) -> None:
        await self._terminator.terminate_tree(process.pid)
        await asyncio.to_thread(self._reap, process)

    @staticmethod
    def _reap(process: subprocess.Popen) -> None:
        pid = process.pid
        try:
            process.wait(REAP_TIMEOUT_SECONDS)
        except subprocess.TimeoutExpired:  # policy_guard: allow-silent-handler
            logger.warning("Node process %s still alive %ss after stop", pid, REAP_TIMEOUT_SECONDS)
        except OSError as exc:  # policy_guard: allow-silent-handler
            logger.debug("Could not reap node process %s: %s", pid, exc)
        else:
            logger.info("Node process %s exited", pid)


__all__ = ["ProcessSupervisor", "REAP_TIMEOUT_SECONDS"]
