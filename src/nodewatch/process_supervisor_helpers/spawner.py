"""Launch the node executable detached from the supervising process."""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import Any, Dict, Sequence

logger = logging.getLogger(__name__)


def detached_popen_kwargs(platform: str = sys.platform) -> Dict[str, Any]:
    """Return Popen keyword arguments that give the child its own session / process group."""
    if platform == "win32":
        flags = getattr(subprocess, "DETACHED_PROCESS", 0x00000008) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0x00000200)
        return {"creationflags": flags}
    return {"start_new_session": True}


def spawn_detached(command: str, args: Sequence[str], cwd: str) -> subprocess.Popen:
    """Start *command* with *args* in *cwd* and return its handle."""
    argv = [command, *args]
    logger.debug("Spawning node: %s (cwd=%s)", " ".join(argv), cwd)
    return subprocess.Popen(
        argv,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        **detached_popen_kwargs(),
    )


__all__ = ["detached_popen_kwargs", "spawn_detached"]
