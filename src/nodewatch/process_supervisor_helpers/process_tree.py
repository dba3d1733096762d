"""Process tree enumeration."""

from __future__ import annotations

import logging
from typing import List, Protocol

logger = logging.getLogger(__name__)


class ProcessTreeLookup(Protocol):
    """Minimal contract: list every descendant pid of a root pid."""

    def descendants(self, pid: int) -> List[int]: ...


def import_psutil():
    """Import psutil or raise a helpful error."""
    try:
        import psutil
    except ImportError as import_exc:
        raise RuntimeError("psutil is required to enumerate the node process tree but is not installed.") from import_exc
    return psutil


class PsutilProcessTreeLookup:
    """Walks the OS process table through psutil."""

    def descendants(self, pid: int) -> List[int]:
        psutil = import_psutil()
        try:
            children = psutil.Process(pid).children(recursive=True)
        except psutil.NoSuchProcess:
            logger.debug("Process %s vanished before its children could be listed", pid)
            return []
        except psutil.AccessDenied:
            logger.warning("Access denied listing children of process %s", pid)
            return []
        return [child.pid for child in children]


__all__ = ["ProcessTreeLookup", "PsutilProcessTreeLookup", "import_psutil"]
