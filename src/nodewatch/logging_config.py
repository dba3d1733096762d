"""
Logging setup for the node supervisor and status tracker.

``setup_logging`` replaces whatever handlers the root logger has with:

- a stdout console handler (warnings only in user-friendly mode, silent when
  ``NODEWATCH_QUIET_CONSOLE`` is set)
- a ``<service_name>.log`` file in ``NODEWATCH_LOG_DIR`` (default ``./logs``),
  truncated on each start unless ``LOG_APPEND=1``
"""

import logging
import logging.handlers
import os
import sys
import threading
from pathlib import Path
from typing import List, Optional

from nodewatch.config import env_bool, env_str

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NOISY_LOGGERS = ("asyncio", "aiohttp", "urllib3")

_setup_lock = threading.Lock()


def log_directory() -> Path:
    configured = env_str("NODEWATCH_LOG_DIR")
    return Path(configured).expanduser() if configured else Path.cwd() / "logs"


def _console_handler(user_friendly: bool, quiet: bool) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if user_friendly:
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.setLevel(logging.WARNING)
        return handler
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.setLevel(logging.CRITICAL + 1 if quiet else logging.DEBUG)
    return handler


def _file_handler(service_name: str) -> logging.Handler:
    directory = log_directory()
    directory.mkdir(parents=True, exist_ok=True)
    mode = "a" if os.getenv("LOG_APPEND") == "1" else "w"
    handler = logging.handlers.WatchedFileHandler(directory / f"{service_name}.log", mode=mode)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    handler.setLevel(logging.DEBUG)
    return handler


def _detach_handlers(root: logging.Logger) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        try:
            handler.close()
        except OSError as exc:  # policy_guard: allow-silent-handler
            logger.debug("Closing log handler %r failed: %s", handler, exc)


def setup_logging(service_name: Optional[str] = None, user_friendly: bool = False) -> None:
    """Configure root logging for the application."""
    with _setup_lock:
        root = logging.getLogger()
        _detach_handlers(root)

        handlers: List[logging.Handler] = [_console_handler(user_friendly, bool(env_bool("NODEWATCH_QUIET_CONSOLE", False)))]
        if service_name:
            handlers.append(_file_handler(service_name))
        for handler in handlers:
            root.addHandler(handler)

        root.setLevel(logging.DEBUG if env_bool("NODEWATCH_DEBUG", False) else logging.INFO)
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["setup_logging"]
