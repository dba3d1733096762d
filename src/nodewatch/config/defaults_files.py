"""Readers for the files that supply fallback values for settings."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

from .errors import ConfigurationError


def _dotenv_pair(line: str) -> Tuple[str, str] | None:
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, value = line.split("=", 1)
    key = key.strip()
    if key.startswith("export "):
        key = key[len("export ") :].strip()
    return key, value.strip().strip("'").strip('"')


def read_dotenv(path: Path) -> Dict[str, str]:
    """
    Parse ``KEY=value`` lines from *path*.

    Comments, blank lines and lines without ``=`` are ignored; an ``export``
    prefix and surrounding quotes are stripped. A missing file yields ``{}``.
    """
    if not path.exists():
        return {}
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigurationError.load_failed(str(path), str(exc)) from exc

    values: Dict[str, str] = {}
    for line in text.splitlines():
        pair = _dotenv_pair(line)
        if pair is not None and pair[0]:
            values[pair[0]] = pair[1]
    return values


def _as_setting_text(path: Path, key: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ConfigurationError.load_failed(str(path), f"{key} must be a scalar")
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def read_json_env(path: Path) -> Dict[str, str]:
    """Read a flat ``{"SETTING": scalar}`` JSON object; values are returned as text."""
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError.load_failed(str(path), "invalid JSON") from exc
    except OSError as exc:
        raise ConfigurationError.load_failed(str(path), str(exc)) from exc

    if not isinstance(payload, dict):
        raise ConfigurationError.load_failed(str(path), "top level must be an object")
    return {str(key): _as_setting_text(path, str(key), value) for key, value in payload.items()}


def split_items(raw: str, separator: str, strip_items: bool = True) -> List[str]:
    """Split *raw* on *separator*; stripping also drops empty items."""
    pieces = raw.split(separator) if separator else [raw]
    if not strip_items:
        return pieces
    return [piece.strip() for piece in pieces if piece.strip()]


def unique_items(items: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(items))


__all__ = ["read_dotenv", "read_json_env", "split_items", "unique_items"]
