"""
Environment-backed settings.

Every ``env_*`` helper resolves a setting in this order: the process
environment, then the first defaults file that defines it, then the
caller's ``or_value``. Defaults files are read once and cached:

* ``.env`` in the working directory, then ``~/.nodewatch.env``
* ``config/runtime_env.json``, then ``~/.nodewatch_env.json``
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from .defaults_files import read_dotenv, read_json_env, split_items, unique_items
from .errors import ConfigurationError

T = TypeVar("T")

_TRUE_VALUES = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSE_VALUES = frozenset({"0", "false", "f", "no", "n", "off"})

_DOTENV_FILES = (Path(".env"), Path.home() / ".nodewatch.env")
_JSON_FILES = (Path("config/runtime_env.json"), Path.home() / ".nodewatch_env.json")

_DEFAULT_VALUES: Optional[dict[str, str]] = None


def _file_defaults() -> dict[str, str]:
    global _DEFAULT_VALUES
    if _DEFAULT_VALUES is None:
        merged: dict[str, str] = {}
        sources = [read_dotenv(path) for path in _DOTENV_FILES] + [read_json_env(path) for path in _JSON_FILES]
        for source in sources:
            for key, value in source.items():
                merged.setdefault(key, value)
        _DEFAULT_VALUES = merged
    return _DEFAULT_VALUES


def reset_default_values() -> None:
    """Drop the cached defaults so the files are read again on next lookup."""
    global _DEFAULT_VALUES
    _DEFAULT_VALUES = None


def _raw(name: str, *, strip: bool = True, allow_blank: bool = False) -> Optional[str]:
    for candidate in (os.getenv(name), _file_defaults().get(name)):
        if candidate is None:
            continue
        if strip:
            candidate = candidate.strip()
        if candidate or allow_blank:
            return candidate
    return None


def _typed(name: str, or_value: Optional[T], required: bool, parse: Callable[[str], T], kind: str) -> Optional[T]:
    raw = _raw(name)
    if raw is None:
        if required and or_value is None:
            raise ConfigurationError.not_set(name)
        return or_value
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigurationError.unparsable(name, raw, kind) from exc


def env_str(
    name: str,
    or_value: Optional[str] = None,
    *,
    required: bool = False,
    strip: bool = True,
    allow_blank: bool = False,
) -> Optional[str]:
    value = _raw(name, strip=strip, allow_blank=allow_blank)
    if value is None:
        if required:
            raise ConfigurationError.not_set(name)
        return or_value
    return value


def env_int(name: str, or_value: Optional[int] = None, *, required: bool = False) -> Optional[int]:
    return _typed(name, or_value, required, int, "an integer")


def env_float(name: str, or_value: Optional[float] = None, *, required: bool = False) -> Optional[float]:
    return _typed(name, or_value, required, float, "a number")


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(raw)


def env_bool(name: str, or_value: Optional[bool] = None, *, required: bool = False) -> Optional[bool]:
    return _typed(name, or_value, required, _parse_bool, "a boolean (true/false, yes/no, on/off, 1/0)")


def env_list(
    name: str,
    *,
    or_value: Optional[Sequence[str]] = None,
    separator: str = ",",
    strip_items: bool = True,
    unique: bool = True,
    required: bool = False,
) -> Optional[tuple[str, ...]]:
    """Read a *separator*-delimited list; duplicates are dropped unless ``unique=False``."""
    raw = _raw(name)
    if raw is None:
        if required and not or_value:
            raise ConfigurationError.not_set(name)
        return tuple(or_value) if or_value is not None else None

    items = split_items(raw, separator, strip_items)
    if required and not items:
        raise ConfigurationError.missing_value(name, "at least one item is required")
    return unique_items(items) if unique else tuple(items)


def env_seconds(name: str, or_value: Optional[float] = None, *, required: bool = False) -> Optional[float]:
    """Read a duration in seconds; negative durations are rejected."""
    value = env_float(name, or_value, required=required)
    if value is not None and value < 0:
        raise ConfigurationError.invalid_value(name, value, "must be non-negative")
    return value


__all__ = [
    "ConfigurationError",
    "env_bool",
    "env_float",
    "env_int",
    "env_list",
    "env_seconds",
    "env_str",
    "reset_default_values",
]
