"""Configuration failures."""

from __future__ import annotations

from typing import Any


class ConfigurationError(RuntimeError):
    """A setting is absent, unparsable or outside its allowed range."""

    @classmethod
    def not_set(cls, name: str) -> "ConfigurationError":
        return cls(f"Required setting {name!r} is not set")

    @classmethod
    def missing_value(cls, name: str, hint: str = "") -> "ConfigurationError":
        suffix = f" ({hint})" if hint else ""
        return cls(f"Setting {name!r} is empty{suffix}")

    @classmethod
    def unparsable(cls, name: str, raw: str, kind: str) -> "ConfigurationError":
        return cls(f"Setting {name!r} must be {kind}, got {raw!r}")

    @classmethod
    def invalid_value(cls, name: str, value: Any, reason: str = "") -> "ConfigurationError":
        suffix = f": {reason}" if reason else ""
        return cls(f"Setting {name!r} has invalid value {value!r}{suffix}")

    @classmethod
    def load_failed(cls, source: str, reason: str = "") -> "ConfigurationError":
        suffix = f": {reason}" if reason else ""
        return cls(f"Could not load configuration defaults from {source}{suffix}")


__all__ = ["ConfigurationError"]
