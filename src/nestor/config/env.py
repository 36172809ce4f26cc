"""Typed readers for optional environment settings.

Unset and blank variables mean "use the default"; anything else must parse.
"""

from __future__ import annotations

import os
from typing import Final

from .errors import InvalidConfigurationError, MissingConfigurationError

_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


def _raw(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def non_blank_env(name: str) -> str | None:
    """Return ``name`` when set; a set-but-blank value is reported as missing."""

    value = os.getenv(name)
    if value is None:
        return None
    if not value.strip():
        raise MissingConfigurationError(f"{name} is set but blank")
    return value.strip()


def optional_positive_int(name: str) -> int | None:
    """Return a positive integer from the environment, or ``None`` when unset/blank."""

    raw = _raw(name)
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {value}")
    return value


def optional_seconds(name: str, default: float) -> float:
    raw = _raw(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value < 0:
        raise InvalidConfigurationError(f"{name} must not be negative, got {value}")
    return value


def env_flag(name: str, *, default: bool = False) -> bool:
    raw = _raw(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidConfigurationError(f"{name} must be a boolean flag, got {raw!r}")
