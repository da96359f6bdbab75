"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value.strip()

    if missing:
        missing_list = ", ".join(sorted(missing))
        raise MissingConfigurationError(f"Missing configuration for: {missing_list}")

    return values


def optional_env_float(name: str, default: float) -> float:
    """Read a float from the environment, falling back to ``default`` when unset."""

    return _optional_env(name, default, float)


def optional_env_int(name: str, default: int) -> int:
    """Read an int from the environment, falling back to ``default`` when unset."""

    return _optional_env(name, default, int)


_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def optional_env_bool(name: str, *, default: bool) -> bool:
    """Read a yes/no flag from the environment, falling back to ``default`` when unset."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise InvalidConfigurationError(f"Invalid value for {name}: {raw!r}")


def _optional_env[T: (int, float)](name: str, default: T, parse: Callable[[str], T]) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = parse(raw.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"Invalid value for {name}: {raw!r}") from exc
    if value < 0:
        raise InvalidConfigurationError(f"{name} must be non-negative, got {value}")
    return value
