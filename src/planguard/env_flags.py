from __future__ import annotations

import math
import os
from typing import Optional

from .constants import DEFAULT_COST_FEED_TIMEOUT, DEFAULT_WORKERS

_FALSEY = {"0", "false", "no", "off"}


def env_falsey(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in _FALSEY


def env_override(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _env_number(name: str, default: float) -> float:
    value = env_override(name)
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def environment_override() -> Optional[str]:
    return env_override("PLANGUARD_ENVIRONMENT")


def workspace_name() -> Optional[str]:
    return env_override("PLANGUARD_WORKSPACE")


def cost_feed_source() -> Optional[str]:
    return env_override("PLANGUARD_COST_FEED")


def cost_feed_timeout() -> float:
    return max(_env_number("PLANGUARD_COST_FEED_TIMEOUT", DEFAULT_COST_FEED_TIMEOUT), 0.0)


def cost_cache_path() -> Optional[str]:
    return env_override("PLANGUARD_COST_CACHE")


def worker_count() -> int:
    return max(int(_env_number("PLANGUARD_WORKERS", DEFAULT_WORKERS)), 1)


def log_level() -> str:
    return (env_override("PLANGUARD_LOG_LEVEL") or "WARNING").upper()


def color_disabled() -> bool:
    """Return True when NO_COLOR or PLANGUARD_NO_COLOR asks for plain output."""

    if os.getenv("NO_COLOR") is not None:
        return True
    flag = os.getenv("PLANGUARD_NO_COLOR")
    return flag is not None and not env_falsey(flag)
