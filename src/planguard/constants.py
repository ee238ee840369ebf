"""Shared constants for planguard."""

from __future__ import annotations

ANSI_RESET = "\033[0m"
ANSI_GREEN = "\033[32m"
ANSI_RED = "\033[31m"
ANSI_YELLOW = "\033[33m"
ANSI_BOLD = "\033[1m"

PLAN_ADDRESS = "<plan>"

MANAGEMENT_PORTS = (22, 3389, 5985, 5986)
ANY_SOURCE_PREFIXES = frozenset({"*", "0.0.0.0/0", "0.0.0.0", "::/0", "any", "internet"})

DEFAULT_WORKERS = 4
DEFAULT_COST_FEED_TIMEOUT = 5.0

EXIT_SUCCESS = 0
EXIT_INVALID_INPUT = 2
EXIT_POLICY_FAIL = 3
EXIT_CONFIG_ERROR = 4
EXIT_SOFT_POLICY_FAIL = 5

__all__ = [
    "ANSI_RESET",
    "ANSI_GREEN",
    "ANSI_RED",
    "ANSI_YELLOW",
    "ANSI_BOLD",
    "PLAN_ADDRESS",
    "MANAGEMENT_PORTS",
    "ANY_SOURCE_PREFIXES",
    "DEFAULT_WORKERS",
    "DEFAULT_COST_FEED_TIMEOUT",
    "EXIT_SUCCESS",
    "EXIT_INVALID_INPUT",
    "EXIT_POLICY_FAIL",
    "EXIT_CONFIG_ERROR",
    "EXIT_SOFT_POLICY_FAIL",
]
