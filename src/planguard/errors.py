"""Fatal error types raised before any policy is evaluated."""

from __future__ import annotations


class PlanguardError(Exception):
    """Base class for errors that abort a run."""


class NormalizationError(PlanguardError):
    """Raised when a change-set is structurally malformed."""


class ConfigurationError(PlanguardError):
    """Raised when a policy declaration or its parameters are invalid."""


class CostFeedError(RuntimeError):
    """Raised when the cost-estimation feed cannot be read or parsed."""


__all__ = [
    "ConfigurationError",
    "CostFeedError",
    "NormalizationError",
    "PlanguardError",
]
