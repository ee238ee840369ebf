"""planguard: governance policy evaluation for infrastructure change-sets."""

from __future__ import annotations

from .config import PolicyRegistry, load_policies, load_policy_file, parse_policies
from .cost_feed import CostTable, load_cost_table
from .engine import decide, evaluate, run_check
from .environment import EnvironmentContext, resolve_environment
from .errors import ConfigurationError, NormalizationError, PlanguardError
from .model import (
    Action,
    EnforcementLevel,
    Environment,
    PlanSnapshot,
    Policy,
    PolicyOutcome,
    PolicyStatus,
    ResourceChange,
    RunResult,
    Violation,
)
from .normalizer import load_change_set, normalize_plan
from .values import NULL, UNKNOWN, Known

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ConfigurationError",
    "CostTable",
    "EnforcementLevel",
    "Environment",
    "EnvironmentContext",
    "Known",
    "NULL",
    "NormalizationError",
    "PlanSnapshot",
    "PlanguardError",
    "Policy",
    "PolicyOutcome",
    "PolicyRegistry",
    "PolicyStatus",
    "ResourceChange",
    "RunResult",
    "UNKNOWN",
    "Violation",
    "decide",
    "evaluate",
    "load_change_set",
    "load_cost_table",
    "load_policies",
    "load_policy_file",
    "normalize_plan",
    "parse_policies",
    "resolve_environment",
    "run_check",
]
