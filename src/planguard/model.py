"""Immutable data model shared by the normalizer, evaluators and engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .constants import EXIT_POLICY_FAIL, EXIT_SOFT_POLICY_FAIL, EXIT_SUCCESS
from .values import UNKNOWN, AttrValue, _Unknown, as_attr, lookup


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NO_OP = "no-op"


ACTIVE_ACTIONS = frozenset({Action.CREATE, Action.UPDATE})


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    UNKNOWN = "unknown"


DEPLOY_ENVIRONMENTS: Tuple[Environment, ...] = (
    Environment.DEVELOPMENT,
    Environment.STAGING,
    Environment.PRODUCTION,
)


class EnforcementLevel(str, Enum):
    ADVISORY = "advisory"
    SOFT_MANDATORY = "soft-mandatory"
    HARD_MANDATORY = "hard-mandatory"


class PolicyStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


Tags = Union[_Unknown, Mapping[str, AttrValue]]


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


@dataclass(frozen=True)
class ResourceChange:
    address: str
    type: str
    action: Action
    attributes: Mapping[str, Any] = field(default_factory=dict)
    tags: Tags = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", _freeze(self.attributes))
        if self.tags is not UNKNOWN:
            frozen_tags = {str(key): as_attr(value) for key, value in dict(self.tags).items()}
            object.__setattr__(self, "tags", MappingProxyType(frozen_tags))

    @property
    def is_active(self) -> bool:
        """True for create/update actions, the ones that will exist after apply."""

        return self.action in ACTIVE_ACTIONS

    def get(self, path: str) -> Optional[AttrValue]:
        return lookup(self.attributes, path)

    @property
    def name(self) -> Optional[AttrValue]:
        return self.get("name")


@dataclass(frozen=True)
class PlanSnapshot:
    changes: Tuple[ResourceChange, ...] = ()
    prior_costs: Optional[Mapping[str, float]] = None
    workspace: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "changes", tuple(self.changes))
        if self.prior_costs is not None:
            object.__setattr__(
                self,
                "prior_costs",
                MappingProxyType({str(k): float(v) for k, v in self.prior_costs.items()}),
            )

    def __iter__(self) -> Iterator[ResourceChange]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def active(self) -> Iterator[ResourceChange]:
        return (change for change in self.changes if change.is_active)

    def of_types(self, types) -> Iterator[ResourceChange]:
        wanted = set(types)
        return (change for change in self.active() if change.type in wanted)


@dataclass(frozen=True)
class Policy:
    name: str
    family: str
    enforcement_level: EnforcementLevel
    parameters: Any


@dataclass(frozen=True)
class Violation:
    policy_name: str
    resource_address: str
    message: str
    severity: str
    rule: str = "violation"
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def is_warning(self) -> bool:
        return self.severity == EnforcementLevel.ADVISORY.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy_name,
            "rule": self.rule,
            "severity": self.severity,
            "resource_address": self.resource_address,
            "message": self.message,
            "details": {key: self.details[key] for key in sorted(self.details)},
        }


@dataclass(frozen=True)
class PolicyOutcome:
    """Status of one policy.

    ``pass`` without violations, ``warn`` for advisory findings (or warnings
    only), ``fail`` otherwise. ``warn`` never blocks the run; an overridden
    soft-mandatory ``fail`` does not block it either.
    """

    policy_name: str
    family: str
    enforcement_level: EnforcementLevel
    status: PolicyStatus
    violations: Tuple[Violation, ...] = ()
    overridden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy": self.policy_name,
            "family": self.family,
            "enforcement_level": self.enforcement_level.value,
            "status": self.status.value,
            "overridden": self.overridden,
            "violation_count": len(self.violations),
        }


@dataclass(frozen=True)
class RunResult:
    outcomes: Tuple[PolicyOutcome, ...]
    environment: Environment = Environment.UNKNOWN
    workspace: Optional[str] = None

    @property
    def violations(self) -> List[Violation]:
        return [violation for outcome in self.outcomes for violation in outcome.violations]

    @property
    def statuses(self) -> Dict[str, PolicyStatus]:
        return {outcome.policy_name: outcome.status for outcome in self.outcomes}

    @property
    def overridden(self) -> List[str]:
        return [outcome.policy_name for outcome in self.outcomes if outcome.overridden]

    @property
    def hard_failed(self) -> bool:
        return any(
            outcome.status is PolicyStatus.FAIL
            and outcome.enforcement_level is EnforcementLevel.HARD_MANDATORY
            for outcome in self.outcomes
        )

    @property
    def soft_failed(self) -> bool:
        return any(
            outcome.status is PolicyStatus.FAIL
            and outcome.enforcement_level is EnforcementLevel.SOFT_MANDATORY
            and not outcome.overridden
            for outcome in self.outcomes
        )

    @property
    def status(self) -> PolicyStatus:
        """Overall status: fail when anything blocks, warnings never do."""

        if self.hard_failed or self.soft_failed:
            return PolicyStatus.FAIL
        return PolicyStatus.PASS

    @property
    def has_warnings(self) -> bool:
        return any(outcome.status is PolicyStatus.WARN for outcome in self.outcomes)

    @property
    def exit_code(self) -> int:
        if self.hard_failed:
            return EXIT_POLICY_FAIL
        if self.soft_failed:
            return EXIT_SOFT_POLICY_FAIL
        return EXIT_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "exit_code": self.exit_code,
            "environment": self.environment.value,
            "workspace": self.workspace,
            "policies": [outcome.to_dict() for outcome in self.outcomes],
            "overridden": self.overridden,
            "violations": [violation.to_dict() for violation in self.violations],
        }


__all__ = [
    "ACTIVE_ACTIONS",
    "Action",
    "DEPLOY_ENVIRONMENTS",
    "EnforcementLevel",
    "Environment",
    "Policy",
    "PolicyOutcome",
    "PolicyStatus",
    "PlanSnapshot",
    "ResourceChange",
    "RunResult",
    "Violation",
]
