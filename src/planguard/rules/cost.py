"""Monthly cost ceilings, cost growth, expensive resource and resource count limits."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..constants import PLAN_ADDRESS
from ..cost_feed import CostTable
from ..model import Action, Environment, PlanSnapshot, Policy, ResourceChange, Violation
from ..params import NON_NEGATIVE, STRING_LIST, EnvironmentTable, as_tuple, env_keyed, env_table
from ..values import Known
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)

DEFAULT_QUANTITY_ATTRIBUTES = ("instances", "instance_count", "sku_capacity", "capacity")
NON_PRODUCTION = (Environment.DEVELOPMENT, Environment.STAGING)


@dataclass(frozen=True)
class CostParameters:
    monthly_cost_limits: EnvironmentTable
    cost_increase_percentage_limit: Optional[float] = None
    expensive_resource_types: Tuple[str, ...] = ()
    max_resource_counts: EnvironmentTable = field(default_factory=EnvironmentTable)
    resource_costs: Mapping[str, float] = field(default_factory=dict)
    quantity_attributes: Tuple[str, ...] = DEFAULT_QUANTITY_ATTRIBUTES


@dataclass(frozen=True)
class CostEstimate:
    environment: Environment
    total: float = 0.0
    by_type: Mapping[str, float] = field(default_factory=dict)
    created: float = 0.0
    deleted: float = 0.0

    @property
    def by_environment(self) -> Dict[Environment, float]:
        return {self.environment: self.total}

    @property
    def delta(self) -> float:
        return self.created - self.deleted


def resource_quantity(change: ResourceChange, attributes: Iterable[str] = DEFAULT_QUANTITY_ATTRIBUTES) -> int:
    """Number of billable units a change provisions; unknown or absent counts as one."""

    for path in attributes:
        value = change.get(path)
        if isinstance(value, Known) and isinstance(value.value, int) and not isinstance(value.value, bool):
            return max(value.value, 0)
    return 1


def estimate_costs(
    snapshot: PlanSnapshot,
    cost_table: CostTable,
    environment: Environment,
    quantity_attributes: Iterable[str] = DEFAULT_QUANTITY_ATTRIBUTES,
) -> CostEstimate:
    """Sum per-unit cost times quantity over create/update actions."""

    attributes = tuple(quantity_attributes)
    by_type: Dict[str, float] = {}
    total = created = deleted = 0.0
    for change in snapshot:
        cost = cost_table.cost_for(change.type) * resource_quantity(change, attributes)
        if change.action is Action.DELETE:
            deleted += cost
            continue
        if not change.is_active:
            continue
        by_type[change.type] = by_type.get(change.type, 0.0) + cost
        total += cost
        if change.action is Action.CREATE:
            created += cost
    return CostEstimate(
        environment=environment,
        total=total,
        by_type=dict(sorted(by_type.items())),
        created=created,
        deleted=deleted,
    )


def _count_table(value: Mapping[str, Any]) -> Dict[str, int]:
    return {str(key): int(count) for key, count in value.items()}


@register
class CostEvaluator(Evaluator):
    """Planned spend stays within per-environment budgets and growth limits."""

    family = "cost"
    schema = {
        "type": "object",
        "properties": {
            "monthly_cost_limits": env_keyed(NON_NEGATIVE),
            "cost_increase_percentage_limit": NON_NEGATIVE,
            "expensive_resource_types": STRING_LIST,
            "max_resource_counts": env_keyed(
                {"type": "object", "additionalProperties": {"type": "integer", "minimum": 0}}
            ),
            "resource_costs": {"type": "object", "additionalProperties": NON_NEGATIVE},
            "quantity_attributes": STRING_LIST,
        },
        "required": ["monthly_cost_limits"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> CostParameters:
        limit = raw.get("cost_increase_percentage_limit")
        return CostParameters(
            monthly_cost_limits=env_table(raw["monthly_cost_limits"], "monthly_cost_limits", float, complete=True),
            cost_increase_percentage_limit=None if limit is None else float(limit),
            expensive_resource_types=as_tuple(raw.get("expensive_resource_types")),
            max_resource_counts=env_table(raw.get("max_resource_counts"), "max_resource_counts", _count_table),
            resource_costs={str(k): float(v) for k, v in (raw.get("resource_costs") or {}).items()},
            quantity_attributes=as_tuple(raw.get("quantity_attributes")) or DEFAULT_QUANTITY_ATTRIBUTES,
        )

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: CostParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        environment = ctx.environment.environment
        table = (ctx.cost_table or CostTable()).with_overrides(params.resource_costs)
        estimate = estimate_costs(snapshot, table, environment, params.quantity_attributes)
        violations: List[Violation] = []

        limit = params.monthly_cost_limits.get(environment)
        if limit is None:
            logger.debug("No monthly cost limit for environment %s; skipping", environment.value)
        elif estimate.total > limit:
            violations.append(
                build_violation(
                    policy,
                    PLAN_ADDRESS,
                    "monthly-cost-limit",
                    f"estimated monthly cost {estimate.total:.2f} exceeds the {environment.value} "
                    f"limit of {limit:.2f}",
                    estimated_cost=round(estimate.total, 2),
                    limit=limit,
                )
            )

        violations.extend(cls._check_increase(policy, params, snapshot, table, estimate))

        if environment in NON_PRODUCTION and params.expensive_resource_types:
            for change in snapshot.of_types(params.expensive_resource_types):
                violations.append(
                    build_violation(
                        policy,
                        change.address,
                        "expensive-resource",
                        f"{change.type} is restricted to production but is planned in {environment.value}",
                        resource_type=change.type,
                    )
                )

        violations.extend(cls._check_counts(policy, params, snapshot, environment))
        return violations

    @staticmethod
    def _check_increase(
        policy: Policy,
        params: CostParameters,
        snapshot: PlanSnapshot,
        table: CostTable,
        estimate: CostEstimate,
    ) -> List[Violation]:
        if params.cost_increase_percentage_limit is None:
            return []
        if snapshot.prior_costs is not None:
            baseline = sum(snapshot.prior_costs.values())
        else:
            baseline = table.prior_monthly_cost or 0.0
        if baseline <= 0:
            logger.debug("No prior cost baseline; skipping cost increase check")
            return []
        percentage = estimate.delta * 100.0 / baseline
        if percentage <= params.cost_increase_percentage_limit:
            return []
        return [
            build_violation(
                policy,
                PLAN_ADDRESS,
                "cost-increase",
                f"estimated monthly cost increase of {percentage:.1f}% exceeds the limit of "
                f"{params.cost_increase_percentage_limit:.1f}%",
                baseline=round(baseline, 2),
                increase_percentage=round(percentage, 2),
            )
        ]

    @staticmethod
    def _check_counts(
        policy: Policy,
        params: CostParameters,
        snapshot: PlanSnapshot,
        environment: Environment,
    ) -> List[Violation]:
        limits = params.max_resource_counts.get(environment)
        if not limits:
            return []
        creates = [change for change in snapshot if change.action is Action.CREATE]
        counts = Counter(change.type for change in creates)
        violations: List[Violation] = []
        for resource_type, maximum in limits.items():
            count = counts.get(resource_type, 0)
            if count <= maximum:
                continue
            offending = [change for change in creates if change.type == resource_type][maximum]
            violations.append(
                build_violation(
                    policy,
                    offending.address,
                    "resource-count",
                    f"{count} {resource_type} resources are created in {environment.value}; "
                    f"maximum is {maximum}",
                    resource_type=resource_type,
                    count=count,
                    maximum=maximum,
                )
            )
        return violations


__all__ = [
    "CostEstimate",
    "CostEvaluator",
    "CostParameters",
    "estimate_costs",
    "resource_quantity",
]
