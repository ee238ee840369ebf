"""Evaluator base class and violation helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from ..environment import EnvironmentContext, resolve_environment
from ..model import EnforcementLevel, PlanSnapshot, Policy, Violation


@dataclass(frozen=True)
class EvaluationContext:
    """Read-only inputs shared by every evaluator during one run."""

    environment: EnvironmentContext
    cost_table: Optional[Any] = None


class Evaluator:
    """Rule evaluator for one policy family.

    Subclasses declare ``family``, a JSON Schema for their parameter bag and a
    ``parse_parameters`` hook that returns a frozen typed parameter object.
    """

    family = "UNSET"
    schema: Dict[str, Any] = {"type": "object"}

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> Any:
        return dict(raw)

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        return []

    @staticmethod
    def context_for(snapshot: PlanSnapshot, context: Optional[EvaluationContext]) -> EvaluationContext:
        if context is not None:
            return context
        return EvaluationContext(environment=resolve_environment(snapshot.workspace))


def build_violation(
    policy: Policy,
    resource_address: str,
    rule: str,
    message: str,
    *,
    warning: bool = False,
    **details: Any,
) -> Violation:
    """Create a violation whose severity follows the policy's enforcement level."""

    severity = EnforcementLevel.ADVISORY.value if warning else policy.enforcement_level.value
    return Violation(
        policy_name=policy.name,
        resource_address=resource_address,
        message=message,
        severity=severity,
        rule=rule,
        details=details,
    )
