"""Decision engine: runs every policy evaluator and folds violations into a RunResult."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, List, Optional, Sequence

from .constants import DEFAULT_WORKERS, PLAN_ADDRESS
from .cost_feed import CostTable
from .environment import EnvironmentContext, resolve_environment
from .model import EnforcementLevel, PlanSnapshot, Policy, PolicyOutcome, PolicyStatus, RunResult, Violation
from .normalizer import normalize_plan
from .rules import EvaluationContext, build_violation, get_evaluator

logger = logging.getLogger(__name__)


def evaluate_policy(snapshot: PlanSnapshot, policy: Policy, context: EvaluationContext) -> List[Violation]:
    """Run one evaluator; unexpected failures become a violation so the policy fails closed."""

    evaluator = get_evaluator(policy.family)
    try:
        return list(evaluator.evaluate(snapshot, policy, context))
    except Exception as exc:  # noqa: BLE001  # pylint: disable=broad-except
        logger.exception("Evaluator for policy %s raised", policy.name)
        return [
            build_violation(
                policy,
                PLAN_ADDRESS,
                "evaluation-error",
                f"policy evaluation failed: {exc.__class__.__name__}: {exc}",
            )
        ]


def decide(policy: Policy, violations: Sequence[Violation], overrides: Iterable[str] = ()) -> PolicyOutcome:
    """Map a policy's violations and enforcement level onto its status."""

    blocking = [violation for violation in violations if not violation.is_warning]
    overridden = False
    if not violations:
        status = PolicyStatus.PASS
    elif policy.enforcement_level is EnforcementLevel.ADVISORY or not blocking:
        status = PolicyStatus.WARN
    else:
        status = PolicyStatus.FAIL
        overridden = policy.enforcement_level is EnforcementLevel.SOFT_MANDATORY and policy.name in set(overrides)
    return PolicyOutcome(
        policy_name=policy.name,
        family=policy.family,
        enforcement_level=policy.enforcement_level,
        status=status,
        violations=tuple(violations),
        overridden=overridden,
    )


def _check_overrides(policies: Sequence[Policy], overrides: Iterable[str]) -> None:
    levels = {policy.name: policy.enforcement_level for policy in policies}
    for name in overrides:
        level = levels.get(name)
        if level is None:
            logger.warning("Override %r does not match any loaded policy", name)
        elif level is EnforcementLevel.HARD_MANDATORY:
            logger.warning("Override %r ignored: hard-mandatory policies cannot be overridden", name)
        elif level is EnforcementLevel.ADVISORY:
            logger.info("Override %r has no effect on an advisory policy", name)


def evaluate(
    snapshot: PlanSnapshot,
    policies: Iterable[Policy],
    *,
    environment: Optional[EnvironmentContext] = None,
    cost_table: Optional[CostTable] = None,
    overrides: Iterable[str] = (),
    workers: int = DEFAULT_WORKERS,
) -> RunResult:
    """Evaluate all policies against one snapshot.

    Evaluators only read the snapshot and their own parameters, so they run
    in parallel; outcomes keep the policy order. All policies run even after
    a hard-mandatory failure so the report is complete.
    """

    policy_list = list(policies)
    override_set = frozenset(overrides)
    _check_overrides(policy_list, override_set)
    context = EvaluationContext(
        environment=environment or resolve_environment(snapshot.workspace),
        cost_table=cost_table if cost_table is not None else CostTable(),
    )

    def run(policy: Policy) -> List[Violation]:
        return evaluate_policy(snapshot, policy, context)

    if workers <= 1 or len(policy_list) <= 1:
        results = [run(policy) for policy in policy_list]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(policy_list))) as executor:
            results = list(executor.map(run, policy_list))

    outcomes = tuple(
        decide(policy, violations, override_set) for policy, violations in zip(policy_list, results)
    )
    result = RunResult(
        outcomes=outcomes,
        environment=context.environment.environment,
        workspace=context.environment.workspace or None,
    )
    logger.info(
        "Evaluated %d policies against %d changes: %s (%d violations)",
        len(policy_list),
        len(snapshot),
        result.status.value,
        len(result.violations),
    )
    return result


def run_check(
    change_set: Any,
    policies: Iterable[Policy],
    *,
    workspace: Optional[str] = None,
    environment_override: Optional[str] = None,
    cost_table: Optional[CostTable] = None,
    overrides: Iterable[str] = (),
    workers: int = DEFAULT_WORKERS,
) -> RunResult:
    """Normalize a raw change-set, resolve the environment and evaluate."""

    snapshot = change_set if isinstance(change_set, PlanSnapshot) else normalize_plan(change_set)
    context = resolve_environment(workspace or snapshot.workspace, environment_override)
    return evaluate(
        snapshot,
        policies,
        environment=context,
        cost_table=cost_table,
        overrides=overrides,
        workers=workers,
    )


__all__ = ["decide", "evaluate", "evaluate_policy", "run_check"]
