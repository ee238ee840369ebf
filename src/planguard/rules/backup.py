"""Backup enablement and retention for critical resources."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from ..model import Environment, PlanSnapshot, Policy, ResourceChange, Violation
from ..params import STRING_LIST, EnvironmentTable, as_tuple, env_keyed, env_table
from ..values import NULL, UNKNOWN, AttrValue, Known, contains_unknown, enabled, first_present
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackupRequirement:
    retention_days: int = 0
    daily_backup: Optional[bool] = None


@dataclass(frozen=True)
class BackupParameters:
    critical_resource_types: Tuple[str, ...]
    backup_policy_requirements: EnvironmentTable
    backup_enabled_attributes: Tuple[str, ...] = ("backup_enabled", "backup", "backup_policy_id")
    retention_attributes: Tuple[str, ...] = (
        "backup_retention_days",
        "retention_days",
        "backup.retention_days",
        "short_term_retention_policy.retention_days",
    )


def _requirement(value: Mapping[str, Any]) -> BackupRequirement:
    daily = value.get("daily_backup")
    return BackupRequirement(
        retention_days=int(value.get("retention_days", 0)),
        daily_backup=None if daily is None else bool(daily),
    )


def _unresolved(value: Optional[AttrValue]) -> bool:
    return value is UNKNOWN or (isinstance(value, Known) and contains_unknown(value.value))


@register
class BackupEvaluator(Evaluator):
    """Critical resources keep backups enabled with enough retention."""

    family = "backup"
    schema = {
        "type": "object",
        "properties": {
            "critical_resource_types": STRING_LIST,
            "backup_policy_requirements": env_keyed(
                {
                    "type": "object",
                    "properties": {
                        "retention_days": {"type": "integer", "minimum": 0},
                        "daily_backup": {"type": "boolean"},
                    },
                    "additionalProperties": False,
                }
            ),
            "backup_enabled_attributes": STRING_LIST,
            "retention_attributes": STRING_LIST,
        },
        "required": ["critical_resource_types", "backup_policy_requirements"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> BackupParameters:
        requirements = env_table(
            raw["backup_policy_requirements"],
            "backup_policy_requirements",
            _requirement,
            required=(Environment.PRODUCTION,),
        )
        defaults = BackupParameters(critical_resource_types=(), backup_policy_requirements=requirements)
        return BackupParameters(
            critical_resource_types=as_tuple(raw["critical_resource_types"]),
            backup_policy_requirements=requirements,
            backup_enabled_attributes=as_tuple(raw.get("backup_enabled_attributes"))
            or defaults.backup_enabled_attributes,
            retention_attributes=as_tuple(raw.get("retention_attributes")) or defaults.retention_attributes,
        )

    @staticmethod
    def requirement_for(params: BackupParameters, environment: Environment) -> Optional[BackupRequirement]:
        """Return the requirement that applies, or None when the environment is exempt."""

        requirement = params.backup_policy_requirements.get(environment)
        if requirement is None:
            return None
        if environment is Environment.PRODUCTION:
            return requirement
        return requirement if requirement.daily_backup is True else None

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: BackupParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        environment = ctx.environment.environment
        requirement = cls.requirement_for(params, environment)
        if requirement is None:
            logger.debug("Backup requirements do not apply to environment %s", environment.value)
            return []

        violations: List[Violation] = []
        for change in snapshot.of_types(params.critical_resource_types):
            violations.extend(cls._check_enabled(policy, params, change, environment))
            violations.extend(cls._check_retention(policy, params, change, requirement, environment))
        return violations

    @staticmethod
    def _check_enabled(
        policy: Policy, params: BackupParameters, change: ResourceChange, environment: Environment
    ) -> List[Violation]:
        values = [change.get(path) for path in params.backup_enabled_attributes]
        if any(enabled(value) for value in values):
            return []
        if any(_unresolved(value) for value in values):
            logger.debug("Backup enablement of %s is unknown until apply; skipping", change.address)
            return []
        return [
            build_violation(
                policy,
                change.address,
                "backup-disabled",
                f"{change.type} {change.address} does not enable backups required in {environment.value}",
                attributes=list(params.backup_enabled_attributes),
            )
        ]

    @staticmethod
    def _check_retention(
        policy: Policy,
        params: BackupParameters,
        change: ResourceChange,
        requirement: BackupRequirement,
        environment: Environment,
    ) -> List[Violation]:
        path, value = first_present(change.attributes, params.retention_attributes)
        if _unresolved(value):
            logger.debug("Backup retention of %s is unknown until apply; skipping", change.address)
            return []
        required = requirement.retention_days
        if value is None or value is NULL:
            return [
                build_violation(
                    policy,
                    change.address,
                    "backup-retention",
                    f"{change.type} {change.address} does not configure backup retention; "
                    f"{required} days required in {environment.value}",
                    required_days=required,
                )
            ]
        try:
            days = -1 if isinstance(value.value, bool) else int(value.value)
        except (TypeError, ValueError):
            days = -1
        if days >= required:
            return []
        return [
            build_violation(
                policy,
                change.address,
                "backup-retention",
                f"{change.type} {change.address} retains backups for {value.value} days; "
                f"{required} days required in {environment.value}",
                attribute=path,
                retention_days=value.value,
                required_days=required,
            )
        ]


__all__ = ["BackupEvaluator", "BackupParameters", "BackupRequirement"]
