"""Mandatory tag presence and tag value validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Pattern, Tuple

from ..model import Environment, PlanSnapshot, Policy, Violation
from ..params import STRING_LIST, EnvironmentTable, as_tuple, compile_pattern, env_keyed, env_table
from ..errors import ConfigurationError
from ..values import NULL, UNKNOWN
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagParameters:
    mandatory_tags: Tuple[str, ...] = ()
    environment_tags: EnvironmentTable = field(default_factory=EnvironmentTable)
    tag_value_min_length: int = 1
    tag_value_max_length: int = 256
    tag_validation_patterns: Mapping[str, Pattern[str]] = field(default_factory=dict)
    exempt_resource_types: Tuple[str, ...] = ()

    def required_tags(self, environment: Environment) -> Tuple[str, ...]:
        extra = self.environment_tags.get(environment) or ()
        ordered: List[str] = []
        for key in (*self.mandatory_tags, *extra):
            if key not in ordered:
                ordered.append(key)
        return tuple(ordered)


@register
class TagEvaluator(Evaluator):
    """Created and updated resources must carry the mandatory tags with valid values."""

    family = "tags"
    schema = {
        "type": "object",
        "properties": {
            "mandatory_tags": STRING_LIST,
            "environment_tags": env_keyed(STRING_LIST),
            "tag_value_min_length": {"type": "integer", "minimum": 0},
            "tag_value_max_length": {"type": "integer", "minimum": 1},
            "tag_validation_patterns": {"type": "object", "additionalProperties": {"type": "string"}},
            "exempt_resource_types": STRING_LIST,
        },
        "required": ["mandatory_tags"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> TagParameters:
        min_length = raw.get("tag_value_min_length", 1)
        max_length = raw.get("tag_value_max_length", 256)
        if min_length > max_length:
            raise ConfigurationError(
                f"tag_value_min_length ({min_length}) exceeds tag_value_max_length ({max_length})"
            )
        patterns = {
            key: compile_pattern(pattern, f"tag_validation_patterns.{key}")
            for key, pattern in (raw.get("tag_validation_patterns") or {}).items()
        }
        return TagParameters(
            mandatory_tags=as_tuple(raw.get("mandatory_tags")),
            environment_tags=env_table(raw.get("environment_tags"), "environment_tags", as_tuple),
            tag_value_min_length=min_length,
            tag_value_max_length=max_length,
            tag_validation_patterns=patterns,
            exempt_resource_types=as_tuple(raw.get("exempt_resource_types")),
        )

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: TagParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        required = params.required_tags(ctx.environment.environment)
        violations: List[Violation] = []

        for change in snapshot.active():
            if change.type in params.exempt_resource_types:
                continue
            if change.tags is UNKNOWN:
                logger.debug("Tags of %s are unknown until apply; skipping", change.address)
                continue
            for key in required:
                value = change.tags.get(key)
                if value is UNKNOWN:
                    logger.debug("Tag %s on %s is unknown until apply; skipping", key, change.address)
                    continue
                if value is None or value is NULL:
                    violations.append(
                        build_violation(
                            policy,
                            change.address,
                            "missing-tag",
                            f"{change.type} {change.address} is missing mandatory tag '{key}'",
                            tag=key,
                        )
                    )
                    continue
                problems = cls._value_problems(params, key, str(value.value))
                if problems:
                    violations.append(
                        build_violation(
                            policy,
                            change.address,
                            "invalid-tag-value",
                            f"{change.type} {change.address} has invalid value for tag '{key}': "
                            + "; ".join(problems),
                            tag=key,
                            value=str(value.value),
                        )
                    )
        return violations

    @staticmethod
    def _value_problems(params: TagParameters, key: str, text: str) -> List[str]:
        problems: List[str] = []
        if len(text) < params.tag_value_min_length:
            problems.append(f"shorter than {params.tag_value_min_length} characters")
        elif len(text) > params.tag_value_max_length:
            problems.append(f"longer than {params.tag_value_max_length} characters")
        pattern = params.tag_validation_patterns.get(key)
        if pattern is not None and not pattern.fullmatch(text):
            problems.append(f"does not match pattern {pattern.pattern!r}")
        return problems


__all__ = ["TagEvaluator", "TagParameters"]
