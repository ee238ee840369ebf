"""Resource naming convention checks."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from ..model import PlanSnapshot, Policy, Violation
from ..params import STRING_LIST, EnvironmentTable, as_tuple, env_keyed, env_table
from ..values import Known
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)

_SEQUENCE_SUFFIX = re.compile(r"\d+$")


@dataclass(frozen=True)
class NamingParameters:
    organization_prefix: str
    resource_type_abbreviations: Mapping[str, str] = field(default_factory=dict)
    environment_abbreviations: EnvironmentTable = field(default_factory=EnvironmentTable)
    require_sequence_number: bool = False
    prohibited_words: Tuple[str, ...] = ()
    max_name_lengths: Mapping[str, int] = field(default_factory=dict)

    def max_length_for(self, resource_type: str) -> Optional[int]:
        if resource_type in self.max_name_lengths:
            return self.max_name_lengths[resource_type]
        return self.max_name_lengths.get("default")


@register
class NamingEvaluator(Evaluator):
    """Resource names follow <prefix><type><purpose><env><sequence> and avoid prohibited words."""

    family = "naming"
    schema = {
        "type": "object",
        "properties": {
            "organization_prefix": {"type": "string", "minLength": 1},
            "resource_type_abbreviations": {
                "type": "object",
                "additionalProperties": {"type": "string", "minLength": 1},
            },
            "environment_abbreviations": env_keyed({"type": "string", "minLength": 1}),
            "require_sequence_number": {"type": "boolean"},
            "prohibited_words": STRING_LIST,
            "max_name_lengths": {"type": "object", "additionalProperties": {"type": "integer", "minimum": 1}},
        },
        "required": ["organization_prefix", "resource_type_abbreviations", "environment_abbreviations"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> NamingParameters:
        return NamingParameters(
            organization_prefix=raw["organization_prefix"],
            resource_type_abbreviations=dict(raw.get("resource_type_abbreviations") or {}),
            environment_abbreviations=env_table(
                raw.get("environment_abbreviations"), "environment_abbreviations", str, complete=True
            ),
            require_sequence_number=bool(raw.get("require_sequence_number", False)),
            prohibited_words=as_tuple(raw.get("prohibited_words")),
            max_name_lengths=dict(raw.get("max_name_lengths") or {}),
        )

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: NamingParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        env_abbreviation = params.environment_abbreviations.get(ctx.environment.environment)
        violations: List[Violation] = []

        for change in snapshot.active():
            name_value = change.name
            if not isinstance(name_value, Known):
                if name_value is not None:
                    logger.debug("Name of %s is not known; skipping naming checks", change.address)
                continue
            name = str(name_value.value)
            lowered = name.lower()

            def report(rule: str, message: str, **details: Any) -> None:
                violations.append(
                    build_violation(
                        policy,
                        change.address,
                        rule,
                        f"{change.type} name '{name}' {message}",
                        name=name,
                        **details,
                    )
                )

            abbreviation = params.resource_type_abbreviations.get(change.type)
            if abbreviation is not None:
                prefix = params.organization_prefix
                if prefix.lower() not in lowered:
                    report("wrong-prefix", f"does not contain organization prefix '{prefix}'", expected=prefix)
                if abbreviation.lower() not in lowered:
                    report(
                        "wrong-type-abbreviation",
                        f"does not contain resource type abbreviation '{abbreviation}'",
                        expected=abbreviation,
                    )
                if env_abbreviation is not None and env_abbreviation.lower() not in lowered:
                    report(
                        "wrong-environment-abbreviation",
                        f"does not contain environment abbreviation '{env_abbreviation}' "
                        f"for {ctx.environment.environment.value}",
                        expected=env_abbreviation,
                    )
                if params.require_sequence_number and not _SEQUENCE_SUFFIX.search(name):
                    report("missing-sequence-number", "does not end with a sequence number")

            for word in params.prohibited_words:
                if word and word.lower() in lowered:
                    report("prohibited-word", f"contains prohibited word '{word}'", word=word)

            max_length = params.max_length_for(change.type)
            if max_length is not None and len(name) > max_length:
                report(
                    "name-too-long",
                    f"is {len(name)} characters long; maximum is {max_length}",
                    length=len(name),
                    max_length=max_length,
                )
        return violations


__all__ = ["NamingEvaluator", "NamingParameters"]
