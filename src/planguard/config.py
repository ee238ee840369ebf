"""Policy registry: loads and validates policy declarations."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import jsonschema
import yaml

from .errors import ConfigurationError
from .model import EnforcementLevel, Policy
from .rules import get_evaluator, get_families

logger = logging.getLogger(__name__)

_POLICY_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "family": {"type": "string", "minLength": 1},
        "enforcement_level": {"type": "string"},
        "parameters": {"type": "object"},
        "description": {"type": "string"},
    },
    "required": ["name", "family", "enforcement_level"],
    "additionalProperties": False,
}

_ENFORCEMENT_LEVELS = {level.value: level for level in EnforcementLevel}


def _format_error(error: jsonschema.ValidationError) -> str:
    location = "/".join(str(part) for part in error.absolute_path)
    return f"{location}: {error.message}" if location else error.message


def _validate(instance: Any, schema: Mapping[str, Any], label: str) -> None:
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda err: list(err.absolute_path))
    if errors:
        raise ConfigurationError(f"{label}: {_format_error(errors[0])}")


class PolicyRegistry:
    """Ordered, read-only set of policies loaded at the start of a run."""

    def __init__(self, policies: Sequence[Policy]) -> None:
        names: Dict[str, Policy] = {}
        for policy in policies:
            if policy.name in names:
                raise ConfigurationError(f"Duplicate policy name: {policy.name}")
            names[policy.name] = policy
        self._policies = tuple(policies)
        self._by_name = names

    def __iter__(self) -> Iterator[Policy]:
        return iter(self._policies)

    def __len__(self) -> int:
        return len(self._policies)

    def names(self) -> List[str]:
        return [policy.name for policy in self._policies]

    def get(self, name: str) -> Policy:
        return self._by_name[name]


def parse_policy(entry: Any, position: int = 0) -> Policy:
    label = f"policies[{position}]"
    if isinstance(entry, Mapping) and isinstance(entry.get("name"), str):
        label = f"policy {entry['name']!r}"
    _validate(entry, _POLICY_SCHEMA, label)

    level = _ENFORCEMENT_LEVELS.get(entry["enforcement_level"])
    if level is None:
        raise ConfigurationError(
            f"{label}: unknown enforcement level {entry['enforcement_level']!r}; "
            f"expected one of {', '.join(_ENFORCEMENT_LEVELS)}"
        )

    family = entry["family"]
    try:
        evaluator = get_evaluator(family)
    except KeyError:
        raise ConfigurationError(
            f"{label}: unknown policy family {family!r}; expected one of {', '.join(get_families())}"
        ) from None

    raw_parameters = entry.get("parameters") or {}
    _validate(raw_parameters, evaluator.schema, f"{label} parameters")
    parameters = evaluator.parse_parameters(raw_parameters)
    return Policy(name=entry["name"], family=family, enforcement_level=level, parameters=parameters)


def parse_policies(document: Any) -> PolicyRegistry:
    """Build a registry from a ``{"policies": [...]}`` document or a bare list."""

    if isinstance(document, Mapping):
        entries = document.get("policies")
    else:
        entries = document
    if not isinstance(entries, list):
        raise ConfigurationError("policy configuration must contain a list of policies")
    policies = [parse_policy(entry, position) for position, entry in enumerate(entries)]
    registry = PolicyRegistry(policies)
    logger.debug("Loaded %d policies: %s", len(registry), ", ".join(registry.names()))
    return registry


def load_policy_file(path: Path) -> PolicyRegistry:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"unable to read policy configuration {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"invalid policy configuration {path}: {exc}") from exc
    return parse_policies(document)


def load_policies(source: Optional[Any]) -> PolicyRegistry:
    """Accept a path, a parsed document or an existing registry."""

    if isinstance(source, PolicyRegistry):
        return source
    if isinstance(source, (str, Path)):
        return load_policy_file(Path(source))
    return parse_policies(source)


__all__ = [
    "PolicyRegistry",
    "load_policies",
    "load_policy_file",
    "parse_policies",
    "parse_policy",
]
