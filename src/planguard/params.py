"""Typed helpers shared by the per-family parameter parsers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Iterable, Mapping, Optional, Pattern, Tuple, TypeVar

from .environment import parse_environment
from .errors import ConfigurationError
from .model import DEPLOY_ENVIRONMENTS, Environment

T = TypeVar("T")

STRING_LIST = {"type": "array", "items": {"type": "string"}}
PORT_LIST = {"type": "array", "items": {"type": "integer", "minimum": 0, "maximum": 65535}}
NON_NEGATIVE = {"type": "number", "minimum": 0}


def env_keyed(value_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "object", "additionalProperties": value_schema}


@dataclass(frozen=True)
class EnvironmentTable(Generic[T]):
    """Per-environment parameter table keyed by the environment enum."""

    development: Optional[T] = None
    staging: Optional[T] = None
    production: Optional[T] = None

    def get(self, environment: Environment) -> Optional[T]:
        if environment is Environment.UNKNOWN:
            return None
        return getattr(self, environment.name.lower())

    def __contains__(self, environment: object) -> bool:
        return isinstance(environment, Environment) and self.get(environment) is not None


def env_table(
    raw: Optional[Mapping[str, Any]],
    name: str,
    convert: Callable[[Any], T] = lambda value: value,
    *,
    complete: bool = False,
    required: Iterable[Environment] = (),
) -> EnvironmentTable:
    """Build an EnvironmentTable from an alias-keyed mapping.

    ``complete`` requires an entry for every deploy environment; ``required``
    names the environments that must be present otherwise.
    """

    entries: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        environment = parse_environment(key)
        if environment is None or environment is Environment.UNKNOWN:
            raise ConfigurationError(f"{name}: unknown environment key {key!r}")
        slot = environment.name.lower()
        if slot in entries:
            raise ConfigurationError(f"{name}: environment {environment.value!r} declared twice")
        entries[slot] = convert(value)

    needed = DEPLOY_ENVIRONMENTS if complete else tuple(required)
    missing = [env.value for env in needed if env.name.lower() not in entries]
    if missing:
        raise ConfigurationError(f"{name}: missing entries for {', '.join(missing)}")
    return EnvironmentTable(**entries)


def compile_pattern(pattern: str, name: str) -> Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(f"{name}: invalid pattern {pattern!r}: {exc}") from exc


def as_tuple(values: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    return tuple(values or ())


__all__ = [
    "EnvironmentTable",
    "NON_NEGATIVE",
    "PORT_LIST",
    "STRING_LIST",
    "as_tuple",
    "compile_pattern",
    "env_keyed",
    "env_table",
]
