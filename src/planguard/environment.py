"""Deployment environment inference from workspace names and overrides."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .model import Environment

logger = logging.getLogger(__name__)

_ALIASES = {
    "dev": Environment.DEVELOPMENT,
    "development": Environment.DEVELOPMENT,
    "stage": Environment.STAGING,
    "staging": Environment.STAGING,
    "prod": Environment.PRODUCTION,
    "production": Environment.PRODUCTION,
    "unknown": Environment.UNKNOWN,
}

# Order matters: production is tested first so "staging-prod-mirror" is production.
_INFERENCE_RULES = (
    (("prod",), Environment.PRODUCTION),
    (("staging", "stage"), Environment.STAGING),
    (("dev", "development"), Environment.DEVELOPMENT),
)


@dataclass(frozen=True)
class EnvironmentContext:
    environment: Environment
    workspace: str = ""
    overridden: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment is Environment.PRODUCTION


def parse_environment(value: str) -> Optional[Environment]:
    """Map an environment name or alias onto the enum, or None if unrecognized."""

    if isinstance(value, Environment):
        return value
    return _ALIASES.get(str(value).strip().lower())


def infer_environment(workspace: Optional[str]) -> Environment:
    lowered = (workspace or "").lower()
    for needles, environment in _INFERENCE_RULES:
        if any(needle in lowered for needle in needles):
            return environment
    return Environment.UNKNOWN


def resolve_environment(workspace: Optional[str], override: Optional[str] = None) -> EnvironmentContext:
    """Resolve the deployment environment; an explicit override always wins."""

    raw_workspace = workspace or ""
    if override is not None and str(override).strip():
        environment = parse_environment(override)
        if environment is None:
            logger.warning("Unrecognized environment override %r; using 'unknown'", override)
            environment = Environment.UNKNOWN
        return EnvironmentContext(environment=environment, workspace=raw_workspace, overridden=True)

    environment = infer_environment(raw_workspace)
    logger.debug("Workspace %r resolved to %s", raw_workspace, environment.value)
    return EnvironmentContext(environment=environment, workspace=raw_workspace)


__all__ = [
    "EnvironmentContext",
    "infer_environment",
    "parse_environment",
    "resolve_environment",
]
