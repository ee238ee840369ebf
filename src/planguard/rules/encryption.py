"""Transport security, TLS floor and customer-managed key checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, List, Mapping, Optional, Tuple

from ..model import PlanSnapshot, Policy, ResourceChange, Violation
from ..params import STRING_LIST, as_tuple
from ..values import NULL, UNKNOWN, AttrValue, Known, contains_unknown, first_present, truthy
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncryptionParameters:
    allowed_tls_versions: Tuple[str, ...] = ("TLS1_2",)
    require_customer_managed_keys_prod: bool = False
    resource_types: Tuple[str, ...] = (
        "azurerm_storage_account",
        "azurerm_postgresql_server",
        "azurerm_mysql_server",
    )
    transport_attributes: Tuple[str, ...] = (
        "https_traffic_only_enabled",
        "enable_https_traffic_only",
        "https_traffic_only",
        "ssl_enforcement_enabled",
    )
    tls_attributes: Tuple[str, ...] = (
        "min_tls_version",
        "minimum_tls_version",
        "ssl_minimal_tls_version_enforced",
    )
    customer_managed_key_attributes: Tuple[str, ...] = (
        "customer_managed_key",
        "customer_managed_key_id",
        "key_vault_key_id",
    )


def _unresolved(value: Optional[AttrValue]) -> bool:
    return value is UNKNOWN or (isinstance(value, Known) and contains_unknown(value.value))


def _present(value: Optional[AttrValue]) -> bool:
    if not isinstance(value, Known):
        return False
    raw = value.value
    if isinstance(raw, (str, list, tuple, Mapping)):
        return len(raw) > 0
    return raw is not False


@register
class EncryptionEvaluator(Evaluator):
    """Storage and database resources enforce encrypted transport, a TLS floor and CMKs in production."""

    family = "encryption"
    schema = {
        "type": "object",
        "properties": {
            "allowed_tls_versions": {"type": "array", "items": {"type": "string"}, "minItems": 1},
            "require_customer_managed_keys_prod": {"type": "boolean"},
            "resource_types": STRING_LIST,
            "transport_attributes": STRING_LIST,
            "tls_attributes": STRING_LIST,
            "customer_managed_key_attributes": STRING_LIST,
        },
        "required": ["allowed_tls_versions"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> EncryptionParameters:
        overrides = {key: as_tuple(value) if isinstance(value, list) else value for key, value in raw.items()}
        return replace(EncryptionParameters(), **overrides)

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: EncryptionParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        require_cmk = params.require_customer_managed_keys_prod and ctx.environment.is_production
        violations: List[Violation] = []

        for change in snapshot.of_types(params.resource_types):
            violations.extend(cls._check_transport(policy, params, change))
            violations.extend(cls._check_tls(policy, params, change))
            if require_cmk:
                violations.extend(cls._check_customer_managed_key(policy, params, change))
        return violations

    @staticmethod
    def _check_transport(policy: Policy, params: EncryptionParameters, change: ResourceChange) -> List[Violation]:
        path, value = first_present(change.attributes, params.transport_attributes)
        if _unresolved(value):
            logger.debug("Transport security flag of %s is unknown until apply; skipping", change.address)
            return []
        if isinstance(value, Known) and truthy(value):
            return []
        attribute = path or params.transport_attributes[0]
        if value is None or value is NULL:
            message = f"{change.type} {change.address} does not set {attribute}; HTTPS-only transport is required"
        else:
            message = (
                f"{change.type} {change.address} sets {attribute} = {value.value!r}; "
                "HTTPS-only transport is required"
            )
        return [build_violation(policy, change.address, "insecure-transport", message, attribute=attribute)]

    @staticmethod
    def _check_tls(policy: Policy, params: EncryptionParameters, change: ResourceChange) -> List[Violation]:
        path, value = first_present(change.attributes, params.tls_attributes)
        if _unresolved(value):
            logger.debug("Minimum TLS version of %s is unknown until apply; skipping", change.address)
            return []
        allowed = ", ".join(params.allowed_tls_versions)
        attribute = path or params.tls_attributes[0]
        if isinstance(value, Known) and str(value.value) in params.allowed_tls_versions:
            return []
        if value is None or value is NULL:
            message = f"{change.type} {change.address} does not set {attribute}; allowed: {allowed}"
        else:
            message = f"{change.type} {change.address} uses TLS version {value.value!r}; allowed: {allowed}"
        return [build_violation(policy, change.address, "tls-version", message, attribute=attribute)]

    @staticmethod
    def _check_customer_managed_key(
        policy: Policy, params: EncryptionParameters, change: ResourceChange
    ) -> List[Violation]:
        values = [change.get(path) for path in params.customer_managed_key_attributes]
        if any(_present(value) for value in values):
            return []
        if any(_unresolved(value) for value in values):
            logger.debug("Customer-managed key of %s is unknown until apply; skipping", change.address)
            return []
        return [
            build_violation(
                policy,
                change.address,
                "missing-customer-managed-key",
                f"production {change.type} {change.address} does not reference a customer-managed key",
                attributes=list(params.customer_managed_key_attributes),
            )
        ]


__all__ = ["EncryptionEvaluator", "EncryptionParameters"]
