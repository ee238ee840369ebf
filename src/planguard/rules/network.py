"""Network exposure checks for security rules, DDoS protection and WAF."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..constants import ANY_SOURCE_PREFIXES, MANAGEMENT_PORTS
from ..model import PlanSnapshot, Policy, ResourceChange, Violation
from ..params import PORT_LIST, STRING_LIST, as_tuple
from ..values import UNKNOWN, Known, contains_unknown, enabled
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)

PortRange = Tuple[int, int]


@dataclass(frozen=True)
class NetworkParameters:
    allowed_public_ports: Tuple[int, ...] = (80, 443)
    management_ports: Tuple[int, ...] = MANAGEMENT_PORTS
    max_priority_threshold: Optional[int] = None
    rule_resource_types: Tuple[str, ...] = (
        "azurerm_network_security_group",
        "azurerm_network_security_rule",
    )
    require_ddos_protection_prod: bool = True
    ddos_resource_types: Tuple[str, ...] = ("azurerm_virtual_network",)
    ddos_attributes: Tuple[str, ...] = ("ddos_protection_plan",)
    require_waf_prod: bool = True
    waf_resource_types: Tuple[str, ...] = ("azurerm_application_gateway", "azurerm_frontdoor")
    waf_attributes: Tuple[str, ...] = (
        "waf_configuration",
        "firewall_policy_id",
        "web_application_firewall_policy_link_id",
    )


def parse_port_range(value: Any) -> Optional[PortRange]:
    """Parse ``"*"``, ``"22"`` or ``"1000-2000"`` into an inclusive range."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return (value, value)
    text = str(value).strip()
    if text in {"*", "any", "Any"}:
        return (0, 65535)
    if "-" in text:
        low, _, high = text.partition("-")
        try:
            start, end = int(low), int(high)
        except ValueError:
            return None
        return (min(start, end), max(start, end))
    try:
        port = int(text)
    except ValueError:
        return None
    return (port, port)


def _format_range(port_range: PortRange) -> str:
    low, high = port_range
    if (low, high) == (0, 65535):
        return "*"
    return str(low) if low == high else f"{low}-{high}"


def _range_allowed(port_range: PortRange, allowed: Iterable[int]) -> bool:
    low, high = port_range
    allowed_set = set(allowed)
    if high - low + 1 > len(allowed_set):
        return False
    return all(port in allowed_set for port in range(low, high + 1))


def _listify(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _unresolved(value: Any) -> bool:
    return value is UNKNOWN or (isinstance(value, Known) and contains_unknown(value.value))


@register
class NetworkExposureEvaluator(Evaluator):
    """Inbound rules must not expose management or non-public ports to any source."""

    family = "network"
    schema = {
        "type": "object",
        "properties": {
            "allowed_public_ports": PORT_LIST,
            "management_ports": PORT_LIST,
            "max_priority_threshold": {"type": "integer", "minimum": 0},
            "rule_resource_types": STRING_LIST,
            "require_ddos_protection_prod": {"type": "boolean"},
            "ddos_resource_types": STRING_LIST,
            "ddos_attributes": STRING_LIST,
            "require_waf_prod": {"type": "boolean"},
            "waf_resource_types": STRING_LIST,
            "waf_attributes": STRING_LIST,
        },
        "required": ["allowed_public_ports"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> NetworkParameters:
        overrides = {key: as_tuple(value) if isinstance(value, list) else value for key, value in raw.items()}
        return replace(NetworkParameters(), **overrides)

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: NetworkParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        violations: List[Violation] = []

        for change in snapshot.of_types(params.rule_resource_types):
            for index, rule in enumerate(cls._iter_rules(change)):
                violations.extend(cls._check_rule(policy, params, change, rule, index))

        if ctx.environment.is_production:
            if params.require_ddos_protection_prod:
                violations.extend(
                    cls._require_attribute(
                        policy, snapshot, params.ddos_resource_types, params.ddos_attributes,
                        "missing-ddos-protection", "DDoS protection",
                    )
                )
            if params.require_waf_prod:
                violations.extend(
                    cls._require_attribute(
                        policy, snapshot, params.waf_resource_types, params.waf_attributes,
                        "missing-waf", "a web application firewall",
                    )
                )
        return violations

    @staticmethod
    def _iter_rules(change: ResourceChange) -> Iterator[Mapping[str, Any]]:
        rules = change.get("security_rule")
        if rules is UNKNOWN:
            logger.debug("Security rules of %s are unknown until apply; skipping", change.address)
            return
        if isinstance(rules, Known):
            for rule in _listify(rules.value):
                if isinstance(rule, Mapping):
                    yield rule
            return
        if change.get("direction") is not None or change.get("source_address_prefix") is not None:
            yield change.attributes

    @classmethod
    def _check_rule(
        cls,
        policy: Policy,
        params: NetworkParameters,
        change: ResourceChange,
        rule: Mapping[str, Any],
        index: int,
    ) -> List[Violation]:
        violations: List[Violation] = []
        rule_name = rule.get("name")
        label = rule_name if isinstance(rule_name, str) else f"#{index}"

        priority = rule.get("priority")
        if (
            params.max_priority_threshold is not None
            and isinstance(priority, int)
            and not isinstance(priority, bool)
            and priority > params.max_priority_threshold
        ):
            violations.append(
                build_violation(
                    policy,
                    change.address,
                    "priority-above-threshold",
                    f"rule {label} on {change.address} has priority {priority} above "
                    f"threshold {params.max_priority_threshold}",
                    warning=True,
                    rule_name=label,
                    priority=priority,
                )
            )

        direction = rule.get("direction")
        access = rule.get("access")
        if direction is UNKNOWN or access is UNKNOWN:
            return violations
        if isinstance(direction, str) and direction.strip().lower() != "inbound":
            return violations
        if isinstance(access, str) and access.strip().lower() == "deny":
            return violations

        sources = _listify(rule.get("source_address_prefix")) + _listify(rule.get("source_address_prefixes"))
        any_source = any(
            isinstance(source, str) and source.strip().lower() in ANY_SOURCE_PREFIXES for source in sources
        )
        if not any_source:
            return violations

        port_values = _listify(rule.get("destination_port_range")) + _listify(rule.get("destination_port_ranges"))
        for port_value in port_values:
            if port_value is UNKNOWN or contains_unknown(port_value):
                continue
            port_range = parse_port_range(port_value)
            if port_range is None:
                continue
            low, high = port_range
            exposed = [port for port in params.management_ports if low <= port <= high]
            if exposed:
                violations.append(
                    build_violation(
                        policy,
                        change.address,
                        "management-port-exposed",
                        f"rule {label} on {change.address} allows management port(s) "
                        f"{', '.join(str(port) for port in exposed)} from any source",
                        rule_name=label,
                        ports=_format_range(port_range),
                    )
                )
            elif not _range_allowed(port_range, params.allowed_public_ports):
                violations.append(
                    build_violation(
                        policy,
                        change.address,
                        "public-port-exposed",
                        f"rule {label} on {change.address} allows port(s) {_format_range(port_range)} "
                        "from any source; only allowed public ports may be open",
                        rule_name=label,
                        ports=_format_range(port_range),
                    )
                )
        return violations

    @staticmethod
    def _require_attribute(
        policy: Policy,
        snapshot: PlanSnapshot,
        resource_types: Iterable[str],
        attributes: Iterable[str],
        rule: str,
        description: str,
    ) -> List[Violation]:
        violations: List[Violation] = []
        paths = tuple(attributes)
        for change in snapshot.of_types(resource_types):
            values = [change.get(path) for path in paths]
            if any(enabled(value) for value in values):
                continue
            if any(_unresolved(value) for value in values):
                logger.debug("%s on %s is unknown until apply; skipping", rule, change.address)
                continue
            violations.append(
                build_violation(
                    policy,
                    change.address,
                    rule,
                    f"production {change.type} {change.address} does not enable {description}",
                    attributes=list(paths),
                )
            )
        return violations


__all__ = ["NetworkExposureEvaluator", "NetworkParameters", "parse_port_range"]
