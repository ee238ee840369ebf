"""Allowed virtual machine sizes per environment."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from ..model import PlanSnapshot, Policy, Violation
from ..params import STRING_LIST, EnvironmentTable, as_tuple, env_keyed, env_table
from ..values import Known, first_present
from . import register
from .base import EvaluationContext, Evaluator, build_violation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VmSizeParameters:
    allowed_vm_sizes: EnvironmentTable
    resource_types: Tuple[str, ...] = (
        "azurerm_linux_virtual_machine",
        "azurerm_windows_virtual_machine",
        "azurerm_virtual_machine",
        "azurerm_linux_virtual_machine_scale_set",
        "azurerm_windows_virtual_machine_scale_set",
    )
    size_attributes: Tuple[str, ...] = ("size", "vm_size", "sku")


@register
class VmSizeEvaluator(Evaluator):
    """Virtual machines use a size allowed for the target environment."""

    family = "vm_sizes"
    schema = {
        "type": "object",
        "properties": {
            "allowed_vm_sizes": env_keyed(STRING_LIST),
            "resource_types": STRING_LIST,
            "size_attributes": STRING_LIST,
        },
        "required": ["allowed_vm_sizes"],
        "additionalProperties": False,
    }

    @classmethod
    def parse_parameters(cls, raw: Mapping[str, Any]) -> VmSizeParameters:
        allowed = env_table(raw["allowed_vm_sizes"], "allowed_vm_sizes", as_tuple, complete=True)
        params = VmSizeParameters(allowed_vm_sizes=allowed)
        return VmSizeParameters(
            allowed_vm_sizes=allowed,
            resource_types=as_tuple(raw.get("resource_types")) or params.resource_types,
            size_attributes=as_tuple(raw.get("size_attributes")) or params.size_attributes,
        )

    @classmethod
    def evaluate(
        cls,
        snapshot: PlanSnapshot,
        policy: Policy,
        context: Optional[EvaluationContext] = None,
    ) -> List[Violation]:
        params: VmSizeParameters = policy.parameters
        ctx = cls.context_for(snapshot, context)
        environment = ctx.environment.environment
        allowed = params.allowed_vm_sizes.get(environment)
        if allowed is None:
            logger.debug("No VM size allow-list for environment %s; skipping", environment.value)
            return []

        violations: List[Violation] = []
        for change in snapshot.of_types(params.resource_types):
            path, value = first_present(change.attributes, params.size_attributes)
            if not isinstance(value, Known) or not isinstance(value.value, str):
                continue
            if value.value in allowed:
                continue
            violations.append(
                build_violation(
                    policy,
                    change.address,
                    "vm-size",
                    f"{change.type} {change.address} uses size '{value.value}', which is not allowed "
                    f"in {environment.value}",
                    attribute=path,
                    size=value.value,
                    allowed=list(allowed),
                )
            )
        return violations


__all__ = ["VmSizeEvaluator", "VmSizeParameters"]
