"""Evaluator registry keyed by policy family."""

from __future__ import annotations

from typing import Dict, List, Type

from .base import EvaluationContext, Evaluator, build_violation

_registry: Dict[str, Type[Evaluator]] = {}


def register(evaluator_cls: Type[Evaluator]) -> Type[Evaluator]:
    family = evaluator_cls.family
    if family in _registry:
        raise ValueError(f"Duplicate evaluator registered for family: {family}")
    _registry[family] = evaluator_cls
    return evaluator_cls


def get_evaluator(family: str) -> Type[Evaluator]:
    return _registry[family]


def get_families() -> List[str]:
    return sorted(_registry)


__all__ = [
    "EvaluationContext",
    "Evaluator",
    "build_violation",
    "get_evaluator",
    "get_families",
    "register",
]

# Built-in evaluators register with the decorator at import time.
from . import tags as _tags  # noqa: F401,E402
from . import naming as _naming  # noqa: F401,E402
from . import network as _network  # noqa: F401,E402
from . import encryption as _encryption  # noqa: F401,E402
from . import cost as _cost  # noqa: F401,E402
from . import backup as _backup  # noqa: F401,E402
from . import vm_sizes as _vm_sizes  # noqa: F401,E402
