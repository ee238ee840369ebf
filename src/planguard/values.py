"""Tri-state attribute values for planned resources.

Every attribute read from a change-set is one of ``Known(value)``, ``UNKNOWN``
(the value is only decided at apply time) or ``NULL`` (explicitly empty).
Evaluators must never collapse ``UNKNOWN`` into an empty value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

UNKNOWN_MARKER = "(known after apply)"


class _Unknown:
    _instance: Optional["_Unknown"] = None

    def __new__(cls) -> "_Unknown":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __reduce__(self):
        return (_Unknown, ())


class _Null:
    _instance: Optional["_Null"] = None

    def __new__(cls) -> "_Null":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NULL"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Null, ())


UNKNOWN = _Unknown()
NULL = _Null()


@dataclass(frozen=True)
class Known:
    value: Any


AttrValue = Union[Known, _Unknown, _Null]


def as_attr(raw: Any) -> AttrValue:
    """Wrap a raw normalized value in its tri-state form."""

    if isinstance(raw, (Known, _Unknown, _Null)):
        return raw
    if raw is None:
        return NULL
    if isinstance(raw, str) and raw == UNKNOWN_MARKER:
        return UNKNOWN
    return Known(raw)


def contains_unknown(raw: Any) -> bool:
    """Return True when any element of a raw nested value is unresolved."""

    if raw is UNKNOWN:
        return True
    if isinstance(raw, Mapping):
        return any(contains_unknown(item) for item in raw.values())
    if isinstance(raw, (list, tuple)):
        return any(contains_unknown(item) for item in raw)
    return False


def lookup(attributes: Mapping[str, Any], path: str) -> Optional[AttrValue]:
    """Resolve a dotted attribute path.

    Returns ``None`` when the attribute is absent, which is distinct from an
    explicit ``NULL``. Single-element lists are stepped through so Terraform
    nested blocks (``backup.0.retention_days``) can be addressed as
    ``backup.retention_days``.
    """

    current: Any = attributes
    for segment in path.split("."):
        if isinstance(current, Known):
            current = current.value
        if current is UNKNOWN:
            return UNKNOWN
        if isinstance(current, (list, tuple)):
            if segment.isdigit():
                index = int(segment)
                if index >= len(current):
                    return None
                current = current[index]
                continue
            if len(current) != 1:
                return None
            current = current[0]
            if current is UNKNOWN:
                return UNKNOWN
        if not isinstance(current, Mapping):
            return None
        if segment not in current:
            return None
        current = current[segment]
    return as_attr(current)


def first_present(attributes: Mapping[str, Any], paths) -> tuple[Optional[str], Optional[AttrValue]]:
    """Return the first ``(path, value)`` among ``paths`` that is present."""

    for path in paths:
        value = lookup(attributes, path)
        if value is not None:
            return path, value
    return None, None


def truthy(value: AttrValue) -> bool:
    """Interpret a known value as an enablement flag."""

    if not isinstance(value, Known):
        return False
    raw = value.value
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on", "enabled"}
    if isinstance(raw, Mapping):
        flag = raw.get("enabled", raw.get("enable"))
        if flag is None:
            return bool(raw)
        return truthy(as_attr(flag))
    if isinstance(raw, (list, tuple)):
        return any(item is not UNKNOWN and truthy(as_attr(item)) for item in raw)
    return bool(raw)


_DISABLED_LITERALS = frozenset({"", "0", "false", "no", "off", "disabled", "none"})


def enabled(value: Optional[AttrValue]) -> bool:
    """Like ``truthy`` but treats identifiers (plan IDs, policy IDs) as configured."""

    if not isinstance(value, Known):
        return False
    if isinstance(value.value, str):
        return value.value.strip().lower() not in _DISABLED_LITERALS
    return truthy(value)


__all__ = [
    "AttrValue",
    "Known",
    "NULL",
    "UNKNOWN",
    "UNKNOWN_MARKER",
    "as_attr",
    "contains_unknown",
    "enabled",
    "first_present",
    "lookup",
    "truthy",
]
