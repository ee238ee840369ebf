"""Change-set loading and normalization into an immutable PlanSnapshot."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from .errors import NormalizationError
from .model import Action, PlanSnapshot, ResourceChange
from .values import UNKNOWN, UNKNOWN_MARKER

logger = logging.getLogger(__name__)

_ACTION_ALIASES = {
    "create": Action.CREATE,
    "update": Action.UPDATE,
    "delete": Action.DELETE,
    "no-op": Action.NO_OP,
    "noop": Action.NO_OP,
    "no_op": Action.NO_OP,
    "read": Action.NO_OP,
}


def _schema_error(message: str) -> None:
    raise NormalizationError(message)


def load_change_set(path: Path) -> Any:
    """Read a JSON or YAML change-set document from disk."""

    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise NormalizationError(f"change-set not found: {path}") from exc
    except OSError as exc:
        raise NormalizationError(f"unable to read change-set {path}: {exc}") from exc
    try:
        if Path(path).suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise NormalizationError(f"invalid change-set document {path}: {exc}") from exc


def _classify_actions(actions: Sequence[Any]) -> Optional[Action]:
    normalized = [str(action).lower() for action in actions if isinstance(action, str) and action]
    if not normalized:
        return None
    if "create" in normalized:
        # replacements (delete+create in either order) produce a new resource
        return Action.CREATE
    if "update" in normalized:
        return Action.UPDATE
    if "delete" in normalized:
        return Action.DELETE
    if all(action in _ACTION_ALIASES for action in normalized):
        return Action.NO_OP
    return None


def _parse_action(entry: Mapping[str, Any], address: str) -> Action:
    raw = entry.get("action")
    if raw is None:
        change = entry.get("change")
        if isinstance(change, Mapping):
            raw = change.get("actions")
        else:
            raw = entry.get("actions")
    if isinstance(raw, str):
        action = _ACTION_ALIASES.get(raw.strip().lower())
    elif isinstance(raw, (list, tuple)):
        action = _classify_actions(raw)
    else:
        action = None
    if action is None:
        _schema_error(f"resource change {address!r} has a missing or unsupported action: {raw!r}")
    return action


def _apply_unknowns(value: Any, unknown: Any) -> Any:
    """Merge a raw value with its ``after_unknown`` mask, marking unresolved leaves."""

    if unknown is True:
        return UNKNOWN
    if isinstance(value, str) and value == UNKNOWN_MARKER:
        return UNKNOWN
    if isinstance(value, Mapping):
        mask = unknown if isinstance(unknown, Mapping) else {}
        merged = {key: _apply_unknowns(item, mask.get(key)) for key, item in value.items()}
        for key, flag in mask.items():
            if key not in merged and flag is True:
                merged[key] = UNKNOWN
        return merged
    if isinstance(value, (list, tuple)):
        mask = unknown if isinstance(unknown, (list, tuple)) else []
        return [
            _apply_unknowns(item, mask[index] if index < len(mask) else None)
            for index, item in enumerate(value)
        ]
    if value is None and isinstance(unknown, Mapping) and unknown:
        return {key: UNKNOWN for key, flag in unknown.items() if flag is True} or None
    return value


def _extract_attributes(entry: Mapping[str, Any], address: str) -> Dict[str, Any]:
    change = entry.get("change")
    if isinstance(change, Mapping) and "attributes" not in entry:
        after = change.get("after")
        unknown = change.get("after_unknown")
        if after is None:
            after = {}
    else:
        after = entry.get("attributes", {})
        unknown = entry.get("unknown_attributes")
        if isinstance(unknown, (list, tuple)):
            unknown = {str(name): True for name in unknown}
    if after is None:
        after = {}
    if not isinstance(after, Mapping):
        _schema_error(f"attributes of {address!r} must be an object")
    merged = _apply_unknowns(after, unknown)
    return dict(merged)


def _extract_tags(entry: Mapping[str, Any], attributes: Dict[str, Any], address: str) -> Any:
    tags: Any = entry["tags"] if "tags" in entry else attributes.get("tags")
    if tags is UNKNOWN or (isinstance(tags, str) and tags == UNKNOWN_MARKER):
        return UNKNOWN
    if tags is None:
        return {}
    if not isinstance(tags, Mapping):
        _schema_error(f"tags of {address!r} must be an object")
    return {
        str(key): UNKNOWN if (isinstance(value, str) and value == UNKNOWN_MARKER) else value
        for key, value in tags.items()
    }


def _require_string(entry: Mapping[str, Any], key: str, position: int) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        _schema_error(f"resource change #{position} is missing required field {key!r}")
    return value.strip()


def normalize_change(entry: Any, position: int = 0) -> ResourceChange:
    if not isinstance(entry, Mapping):
        _schema_error(f"resource change #{position} must be an object")
    address = _require_string(entry, "address", position)
    resource_type = _require_string(entry, "type", position)
    action = _parse_action(entry, address)
    attributes = _extract_attributes(entry, address)
    tags = _extract_tags(entry, attributes, address)
    return ResourceChange(
        address=address,
        type=resource_type,
        action=action,
        attributes=attributes,
        tags=tags,
    )


def _split_document(document: Any) -> Tuple[List[Any], Optional[Mapping[str, Any]], Optional[str]]:
    if isinstance(document, list):
        return document, None, None
    if not isinstance(document, Mapping):
        _schema_error("change-set must be a list of resource changes or an object")
    changes = document.get("resource_changes")
    if changes is None:
        changes = document.get("changes")
    if changes is None:
        changes = []
    if not isinstance(changes, list):
        _schema_error("resource_changes must be a list")
    prior_costs = document.get("prior_costs")
    if prior_costs is not None and not isinstance(prior_costs, Mapping):
        _schema_error("prior_costs must map resource types to monthly costs")
    workspace = document.get("workspace")
    if workspace is not None and not isinstance(workspace, str):
        _schema_error("workspace must be a string")
    return changes, prior_costs, workspace


def _normalize_prior_costs(prior_costs: Optional[Mapping[str, Any]]) -> Optional[Dict[str, float]]:
    if prior_costs is None:
        return None
    normalized: Dict[str, float] = {}
    for key, value in prior_costs.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            _schema_error(f"prior cost for {key!r} must be a number")
        normalized[str(key)] = float(value)
    return normalized


def normalize_plan(document: Any) -> PlanSnapshot:
    """Convert a raw change-set into a PlanSnapshot.

    Each resource action is represented exactly once. Values that cannot be
    resolved until apply are carried as ``UNKNOWN``.
    """

    changes_raw, prior_costs, workspace = _split_document(document)
    changes: List[ResourceChange] = []
    seen: set[str] = set()
    for position, entry in enumerate(changes_raw):
        change = normalize_change(entry, position)
        if change.address in seen:
            _schema_error(f"duplicate resource address {change.address!r}")
        seen.add(change.address)
        changes.append(change)
    logger.debug("Normalized %d resource changes", len(changes))
    return PlanSnapshot(
        changes=tuple(changes),
        prior_costs=_normalize_prior_costs(prior_costs),
        workspace=workspace,
    )


__all__ = [
    "load_change_set",
    "normalize_change",
    "normalize_plan",
]
