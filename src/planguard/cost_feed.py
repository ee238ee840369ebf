"""Per-resource-type monthly cost table, fetched once per run."""

from __future__ import annotations

import http.client
import json
import logging
import socket
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib import error, request

import yaml

from .constants import DEFAULT_COST_FEED_TIMEOUT
from .errors import CostFeedError

logger = logging.getLogger(__name__)

DEFAULT_MONTHLY_COSTS: Mapping[str, float] = MappingProxyType(
    {
        "azurerm_application_gateway": 250.0,
        "azurerm_cosmosdb_account": 180.0,
        "azurerm_firewall": 900.0,
        "azurerm_kubernetes_cluster": 300.0,
        "azurerm_linux_virtual_machine": 70.0,
        "azurerm_linux_virtual_machine_scale_set": 140.0,
        "azurerm_lb": 20.0,
        "azurerm_mssql_database": 150.0,
        "azurerm_mysql_server": 110.0,
        "azurerm_postgresql_server": 120.0,
        "azurerm_public_ip": 4.0,
        "azurerm_redis_cache": 80.0,
        "azurerm_storage_account": 20.0,
        "azurerm_virtual_network_gateway": 140.0,
        "azurerm_windows_virtual_machine": 100.0,
    }
)


@dataclass(frozen=True)
class CostTable:
    costs: Mapping[str, float] = field(default_factory=lambda: DEFAULT_MONTHLY_COSTS)
    prior_monthly_cost: Optional[float] = None
    source: str = "default"
    default_cost: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "costs", MappingProxyType(dict(self.costs)))

    def cost_for(self, resource_type: str) -> float:
        return self.costs.get(resource_type, self.default_cost)

    def with_overrides(self, overrides: Mapping[str, float]) -> "CostTable":
        if not overrides:
            return self
        return replace(self, costs={**self.costs, **overrides})


def _number(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CostFeedError(f"{label} must be a number, got {value!r}")
    if value < 0:
        raise CostFeedError(f"{label} must not be negative")
    return float(value)


def parse_cost_feed(payload: Any) -> Tuple[Dict[str, float], Optional[float]]:
    """Validate a feed document and return ``(costs, prior_monthly_cost)``."""

    if not isinstance(payload, Mapping):
        raise CostFeedError("cost feed must be an object")
    raw_costs = payload.get("resource_costs")
    if not isinstance(raw_costs, Mapping):
        raise CostFeedError("cost feed must contain a resource_costs object")
    costs = {str(key): _number(value, f"resource_costs.{key}") for key, value in raw_costs.items()}
    prior = payload.get("prior_monthly_cost")
    return costs, None if prior is None else _number(prior, "prior_monthly_cost")


def _read_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CostFeedError(f"unable to read cost feed {path}: {exc}") from exc
    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            return yaml.safe_load(text)
        return json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CostFeedError(f"invalid cost feed {path}: {exc}") from exc


def _fetch(url: str, timeout: float) -> Any:
    req = request.Request(url, headers={"Accept": "application/json"})
    try:
        with request.urlopen(req, timeout=timeout) as resp:
            body = resp.read()
    except (error.URLError, http.client.HTTPException, socket.timeout, TimeoutError, OSError, ValueError) as exc:
        raise CostFeedError(f"cost feed {url} unavailable: {exc}") from exc
    try:
        return json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CostFeedError(f"cost feed {url} returned invalid JSON: {exc}") from exc


def _write_cache(cache_path: Optional[Path], costs: Mapping[str, float], prior: Optional[float]) -> None:
    if cache_path is None:
        return
    payload: Dict[str, Any] = {"resource_costs": dict(sorted(costs.items()))}
    if prior is not None:
        payload["prior_monthly_cost"] = prior
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        cache_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    except OSError as exc:
        logger.warning("Unable to refresh cost cache %s: %s", cache_path, exc)


def _fallback(cache_path: Optional[Path]) -> CostTable:
    if cache_path is not None and cache_path.exists():
        try:
            costs, prior = parse_cost_feed(_read_document(cache_path))
        except CostFeedError as exc:
            logger.warning("Ignoring unreadable cost cache: %s", exc)
        else:
            return CostTable(costs=costs, prior_monthly_cost=prior, source="cache")
    return CostTable()


def load_cost_table(
    source: Optional[str] = None,
    *,
    timeout: float = DEFAULT_COST_FEED_TIMEOUT,
    cache_path: Optional[Path] = None,
) -> CostTable:
    """Load the cost table once; any feed failure degrades to the cache or defaults."""

    cache = Path(cache_path) if cache_path is not None else None
    if not source:
        return _fallback(cache)

    try:
        if source.startswith(("http://", "https://")):
            costs, prior = parse_cost_feed(_fetch(source, timeout))
            _write_cache(cache, costs, prior)
        else:
            costs, prior = parse_cost_feed(_read_document(Path(source).expanduser()))
    except CostFeedError as exc:
        logger.warning("%s; falling back to %s cost table", exc, "cached" if cache and cache.exists() else "default")
        return _fallback(cache)

    logger.debug("Loaded %d resource costs from %s", len(costs), source)
    return CostTable(costs=costs, prior_monthly_cost=prior, source=source)


__all__ = [
    "CostTable",
    "DEFAULT_MONTHLY_COSTS",
    "load_cost_table",
    "parse_cost_feed",
]
