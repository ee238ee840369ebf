"""Unit tests for cost aggregation and cost governance rules."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from planguard.constants import PLAN_ADDRESS
from planguard.cost_feed import CostTable
from planguard.model import Environment
from planguard.rules.cost import CostEvaluator, estimate_costs, resource_quantity
from planguard.values import UNKNOWN
from tests.helpers.plan_helpers import context, make_policy, resource, rules_of, snapshot

TABLE = CostTable(costs={"azurerm_linux_virtual_machine": 70.0, "azurerm_storage_account": 20.0})
LIMITS = {"dev": 500, "staging": 2000, "prod": 10000}


def _policy(**extra):
    return make_policy("cost", {"monthly_cost_limits": LIMITS, **extra}, level="soft-mandatory")


def _evaluate(plan, policy, environment="prod", table=TABLE):
    return CostEvaluator.evaluate(plan, policy, context(environment, cost_table=table))


def test_estimate_sums_cost_times_quantity_for_creates_and_updates():
    plan = snapshot(
        resource("azurerm_linux_virtual_machine.web", instances=3),
        resource("azurerm_storage_account.logs"),
        resource("azurerm_linux_virtual_machine.jump", action="update"),
        resource("azurerm_linux_virtual_machine.old", action="delete"),
        resource("azurerm_storage_account.same", action="no-op"),
    )
    estimate = estimate_costs(plan, TABLE, Environment.PRODUCTION)
    assert estimate.total == 300.0
    assert estimate.by_environment == {Environment.PRODUCTION: 300.0}
    assert estimate.by_type == {"azurerm_linux_virtual_machine": 280.0, "azurerm_storage_account": 20.0}
    assert estimate.created == 230.0
    assert estimate.deleted == 70.0
    assert estimate.delta == 160.0


def test_quantity_defaults_to_one_for_unknown_or_absent_counts():
    assert resource_quantity(resource("azurerm_linux_virtual_machine.a", instances=UNKNOWN)) == 1
    assert resource_quantity(resource("azurerm_linux_virtual_machine.b")) == 1
    assert resource_quantity(resource("azurerm_linux_virtual_machine.c", sku_capacity=4)) == 4


def test_unpriced_types_cost_nothing():
    assert estimate_costs(snapshot(resource("azurerm_resource_group.rg")), TABLE, Environment.DEVELOPMENT).total == 0.0


@given(st.lists(st.tuples(st.sampled_from(["vm", "st"]), st.integers(min_value=0, max_value=20)), max_size=12))
def test_total_is_the_sum_of_per_resource_costs(entries):
    types = {"vm": "azurerm_linux_virtual_machine", "st": "azurerm_storage_account"}
    changes = [
        resource(f"{types[kind]}.r{index}", instances=quantity) for index, (kind, quantity) in enumerate(entries)
    ]
    expected = sum(TABLE.cost_for(types[kind]) * quantity for kind, quantity in entries)
    assert estimate_costs(snapshot(*changes), TABLE, Environment.STAGING).total == expected


def test_monthly_limit_is_exclusive():
    plan = snapshot(*(resource(f"azurerm_linux_virtual_machine.vm{i}") for i in range(5)))
    policy = make_policy("cost", {"monthly_cost_limits": {"dev": 350, "staging": 340, "prod": 1}})
    assert _evaluate(plan, policy, "dev") == []
    violations = _evaluate(plan, policy, "staging")
    assert rules_of(violations) == ["monthly-cost-limit"]
    assert violations[0].resource_address == PLAN_ADDRESS
    assert violations[0].details["estimated_cost"] == 350.0


def test_unknown_environment_has_no_limit():
    policy = make_policy("cost", {"monthly_cost_limits": {"dev": 0, "staging": 0, "prod": 0}})
    assert _evaluate(snapshot(resource("azurerm_storage_account.a")), policy, "unknown") == []


def test_cost_increase_against_prior_costs():
    plan = snapshot(
        resource("azurerm_linux_virtual_machine.web", instances=3),
        prior_costs={"azurerm_linux_virtual_machine": 700.0},
    )
    assert rules_of(_evaluate(plan, _policy(cost_increase_percentage_limit=25))) == ["cost-increase"]
    assert _evaluate(plan, _policy(cost_increase_percentage_limit=30)) == []


def test_cost_increase_falls_back_to_feed_baseline_and_skips_without_one():
    plan = snapshot(resource("azurerm_linux_virtual_machine.web"))
    policy = _policy(cost_increase_percentage_limit=10)
    with_prior = CostTable(costs=TABLE.costs, prior_monthly_cost=100.0)
    violations = _evaluate(plan, policy, table=with_prior)
    assert rules_of(violations) == ["cost-increase"]
    assert violations[0].details["increase_percentage"] == 70.0
    assert _evaluate(plan, policy) == []


def test_expensive_resources_blocked_outside_production():
    plan = snapshot(resource("azurerm_firewall.hub"), resource("azurerm_firewall.spoke", action="delete"))
    policy = _policy(expensive_resource_types=["azurerm_firewall"])
    violations = _evaluate(plan, policy, "dev")
    assert rules_of(violations) == ["expensive-resource"]
    assert violations[0].resource_address == "azurerm_firewall.hub"
    assert _evaluate(plan, policy, "prod") == []


def test_resource_count_limit_reports_first_excess_create():
    policy = _policy(max_resource_counts={"dev": {"azurerm_linux_virtual_machine": 2}})
    two = [resource(f"azurerm_linux_virtual_machine.vm{i}") for i in range(2)]
    assert _evaluate(snapshot(*two), policy, "dev") == []

    three = two + [resource("azurerm_linux_virtual_machine.vm2")]
    violations = _evaluate(snapshot(*three), policy, "dev")
    assert rules_of(violations) == ["resource-count"]
    assert violations[0].resource_address == "azurerm_linux_virtual_machine.vm2"
    assert violations[0].details["count"] == 3
    assert _evaluate(snapshot(*three), policy, "prod") == []


def test_policy_resource_costs_override_the_feed():
    policy = _policy(resource_costs={"azurerm_storage_account": 600})
    violations = _evaluate(snapshot(resource("azurerm_storage_account.big")), policy, "dev")
    assert rules_of(violations) == ["monthly-cost-limit"]
