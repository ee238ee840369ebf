"""Unit tests for resource naming conventions."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from planguard.rules.naming import NamingEvaluator
from planguard.values import UNKNOWN
from tests.helpers.plan_helpers import context, make_policy, resource, rules_of, snapshot

ABBREVIATIONS = {"azurerm_storage_account": "st", "azurerm_linux_virtual_machine": "vm"}
ENV_ABBREVIATIONS = {"dev": "dev", "staging": "stg", "prod": "prd"}

POLICY = make_policy(
    "naming",
    {
        "organization_prefix": "contoso",
        "resource_type_abbreviations": ABBREVIATIONS,
        "environment_abbreviations": ENV_ABBREVIATIONS,
        "require_sequence_number": True,
        "prohibited_words": ["test", "temp"],
        "max_name_lengths": {"azurerm_storage_account": 24, "default": 64},
    },
    level="soft-mandatory",
)


def _check(name, environment="prod", resource_type="azurerm_linux_virtual_machine"):
    plan = snapshot(resource(f"{resource_type}.subject", resource_type, name=name))
    return NamingEvaluator.evaluate(plan, POLICY, context(environment))


def test_conforming_name_passes():
    assert _check("contoso-vm-web-prd-001") == []


@pytest.mark.parametrize(
    "name, environment, expected",
    [
        ("acme-vm-web-prd-001", "prod", ["wrong-prefix"]),
        ("contoso-web-prd-001", "prod", ["wrong-type-abbreviation"]),
        ("contoso-vm-web-dev-001", "prod", ["wrong-environment-abbreviation"]),
        ("contoso-vm-web-prd-001", "staging", ["wrong-environment-abbreviation"]),
        ("contoso-vm-web-prd", "prod", ["missing-sequence-number"]),
        ("contoso-vm-temp-prd-001", "prod", ["prohibited-word"]),
        ("CONTOSO-VM-WEB-PRD-001", "prod", []),
    ],
)
def test_single_convention_breaks(name, environment, expected):
    assert rules_of(_check(name, environment)) == expected


def test_length_limit_uses_type_specific_maximum():
    violations = _check("contosostwebappprd0012345", resource_type="azurerm_storage_account")
    assert rules_of(violations) == ["name-too-long"]
    assert violations[0].details["max_length"] == 24


def test_unmapped_types_only_get_prohibited_words_and_default_length():
    assert rules_of(_check("rg-temp", resource_type="azurerm_resource_group")) == ["prohibited-word"]
    assert rules_of(_check("r" * 65, resource_type="azurerm_resource_group")) == ["name-too-long"]


def test_unknown_environment_skips_environment_abbreviation():
    assert _check("contoso-vm-web-xyz-001", "unknown") == []


def test_unknown_or_absent_names_are_skipped():
    plan = snapshot(
        resource("azurerm_linux_virtual_machine.pending", name=UNKNOWN),
        resource("azurerm_linux_virtual_machine.anonymous"),
    )
    assert NamingEvaluator.evaluate(plan, POLICY, context("prod")) == []


def test_violation_severity_follows_policy_level():
    violation = _check("acme-vm-web-prd-001")[0]
    assert violation.severity == "soft-mandatory"
    assert violation.details["name"] == "acme-vm-web-prd-001"


@given(
    resource_type=st.sampled_from(sorted(ABBREVIATIONS)),
    environment=st.sampled_from(sorted(ENV_ABBREVIATIONS)),
    purpose=st.text(alphabet="abcdfghijkl", min_size=1, max_size=4),
    sequence=st.integers(min_value=0, max_value=999),
)
def test_names_built_from_the_convention_always_pass(resource_type, environment, purpose, sequence):
    name = f"contoso{ABBREVIATIONS[resource_type]}{purpose}{ENV_ABBREVIATIONS[environment]}{sequence:03d}"
    assert _check(name, environment, resource_type) == []
