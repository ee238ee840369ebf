"""Unit tests for policy loading and parameter validation."""

from __future__ import annotations

import json

import pytest

from planguard.config import PolicyRegistry, load_policies, load_policy_file, parse_policies
from planguard.errors import ConfigurationError
from planguard.model import EnforcementLevel, Environment
from planguard.rules import get_families
from planguard.rules.cost import CostParameters
from planguard.rules.tags import TagParameters


def _policy(family, parameters, *, name="p", level="hard-mandatory"):
    return {"name": name, "family": family, "enforcement_level": level, "parameters": parameters}


def test_builtin_families_are_registered():
    assert get_families() == ["backup", "cost", "encryption", "naming", "network", "tags", "vm_sizes"]


def test_fixture_policy_file_loads_in_order(policies_path):
    registry = load_policy_file(policies_path)
    assert isinstance(registry, PolicyRegistry)
    assert len(registry) == 7
    assert registry.names() == [
        "mandatory-tags",
        "resource-naming",
        "network-security",
        "storage-encryption",
        "cost-control",
        "backup-compliance",
        "vm-sizes",
    ]
    tags = registry.get("mandatory-tags")
    assert tags.enforcement_level is EnforcementLevel.HARD_MANDATORY
    assert isinstance(tags.parameters, TagParameters)
    assert tags.parameters.required_tags(Environment.PRODUCTION) == (
        "Environment",
        "Owner",
        "CostCenter",
        "DataClassification",
    )
    assert tags.parameters.required_tags(Environment.DEVELOPMENT) == ("Environment", "Owner", "CostCenter")


def test_json_policy_files_are_supported(tmp_path):
    path = tmp_path / "policies.json"
    path.write_text(json.dumps({"policies": [_policy("tags", {"mandatory_tags": ["Owner"]})]}))
    assert load_policies(path).names() == ["p"]
    assert load_policies([_policy("tags", {"mandatory_tags": ["Owner"]})]).names() == ["p"]


def test_environment_aliases_map_onto_the_enum():
    registry = parse_policies(
        [_policy("cost", {"monthly_cost_limits": {"dev": 100, "stage": 200, "production": 300}})]
    )
    params: CostParameters = registry.get("p").parameters
    assert params.monthly_cost_limits.get(Environment.STAGING) == 200.0
    assert params.monthly_cost_limits.get(Environment.PRODUCTION) == 300.0
    assert params.monthly_cost_limits.get(Environment.UNKNOWN) is None
    assert Environment.DEVELOPMENT in params.monthly_cost_limits


@pytest.mark.parametrize(
    "entry, message",
    [
        (_policy("tags", {"mandatory_tags": ["Owner"]}, level="mandatory"), "enforcement level"),
        (_policy("firewalls", {}), "unknown policy family"),
        (_policy("tags", {"mandatory_tags": "Owner"}), "parameters"),
        (_policy("tags", {"mandatory_tags": ["Owner"], "colour": "red"}), "parameters"),
        (
            _policy("tags", {"mandatory_tags": ["Owner"], "tag_value_min_length": 10, "tag_value_max_length": 5}),
            "exceeds",
        ),
        (_policy("tags", {"mandatory_tags": ["Owner"], "tag_validation_patterns": {"Owner": "("}}), "invalid pattern"),
        (_policy("cost", {"monthly_cost_limits": {"dev": 1, "prod": 3}}), "missing entries for staging"),
        (_policy("cost", {"monthly_cost_limits": {"dev": 1, "staging": 2, "prod": 3, "qa": 4}}), "unknown environment"),
        (_policy("cost", {"monthly_cost_limits": {"dev": 1, "development": 1, "staging": 2, "prod": 3}}), "twice"),
        (
            _policy(
                "naming",
                {
                    "organization_prefix": "contoso",
                    "resource_type_abbreviations": {},
                    "environment_abbreviations": {"dev": "d"},
                },
            ),
            "missing entries",
        ),
        (
            _policy(
                "backup",
                {"critical_resource_types": [], "backup_policy_requirements": {"staging": {"retention_days": 7}}},
            ),
            "production",
        ),
        (_policy("vm_sizes", {"allowed_vm_sizes": {"dev": ["B1s"]}}), "missing entries"),
        ({"name": "p", "family": "tags"}, "enforcement_level"),
    ],
)
def test_invalid_policies_are_configuration_errors(entry, message):
    with pytest.raises(ConfigurationError, match=message):
        parse_policies([entry])


def test_duplicate_policy_names_are_rejected():
    entry = _policy("tags", {"mandatory_tags": ["Owner"]}, name="dup")
    with pytest.raises(ConfigurationError, match="Duplicate policy name"):
        parse_policies({"policies": [entry, dict(entry)]})


def test_policy_document_must_hold_a_list(tmp_path):
    path = tmp_path / "policies.yaml"
    path.write_text("policies: nope\n")
    with pytest.raises(ConfigurationError, match="list of policies"):
        load_policy_file(path)


def test_unreadable_policy_file(tmp_path):
    with pytest.raises(ConfigurationError, match="unable to read"):
        load_policy_file(tmp_path / "missing.yaml")
