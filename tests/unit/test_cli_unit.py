"""Unit tests for the planguard command-line interface."""

from __future__ import annotations

import json

from click.testing import CliRunner

from planguard.cli import cli
from planguard.constants import (
    EXIT_CONFIG_ERROR,
    EXIT_INVALID_INPUT,
    EXIT_POLICY_FAIL,
    EXIT_SOFT_POLICY_FAIL,
    EXIT_SUCCESS,
)
from tests.helpers.plan_helpers import write_plan


def _check(*args):
    runner = CliRunner()
    return runner.invoke(cli, ["check", *[str(arg) for arg in args]])


def test_passing_change_set_exits_zero(passing_change_set, policies_path):
    result = _check(passing_change_set, "--policies", policies_path)
    assert result.exit_code == EXIT_SUCCESS, result.output
    assert "deployment: allowed (exit 0)" in result.output


def test_failing_change_set_blocks(failing_change_set, policies_path):
    result = _check(failing_change_set, "--policies", policies_path, "--no-color")
    assert result.exit_code == EXIT_POLICY_FAIL
    assert "[FAIL] network-security (network, hard-mandatory)" in result.output
    assert "deployment: blocked (exit 3)" in result.output


def test_json_output(failing_change_set, policies_path):
    result = _check(failing_change_set, "--policies", policies_path, "--json-output")
    payload = json.loads(result.output)
    assert payload["status"] == "fail"
    assert payload["exit_code"] == EXIT_POLICY_FAIL
    assert payload["environment"] == "production"
    assert [policy["policy"] for policy in payload["policies"]][:2] == ["mandatory-tags", "resource-naming"]
    assert any(v["rule"] == "management-port-exposed" for v in payload["violations"])


def test_soft_failure_and_override(passing_change_set, policies_path):
    soft = _check(passing_change_set, "--policies", policies_path, "--environment", "dev", "--quiet")
    assert soft.exit_code == EXIT_SOFT_POLICY_FAIL
    assert soft.output == ""

    overridden = _check(
        passing_change_set,
        "--policies",
        policies_path,
        "--workspace",
        "payments-dev",
        "--override",
        "resource-naming",
    )
    assert overridden.exit_code == EXIT_SUCCESS
    assert "overridden: resource-naming" in overridden.output


def test_environment_variable_override(monkeypatch, passing_change_set, policies_path):
    monkeypatch.setenv("PLANGUARD_ENVIRONMENT", "dev")
    result = _check(passing_change_set, "--policies", policies_path, "--quiet")
    assert result.exit_code == EXIT_SOFT_POLICY_FAIL


def test_non_finite_worker_count_falls_back(monkeypatch, passing_change_set, policies_path):
    monkeypatch.setenv("PLANGUARD_WORKERS", "nan")
    result = _check(passing_change_set, "--policies", policies_path, "--quiet")
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert result.exit_code == EXIT_SUCCESS


def test_malformed_change_set_is_invalid_input(tmp_path, policies_path):
    plan = write_plan(tmp_path, [{"address": "azurerm_lb.edge", "type": "azurerm_lb"}])
    result = _check(plan, "--policies", policies_path)
    assert result.exit_code == EXIT_INVALID_INPUT
    assert "Error:" in result.output


def test_invalid_policy_file_is_a_config_error(tmp_path, passing_change_set):
    policies = tmp_path / "policies.yaml"
    policies.write_text("policies:\n  - name: broken\n    family: tags\n    enforcement_level: sometimes\n")
    result = _check(passing_change_set, "--policies", policies)
    assert result.exit_code == EXIT_CONFIG_ERROR
    assert "unknown enforcement level" in result.output


def test_policies_command_lists_declarations(policies_path):
    result = CliRunner().invoke(cli, ["policies", str(policies_path)])
    assert result.exit_code == EXIT_SUCCESS
    lines = result.output.splitlines()
    assert lines[0] == "mandatory-tags\ttags\thard-mandatory"
    assert len(lines) == 7
