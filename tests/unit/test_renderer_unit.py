"""Unit tests for the text report renderer."""

from __future__ import annotations

from planguard.constants import ANSI_RED, ANSI_RESET
from planguard.engine import evaluate
from planguard.model import PolicyStatus
from planguard.renderer import render_report, render_summary, status_badge
from tests.helpers.plan_helpers import make_policy, resource, snapshot

UNTAGGED = snapshot(resource("azurerm_storage_account.logs"), workspace="payments-dev")


def _result(level="hard-mandatory", overrides=()):
    policy = make_policy("tags", {"mandatory_tags": ["Owner"]}, level=level, name="mandatory-tags")
    return evaluate(UNTAGGED, [policy], overrides=overrides)


def test_report_lists_policies_and_violations():
    report = render_report(_result())
    assert report.splitlines()[0] == "Policy check for workspace payments-dev (environment: development)"
    assert "[FAIL] mandatory-tags (tags, hard-mandatory)" in report
    assert "  - azurerm_storage_account.logs: azurerm_storage_account azurerm_storage_account.logs" in report
    assert "    rule: missing-tag (hard-mandatory)" in report
    assert report.splitlines()[-1] == "  deployment: blocked (exit 3)"


def test_summary_counts_and_overrides():
    summary = render_summary(_result("soft-mandatory", overrides=["mandatory-tags"]))
    assert "  warn: 0" in summary
    assert "  fail: 1" in summary
    assert "[FAIL] mandatory-tags (tags, soft-mandatory) (overridden)" in render_report(
        _result("soft-mandatory", overrides=["mandatory-tags"])
    )
    assert "  overridden: mandatory-tags" in summary
    assert summary.endswith("deployment: allowed (exit 0)")


def test_report_is_deterministic():
    assert render_report(_result()) == render_report(_result())


def test_color_is_opt_in():
    assert status_badge(PolicyStatus.FAIL) == "FAIL"
    assert status_badge(PolicyStatus.FAIL, use_color=True) == f"{ANSI_RED}FAIL{ANSI_RESET}"
    assert ANSI_RESET not in render_report(_result())
    assert ANSI_RESET in render_report(_result(), use_color=True)
