"""Human-readable rendering helpers for planguard reports."""

from __future__ import annotations

from typing import Dict, List

from .constants import ANSI_BOLD, ANSI_GREEN, ANSI_RED, ANSI_RESET, ANSI_YELLOW
from .model import PolicyOutcome, PolicyStatus, RunResult, Violation

_PALETTE = {
    PolicyStatus.PASS: ANSI_GREEN,
    PolicyStatus.WARN: ANSI_YELLOW,
    PolicyStatus.FAIL: ANSI_RED,
}


def _colorize(text: str, code: str, use_color: bool) -> str:
    if not use_color:
        return text
    return f"{code}{text}{ANSI_RESET}"


def status_badge(status: PolicyStatus, use_color: bool = False) -> str:
    return _colorize(status.value.upper(), _PALETTE.get(status, ANSI_BOLD), use_color)


def render_report(result: RunResult, *, use_color: bool = False) -> str:
    """Return a deterministic text block describing every policy and violation."""

    workspace = result.workspace or "-"
    lines: List[str] = [
        f"Policy check for workspace {workspace} (environment: {result.environment.value})",
        "-",
    ]
    for outcome in result.outcomes:
        lines.extend(_render_outcome(outcome, use_color))
    lines.append("-")
    lines.extend(render_summary(result, use_color=use_color).splitlines())
    return "\n".join(lines)


def _render_outcome(outcome: PolicyOutcome, use_color: bool) -> List[str]:
    suffix = " (overridden)" if outcome.overridden else ""
    block = [
        f"[{status_badge(outcome.status, use_color)}] {outcome.policy_name} "
        f"({outcome.family}, {outcome.enforcement_level.value}){suffix}"
    ]
    for violation in outcome.violations:
        block.extend(_render_violation(violation))
    return block


def _render_violation(violation: Violation) -> List[str]:
    marker = "warning" if violation.is_warning else violation.severity
    return [
        f"  - {violation.resource_address}: {violation.message}",
        f"    rule: {violation.rule} ({marker})",
    ]


def render_summary(result: RunResult, *, use_color: bool = False) -> str:
    counts: Dict[PolicyStatus, int] = {status: 0 for status in PolicyStatus}
    for outcome in result.outcomes:
        counts[outcome.status] += 1

    lines = ["Summary:"]
    for status in PolicyStatus:
        lines.append(f"  {status.value}: {counts[status]}")
    lines.append(f"  violations: {len(result.violations)}")
    if result.overridden:
        lines.append(f"  overridden: {', '.join(result.overridden)}")
    decision = "blocked" if result.status is PolicyStatus.FAIL else "allowed"
    lines.append(f"  deployment: {_colorize(decision, _PALETTE[result.status], use_color)} (exit {result.exit_code})")
    return "\n".join(lines)


__all__ = ["render_report", "render_summary", "status_badge"]
