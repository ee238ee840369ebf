"""Command-line interface for planguard."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from . import env_flags
from .config import PolicyRegistry, load_policy_file
from .constants import EXIT_CONFIG_ERROR, EXIT_INVALID_INPUT
from .cost_feed import load_cost_table
from .engine import evaluate
from .environment import resolve_environment
from .errors import ConfigurationError, NormalizationError
from .normalizer import load_change_set, normalize_plan
from .renderer import render_report

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(message: str, code: int) -> None:
    click.echo(f"Error: {message}", err=True)
    raise click.exceptions.Exit(code)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Diagnostic log level (default: PLANGUARD_LOG_LEVEL or WARNING)",
)
def cli(log_level: Optional[str]) -> None:
    """Evaluate infrastructure change-sets against governance policies."""

    _configure_logging(log_level or env_flags.log_level())


@cli.command()
@click.argument("change_set", type=click.Path(path_type=Path, dir_okay=False))
@click.option(
    "--policies",
    "policy_path",
    required=True,
    type=click.Path(path_type=Path, dir_okay=False),
    help="Policy configuration file (YAML or JSON)",
)
@click.option("--workspace", default=None, help="Workspace name used for environment inference")
@click.option("--environment", "environment_override", default=None, help="Explicit environment override")
@click.option(
    "--override",
    "overrides",
    multiple=True,
    help="Soft-mandatory policy to override for this run (repeatable)",
)
@click.option("--cost-feed", default=None, help="Cost estimate feed URL or file")
@click.option("--cost-feed-timeout", type=float, default=None, help="Cost feed timeout in seconds")
@click.option("--cost-cache", type=click.Path(path_type=Path, dir_okay=False), default=None)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Parallel evaluator workers")
@click.option(
    "--json-output/--no-json-output",
    "json_output",
    default=False,
    help="Emit the report as JSON",
)
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in text output")
@click.option("--quiet", is_flag=True, help="Suppress report output")
def check(
    change_set: Path,
    policy_path: Path,
    workspace: Optional[str],
    environment_override: Optional[str],
    overrides: Tuple[str, ...],
    cost_feed: Optional[str],
    cost_feed_timeout: Optional[float],
    cost_cache: Optional[Path],
    workers: Optional[int],
    json_output: bool,
    no_color: bool,
    quiet: bool,
) -> None:
    """Check CHANGE_SET against the configured policies."""

    try:
        registry = load_policy_file(policy_path)
    except ConfigurationError as exc:
        _fail(str(exc), EXIT_CONFIG_ERROR)

    try:
        snapshot = normalize_plan(load_change_set(change_set))
    except NormalizationError as exc:
        _fail(str(exc), EXIT_INVALID_INPUT)

    context = resolve_environment(
        workspace or env_flags.workspace_name() or snapshot.workspace,
        environment_override or env_flags.environment_override(),
    )
    cache_value = cost_cache or env_flags.cost_cache_path()
    cost_table = load_cost_table(
        cost_feed or env_flags.cost_feed_source(),
        timeout=cost_feed_timeout if cost_feed_timeout is not None else env_flags.cost_feed_timeout(),
        cache_path=Path(cache_value) if cache_value else None,
    )
    result = evaluate(
        snapshot,
        registry,
        environment=context,
        cost_table=cost_table,
        overrides=overrides,
        workers=workers or env_flags.worker_count(),
    )

    if not quiet:
        if json_output:
            click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True))
        else:
            use_color = not no_color and not env_flags.color_disabled() and sys.stdout.isatty()
            click.echo(render_report(result, use_color=use_color))
    raise click.exceptions.Exit(result.exit_code)


@cli.command("policies")
@click.argument("policy_path", type=click.Path(path_type=Path, dir_okay=False))
def list_policies(policy_path: Path) -> None:
    """Validate POLICY_PATH and list the policies it declares."""

    try:
        registry: PolicyRegistry = load_policy_file(policy_path)
    except ConfigurationError as exc:
        _fail(str(exc), EXIT_CONFIG_ERROR)
    for policy in registry:
        click.echo(f"{policy.name}\t{policy.family}\t{policy.enforcement_level.value}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
