"""Nox sessions for exercising planguard across supported Python versions."""

from __future__ import annotations

import nox

PYTHON_VERSIONS = ("3.9", "3.10", "3.11", "3.12")


@nox.session(python=PYTHON_VERSIONS)
def tests(session: nox.Session) -> None:
    """Run the full pytest suite under each supported interpreter."""

    session.install("-e", ".[test]")
    session.run("pytest")


@nox.session
def lint(session: nox.Session) -> None:
    """Run style and type checks with the active interpreter."""

    session.install("-e", ".[test,dev]")
    session.run("ruff", "check", "src", "tests")
    session.run("black", "--check", "src", "tests")
    session.run("isort", "--check-only", "--diff", "src", "tests")
    session.run("mypy", "src/planguard")
