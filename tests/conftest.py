"""Global pytest configuration for planguard tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC_ROOT = _REPO_ROOT / "src"

# Make the repository root (for tests.helpers) and src/ (for planguard)
# importable without an editable install.
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"

_ENV_VARS = (
    "PLANGUARD_ENVIRONMENT",
    "PLANGUARD_WORKSPACE",
    "PLANGUARD_COST_FEED",
    "PLANGUARD_COST_FEED_TIMEOUT",
    "PLANGUARD_COST_CACHE",
    "PLANGUARD_WORKERS",
    "PLANGUARD_LOG_LEVEL",
    "PLANGUARD_NO_COLOR",
    "NO_COLOR",
)


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch):
    """Keep developer shell settings from leaking into test runs."""

    for name in _ENV_VARS:
        if name in os.environ:
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture(scope="session")
def policies_path() -> Path:
    return FIXTURES_DIR / "policies.yaml"


@pytest.fixture(scope="session")
def passing_change_set() -> Path:
    return FIXTURES_DIR / "changeset_pass.json"


@pytest.fixture(scope="session")
def failing_change_set() -> Path:
    return FIXTURES_DIR / "changeset_fail.json"
