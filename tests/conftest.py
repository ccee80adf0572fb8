"""
Shared pytest fixtures for formula3d tests.

Relaxation dominates test run time, so most builder tests use the reduced
iteration count from ``fast_settings``.
"""

from __future__ import annotations

import pathlib
import sys
from typing import Any, Dict

import pytest
import yaml

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from formula3d.settings import GeometrySettings  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> pathlib.Path:
    """Return repository root directory."""
    return REPO_ROOT


def _load_yaml(path: pathlib.Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle)


@pytest.fixture(scope="session")
def geometry_config(project_root: pathlib.Path) -> Dict[str, Any]:
    """Parsed representation of the shipped geometry config."""
    return _load_yaml(project_root / "config" / "geometry.yaml")


@pytest.fixture(scope="session")
def fast_settings() -> GeometrySettings:
    return GeometrySettings(iterations=150, seed=11)
