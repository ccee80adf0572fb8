"""
Utilities for loading formula3d geometry settings from YAML configuration files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .settings import GeometrySettings


@dataclass
class SettingsBundle:
    """Container returned by configuration loader."""

    settings: GeometrySettings
    metadata: Dict[str, Any] = field(default_factory=dict)


def load_settings_from_yaml(path: Path) -> SettingsBundle:
    """Load GeometrySettings plus associated metadata from a YAML config."""
    data = _load_yaml(Path(path))
    settings = _build_settings(data.get("relaxation") or {}, data.get("builder") or {})
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError(f"'metadata' in {path} must be a mapping.")
    return SettingsBundle(settings=settings, metadata=metadata)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        content = yaml.safe_load(handle)
    if not isinstance(content, dict):
        raise ValueError(f"YAML file {path} must contain a mapping at the root.")
    return content


def _build_settings(relaxation: Dict[str, Any], builder: Dict[str, Any]) -> GeometrySettings:
    for name, section in (("relaxation", relaxation), ("builder", builder)):
        if not isinstance(section, dict):
            raise ValueError(f"Section '{name}' must be a mapping.")
    defaults = GeometrySettings()
    iterations = int(relaxation.get("iterations", defaults.iterations))
    if iterations < 0:
        raise ValueError("relaxation.iterations must be zero or positive.")
    return GeometrySettings(
        iterations=iterations,
        bond_constant=float(relaxation.get("bond_constant", defaults.bond_constant)),
        angle_constant=float(relaxation.get("angle_constant", defaults.angle_constant)),
        repulsion_constant=float(relaxation.get("repulsion_constant", defaults.repulsion_constant)),
        repulsion_scale=float(relaxation.get("repulsion_scale", defaults.repulsion_scale)),
        seed=_optional_int(builder.get("seed")),
        relax_templates=bool(builder.get("relax_templates", defaults.relax_templates)),
    )


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected an integer seed, got {value!r}.") from exc
