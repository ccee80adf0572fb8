"""Tunable constants for structure building and relaxation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional


@dataclass(frozen=True)
class GeometrySettings:
    iterations: int = 1000
    bond_constant: float = 0.1
    angle_constant: float = 0.01
    repulsion_constant: float = 0.05
    repulsion_scale: float = 1.2
    seed: Optional[int] = None
    relax_templates: bool = False

    def with_overrides(self, **changes) -> "GeometrySettings":
        """Copy with the non-None keyword values replaced."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


DEFAULT_SETTINGS = GeometrySettings()
