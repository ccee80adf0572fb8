"""
Fixed-iteration force-directed relaxation of an assembled structure.

Each iteration runs three passes over a working copy of the positions:

    1. bond springs pull every bond toward its ideal length,
    2. angle corrections rotate neighbour pairs toward the ideal angle for the
       central atom's element and neighbour count,
    3. pairwise repulsion pushes apart atoms closer than the scaled sum of
       their covalent radii.

There is no convergence test; the number of iterations is the only stopping
rule, so identical input always yields identical output.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .elements import covalent_radius
from .geometry import (
    EPSILON,
    Vector,
    distance,
    ideal_angle,
    ideal_bond_length,
    perpendicular,
    vector_add,
    vector_cross,
    vector_dot,
    vector_length,
    vector_normalize,
    vector_scale,
    vector_sub,
)
from .settings import DEFAULT_SETTINGS, GeometrySettings
from .structure import Structure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BondTerm:
    atom_i: int
    atom_j: int
    ideal_length: float


@dataclass(frozen=True)
class AngleTerm:
    center: int
    atom_i: int
    atom_k: int
    ideal_degrees: float


@dataclass(frozen=True)
class RepulsionTerm:
    atom_i: int
    atom_j: int
    min_distance: float


class GeometryRelaxer:
    """
    Spring/angle/repulsion solver. Terms are derived once per call since the
    bond graph does not change while positions move.
    """

    def __init__(self, settings: Optional[GeometrySettings] = None):
        self.settings = settings or DEFAULT_SETTINGS

    def relax(self, structure: Structure, iterations: Optional[int] = None) -> float:
        """Relax in place; return the largest atom displacement of the final iteration."""
        steps = self.settings.iterations if iterations is None else int(iterations)
        if steps <= 0 or not structure.atoms:
            return 0.0

        bonds, angles, repulsions = self._build_terms(structure)
        positions: List[Vector] = [atom.position for atom in structure.atoms]
        last_step = 0.0
        for step in range(steps):
            before = list(positions) if step == steps - 1 else None
            self._apply_bond_springs(positions, bonds)
            self._apply_angle_corrections(positions, angles)
            self._apply_repulsion(positions, repulsions)
            if before is not None:
                last_step = max(distance(old, new) for old, new in zip(before, positions))

        for atom, position in zip(structure.atoms, positions):
            atom.position = position
        logger.debug("Relaxed %r for %d iterations (final step %.3g)", structure, steps, last_step)
        return last_step

    def _build_terms(
        self, structure: Structure
    ) -> Tuple[List[BondTerm], List[AngleTerm], List[RepulsionTerm]]:
        atoms = structure.atoms
        count = len(atoms)
        neighbors: List[List[int]] = [[] for _ in range(count)]
        bonds: List[BondTerm] = []
        for bond in structure.bonds:
            if not (0 <= bond.a < count and 0 <= bond.b < count) or bond.a == bond.b:
                continue
            bonds.append(
                BondTerm(bond.a, bond.b, ideal_bond_length(atoms[bond.a].element, atoms[bond.b].element, bond.order))
            )
            if bond.b not in neighbors[bond.a]:
                neighbors[bond.a].append(bond.b)
                neighbors[bond.b].append(bond.a)

        angles: List[AngleTerm] = []
        for center, connected in enumerate(neighbors):
            if len(connected) < 2:
                continue
            target = ideal_angle(atoms[center].element, len(connected))
            for first in range(len(connected)):
                for second in range(first + 1, len(connected)):
                    angles.append(AngleTerm(center, connected[first], connected[second], target))

        repulsions: List[RepulsionTerm] = []
        scale = self.settings.repulsion_scale
        radii = [covalent_radius(atom.element) for atom in atoms]
        for i in range(count):
            for j in range(i + 1, count):
                repulsions.append(RepulsionTerm(i, j, (radii[i] + radii[j]) * scale))
        return bonds, angles, repulsions

    def _apply_bond_springs(self, positions: List[Vector], bonds: List[BondTerm]) -> None:
        k = self.settings.bond_constant
        for term in bonds:
            delta = vector_sub(positions[term.atom_j], positions[term.atom_i])
            length = vector_length(delta)
            if length < EPSILON:
                continue
            shift = vector_scale(delta, k * (length - term.ideal_length) / length)
            positions[term.atom_i] = vector_add(positions[term.atom_i], shift)
            positions[term.atom_j] = vector_sub(positions[term.atom_j], shift)

    def _apply_angle_corrections(self, positions: List[Vector], angles: List[AngleTerm]) -> None:
        k = self.settings.angle_constant
        for term in angles:
            center = positions[term.center]
            u = vector_normalize(vector_sub(positions[term.atom_i], center))
            v = vector_normalize(vector_sub(positions[term.atom_k], center))
            if u is None or v is None:
                continue
            cos_theta = max(-1.0, min(1.0, vector_dot(u, v)))
            current = math.degrees(math.acos(cos_theta))
            correction = k * math.radians(current - term.ideal_degrees)
            if correction == 0.0:
                continue
            normal = vector_normalize(vector_cross(u, v))
            if normal is None:
                # colinear neighbours: any axis perpendicular to u is perpendicular to both
                normal = perpendicular(u)
            adjust_i = vector_normalize(vector_cross(normal, u))
            adjust_k = vector_normalize(vector_cross(v, normal))
            if adjust_i is None or adjust_k is None:
                continue
            positions[term.atom_i] = vector_add(positions[term.atom_i], vector_scale(adjust_i, correction))
            positions[term.atom_k] = vector_add(positions[term.atom_k], vector_scale(adjust_k, correction))

    def _apply_repulsion(self, positions: List[Vector], repulsions: List[RepulsionTerm]) -> None:
        k = self.settings.repulsion_constant
        for term in repulsions:
            delta = vector_sub(positions[term.atom_i], positions[term.atom_j])
            length = vector_length(delta)
            if length < EPSILON or length >= term.min_distance:
                continue
            push = vector_scale(delta, k * (term.min_distance - length) / length)
            positions[term.atom_i] = vector_add(positions[term.atom_i], push)
            positions[term.atom_j] = vector_sub(positions[term.atom_j], push)


def relax(
    structure: Structure,
    iterations: Optional[int] = None,
    settings: Optional[GeometrySettings] = None,
) -> float:
    return GeometryRelaxer(settings).relax(structure, iterations)
