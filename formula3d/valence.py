"""
Hydrogen filling: bring every heavy atom's bond-order sum up to its valence.

Hydrogens are placed around the direction pointing away from the atom's
existing bonds. A lone hydrogen goes straight along that direction; several
hydrogens are spread at equal azimuth steps on a cone around it, opened to the
ideal angle for the atom's final coordination. Reserved attachment slots
take cone positions of their own, so the slot left open is where a full
neighbour would sit.
"""

from __future__ import annotations

import logging
from typing import List

from .elements import table_valence
from .geometry import (
    DEFAULT_AXIS,
    Vector,
    cone_directions,
    ideal_angle,
    ideal_bond_length,
    mean_vector,
    perpendicular,
    vector_add,
    vector_cross,
    vector_normalize,
    vector_scale,
    vector_sub,
)
from .structure import Structure

logger = logging.getLogger(__name__)


def complete(structure: Structure) -> int:
    """Add missing hydrogens in place and return how many were added."""
    added = 0
    for index in range(len(structure.atoms)):
        atom = structure.atoms[index]
        if atom.is_hydrogen:
            continue
        deficit = structure.remaining_valence(index)
        if deficit <= 0:
            continue
        added += _fill_atom(structure, index, deficit)
    if added:
        logger.debug("Added %d hydrogens to %r", added, structure)
    return added


def reserved_slots(structure: Structure, index: int) -> int:
    """Open attachment slots held back by a target-valence override."""
    atom = structure.atoms[index]
    if atom.target_valence is None:
        return 0
    return max(0, table_valence(atom.element) - atom.target_valence)


def _fill_atom(structure: Structure, index: int, deficit: int) -> int:
    atom = structure.atoms[index]
    neighbors = structure.neighbors(index)
    reserved = reserved_slots(structure, index)

    directions: List[Vector] = []
    for neighbor in neighbors:
        unit = vector_normalize(vector_sub(structure.atoms[neighbor].position, atom.position))
        if unit is not None:
            directions.append(unit)

    placed = 0
    # open slots still to be given a cone position of their own
    slots = reserved
    if not directions:
        if reserved:
            # the first open slot sits on the fixed axis
            slots -= 1
        elif deficit > 1:
            _add_hydrogen(structure, index, DEFAULT_AXIS)
            placed = 1
        directions.append(DEFAULT_AXIS)
    remaining = deficit - placed
    if remaining <= 0:
        return placed

    away = vector_normalize(vector_scale(mean_vector(directions), -1.0))
    if away is None:
        away = perpendicular(directions[0])

    if deficit == 1 and slots == 0:
        _add_hydrogen(structure, index, away)
        return placed + 1

    coordination = len(neighbors) + deficit + reserved
    angle = ideal_angle(atom.element, coordination)
    if len(directions) >= 2:
        polar = angle / 2.0
        reference = vector_cross(directions[0], directions[1])
    else:
        polar = 180.0 - angle
        reference = None
    # hydrogens take the first positions; the rest are left for the open slots
    for direction in cone_directions(away, polar, remaining + slots, reference)[:remaining]:
        _add_hydrogen(structure, index, direction)
    return placed + remaining


def _add_hydrogen(structure: Structure, index: int, direction: Vector) -> int:
    atom = structure.atoms[index]
    length = ideal_bond_length(atom.element, "H", 1)
    position = vector_add(atom.position, vector_scale(direction, length))
    hydrogen = structure.add_atom("H", position)
    structure.add_bond(index, hydrogen, 1)
    return hydrogen
