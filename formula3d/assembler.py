"""
Fragment alignment and merging.

Fragments are ordinary Structures whose attachment atom keeps one open slot
(a target-valence override one below what the atom would otherwise take).
``join`` consumes that slot when the connecting bond is added, so completed
and merged structures still satisfy their valences exactly.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .elements import table_valence
from .geometry import (
    DEFAULT_AXIS,
    Vector,
    ideal_bond_length,
    mean_vector,
    rotation_between,
    rotation_matrix,
    vector_add,
    vector_cross,
    vector_dot,
    vector_normalize,
    vector_scale,
    vector_sub,
)
from .relax import GeometryRelaxer
from .settings import GeometrySettings
from .structure import Structure

logger = logging.getLogger(__name__)

ALIGN_MODES = {
    # anchor sits at the right-hand end, body extends toward -x
    "left": (1.0, 0.0, 0.0),
    # anchor sits at the left-hand end, body extends toward +x
    "right": (-1.0, 0.0, 0.0),
}


def join(structure: Structure, i: int, j: int, order: int = 1) -> None:
    """Bond two atoms of one structure, consuming reserved slots on both ends."""
    structure.add_bond(i, j, order)
    for index in (i, j):
        atom = structure.atoms[index]
        if atom.target_valence is not None:
            atom.target_valence += order


def reserve_anchor(structure: Structure, index: int = 0) -> Optional[int]:
    """
    Hold back one bonding slot on ``structure.atoms[index]`` for a later join.

    Returns the (possibly shifted) anchor index, or None for an empty structure.
    An atom that already holds a slot is left alone. Otherwise the preference
    order is spare valence, then dropping a bonded hydrogen, then
    lowering a multiple bond; a fully saturated atom keeps its valence pinned
    and the later join widens it.
    """
    if not structure.atoms:
        return None
    expected = structure.expected_valence(index)
    atom = structure.atoms[index]

    if atom.target_valence is not None and atom.target_valence < table_valence(atom.element):
        return index
    if structure.remaining_valence(index) > 0:
        atom.target_valence = expected - 1
        return index

    for neighbor in structure.neighbors(index):
        if structure.atoms[neighbor].is_hydrogen:
            structure.remove_atom(neighbor)
            if neighbor < index:
                index -= 1
            structure.atoms[index].target_valence = expected - 1
            return index

    for bond in structure.bonds:
        if bond.involves(index) and bond.order > 1:
            bond.order -= 1
            atom.target_valence = expected - 1
            return index

    logger.warning(
        "Atom %d (%s) has no slot to open; the attachment bond will widen its valence",
        index,
        atom.element,
    )
    atom.target_valence = expected
    return index


def open_slot_direction(structure: Structure, index: int) -> Optional[Vector]:
    """Unit direction of the free site on an atom: the negated mean of its bond directions."""
    origin = structure.atoms[index].position
    directions = []
    for neighbor in structure.neighbors(index):
        unit = vector_normalize(vector_sub(structure.atoms[neighbor].position, origin))
        if unit is not None:
            directions.append(unit)
    if not directions:
        return None
    return vector_normalize(vector_scale(mean_vector(directions), -1.0))


def _reject(v: Vector, axis: Vector) -> Optional[Vector]:
    return vector_normalize(vector_sub(v, vector_scale(axis, vector_dot(v, axis))))


def align(
    fragment: Structure,
    mode: str,
    target: Vector,
    anchor: Optional[int] = None,
    direction: Optional[Vector] = None,
    reference: Optional[Vector] = None,
) -> None:
    """
    Rotate and translate ``fragment`` in place so ``anchor`` sits at ``target``.

    The principal axis is the anchor's open-slot direction; an anchor without
    bonds falls back to the heavy-atom centroid -> anchor axis. ``"left"``
    points that axis along +x, ``"right"`` along -x, and an explicit
    ``direction`` (the way toward the atom the anchor will bond to) overrides
    both. With ``reference``, the fragment is also turned about the axis so
    its body leans toward the reference side.
    """
    if mode not in ALIGN_MODES:
        raise ValueError(f"Unknown alignment mode {mode!r}; expected one of {sorted(ALIGN_MODES)}.")
    if not fragment.atoms:
        return
    if anchor is None:
        heavy = fragment.heavy_atom_indices()
        if mode == "left":
            anchor = heavy[-1] if heavy else len(fragment.atoms) - 1
        else:
            anchor = 0

    goal = vector_normalize(direction) if direction is not None else None
    if goal is None:
        goal = ALIGN_MODES[mode]

    fragment.translate(vector_scale(fragment.atoms[anchor].position, -1.0))
    axis = open_slot_direction(fragment, anchor)
    if axis is None:
        axis = vector_normalize(vector_scale(fragment.centroid(heavy_only=True), -1.0))
    if axis is not None:
        fragment.transform(rotation_between(axis, goal))

    if reference is not None:
        body = _reject(fragment.centroid(heavy_only=True), goal)
        side = _reject(reference, goal)
        if body is not None and side is not None:
            turn = math.atan2(vector_dot(vector_cross(body, side), goal), vector_dot(body, side))
            fragment.transform(rotation_matrix(goal, turn))
    fragment.translate(target)


def attach(
    base: Structure,
    substituent: Structure,
    settings: Optional[GeometrySettings] = None,
) -> Structure:
    """
    Bond ``substituent.atoms[0]`` to ``base.atoms[0]`` and return the merged structure.

    The substituent is turned so its body points away from the base centroid,
    placed one single-bond length out, merged and relaxed. Neither input is
    modified.
    """
    if not substituent.atoms:
        return base.copy()
    if not base.atoms:
        return substituent.copy()

    merged = base.copy()
    fragment = substituent.copy()
    base_anchor = merged.atoms[0]
    outward = vector_normalize(vector_sub(base_anchor.position, merged.centroid()))
    if outward is None:
        outward = DEFAULT_AXIS

    body = vector_normalize(vector_sub(fragment.centroid(), fragment.atoms[0].position))
    if body is not None:
        fragment.transform(rotation_between(body, outward))
    length = ideal_bond_length(base_anchor.element, fragment.atoms[0].element, 1)
    target = vector_add(base_anchor.position, vector_scale(outward, length))
    fragment.translate(vector_sub(target, fragment.atoms[0].position))

    offset = merged.merge(fragment)
    join(merged, 0, offset, 1)
    logger.debug("Attached %s fragment (%d atoms) to %s anchor", fragment.atoms[0].element, len(fragment), base_anchor.element)
    GeometryRelaxer(settings).relax(merged)
    return merged
