"""
Geometric templates for recognised molecules and functional groups.

Fixed templates (water, ammonia, SO3, ...) are hand placed at idealised
angles. Count-driven templates (carbon chains, sugars, acids, alcohols and the
generic fallback) lay their backbone out on the damped zig-zag and leave
hydrogens to valence completion. Atoms that keep an open attachment slot carry
a target-valence override one below their table valence.
"""

from __future__ import annotations

import logging
import math
import random
from typing import List, Mapping, Optional

from .assembler import attach
from .elements import table_valence
from .geometry import (
    Vector,
    bend,
    cone_directions,
    ideal_bond_length,
    rotate_about,
    vector_add,
    vector_normalize,
    vector_scale,
    vector_sub,
    zigzag_position,
)
from .settings import GeometrySettings
from .structure import Structure

logger = logging.getLogger(__name__)

WATER_ANGLE = 104.5
AMMONIA_ANGLE = 107.0
TETRAHEDRAL_ANGLE = 109.5
TRIGONAL_ANGLE = 120.0
X_AXIS: Vector = (1.0, 0.0, 0.0)
Y_AXIS: Vector = (0.0, 1.0, 0.0)
Z_AXIS: Vector = (0.0, 0.0, 1.0)


def _planar(angle_degrees: float, length: float) -> Vector:
    theta = math.radians(angle_degrees)
    return (length * math.cos(theta), length * math.sin(theta), 0.0)


def _pyramid_polar(bond_angle: float) -> float:
    """Cone half-angle giving three bonds with equal pairwise ``bond_angle``."""
    cos_sq = (1.0 + 2.0 * math.cos(math.radians(bond_angle))) / 3.0
    return math.degrees(math.acos(math.sqrt(max(0.0, cos_sq))))


def _add_hydroxyl_hydrogen(structure: Structure, oxygen: int, reference: Vector = X_AXIS) -> int:
    """Bond an H to ``oxygen`` at the water angle from its first neighbour."""
    o_position = structure.atoms[oxygen].position
    anchor = structure.neighbors(oxygen)[0]
    back = vector_normalize(vector_sub(structure.atoms[anchor].position, o_position)) or X_AXIS
    direction = bend(back, WATER_ANGLE, reference)
    hydrogen = structure.add_atom(
        "H", vector_add(o_position, vector_scale(direction, ideal_bond_length("O", "H", 1)))
    )
    structure.add_bond(oxygen, hydrogen, 1)
    return hydrogen


# --- fixed templates ---------------------------------------------------------


def water() -> Structure:
    structure = Structure()
    oxygen = structure.add_atom("O", (0.0, 0.0, 0.0))
    length = ideal_bond_length("O", "H", 1)
    half = math.radians(WATER_ANGLE / 2.0)
    for sign in (-1.0, 1.0):
        hydrogen = structure.add_atom("H", (sign * length * math.sin(half), length * math.cos(half), 0.0))
        structure.add_bond(oxygen, hydrogen, 1)
    return structure


def ammonia() -> Structure:
    structure = Structure()
    nitrogen = structure.add_atom("N", (0.0, 0.0, 0.0))
    length = ideal_bond_length("N", "H", 1)
    for direction in cone_directions((0.0, -1.0, 0.0), _pyramid_polar(AMMONIA_ANGLE), 3, X_AXIS):
        hydrogen = structure.add_atom("H", vector_scale(direction, length))
        structure.add_bond(nitrogen, hydrogen, 1)
    return structure


def carbon_dioxide() -> Structure:
    structure = Structure()
    length = ideal_bond_length("C", "O", 2)
    first = structure.add_atom("O", (-length, 0.0, 0.0))
    carbon = structure.add_atom("C", (0.0, 0.0, 0.0))
    second = structure.add_atom("O", (length, 0.0, 0.0))
    structure.add_bond(carbon, first, 2)
    structure.add_bond(carbon, second, 2)
    return structure


def sulfur_trioxide() -> Structure:
    structure = Structure()
    sulfur = structure.add_atom("S", (0.0, 0.0, 0.0), target_valence=6)
    length = ideal_bond_length("S", "O", 2)
    for step in range(3):
        oxygen = structure.add_atom("O", _planar(step * TRIGONAL_ANGLE, length))
        structure.add_bond(sulfur, oxygen, 2)
    return structure


def diatomic(element: str, order: int) -> Structure:
    structure = Structure()
    length = ideal_bond_length(element, element, order)
    first = structure.add_atom(element, (0.0, 0.0, 0.0))
    second = structure.add_atom(element, (length, 0.0, 0.0))
    structure.add_bond(first, second, order)
    return structure


def _phosphate_core(structure: Structure) -> List[int]:
    """P=O plus three single-bonded arm oxygens; returns the arm indices."""
    phosphorus = structure.add_atom("P", (0.0, 0.0, 0.0))
    double_length = ideal_bond_length("P", "O", 2)
    single_length = ideal_bond_length("P", "O", 1)
    oxo = structure.add_atom("O", (0.0, double_length, 0.0))
    structure.add_bond(phosphorus, oxo, 2)
    arms: List[int] = []
    polar = 180.0 - TETRAHEDRAL_ANGLE
    for direction in cone_directions((0.0, -1.0, 0.0), polar, 3, X_AXIS):
        oxygen = structure.add_atom("O", vector_scale(direction, single_length))
        structure.add_bond(phosphorus, oxygen, 1)
        arms.append(oxygen)
    return arms


def phosphoric_acid() -> Structure:
    structure = Structure()
    for oxygen in _phosphate_core(structure):
        _add_hydroxyl_hydrogen(structure, oxygen, (0.0, -1.0, 0.0))
    return structure


def methyl_phosphate() -> Structure:
    structure = Structure()
    arms = _phosphate_core(structure)
    ester_oxygen, hydroxyls = arms[0], arms[1:]
    o_position = structure.atoms[ester_oxygen].position
    back = vector_normalize(vector_sub(structure.atoms[0].position, o_position)) or X_AXIS
    direction = bend(back, WATER_ANGLE, (0.0, -1.0, 0.0))
    carbon = structure.add_atom(
        "C",
        vector_add(o_position, vector_scale(direction, ideal_bond_length("O", "C", 1))),
        functional="methyl",
    )
    structure.add_bond(ester_oxygen, carbon, 1)
    for oxygen in hydroxyls:
        _add_hydroxyl_hydrogen(structure, oxygen, (0.0, -1.0, 0.0))
    return structure


def _carboxyl(structure: Structure, carbon: int, hydroxyl: bool = True) -> int:
    """Trigonal C(=O)O on ``carbon`` opposite its -x neighbour; returns the single-bonded O."""
    c_position = structure.atoms[carbon].position
    oxo = structure.add_atom(
        "O", vector_add(c_position, _planar(60.0, ideal_bond_length("C", "O", 2))), functional="carbonyl"
    )
    structure.add_bond(carbon, oxo, 2)
    oxygen = structure.add_atom("O", vector_add(c_position, _planar(-60.0, ideal_bond_length("C", "O", 1))))
    structure.add_bond(carbon, oxygen, 1)
    if hydroxyl:
        _add_hydroxyl_hydrogen(structure, oxygen, (0.0, -1.0, 0.0))
    return oxygen


def ammonium_acetate() -> Structure:
    structure = Structure()
    cc_length = ideal_bond_length("C", "C", 1)
    methyl = structure.add_atom("C", (-cc_length, 0.0, 0.0), functional="methyl")
    carbon = structure.add_atom("C", (0.0, 0.0, 0.0))
    structure.add_bond(methyl, carbon, 1)
    oxygen = _carboxyl(structure, carbon, hydroxyl=False)
    structure.atoms[oxygen].target_valence = 1
    structure.atoms[oxygen].functional = "carboxylate"

    center: Vector = (3.0, 0.0, 0.0)
    nitrogen = structure.add_atom("N", center, target_valence=4, functional="ammonium")
    length = ideal_bond_length("N", "H", 1)
    hydrogen = structure.add_atom("H", vector_add(center, (0.0, length, 0.0)))
    structure.add_bond(nitrogen, hydrogen, 1)
    for direction in cone_directions((0.0, -1.0, 0.0), 180.0 - TETRAHEDRAL_ANGLE, 3, X_AXIS):
        hydrogen = structure.add_atom("H", vector_add(center, vector_scale(direction, length)))
        structure.add_bond(nitrogen, hydrogen, 1)
    return structure


def phenyl() -> Structure:
    """Planar six-ring, alternating double bonds, C0 left open for a substituent."""
    structure = Structure()
    length = ideal_bond_length("C", "C", 1)
    for step in range(6):
        structure.add_atom("C", _planar(step * 60.0, length), functional="phenyl")
    structure.atoms[0].target_valence = table_valence("C") - 1
    for step in range(6):
        structure.add_bond(step, (step + 1) % 6, 2 if step % 2 == 0 else 1)
    ch_length = ideal_bond_length("C", "H", 1)
    for step in range(1, 6):
        position = structure.atoms[step].position
        outward = vector_normalize(position) or X_AXIS
        hydrogen = structure.add_atom("H", vector_add(position, vector_scale(outward, ch_length)))
        structure.add_bond(step, hydrogen, 1)
    return structure


def amino_group() -> Structure:
    structure = Structure()
    nitrogen = structure.add_atom(
        "N", (0.0, 0.0, 0.0), target_valence=table_valence("N") - 1, functional="amino"
    )
    length = ideal_bond_length("N", "H", 1)
    for angle in (TRIGONAL_ANGLE, -TRIGONAL_ANGLE):
        hydrogen = structure.add_atom("H", _planar(angle, length))
        structure.add_bond(nitrogen, hydrogen, 1)
    return structure


def aniline(settings: Optional[GeometrySettings] = None) -> Structure:
    return attach(phenyl(), amino_group(), settings)


def sulfonic_acid_group() -> Structure:
    """S(=O)2-OH with the open S slot facing -x."""
    structure = Structure()
    # one slot below the six bonds of an attached sulfonic sulfur
    sulfur = structure.add_atom("S", (0.0, 0.0, 0.0), target_valence=5, functional="sulfonic")
    directions = cone_directions(X_AXIS, 180.0 - TETRAHEDRAL_ANGLE, 3, Y_AXIS)
    for direction in directions[:2]:
        oxygen = structure.add_atom("O", vector_scale(direction, ideal_bond_length("S", "O", 2)))
        structure.add_bond(sulfur, oxygen, 2)
    hydroxyl = structure.add_atom("O", vector_scale(directions[2], ideal_bond_length("S", "O", 1)))
    structure.add_bond(sulfur, hydroxyl, 1)
    _add_hydroxyl_hydrogen(structure, hydroxyl, X_AXIS)
    return structure


def peroxide() -> Structure:
    structure = Structure()
    length = ideal_bond_length("O", "O", 1)
    first = structure.add_atom("O", (0.0, 0.0, 0.0))
    second = structure.add_atom("O", (length, 0.0, 0.0))
    structure.add_bond(first, second, 1)
    _add_hydroxyl_hydrogen(structure, first, Y_AXIS)
    _add_hydroxyl_hydrogen(structure, second, Z_AXIS)
    return structure


# --- count-driven templates --------------------------------------------------


def _carbon_backbone(structure: Structure, count: int, reserve: Optional[str] = None) -> List[int]:
    length = ideal_bond_length("C", "C", 1)
    reserved = table_valence("C") - 1
    indices: List[int] = []
    for i in range(count):
        target = None
        if (reserve == "first" and i == 0) or (reserve == "last" and i == count - 1):
            target = reserved
        indices.append(structure.add_atom("C", zigzag_position(i, length), target_valence=target))
    return indices


def scatter_heteroatoms(
    structure: Structure,
    counts: Mapping[str, int],
    backbone: List[int],
    rng: random.Random,
    skip=("C", "H"),
) -> None:
    """
    Bond each remaining non-hydrogen atom to a random backbone atom with spare valence.

    Atoms are dropped within half a bond length of their host on every axis;
    when no host can take another bond the atom stays unbonded.
    """
    for element, count in counts.items():
        if element in skip:
            continue
        for _ in range(count):
            hosts = [index for index in backbone if structure.remaining_valence(index) > 0]
            host: Optional[int] = None
            if hosts:
                host = rng.choice(hosts)
            elif backbone:
                host = rng.choice(backbone)
            length = (
                ideal_bond_length(structure.atoms[host].element, element, 1)
                if host is not None
                else ideal_bond_length(element, element, 1)
            )
            offset = ((rng.random() - 0.5) * length, (rng.random() - 0.5) * length, (rng.random() - 0.5) * length)
            base = structure.atoms[host].position if host is not None else (0.0, 0.0, 0.0)
            atom = structure.add_atom(element, vector_add(base, offset))
            if hosts and table_valence(element) > 0:
                structure.add_bond(host, atom, 1)
            else:
                logger.warning("No backbone atom can bond %s; leaving it unbonded", element)


def carbon_chain(counts: Mapping[str, int], rng: random.Random, reserve: Optional[str] = None) -> Structure:
    """
    Unbranched carbon backbone.

    Pure hydrocarbons take their unsaturation ``round((2C + 2 - H) / 2)`` on
    the last backbone bond. This only describes unbranched acyclic chains;
    rings and branches sharing the formula come out as chains too.
    """
    structure = Structure()
    carbons = counts.get("C", 0)
    backbone = _carbon_backbone(structure, carbons, reserve)
    pure = all(element in ("C", "H") for element in counts)
    unsaturation = 0
    if pure:
        # an open attachment slot counts as one hydrogen
        hydrogens = counts.get("H", 0) + (1 if reserve else 0)
        unsaturation = int(math.floor((2 * carbons + 2 - hydrogens) / 2.0 + 0.5))
    for i in range(carbons - 1):
        order = 1
        if pure and i == carbons - 2 and unsaturation > 0:
            order = min(1 + unsaturation, 3, structure.remaining_valence(i), structure.remaining_valence(i + 1))
            order = max(order, 1)
        structure.add_bond(i, i + 1, order)
    scatter_heteroatoms(structure, counts, backbone, rng)
    if carbons == 1 and counts.get("H", 0) == 3:
        structure.atoms[0].functional = "methyl"
    return structure


def sugar(counts: Mapping[str, int]) -> Structure:
    """Open-chain sugar: one O per carbon, hydroxyls except the terminal carbonyl."""
    structure = Structure()
    carbons = counts.get("C", 0)
    backbone = _carbon_backbone(structure, carbons)
    for i in range(carbons - 1):
        structure.add_bond(i, i + 1, 1)
    co_length = ideal_bond_length("C", "O", 1)
    for i in backbone:
        offset = rotate_about((0.0, co_length, 0.0), X_AXIS, i * math.pi / 7.0)
        position = vector_add(structure.atoms[i].position, offset)
        if i == carbons - 1:
            oxygen = structure.add_atom("O", position, functional="carbonyl")
            structure.add_bond(i, oxygen, 2)
        else:
            oxygen = structure.add_atom("O", position, functional="hydroxyl")
            structure.add_bond(i, oxygen, 1)
            _add_hydroxyl_hydrogen(structure, oxygen, X_AXIS)
    return structure


def alcohol(counts: Mapping[str, int], rng: random.Random) -> Structure:
    """Carbon backbone with a hydroxyl on the last carbon (a bare OH without carbon)."""
    structure = Structure()
    carbons = counts.get("C", 0)
    backbone = _carbon_backbone(structure, carbons)
    for i in range(carbons - 1):
        structure.add_bond(i, i + 1, 1)
    if carbons:
        offset = rotate_about((0.0, ideal_bond_length("C", "O", 1), 0.0), X_AXIS, math.pi / 6.0)
        oxygen = structure.add_atom(
            "O", vector_add(structure.atoms[carbons - 1].position, offset), functional="hydroxyl"
        )
        structure.add_bond(carbons - 1, oxygen, 1)
        _add_hydroxyl_hydrogen(structure, oxygen, X_AXIS)
    else:
        oxygen = structure.add_atom("O", (0.0, 0.0, 0.0), functional="hydroxyl")
        hydrogen = structure.add_atom("H", (ideal_bond_length("O", "H", 1), 0.0, 0.0))
        structure.add_bond(oxygen, hydrogen, 1)
    scatter_heteroatoms(structure, counts, backbone, rng)
    return structure


def carboxylic_acid(counts: Mapping[str, int], rng: random.Random) -> Structure:
    """Carbon backbone ending in a trigonal -COOH carbon."""
    structure = Structure()
    carbons = counts.get("C", 0)
    backbone = _carbon_backbone(structure, carbons)
    for i in range(carbons - 1):
        structure.add_bond(i, i + 1, 1)
    if carbons:
        position = vector_add(structure.atoms[carbons - 1].position, (ideal_bond_length("C", "C", 1), 0.0, 0.0))
    else:
        position = (0.0, 0.0, 0.0)
    acid_carbon = structure.add_atom("C", position, functional="carboxyl")
    if carbons:
        structure.add_bond(carbons - 1, acid_carbon, 1)
    _carboxyl(structure, acid_carbon)
    scatter_heteroatoms(structure, counts, backbone, rng)
    return structure


def generic(counts: Mapping[str, int], rng: random.Random) -> Structure:
    """
    Fallback: the most abundant non-hydrogen element forms a single-bonded
    backbone and everything else is scattered onto it.
    """
    structure = Structure()
    heavy = {element: count for element, count in counts.items() if element != "H" and count > 0}
    pool = heavy or {element: count for element, count in counts.items() if count > 0}
    if not pool:
        return structure
    element = max(pool, key=lambda symbol: pool[symbol])
    length = ideal_bond_length(element, element, 1)
    backbone = [structure.add_atom(element, zigzag_position(i, length)) for i in range(pool[element])]
    for i in range(len(backbone) - 1):
        if structure.remaining_valence(i) > 0 and structure.remaining_valence(i + 1) > 0:
            structure.add_bond(i, i + 1, 1)
    scatter_heteroatoms(structure, counts, backbone, rng, skip=(element, "H"))
    return structure
