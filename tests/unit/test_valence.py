"""Tests for hydrogen filling and placement."""

from __future__ import annotations

import itertools

import pytest

from formula3d.assembler import open_slot_direction
from formula3d.geometry import angle_between, distance, ideal_bond_length, vector_sub
from formula3d.structure import Structure
from formula3d.valence import complete, reserved_slots


def hydrogen_directions(structure: Structure, center: int):
    origin = structure.atoms[center].position
    return [vector_sub(structure.atoms[n].position, origin) for n in structure.neighbors(center)]


def test_isolated_carbon_gets_tetrahedral_hydrogens() -> None:
    structure = Structure()
    structure.add_atom("C")
    assert complete(structure) == 4
    assert structure.bond_order_sum(0) == 4
    for a, b in itertools.combinations(hydrogen_directions(structure, 0), 2):
        assert angle_between(a, b) == pytest.approx(109.5, abs=0.5)


def test_isolated_oxygen_gets_water_angle() -> None:
    structure = Structure()
    structure.add_atom("O")
    complete(structure)
    first, second = hydrogen_directions(structure, 0)
    assert angle_between(first, second) == pytest.approx(104.5, abs=1e-6)


def test_single_deficit_points_away_from_bond() -> None:
    structure = Structure()
    carbon = structure.add_atom("C", (0.0, 0.0, 0.0))
    oxygen = structure.add_atom("O", (1.4, 0.0, 0.0))
    structure.add_bond(carbon, oxygen)
    complete(structure)
    hydrogen = [n for n in structure.neighbors(oxygen) if structure.atoms[n].is_hydrogen][0]
    assert structure.atoms[hydrogen].position[0] > 1.4
    assert distance(structure.atoms[hydrogen].position, structure.atoms[oxygen].position) == pytest.approx(
        ideal_bond_length("O", "H", 1)
    )


def test_reserved_slot_is_left_open() -> None:
    structure = Structure()
    structure.add_atom("N", target_valence=2)
    assert reserved_slots(structure, 0) == 1
    complete(structure)
    assert structure.bond_order_sum(0) == 2
    # the open slot stands in for a neighbour on +x
    for direction in hydrogen_directions(structure, 0):
        assert angle_between(direction, (1.0, 0.0, 0.0)) == pytest.approx(107.0, abs=1e-6)


def test_saturated_and_unknown_atoms_untouched() -> None:
    structure = Structure()
    first = structure.add_atom("O", (0.0, 0.0, 0.0))
    second = structure.add_atom("O", (1.2, 0.0, 0.0))
    structure.add_bond(first, second, 2)
    structure.add_atom("Xe", (5.0, 0.0, 0.0))
    assert complete(structure) == 0
    assert len(structure) == 3


def test_hydrogen_atoms_are_not_filled() -> None:
    structure = Structure()
    structure.add_atom("H")
    assert complete(structure) == 0


def test_reserved_slot_takes_a_tetrahedral_position() -> None:
    structure = Structure()
    anchor = structure.add_atom("C", (0.0, 0.0, 0.0), target_valence=3)
    methyl = structure.add_atom("C", (-1.6, 0.0, 0.0))
    structure.add_bond(anchor, methyl)
    complete(structure)
    assert structure.bond_order_sum(anchor) == 3
    directions = hydrogen_directions(structure, anchor)
    for a, b in itertools.combinations(directions, 2):
        assert angle_between(a, b) == pytest.approx(109.5, abs=0.5)
    # the slot left over is the fourth corner of the tetrahedron
    slot = open_slot_direction(structure, anchor)
    for direction in directions:
        assert angle_between(direction, slot) == pytest.approx(109.5, abs=0.5)
