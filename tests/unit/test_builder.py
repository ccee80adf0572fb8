"""Tests for rule dispatch and the structures built for known formulas."""

from __future__ import annotations

import itertools
import random

import pytest

from formula3d.builder import (
    DEFAULT_RULES,
    LITERAL_TEMPLATES,
    BuildContext,
    BuildRule,
    StructureBuilder,
    build,
)
from formula3d.errors import MalformedFormulaError
from formula3d.geometry import angle_between, vector_cross, vector_dot, vector_sub
from formula3d.parser import parse
from formula3d.relax import GeometryRelaxer
from formula3d.settings import GeometrySettings
from formula3d.structure import Structure


VALENCE_FORMULAS = [
    "H2O",
    "NH3",
    "CO2",
    "SO3",
    "H3PO4",
    "CH3COONH4",
    "CH3OPO3H2",
    "C6H5NH2",
    "C6H5",
    "NH2",
    "SO3H",
    "C6H5OH",
    "C6H5CH3",
    "C6H5COOH",
    "C6H5SO3H",
    "C6H5CH2OH",
    "C6H5C2H3",
    "CH4",
    "C2H6",
    "C2H4",
    "C2H2",
    "C4H10",
    "C6H6",
    "CH3CH2OH",
    "CH3COOH",
    "CH3COOCH3",
    "HCOOCH3",
    "CH3OCH3",
    "CH3OCH2CH3",
    "C6H12O6",
    "H2O2",
    "O2",
    "N2",
    "CH2O",
    "CH3SH",
    "C2H5Cl",
    "H2S",
    "PH3",
]


def rule_name(formula: str) -> str:
    builder = StructureBuilder()
    ctx = BuildContext(
        formula=formula,
        parsed=parse(formula),
        settings=builder.settings,
        rng=random.Random(0),
        builder=builder,
    )
    return builder.select_rule(ctx).name


def elements_of(structure: Structure, indices) -> list:
    return sorted(structure.atoms[i].element for i in indices)


def assert_valences_exact(structure: Structure) -> None:
    structure.validate()
    for index in structure.heavy_atom_indices():
        assert structure.bond_order_sum(index) == structure.expected_valence(index), (
            index,
            structure.atoms[index],
        )


@pytest.mark.parametrize(
    "formula, expected",
    [
        ("H2O", "literal"),
        ("C6H5", "literal"),
        ("C6H5CH3", "phenyl-prefix"),
        ("SO3H", "sulfonic-acid"),
        ("NH2CH3", "amino"),
        ("O2", "small-molecule"),
        ("CH3OCH3", "ether"),
        ("CH3COOH", "acid"),
        ("CH3COOCH3", "ester"),
        ("CH3CH2OH", "alcohol"),
        ("C6H12O6", "sugar"),
        ("C3H8", "carbon-chain"),
        ("CH2O", "carbon-chain"),
        ("H2O2", "peroxide"),
        ("PH3", "generic"),
    ],
)
def test_rule_priority(formula: str, expected: str) -> None:
    assert rule_name(formula) == expected


def test_literal_whitelist_is_data() -> None:
    assert {"H2O", "NH3", "CO2", "SO3", "H3PO4", "CH3COONH4", "CH3OPO3H2", "C6H5NH2", "C6H5", "NH2"} <= set(
        LITERAL_TEMPLATES
    )
    assert DEFAULT_RULES[-1].name == "generic"


def test_custom_rule_table() -> None:
    only = BuildRule("empty", lambda ctx: True, lambda ctx: Structure())
    assert len(StructureBuilder(rules=[only]).build("CH4")) == 0


@pytest.mark.parametrize("formula", VALENCE_FORMULAS)
def test_every_heavy_atom_meets_its_valence(formula: str, fast_settings) -> None:
    assert_valences_exact(build(formula, settings=fast_settings))


def test_water(fast_settings) -> None:
    structure = build("H2O", settings=fast_settings)
    assert elements_of(structure, range(len(structure))) == ["H", "H", "O"]
    assert [bond.order for bond in structure.bonds] == [1, 1]
    origin = structure.atoms[0].position
    angle = angle_between(
        vector_sub(structure.atoms[1].position, origin),
        vector_sub(structure.atoms[2].position, origin),
    )
    assert angle == pytest.approx(104.5, abs=0.5)


def test_acetic_acid_has_one_carboxyl_carbon(fast_settings) -> None:
    structure = build("CH3COOH", settings=fast_settings)
    carboxyl = []
    for index, atom in enumerate(structure.atoms):
        if atom.element != "C":
            continue
        orders = {
            structure.bonds[k].order
            for k, bond in enumerate(structure.bonds)
            if bond.involves(index) and structure.atoms[bond.other(index)].element == "O"
        }
        if orders == {1, 2}:
            carboxyl.append(index)
    assert len(carboxyl) == 1
    carbon = carboxyl[0]
    assert elements_of(structure, structure.neighbors(carbon)) == ["C", "O", "O"]
    hydroxyl = [
        n
        for n in structure.neighbors(carbon)
        if structure.atoms[n].element == "O" and structure.bond_between(carbon, n).order == 1
    ][0]
    assert elements_of(structure, structure.neighbors(hydroxyl)) == ["C", "H"]


def test_aniline_ring_and_amino_group(fast_settings) -> None:
    structure = build("C6H5NH2", settings=fast_settings)
    carbons = [i for i, atom in enumerate(structure.atoms) if atom.element == "C"]
    assert len(carbons) == 6

    ring_bonds = [
        bond for bond in structure.bonds if bond.a in carbons and bond.b in carbons
    ]
    assert len(ring_bonds) == 6
    assert sorted(bond.order for bond in ring_bonds) == [1, 1, 1, 2, 2, 2]
    for carbon in carbons:
        touching = [bond for bond in ring_bonds if bond.involves(carbon)]
        assert len(touching) == 2
        assert sorted(bond.order for bond in touching) == [1, 2]

    # walk the ring to confirm a single closed cycle
    seen = [carbons[0]]
    previous, current = None, carbons[0]
    while True:
        following = [n for n in structure.neighbors(current) if n in carbons and n != previous][0]
        if following == carbons[0]:
            break
        seen.append(following)
        previous, current = current, following
    assert sorted(seen) == carbons

    nitrogen = [i for i, atom in enumerate(structure.atoms) if atom.element == "N"]
    assert len(nitrogen) == 1
    assert elements_of(structure, structure.neighbors(nitrogen[0])) == ["C", "H", "H"]
    substituted = [n for n in structure.neighbors(nitrogen[0]) if structure.atoms[n].element == "C"][0]
    for carbon in carbons:
        hydrogens = [n for n in structure.neighbors(carbon) if structure.atoms[n].is_hydrogen]
        assert len(hydrogens) == (0 if carbon == substituted else 1)


def test_dimethyl_ether(fast_settings) -> None:
    structure = build("CH3OCH3", settings=fast_settings)
    oxygens = [i for i, atom in enumerate(structure.atoms) if atom.element == "O"]
    assert len(oxygens) == 1
    neighbors = structure.neighbors(oxygens[0])
    assert elements_of(structure, neighbors) == ["C", "C"]
    for carbon in neighbors:
        assert structure.bond_between(oxygens[0], carbon).order == 1
        assert elements_of(structure, structure.neighbors(carbon)) == ["H", "H", "H", "O"]
        origin = structure.atoms[carbon].position
        hydrogens = [
            vector_sub(structure.atoms[n].position, origin)
            for n in structure.neighbors(carbon)
            if structure.atoms[n].is_hydrogen
        ]
        for a, b in itertools.combinations(hydrogens, 2):
            assert angle_between(a, b) == pytest.approx(109.5, abs=3.0)


def test_unsaturation_lands_on_last_backbone_bond(fast_settings) -> None:
    assert build("C2H4", settings=fast_settings).bond_between(0, 1).order == 2
    assert build("C2H2", settings=fast_settings).bond_between(0, 1).order == 3
    propene = build("C3H6", settings=fast_settings)
    assert propene.bond_between(0, 1).order == 1
    assert propene.bond_between(1, 2).order == 2


def test_substituted_benzene_keeps_substituent_formula(fast_settings) -> None:
    styrene = build("C6H5C2H3", settings=fast_settings)
    counts = styrene.element_counts()
    assert counts == {"C": 8, "H": 8}


def test_anchored_build_leaves_one_open_slot(fast_settings) -> None:
    methyl = build("CH3", settings=fast_settings, anchored=True)
    assert methyl.atoms[0].target_valence == 3
    assert methyl.element_counts() == {"C": 1, "H": 3}


def test_seeded_builds_are_reproducible(fast_settings) -> None:
    first = build("C2H5Cl", settings=fast_settings)
    second = build("C2H5Cl", settings=fast_settings)
    assert [atom.position for atom in first.atoms] == [atom.position for atom in second.atoms]

    third = build("C3H7Cl", settings=fast_settings, rng=random.Random(5))
    fourth = build("C3H7Cl", settings=fast_settings, rng=random.Random(5))
    assert third.to_dict() == fourth.to_dict()


def test_permissive_and_strict_builds() -> None:
    assert len(build("H2O?")) == 3
    with pytest.raises(MalformedFormulaError):
        build("H2O?", strict=True)


def bridge_angle(structure: Structure) -> float:
    bridge = [i for i, atom in enumerate(structure.atoms) if atom.functional in ("ether", "ester")][0]
    origin = structure.atoms[bridge].position
    first, second = [vector_sub(structure.atoms[n].position, origin) for n in structure.neighbors(bridge)]
    return angle_between(first, second)


@pytest.mark.parametrize(
    "formula",
    ["CH3OCH3", "C2H5OC2H5", "CH3COOCH3", "CH3COOC2H5", "C6H5NH2"],
)
def test_relaxed_builds_are_at_rest(formula: str) -> None:
    structure = build(formula, settings=GeometrySettings(seed=11))
    relaxer = GeometryRelaxer()
    previous = relaxer.relax(structure, iterations=1)
    assert previous < 1e-3
    for _ in range(5):
        step = relaxer.relax(structure, iterations=1)
        assert step <= previous + 1e-9
        previous = step


@pytest.mark.parametrize("formula", ["CH3OCH3", "C2H5OC2H5", "CH3COOCH3", "CH3COOC2H5"])
def test_bridging_oxygen_keeps_its_angle(formula: str) -> None:
    structure = build(formula, settings=GeometrySettings(seed=11))
    assert bridge_angle(structure) == pytest.approx(104.5, abs=3.0)


def test_ester_alkoxy_carbon_is_cis_to_carbonyl(fast_settings) -> None:
    structure = build("CH3COOCH3", settings=fast_settings)
    oxo = [i for i, atom in enumerate(structure.atoms) if atom.functional == "carbonyl"][0]
    bridge = [i for i, atom in enumerate(structure.atoms) if atom.functional == "ester"][0]
    acyl = [i for i, atom in enumerate(structure.atoms) if atom.functional == "acyl"][0]
    alkoxy = [n for n in structure.neighbors(bridge) if n != acyl][0]
    positions = [structure.atoms[i].position for i in (oxo, acyl, bridge, alkoxy)]
    # both ends on the same side of the acyl-bridge bond
    axis = vector_sub(positions[2], positions[1])
    first = vector_cross(axis, vector_sub(positions[0], positions[1]))
    second = vector_cross(axis, vector_sub(positions[3], positions[2]))
    assert vector_dot(first, second) > 0.0
