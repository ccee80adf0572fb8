"""
Atom/bond containers produced by the builder and consumed by the renderer.

A Structure exclusively owns its atoms and bonds. Bond indices are positions
in the owning structure's atom list, so merging another structure copies and
renumbers its atoms and bonds rather than sharing them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .elements import table_valence
from .errors import StructureError
from .geometry import Matrix, Vector, matrix_apply, mean_vector, vector_add, vector_zero

VALID_BOND_ORDERS = (1, 2, 3)


@dataclass
class Atom:
    element: str
    position: Vector = field(default_factory=vector_zero)
    target_valence: Optional[int] = None
    functional: Optional[str] = None

    @property
    def is_hydrogen(self) -> bool:
        return self.element == "H"

    def copy(self) -> "Atom":
        return Atom(self.element, self.position, self.target_valence, self.functional)


@dataclass
class Bond:
    a: int
    b: int
    order: int = 1

    def __post_init__(self) -> None:
        if self.order not in VALID_BOND_ORDERS:
            raise ValueError(f"Bond order must be one of {VALID_BOND_ORDERS}, got {self.order!r}.")

    def other(self, index: int) -> int:
        return self.b if index == self.a else self.a

    def involves(self, index: int) -> bool:
        return self.a == index or self.b == index


class Structure:
    """Ordered atoms plus ordered bonds between them."""

    def __init__(self) -> None:
        self.atoms: List[Atom] = []
        self.bonds: List[Bond] = []

    def __len__(self) -> int:
        return len(self.atoms)

    def __repr__(self) -> str:
        return f"Structure(atoms={len(self.atoms)}, bonds={len(self.bonds)})"

    def add_atom(
        self,
        element: str,
        position: Vector = (0.0, 0.0, 0.0),
        *,
        target_valence: Optional[int] = None,
        functional: Optional[str] = None,
    ) -> int:
        self.atoms.append(
            Atom(
                element=element,
                position=(float(position[0]), float(position[1]), float(position[2])),
                target_valence=target_valence,
                functional=functional,
            )
        )
        return len(self.atoms) - 1

    def add_bond(self, a: int, b: int, order: int = 1) -> Bond:
        count = len(self.atoms)
        if not (0 <= a < count and 0 <= b < count):
            raise IndexError(f"Bond ({a}, {b}) references atoms outside 0..{count - 1}.")
        if a == b:
            raise ValueError(f"Atom {a} cannot bond to itself.")
        bond = Bond(a, b, order)
        self.bonds.append(bond)
        return bond

    def bond_between(self, a: int, b: int) -> Optional[Bond]:
        for bond in self.bonds:
            if (bond.a == a and bond.b == b) or (bond.a == b and bond.b == a):
                return bond
        return None

    def neighbors(self, index: int) -> List[int]:
        return [bond.other(index) for bond in self.bonds if bond.involves(index)]

    def bond_order_sum(self, index: int) -> int:
        return sum(bond.order for bond in self.bonds if bond.involves(index))

    def expected_valence(self, index: int) -> int:
        atom = self.atoms[index]
        if atom.target_valence is not None:
            return atom.target_valence
        return table_valence(atom.element)

    def remaining_valence(self, index: int) -> int:
        return self.expected_valence(index) - self.bond_order_sum(index)

    def heavy_atom_indices(self) -> List[int]:
        return [idx for idx, atom in enumerate(self.atoms) if not atom.is_hydrogen]

    def element_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for atom in self.atoms:
            counts[atom.element] = counts.get(atom.element, 0) + 1
        return counts

    def remove_atom(self, index: int) -> Atom:
        """Remove an atom and its bonds, shifting higher indices down by one."""
        if not 0 <= index < len(self.atoms):
            raise IndexError(f"No atom at index {index}.")
        removed = self.atoms.pop(index)
        kept: List[Bond] = []
        for bond in self.bonds:
            if bond.involves(index):
                continue
            a = bond.a - 1 if bond.a > index else bond.a
            b = bond.b - 1 if bond.b > index else bond.b
            kept.append(Bond(a, b, bond.order))
        self.bonds = kept
        return removed

    def merge(self, other: "Structure") -> int:
        """Copy other's atoms and bonds into this structure; return the index offset."""
        offset = len(self.atoms)
        for atom in other.atoms:
            self.atoms.append(atom.copy())
        for bond in other.bonds:
            self.bonds.append(Bond(bond.a + offset, bond.b + offset, bond.order))
        return offset

    def copy(self) -> "Structure":
        duplicate = Structure()
        duplicate.merge(self)
        return duplicate

    def translate(self, delta: Vector) -> None:
        for atom in self.atoms:
            atom.position = vector_add(atom.position, delta)

    def transform(self, matrix: Matrix) -> None:
        """Apply a rotation matrix about the origin to every atom."""
        for atom in self.atoms:
            atom.position = matrix_apply(matrix, atom.position)

    def centroid(self, heavy_only: bool = False) -> Vector:
        atoms = [atom for atom in self.atoms if not (heavy_only and atom.is_hydrogen)]
        return mean_vector([atom.position for atom in atoms])

    def validate(self) -> None:
        count = len(self.atoms)
        for position, bond in enumerate(self.bonds):
            if not (0 <= bond.a < count and 0 <= bond.b < count):
                raise StructureError(f"Bond #{position} ({bond.a}, {bond.b}) has a dangling index.")
            if bond.a == bond.b:
                raise StructureError(f"Bond #{position} joins atom {bond.a} to itself.")
            if bond.order not in VALID_BOND_ORDERS:
                raise StructureError(f"Bond #{position} has invalid order {bond.order!r}.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "atoms": [
                {"element": atom.element, "position": [atom.position[0], atom.position[1], atom.position[2]]}
                for atom in self.atoms
            ],
            "bonds": [{"a": bond.a, "b": bond.b, "order": bond.order} for bond in self.bonds],
        }
