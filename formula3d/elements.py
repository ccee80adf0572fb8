"""Element metadata used for bond lengths and valence completion."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ElementDescriptor:
    symbol: str
    color: int
    covalent_radius: float
    valence: int
    electronegativity: float


DEFAULT_ELEMENT = ElementDescriptor(
    symbol="?", color=0x888888, covalent_radius=0.5, valence=0, electronegativity=0.0
)

_ELEMENT_DATA = {
    "H": ElementDescriptor("H", 0xFFFFFF, 0.25, 1, 2.20),
    "O": ElementDescriptor("O", 0xFF0000, 0.48, 2, 3.44),
    "C": ElementDescriptor("C", 0x444444, 0.67, 4, 2.55),
    "N": ElementDescriptor("N", 0x0000FF, 0.56, 3, 3.04),
    "S": ElementDescriptor("S", 0xFFFF00, 0.88, 2, 2.58),
    "P": ElementDescriptor("P", 0xFFAA00, 0.90, 5, 2.19),
    "Cl": ElementDescriptor("Cl", 0x00FF99, 0.79, 1, 3.16),
}

ELEMENTS: Mapping[str, ElementDescriptor] = MappingProxyType(_ELEMENT_DATA)


def get_element(symbol: str) -> ElementDescriptor:
    """Return the descriptor for symbol, or the default one if unknown."""

    return ELEMENTS.get(symbol, DEFAULT_ELEMENT)


def covalent_radius(symbol: str) -> float:
    return get_element(symbol).covalent_radius


def table_valence(symbol: str) -> int:
    return get_element(symbol).valence
