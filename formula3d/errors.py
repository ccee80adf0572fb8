"""Exception types raised by formula3d."""

from __future__ import annotations

from typing import Optional


class Formula3DError(Exception):
    """Base exception for formula3d errors."""
    pass


class MalformedFormulaError(Formula3DError, ValueError):
    """Raised by strict parsing when the text contains no element token at a position."""

    def __init__(self, formula: str, position: int, message: Optional[str] = None):
        self.formula = formula
        self.position = position
        if message is None:
            message = f"Unrecognized token {formula[position:position + 1]!r} at position {position} in {formula!r}."
        super().__init__(message)


class StructureError(Formula3DError):
    """Raised when a structure violates its bond invariants."""
    pass
