"""
Formula text -> element counts plus functional-group flags.

Parsing is permissive: characters that do not start an element token are
skipped (with a warning) unless ``strict=True`` is requested. Group flags are
read from the element token sequence so that digit boundaries are respected
(``NH22`` is not an amino group, ``C6H50`` is not a phenyl group).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping

from .errors import MalformedFormulaError

logger = logging.getLogger(__name__)

ELEMENT_TOKEN = re.compile(r"([A-Z][a-z]?)(\d*)")

ACID_SUFFIX = "COOH"
ALCOHOL_SUFFIX = "OH"
ESTER_INFIX = "COO"
PHENYL_TEXT = "C6H5"

# consecutive (symbol, count) tokens that name a recognised group
GROUP_SEQUENCES = {
    "phenyl": (("C", 6), ("H", 5)),
    "amino": (("N", 1), ("H", 2)),
}


@dataclass(frozen=True)
class Token:
    symbol: str
    count: int
    start: int
    end: int


@dataclass(frozen=True)
class ParsedFormula:
    counts: Mapping[str, int]
    original: str
    acid: bool = False
    alcohol: bool = False
    ester: bool = False
    ether: bool = False
    phenyl: bool = False
    amino: bool = False
    acid_part: str = ""
    alkoxy_part: str = ""

    def count(self, symbol: str) -> int:
        return self.counts.get(symbol, 0)

    @property
    def has_carbon(self) -> bool:
        return self.count("C") > 0


def tokenize(text: str, strict: bool = False) -> List[Token]:
    """Scan element tokens left to right; see module docstring for skipping rules."""
    tokens: List[Token] = []
    position = 0
    while position < len(text):
        match = ELEMENT_TOKEN.match(text, position)
        if match is None:
            if strict:
                raise MalformedFormulaError(text, position)
            logger.warning("Skipping unrecognized character %r at %d in %r", text[position], position, text)
            position += 1
            continue
        digits = match.group(2)
        tokens.append(
            Token(
                symbol=match.group(1),
                count=int(digits) if digits else 1,
                start=match.start(),
                end=match.end(),
            )
        )
        position = match.end()
    return tokens


def _contains_sequence(tokens: List[Token], sequence) -> bool:
    width = len(sequence)
    for start in range(len(tokens) - width + 1):
        window = tokens[start:start + width]
        if any((token.symbol, token.count) != expected for token, expected in zip(window, sequence)):
            continue
        if all(window[i].end == window[i + 1].start for i in range(width - 1)):
            return True
    return False


def accumulate_counts(tokens: List[Token]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for token in tokens:
        counts[token.symbol] = counts.get(token.symbol, 0) + token.count
    return counts


def parse(formula: str, strict: bool = False) -> ParsedFormula:
    """Parse a formula such as ``"CH3COOH"`` into a ParsedFormula."""
    tokens = tokenize(formula, strict=strict)
    phenyl = _contains_sequence(tokens, GROUP_SEQUENCES["phenyl"])
    amino = _contains_sequence(tokens, GROUP_SEQUENCES["amino"])

    acid = alcohol = ester = False
    acid_part = alkoxy_part = ""
    remaining = formula
    if formula.endswith(ACID_SUFFIX):
        acid = True
        remaining = formula[: -len(ACID_SUFFIX)]
    elif formula.endswith(ALCOHOL_SUFFIX):
        alcohol = True
        remaining = formula[: -len(ALCOHOL_SUFFIX)]
    elif ESTER_INFIX in formula:
        ester = True
        split_at = formula.index(ESTER_INFIX)
        acid_part = formula[: split_at + 2]
        alkoxy_part = formula[split_at + 3:]
        remaining = ""

    # suffixes start with an uppercase letter, so the stripped text is always
    # a token-aligned prefix of the full text
    counts = accumulate_counts([token for token in tokens if token.end <= len(remaining)])
    ether = (
        counts.get("O", 0) == 1
        and not formula.startswith("O")
        and not formula.endswith("O")
        and not (acid or alcohol or ester)
        and counts.get("C", 0) > 0
    )
    return ParsedFormula(
        counts=MappingProxyType(counts),
        original=formula,
        acid=acid,
        alcohol=alcohol,
        ester=ester,
        ether=ether,
        phenyl=phenyl,
        amino=amino,
        acid_part=acid_part,
        alkoxy_part=alkoxy_part,
    )


def is_sugar(counts: Mapping[str, int]) -> bool:
    carbons = counts.get("C", 0)
    return carbons >= 3 and counts.get("H", 0) == 2 * carbons and counts.get("O", 0) == carbons


def is_peroxide(counts: Mapping[str, int]) -> bool:
    return counts.get("C", 0) == 0 and counts.get("O", 0) == 2 and counts.get("H", 0) == 2


def is_water(counts: Mapping[str, int]) -> bool:
    return dict(counts) == {"H": 2, "O": 1}
