"""
Formula -> 3D structure.

``StructureBuilder`` walks a priority-ordered table of ``BuildRule`` entries
and hands the first match a ``BuildContext``. Each rule constructs the raw
heavy-atom skeleton; the builder then fills hydrogens and relaxes the result.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from . import templates
from .assembler import align, attach, join, reserve_anchor
from .geometry import bend, ideal_bond_length, vector_add, vector_normalize, vector_scale, vector_sub
from .parser import PHENYL_TEXT, ParsedFormula, is_peroxide, is_sugar, is_water, parse
from .relax import GeometryRelaxer
from .settings import DEFAULT_SETTINGS, GeometrySettings
from .structure import Structure
from .valence import complete

logger = logging.getLogger(__name__)

ETHER_ANGLE = 104.5


@dataclass
class BuildContext:
    formula: str
    parsed: ParsedFormula
    settings: GeometrySettings
    rng: random.Random
    builder: "StructureBuilder"
    strict: bool = False
    anchored: bool = False


def _never(ctx: BuildContext) -> bool:
    return False


def _always(ctx: BuildContext) -> bool:
    return True


@dataclass(frozen=True)
class BuildRule:
    """
    One dispatch entry.

    ``idealized`` rules produce hand-placed geometry that skips relaxation
    unless ``settings.relax_templates`` is set. ``open_anchor`` says whether
    the constructed atom 0 already holds its attachment slot.
    """

    name: str
    predicate: Callable[[BuildContext], bool]
    construct: Callable[[BuildContext], Structure]
    idealized: bool = False
    open_anchor: Callable[[BuildContext], bool] = _never


@dataclass(frozen=True)
class LiteralTemplate:
    construct: Callable[[BuildContext], Structure]
    open_anchor: bool = False


LITERAL_TEMPLATES: Dict[str, LiteralTemplate] = {
    "H2O": LiteralTemplate(lambda ctx: templates.water()),
    "NH3": LiteralTemplate(lambda ctx: templates.ammonia()),
    "CO2": LiteralTemplate(lambda ctx: templates.carbon_dioxide()),
    "SO3": LiteralTemplate(lambda ctx: templates.sulfur_trioxide()),
    "H3PO4": LiteralTemplate(lambda ctx: templates.phosphoric_acid()),
    "CH3COONH4": LiteralTemplate(lambda ctx: templates.ammonium_acetate()),
    "CH3OPO3H2": LiteralTemplate(lambda ctx: templates.methyl_phosphate()),
    "C6H5NH2": LiteralTemplate(lambda ctx: templates.aniline(ctx.settings)),
    "C6H5": LiteralTemplate(lambda ctx: templates.phenyl(), open_anchor=True),
    "NH2": LiteralTemplate(lambda ctx: templates.amino_group(), open_anchor=True),
}

SMALL_MOLECULES: Dict[str, Tuple[str, int]] = {
    "O2": ("O", 2),
    "H2": ("H", 1),
    "N2": ("N", 3),
}


# --- fragment helpers --------------------------------------------------------


def _has_heavy_atoms(text: str) -> bool:
    return any(symbol != "H" and count > 0 for symbol, count in parse(text).counts.items())


def _arm(text: str, reserve: str, ctx: BuildContext) -> Tuple[Structure, Optional[int]]:
    """
    Build one side of an ether or ester as a completed fragment.

    ``reserve`` is ``"first"`` or ``"last"``: which backbone end keeps the open
    slot. Returns the fragment and the index of that atom.
    """
    counts = parse(text, strict=ctx.strict).counts
    carbons = counts.get("C", 0)
    if carbons:
        fragment = templates.carbon_chain(counts, ctx.rng, reserve=reserve)
        anchor: Optional[int] = 0 if reserve == "first" else carbons - 1
    else:
        fragment = templates.generic(counts, ctx.rng)
        anchor = reserve_anchor(fragment, 0)
    complete(fragment)
    return fragment, anchor


def _build_ether(ctx: BuildContext) -> Structure:
    parts = ctx.formula.split("O")
    if len(parts) != 2 or not _has_heavy_atoms(parts[0]) or not _has_heavy_atoms(parts[1]):
        logger.debug("Cannot split %r at a single oxygen; using the generic layout", ctx.formula)
        return templates.generic(ctx.parsed.counts, ctx.rng)

    left, left_anchor = _arm(parts[0], "last", ctx)
    right, right_anchor = _arm(parts[1], "first", ctx)
    half = math.radians(ETHER_ANGLE / 2.0)

    structure = Structure()
    # each arm points its open slot at the oxygen, its body anti to the other arm
    left_length = ideal_bond_length("O", left.atoms[left_anchor].element, 1)
    align(
        left,
        "left",
        (-left_length * math.sin(half), -left_length * math.cos(half), 0.0),
        anchor=left_anchor,
        direction=(math.sin(half), math.cos(half), 0.0),
        reference=(-1.0, 0.0, 0.0),
    )
    left_offset = structure.merge(left)
    oxygen = structure.add_atom("O", (0.0, 0.0, 0.0), functional="ether")
    join(structure, left_offset + left_anchor, oxygen)

    right_length = ideal_bond_length("O", right.atoms[right_anchor].element, 1)
    align(
        right,
        "right",
        (right_length * math.sin(half), -right_length * math.cos(half), 0.0),
        anchor=right_anchor,
        direction=(-math.sin(half), math.cos(half), 0.0),
        reference=(1.0, 0.0, 0.0),
    )
    right_offset = structure.merge(right)
    join(structure, oxygen, right_offset + right_anchor)
    return structure


def _build_ester(ctx: BuildContext) -> Structure:
    parsed = ctx.parsed
    structure = Structure()
    acyl_text = parsed.acid_part[: -len("CO")]

    acyl_anchor: Optional[int] = None
    if _has_heavy_atoms(acyl_text):
        acyl, anchor = _arm(acyl_text, "last", ctx)
        length = ideal_bond_length(acyl.atoms[anchor].element, "C", 1)
        align(acyl, "left", (-length, 0.0, 0.0), anchor=anchor, reference=(0.0, 1.0, 0.0))
        acyl_anchor = structure.merge(acyl) + anchor

    carbon = structure.add_atom("C", (0.0, 0.0, 0.0), functional="acyl")
    if acyl_anchor is not None:
        join(structure, acyl_anchor, carbon)
    oxo = structure.add_atom(
        "O",
        (0.5 * ideal_bond_length("C", "O", 2), math.sqrt(3.0) / 2.0 * ideal_bond_length("C", "O", 2), 0.0),
        functional="carbonyl",
    )
    structure.add_bond(carbon, oxo, 2)
    co_length = ideal_bond_length("C", "O", 1)
    bridge_position = (0.5 * co_length, -math.sqrt(3.0) / 2.0 * co_length, 0.0)
    bridge = structure.add_atom("O", bridge_position, functional="ester")
    structure.add_bond(carbon, bridge, 1)

    alkoxy_text = parsed.alkoxy_part if _has_heavy_atoms(parsed.alkoxy_part) else "CH3"
    alkoxy, anchor = _arm(alkoxy_text, "first", ctx)
    length = ideal_bond_length("O", alkoxy.atoms[anchor].element, 1)
    # alkoxy carbon sits cis to the carbonyl oxygen (Z ester); its body runs anti to the acyl carbon
    back = vector_normalize(vector_sub(structure.atoms[carbon].position, bridge_position))
    outward = bend(back, ETHER_ANGLE, (1.0, 0.0, 0.0))
    align(
        alkoxy,
        "right",
        vector_add(bridge_position, vector_scale(outward, length)),
        anchor=anchor,
        direction=vector_scale(outward, -1.0),
        reference=vector_scale(back, -1.0),
    )
    join(structure, bridge, structure.merge(alkoxy) + anchor)
    logger.debug("Ester %r split into acyl %r and alkoxy %r", ctx.formula, acyl_text, alkoxy_text)
    return structure


def _build_phenyl_substituted(ctx: BuildContext) -> Structure:
    remainder = ctx.formula[len(PHENYL_TEXT):]
    substituent = ctx.builder.build(remainder, rng=ctx.rng, anchored=True, strict=ctx.strict)
    return attach(templates.phenyl(), substituent, ctx.settings)


def _build_small_molecule(ctx: BuildContext) -> Structure:
    element, order = SMALL_MOLECULES[ctx.formula]
    return templates.diatomic(element, order)


def _has_phenyl_prefix(ctx: BuildContext) -> bool:
    return ctx.formula.startswith(PHENYL_TEXT) and ctx.formula not in ("C6H5", "C6H5NH2")


DEFAULT_RULES: Tuple[BuildRule, ...] = (
    BuildRule(
        "literal",
        lambda ctx: ctx.formula in LITERAL_TEMPLATES,
        lambda ctx: LITERAL_TEMPLATES[ctx.formula].construct(ctx),
        idealized=True,
        open_anchor=lambda ctx: LITERAL_TEMPLATES[ctx.formula].open_anchor,
    ),
    BuildRule("phenyl-prefix", _has_phenyl_prefix, _build_phenyl_substituted, idealized=True),
    BuildRule(
        "sulfonic-acid",
        lambda ctx: ctx.formula == "SO3H",
        lambda ctx: templates.sulfonic_acid_group(),
        idealized=True,
        open_anchor=_always,
    ),
    BuildRule(
        "aniline",
        lambda ctx: ctx.parsed.phenyl and ctx.parsed.amino,
        lambda ctx: templates.aniline(ctx.settings),
        idealized=True,
    ),
    BuildRule(
        "phenyl",
        lambda ctx: ctx.parsed.phenyl,
        lambda ctx: templates.phenyl(),
        idealized=True,
        open_anchor=_always,
    ),
    BuildRule(
        "amino",
        lambda ctx: ctx.parsed.amino,
        lambda ctx: templates.amino_group(),
        idealized=True,
        open_anchor=_always,
    ),
    BuildRule("small-molecule", lambda ctx: ctx.formula in SMALL_MOLECULES, _build_small_molecule, idealized=True),
    BuildRule("ether", lambda ctx: ctx.parsed.ether, _build_ether),
    BuildRule("water", lambda ctx: is_water(ctx.parsed.counts), lambda ctx: templates.water(), idealized=True),
    BuildRule("acid", lambda ctx: ctx.parsed.acid, lambda ctx: templates.carboxylic_acid(ctx.parsed.counts, ctx.rng)),
    BuildRule("ester", lambda ctx: ctx.parsed.ester, _build_ester),
    BuildRule("alcohol", lambda ctx: ctx.parsed.alcohol, lambda ctx: templates.alcohol(ctx.parsed.counts, ctx.rng)),
    BuildRule(
        "sugar",
        lambda ctx: ctx.parsed.has_carbon and is_sugar(ctx.parsed.counts),
        lambda ctx: templates.sugar(ctx.parsed.counts),
    ),
    BuildRule(
        "carbon-chain",
        lambda ctx: ctx.parsed.has_carbon,
        lambda ctx: templates.carbon_chain(ctx.parsed.counts, ctx.rng, reserve="first" if ctx.anchored else None),
        open_anchor=lambda ctx: ctx.anchored,
    ),
    BuildRule(
        "peroxide",
        lambda ctx: is_peroxide(ctx.parsed.counts),
        lambda ctx: templates.peroxide(),
        idealized=True,
    ),
    BuildRule("generic", _always, lambda ctx: templates.generic(ctx.parsed.counts, ctx.rng)),
)


class StructureBuilder:
    """Dispatches formulas over a rule table and finishes every structure."""

    def __init__(
        self,
        settings: Optional[GeometrySettings] = None,
        rules: Sequence[BuildRule] = DEFAULT_RULES,
    ):
        self.settings = settings or DEFAULT_SETTINGS
        self.rules = tuple(rules)
        self.relaxer = GeometryRelaxer(self.settings)

    def select_rule(self, ctx: BuildContext) -> BuildRule:
        for rule in self.rules:
            if rule.predicate(ctx):
                return rule
        raise LookupError(f"No build rule matches {ctx.formula!r}.")

    def build(
        self,
        formula: str,
        rng: Optional[random.Random] = None,
        anchored: bool = False,
        strict: bool = False,
    ) -> Structure:
        """
        Build a completed, relaxed Structure for ``formula``.

        With ``anchored=True`` atom 0 keeps one open slot for a later ``attach``.
        """
        if rng is None:
            rng = random.Random(self.settings.seed)
        ctx = BuildContext(
            formula=formula,
            parsed=parse(formula, strict=strict),
            settings=self.settings,
            rng=rng,
            builder=self,
            strict=strict,
            anchored=anchored,
        )
        rule = self.select_rule(ctx)
        logger.debug("Formula %r matched rule %s", formula, rule.name)
        structure = rule.construct(ctx)

        if anchored and structure.atoms and not rule.open_anchor(ctx):
            reserve_anchor(structure, 0)
        complete(structure)
        if not rule.idealized or self.settings.relax_templates:
            self.relaxer.relax(structure)
        structure.validate()
        return structure


def build(
    formula: str,
    settings: Optional[GeometrySettings] = None,
    rng: Optional[random.Random] = None,
    anchored: bool = False,
    strict: bool = False,
) -> Structure:
    return StructureBuilder(settings).build(formula, rng=rng, anchored=anchored, strict=strict)
