"""
Command-line entry point: build one formula and write its structure.

    formula3d CH3COOH --format xyz --seed 7
"""

from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import List, Optional

from .builder import StructureBuilder
from .config_loader import load_settings_from_yaml
from .errors import MalformedFormulaError
from .settings import DEFAULT_SETTINGS
from .structure import Structure

logger = logging.getLogger(__name__)

EXIT_MALFORMED = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a 3D structure from a molecular formula.")
    parser.add_argument("formula", help="Molecular formula, e.g. CH3COOH.")
    parser.add_argument(
        "--config",
        type=pathlib.Path,
        default=None,
        help="YAML file with relaxation/builder settings.",
    )
    parser.add_argument("--iterations", type=int, default=None, help="Override relaxation iterations.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for randomized heteroatom placement.")
    parser.add_argument(
        "--format",
        choices=("json", "xyz"),
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--out",
        type=pathlib.Path,
        default=None,
        help="Write output here instead of stdout.",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Reject formulas containing unrecognized characters.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def format_xyz(structure: Structure, comment: str = "") -> str:
    lines = [str(len(structure.atoms)), comment]
    for atom in structure.atoms:
        x, y, z = atom.position
        lines.append(f"{atom.element:<2} {x:12.6f} {y:12.6f} {z:12.6f}")
    return "\n".join(lines) + "\n"


def format_json(structure: Structure, formula: str) -> str:
    payload = {"formula": formula}
    payload.update(structure.to_dict())
    return json.dumps(payload, indent=2) + "\n"


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    settings = DEFAULT_SETTINGS
    if args.config is not None:
        settings = load_settings_from_yaml(args.config).settings
    settings = settings.with_overrides(iterations=args.iterations, seed=args.seed)

    try:
        structure = StructureBuilder(settings).build(args.formula, strict=args.strict)
    except MalformedFormulaError as exc:
        logger.error("%s", exc)
        return EXIT_MALFORMED

    if args.format == "xyz":
        text = format_xyz(structure, args.formula)
    else:
        text = format_json(structure, args.formula)

    if args.out is None:
        sys.stdout.write(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        with args.out.open("w", encoding="utf-8") as handle:
            handle.write(text)
        logger.info("Wrote %d atoms to %s", len(structure.atoms), args.out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
