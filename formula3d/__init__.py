"""formula3d: molecular formula -> plausible 3D atom/bond structure."""

from .builder import BuildRule, StructureBuilder, build
from .config_loader import SettingsBundle, load_settings_from_yaml
from .errors import Formula3DError, MalformedFormulaError, StructureError
from .parser import ParsedFormula, parse
from .relax import GeometryRelaxer, relax
from .settings import DEFAULT_SETTINGS, GeometrySettings
from .structure import Atom, Bond, Structure
from .valence import complete

__version__ = "0.1.0"

__all__ = [
    "Atom",
    "Bond",
    "BuildRule",
    "DEFAULT_SETTINGS",
    "Formula3DError",
    "GeometryRelaxer",
    "GeometrySettings",
    "MalformedFormulaError",
    "ParsedFormula",
    "SettingsBundle",
    "Structure",
    "StructureBuilder",
    "StructureError",
    "build",
    "complete",
    "load_settings_from_yaml",
    "parse",
    "relax",
]
