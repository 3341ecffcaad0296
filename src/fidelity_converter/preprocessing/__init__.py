"""Fidelity preprocessing for word-processing packages."""

from .context import PartContext
from .counters import CATEGORIES, FixCounters
from .engine import FEATURES, PHASES, Phase, PreprocessingEngine, PreprocessingReport
from .fonts import FONT_SUBSTITUTIONS, FontSubstitution
from .colors import THEME_COLORS
from .ooxml import PartKind, ThemeFonts

__all__ = [
    "CATEGORIES",
    "FEATURES",
    "FONT_SUBSTITUTIONS",
    "FixCounters",
    "FontSubstitution",
    "PHASES",
    "PartContext",
    "PartKind",
    "Phase",
    "PreprocessingEngine",
    "PreprocessingReport",
    "THEME_COLORS",
    "ThemeFonts",
]
