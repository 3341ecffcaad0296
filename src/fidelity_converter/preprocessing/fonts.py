"""Font normalization phase.

Theme font references are replaced by the typefaces the package theme
declares, then every font attribute is passed through the substitution
table. No target in the table is itself a source, so a second pass finds
nothing to replace and sizes are scaled at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lxml import etree

from .counters import FONT_SIZES_ADJUSTED, FONTS_NORMALIZED, THEME_FONTS_RESOLVED, FixCounters
from .ooxml import round_half_up, w

if TYPE_CHECKING:
    from .context import PartContext


@dataclass(frozen=True, slots=True)
class FontSubstitution:
    target: str
    size_multiplier: float = 1.0


FONT_SUBSTITUTIONS: dict[str, FontSubstitution] = {
    "Aptos": FontSubstitution("Calibri", 0.98),
    "Aptos Display": FontSubstitution("Calibri", 1.02),
    "Aptos Narrow": FontSubstitution("Liberation Sans Narrow", 0.98),
    "Aptos Serif": FontSubstitution("Georgia"),
    "Aptos Mono": FontSubstitution("Liberation Mono"),
    "Grandview": FontSubstitution("Verdana", 0.98),
    "Seaford": FontSubstitution("Georgia"),
    "Skeena": FontSubstitution("Verdana"),
    "Tenorite": FontSubstitution("Tahoma"),
    "Calibri Light": FontSubstitution("Calibri"),
    "Segoe UI Light": FontSubstitution("Segoe UI"),
    "Helvetica Neue": FontSubstitution("Liberation Sans"),
    "Helvetica": FontSubstitution("Liberation Sans"),
    "Arial": FontSubstitution("Liberation Sans"),
    "Arial Bold": FontSubstitution("Liberation Sans"),
    "Arial Narrow": FontSubstitution("Liberation Sans Narrow"),
    "Calibri Bold": FontSubstitution("Calibri"),
    "Times New Roman": FontSubstitution("Liberation Serif"),
    "Courier New": FontSubstitution("Liberation Mono"),
}

FONT_ATTRIBUTES = ("ascii", "hAnsi", "cs", "eastAsia")
THEME_FONT_ATTRIBUTES = {
    "asciiTheme": "ascii",
    "hAnsiTheme": "hAnsi",
    "cstheme": "cs",
    "eastAsiaTheme": "eastAsia",
}
SIZE_ELEMENTS = ("sz", "szCs")


def normalize_fonts(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    _resolve_theme_fonts(root, counters, context)
    multipliers = _substitute(root, counters, context)
    for multiplier in multipliers.values():
        _scale_sizes(root, counters, multiplier)


def _resolve_theme_fonts(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for rfonts in root.iter(w("rFonts")):
        for theme_attr, explicit_attr in THEME_FONT_ATTRIBUTES.items():
            reference = rfonts.get(w(theme_attr))
            if reference is None:
                continue
            del rfonts.attrib[w(theme_attr)]
            rfonts.set(w(explicit_attr), context.theme_fonts.resolve(reference))
            counters.add(THEME_FONTS_RESOLVED)


def _substitute(root: etree._Element, counters: FixCounters, context: "PartContext") -> dict[str, float]:
    scaled: dict[str, float] = {}
    for rfonts in root.iter(w("rFonts")):
        for attr in FONT_ATTRIBUTES:
            current = rfonts.get(w(attr))
            if current is None:
                continue
            substitution = context.fonts.get(current)
            if substitution is None or substitution.target == current:
                continue
            rfonts.set(w(attr), substitution.target)
            counters.add(FONTS_NORMALIZED)
            if substitution.size_multiplier != 1.0:
                scaled[current] = substitution.size_multiplier
    return scaled


def _scale_sizes(root: etree._Element, counters: FixCounters, multiplier: float) -> None:
    for local in SIZE_ELEMENTS:
        for size in root.iter(w(local)):
            raw = size.get(w("val"))
            if raw is None or not raw.strip().isdigit():
                continue
            value = int(raw)
            scaled = max(round_half_up(value * multiplier), 1)
            if scaled != value:
                size.set(w("val"), str(scaled))
                counters.add(FONT_SIZES_ADJUSTED)


__all__ = ["FONT_SUBSTITUTIONS", "FontSubstitution", "normalize_fonts"]
