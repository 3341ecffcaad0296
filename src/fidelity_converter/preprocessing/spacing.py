"""Spacing and pagination normalization.

Automatic line spacing becomes ``atLeast`` with the same numeric value so
that no line is clipped. Keep-with-next and widow control are dropped, page
break toggles are written as ``1``/``0`` and the rarer section break kinds
collapse to ``nextPage``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from lxml import etree

from .counters import (
    INDENTS_ROUNDED,
    PAGINATION_FIXED,
    SECTIONS_NORMALIZED,
    SPACING_NORMALIZED,
    FixCounters,
)
from .ooxml import remove_element, round_half_up, w

if TYPE_CHECKING:
    from .context import PartContext


DEFAULT_LINE = 240
MIN_LINE = 100
MAX_LINE = 600
FIXED_LINE_RULE = "atLeast"

INDENT_ATTRIBUTES = (
    "left", "right", "start", "end", "firstLine", "hanging",
    "leftChars", "rightChars", "startChars", "endChars", "firstLineChars", "hangingChars",
)
PAGINATION_FLAGS = ("keepNext", "widowControl")
TRUE_VALUES = {"true", "on", "1"}
FALSE_VALUES = {"false", "off", "0"}
PORTABLE_SECTION_TYPES = {"nextColumn": "nextPage", "evenPage": "nextPage", "oddPage": "nextPage"}


def normalize_spacing(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    paragraph_props = w("pPr")
    for spacing in root.iter(w("spacing")):
        parent = spacing.getparent()
        if parent is None or parent.tag != paragraph_props:
            continue
        if _normalize_paragraph_spacing(spacing):
            counters.add(SPACING_NORMALIZED)
    for indent in root.iter(w("ind")):
        if _round_indents(indent):
            counters.add(INDENTS_ROUNDED)


def normalize_pagination(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for local in PAGINATION_FLAGS:
        for flag in list(root.iter(w(local))):
            remove_element(flag)
            counters.add(PAGINATION_FIXED)
    for marker in root.iter(w("pageBreakBefore")):
        if _canonical_toggle(marker):
            counters.add(PAGINATION_FIXED)
    for section_type in root.iter(w("type")):
        parent = section_type.getparent()
        if parent is None or parent.tag != w("sectPr"):
            continue
        current = section_type.get(w("val"))
        replacement = PORTABLE_SECTION_TYPES.get(current or "")
        if replacement:
            section_type.set(w("val"), replacement)
            counters.add(SECTIONS_NORMALIZED)


def _normalize_paragraph_spacing(spacing: etree._Element) -> bool:
    changed = False
    rule = spacing.get(w("lineRule"))
    raw_line = spacing.get(w("line"))
    line = int(raw_line) if raw_line is not None and raw_line.strip().lstrip("-").isdigit() else None
    if rule in (None, "auto"):
        if line is None or not MIN_LINE <= line <= MAX_LINE:
            line = DEFAULT_LINE
        spacing.set(w("line"), str(line))
        spacing.set(w("lineRule"), FIXED_LINE_RULE)
        changed = True
    elif line is None:
        spacing.set(w("line"), str(DEFAULT_LINE))
        changed = True
    for attr in ("before", "after"):
        if spacing.get(w(attr)) is None:
            spacing.set(w(attr), "0")
            changed = True
    return changed


def _round_indents(indent: etree._Element) -> bool:
    changed = False
    for attr in INDENT_ATTRIBUTES:
        raw = indent.get(w(attr))
        if raw is None or raw.lstrip("-").isdigit():
            continue
        try:
            rounded = round_half_up(float(raw))
        except ValueError:
            continue
        indent.set(w(attr), str(rounded))
        changed = True
    return changed


def _canonical_toggle(element: etree._Element) -> bool:
    value = element.get(w("val"))
    if value is None:
        canonical = "1"
    elif value.lower() in TRUE_VALUES:
        canonical = "1"
    elif value.lower() in FALSE_VALUES:
        canonical = "0"
    else:
        return False
    if value == canonical:
        return False
    element.set(w("val"), canonical)
    return True


__all__ = ["normalize_pagination", "normalize_spacing"]
