from __future__ import annotations

from typing import TYPE_CHECKING

from lxml import etree

from .counters import (
    FONT_STYLES_FIXED,
    IMAGES_NORMALIZED,
    NUMBERING_SIMPLIFIED,
    SETTINGS_NORMALIZED,
    FixCounters,
)
from .ooxml import SETTINGS_ORDER, insert_ordered, w, wp

if TYPE_CHECKING:
    from .context import PartContext


INLINE_DISTANCES = ("distT", "distB", "distL", "distR")
ANCHOR_DEFAULTS = {"layoutInCell": "1", "behindDoc": "0"}

TOGGLE_PROPERTIES = ("b", "bCs", "i", "iCs", "caps", "smallCaps", "strike", "dstrike", "vanish")
TOGGLE_CANONICAL = {"true": "1", "on": "1", "false": "0", "off": "0"}

SUPPORTED_NUMBER_FORMATS = frozenset(
    {
        "decimal",
        "decimalZero",
        "upperRoman",
        "lowerRoman",
        "upperLetter",
        "lowerLetter",
        "bullet",
        "ordinal",
        "cardinalText",
        "ordinalText",
        "none",
    }
)


def normalize_images(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for inline in root.iter(wp("inline")):
        removed = [attr for attr in INLINE_DISTANCES if inline.attrib.pop(attr, None) is not None]
        if removed:
            counters.add(IMAGES_NORMALIZED)
    for anchor in root.iter(wp("anchor")):
        changed = False
        for attr, value in ANCHOR_DEFAULTS.items():
            if anchor.get(attr) != value:
                anchor.set(attr, value)
                changed = True
        if changed:
            counters.add(IMAGES_NORMALIZED)


def canonicalize_toggles(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for local in TOGGLE_PROPERTIES:
        for toggle in root.iter(w(local)):
            value = toggle.get(w("val"))
            canonical = TOGGLE_CANONICAL.get((value or "").lower())
            if canonical is not None and canonical != value:
                toggle.set(w("val"), canonical)
                counters.add(FONT_STYLES_FIXED)


def simplify_numbering(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for number_format in root.iter(w("numFmt")):
        value = number_format.get(w("val"))
        if value is not None and value not in SUPPORTED_NUMBER_FORMATS:
            number_format.set(w("val"), "decimal")
            # a custom format string only means something for the format it was written for
            number_format.attrib.pop(w("format"), None)
            counters.add(NUMBERING_SIMPLIFIED)


def normalize_settings(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    view = root.find(w("view"))
    if view is None:
        view = etree.Element(w("view"))
        view.set(w("val"), "print")
        insert_ordered(root, view, SETTINGS_ORDER)
        counters.add(SETTINGS_NORMALIZED)
    elif view.get(w("val")) != "print":
        view.set(w("val"), "print")
        counters.add(SETTINGS_NORMALIZED)


__all__ = [
    "SUPPORTED_NUMBER_FORMATS",
    "canonicalize_toggles",
    "normalize_images",
    "normalize_settings",
    "simplify_numbering",
]
