from __future__ import annotations

from typing import TYPE_CHECKING

from lxml import etree

from .counters import EFFECTS_REMOVED, FixCounters
from .ooxml import remove_element, w, w14

if TYPE_CHECKING:
    from .context import PartContext


EFFECT_ELEMENTS: tuple[str, ...] = (
    w("shadow"),
    w("outline"),
    w("emboss"),
    w("imprint"),
    w("effect"),
    w14("glow"),
    w14("shadow"),
    w14("reflection"),
    w14("textOutline"),
    w14("textFill"),
    w14("props3d"),
    w14("scene3d"),
    w14("ligatures"),
    w14("numForm"),
    w14("numSpacing"),
    w14("stylisticSets"),
    w14("cntxtAlts"),
)


def strip_effects(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    for tag in EFFECT_ELEMENTS:
        for element in list(root.iter(tag)):
            remove_element(element)
            counters.add(EFFECTS_REMOVED)


__all__ = ["EFFECT_ELEMENTS", "strip_effects"]
