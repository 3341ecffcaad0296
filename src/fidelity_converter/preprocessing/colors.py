from __future__ import annotations

import re
from typing import TYPE_CHECKING

from lxml import etree

from .counters import COLORS_CONVERTED, FixCounters
from .ooxml import is_element, w

if TYPE_CHECKING:
    from .context import PartContext


THEME_COLORS: dict[str, str] = {
    "accent1": "4472C4",
    "accent2": "ED7D31",
    "accent3": "A5A5A5",
    "accent4": "FFC000",
    "accent5": "5B9BD5",
    "accent6": "70AD47",
    "dark1": "000000",
    "dark2": "44546A",
    "light1": "FFFFFF",
    "light2": "E7E6E6",
    "text1": "000000",
    "text2": "44546A",
    "background1": "FFFFFF",
    "background2": "E7E6E6",
    "hyperlink": "0563C1",
    "followedHyperlink": "954F72",
}

AUTO_TEXT = "000000"
AUTO_FILL = "FFFFFF"

_SHORT_HEX = re.compile(r"^[0-9A-Fa-f]{3}$")

_COLOR_MODIFIERS = ("themeColor", "themeShade", "themeTint")
_FILL_MODIFIERS = ("themeFill", "themeFillShade", "themeFillTint")


def normalize_colors(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    color_tag = w("color")
    for element in root.iter():
        if not is_element(element):
            continue
        value_attr = "val" if element.tag == color_tag else "color"
        changed = _convert_theme(element, value_attr, "themeColor", _COLOR_MODIFIERS, context)
        changed |= _convert_theme(element, "fill", "themeFill", _FILL_MODIFIERS, context)
        changed |= _replace_auto(element, value_attr, AUTO_TEXT)
        changed |= _replace_auto(element, "fill", AUTO_FILL)
        changed |= _expand_short_hex(element, value_attr)
        changed |= _expand_short_hex(element, "fill")
        if changed:
            counters.add(COLORS_CONVERTED)


def _convert_theme(
    element: etree._Element,
    value_attr: str,
    token_attr: str,
    modifiers: tuple[str, ...],
    context: "PartContext",
) -> bool:
    token = element.get(w(token_attr))
    if token is None:
        return False
    explicit = context.colors.get(token)
    if explicit is None:
        return False
    element.set(w(value_attr), explicit)
    for modifier in modifiers:
        element.attrib.pop(w(modifier), None)
    return True


def _replace_auto(element: etree._Element, attr: str, explicit: str) -> bool:
    value = element.get(w(attr))
    if value is None or value.lower() != "auto":
        return False
    element.set(w(attr), explicit)
    return True


def _expand_short_hex(element: etree._Element, attr: str) -> bool:
    value = element.get(w(attr))
    if value is None or not _SHORT_HEX.match(value):
        return False
    element.set(w(attr), "".join(ch * 2 for ch in value).upper())
    return True


__all__ = ["AUTO_FILL", "AUTO_TEXT", "THEME_COLORS", "normalize_colors"]
