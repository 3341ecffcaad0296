"""Style flattening for the styles part.

Before a ``w:basedOn`` reference is removed, the style receives the merged
paragraph, run and table properties of its whole ancestor chain, so the
flattened style renders the same as the inherited one. ``w:next`` links are
dropped as well.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from typing import TYPE_CHECKING

from lxml import etree

from .counters import STYLES_FLATTENED, STYLES_SIMPLIFIED, FixCounters
from .ooxml import PPR_ORDER, RPR_ORDER, STYLE_ORDER, PartKind, insert_ordered, is_element, w

if TYPE_CHECKING:
    from .context import PartContext


INHERITED_BLOCKS: dict[str, Sequence[str]] = {
    w("pPr"): PPR_ORDER,
    w("rPr"): RPR_ORDER,
    w("tblPr"): (),
    w("trPr"): (),
    w("tcPr"): (),
}
MERGED_BY_ATTRIBUTE = frozenset({w("spacing"), w("ind"), w("rFonts"), w("lang")})
NOT_INHERITED = frozenset({w("pPrChange"), w("rPrChange"), w("tblPrChange"), w("sectPr")})

Resolved = dict[str, etree._Element]


def flatten_styles(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    if context.kind is not PartKind.STYLES:
        return
    styles = {
        style.get(w("styleId")): style
        for style in root.findall(w("style"))
        if style.get(w("styleId"))
    }
    cache: dict[str, Resolved] = {}
    # resolve everything first; flattening one style must not change what its children see
    resolved = {
        style_id: _resolve(style_id, styles, cache, ())
        for style_id, style in styles.items()
        if style.find(w("basedOn")) is not None
    }
    for style_id, style in styles.items():
        based_on = style.find(w("basedOn"))
        if based_on is not None:
            for tag, block in resolved[style_id].items():
                existing = style.find(tag)
                if existing is not None:
                    style.remove(existing)
                insert_ordered(style, block, STYLE_ORDER)
            style.remove(based_on)
            counters.add(STYLES_FLATTENED)
        next_style = style.find(w("next"))
        if next_style is not None:
            style.remove(next_style)
            counters.add(STYLES_SIMPLIFIED)


def _resolve(
    style_id: str,
    styles: dict[str, etree._Element],
    cache: dict[str, Resolved],
    chain: tuple[str, ...],
) -> Resolved:
    if style_id in cache:
        return cache[style_id]
    style = styles[style_id]
    inherited: Resolved = {}
    based_on = style.find(w("basedOn"))
    parent_id = based_on.get(w("val")) if based_on is not None else None
    if parent_id and parent_id in styles and parent_id not in chain and parent_id != style_id:
        inherited = _resolve(parent_id, styles, cache, chain + (style_id,))
    merged: Resolved = {}
    for tag, order in INHERITED_BLOCKS.items():
        block = _merge(inherited.get(tag), style.find(tag), order)
        if block is not None:
            merged[tag] = block
    cache[style_id] = merged
    return merged


def _merge(
    base: etree._Element | None,
    override: etree._Element | None,
    order: Sequence[str],
) -> etree._Element | None:
    if base is None:
        return copy.deepcopy(override) if override is not None else None
    merged = copy.deepcopy(base)
    for child in list(merged):
        if is_element(child) and child.tag in NOT_INHERITED:
            merged.remove(child)
    if override is None:
        return merged
    for key, value in override.attrib.items():
        merged.set(key, value)
    for child in override:
        if not is_element(child):
            continue
        existing = merged.find(child.tag)
        if existing is not None and child.tag in MERGED_BY_ATTRIBUTE:
            for key, value in child.attrib.items():
                existing.set(key, value)
            continue
        if existing is not None:
            merged.remove(existing)
        insert_ordered(merged, copy.deepcopy(child), order)
    return merged


__all__ = ["flatten_styles"]
