from __future__ import annotations

from typing import TYPE_CHECKING

from lxml import etree

from .counters import BORDERS_NORMALIZED, TABLES_OPTIMIZED, FixCounters
from .ooxml import is_element, remove_element, round_half_up, w

if TYPE_CHECKING:
    from .context import PartContext


BORDER_COLOR = "000000"
BORDER_SIZE = "4"
NO_BORDER = {"nil", "none"}
POSITIONING_ELEMENTS = ("tblpPr", "tblOverlap")


def percent_to_dxa(raw: str, content_width: int) -> int | None:
    """Absolute width for a percentage width value.

    Plain numbers are fiftieths of a percent (``5000`` is 100%); values
    written with a trailing ``%`` are read literally.
    """

    text = raw.strip()
    try:
        if text.endswith("%"):
            percent = float(text[:-1])
        else:
            percent = float(text) / 50
    except ValueError:
        return None
    return round_half_up(content_width * percent / 100)


def optimize_tables(root: etree._Element, counters: FixCounters, context: "PartContext") -> None:
    width = context.content_width_dxa
    for tbl_w in root.iter(w("tblW")):
        if _absolutize(tbl_w, width, auto_width=width):
            counters.add(TABLES_OPTIMIZED)
    for tc_w in root.iter(w("tcW")):
        if _absolutize(tc_w, width, auto_width=_auto_cell_width(tc_w, width)):
            counters.add(TABLES_OPTIMIZED)
    for local in POSITIONING_ELEMENTS:
        for element in list(root.iter(w(local))):
            remove_element(element)
            counters.add(TABLES_OPTIMIZED)
    for borders in root.iter(w("tcBorders")):
        for edge in borders:
            if is_element(edge) and _normalize_border(edge):
                counters.add(BORDERS_NORMALIZED)


def _absolutize(element: etree._Element, content_width: int, *, auto_width: int | None) -> bool:
    kind = element.get(w("type"))
    if kind == "pct":
        absolute = percent_to_dxa(element.get(w("w"), "0"), content_width)
    elif kind == "auto":
        absolute = auto_width
    else:
        return False
    if absolute is None:
        return False
    element.set(w("w"), str(absolute))
    element.set(w("type"), "dxa")
    return True


def _auto_cell_width(tc_w: etree._Element, content_width: int) -> int | None:
    table = next(tc_w.iterancestors(w("tbl")), None)
    if table is None:
        return None
    columns = 0
    grid = table.find(w("tblGrid"))
    if grid is not None:
        columns = len(grid.findall(w("gridCol")))
    if not columns:
        row = next(tc_w.iterancestors(w("tr")), None)
        columns = len(row.findall(w("tc"))) if row is not None else 0
    if not columns:
        return None
    span = 1
    tc_pr = tc_w.getparent()
    grid_span = tc_pr.find(w("gridSpan")) if tc_pr is not None else None
    if grid_span is not None and (grid_span.get(w("val")) or "").isdigit():
        span = max(int(grid_span.get(w("val"))), 1)
    return round_half_up(content_width * min(span, columns) / columns)


def _normalize_border(edge: etree._Element) -> bool:
    if (edge.get(w("val")) or "").lower() in NO_BORDER:
        return False
    changed = False
    if edge.get(w("color")) != BORDER_COLOR:
        edge.set(w("color"), BORDER_COLOR)
        changed = True
    if edge.get(w("sz")) != BORDER_SIZE:
        edge.set(w("sz"), BORDER_SIZE)
        changed = True
    return changed


__all__ = ["optimize_tables", "percent_to_dxa"]
