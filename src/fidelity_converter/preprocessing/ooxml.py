"""WordprocessingML helpers: namespaces, part classification, parse/serialize."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from lxml import etree

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
W14_NS = "http://schemas.microsoft.com/office/word/2010/wordml"
WP_NS = "http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"
A_NS = "http://schemas.openxmlformats.org/drawingml/2006/main"

THEME_PART = "word/theme/theme1.xml"


def w(local: str) -> str:
    return f"{{{W_NS}}}{local}"


def w14(local: str) -> str:
    return f"{{{W14_NS}}}{local}"


def wp(local: str) -> str:
    return f"{{{WP_NS}}}{local}"


class PartKind(str, Enum):
    BODY = "body"
    STYLES = "styles"
    NUMBERING = "numbering"
    SETTINGS = "settings"
    HEADER = "header"
    FOOTER = "footer"
    FOOTNOTES = "footnotes"
    ENDNOTES = "endnotes"


CONTENT_KINDS = frozenset(
    {PartKind.BODY, PartKind.HEADER, PartKind.FOOTER, PartKind.FOOTNOTES, PartKind.ENDNOTES}
)
FORMATTING_KINDS = CONTENT_KINDS | {PartKind.STYLES}
ALL_KINDS = frozenset(PartKind)

_PART_RE = re.compile(
    r"^word/(?P<stem>document|styles|numbering|settings|footnotes|endnotes|header\d*|footer\d*)\.xml$"
)


def classify_part(name: str) -> PartKind | None:
    match = _PART_RE.match(name)
    if not match:
        return None
    stem = match.group("stem")
    if stem == "document":
        return PartKind.BODY
    if stem.startswith("header"):
        return PartKind.HEADER
    if stem.startswith("footer"):
        return PartKind.FOOTER
    return PartKind(stem)


def _parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        huge_tree=True,
        remove_blank_text=False,
    )


def parse_part(data: bytes) -> etree._Element:
    return etree.fromstring(data, _parser())


def serialize_part(root: etree._Element) -> bytes:
    tree = root.getroottree()
    return etree.tostring(
        tree,
        xml_declaration=True,
        encoding="UTF-8",
        standalone=tree.docinfo.standalone,
    )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_element(node: object) -> bool:
    return isinstance(getattr(node, "tag", None), str)


def remove_element(element: etree._Element) -> None:
    """Detach *element*, keeping any tail text attached to the document."""

    parent = element.getparent()
    if parent is None:
        return
    if element.tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + element.tail
        else:
            parent.text = (parent.text or "") + element.tail
    parent.remove(element)


def insert_ordered(parent: etree._Element, child: etree._Element, order: Sequence[str]) -> None:
    """Insert *child* where the schema sequence *order* expects it.

    Existing children whose tag is not listed are treated as trailing
    extensions, so known elements are placed before them.
    """

    try:
        rank = order.index(child.tag)
    except ValueError:
        parent.append(child)
        return
    for position, existing in enumerate(parent):
        if not is_element(existing):
            continue
        if existing.tag not in order or order.index(existing.tag) > rank:
            parent.insert(position, child)
            return
    parent.append(child)


RPR_ORDER: tuple[str, ...] = tuple(
    w(name)
    for name in (
        "rStyle", "rFonts", "b", "bCs", "i", "iCs", "caps", "smallCaps", "strike", "dstrike",
        "outline", "shadow", "emboss", "imprint", "noProof", "snapToGrid", "vanish",
        "webHidden", "color", "spacing", "w", "kern", "position", "sz", "szCs", "highlight",
        "u", "effect", "bdr", "shd", "fitText", "vertAlign", "rtl", "cs", "em", "lang",
        "eastAsianLayout", "specVanish", "oMath",
    )
)

PPR_ORDER: tuple[str, ...] = tuple(
    w(name)
    for name in (
        "pStyle", "keepNext", "keepLines", "pageBreakBefore", "framePr", "widowControl",
        "numPr", "suppressLineNumbers", "pBdr", "shd", "tabs", "suppressAutoHyphens",
        "kinsoku", "wordWrap", "overflowPunct", "topLinePunct", "autoSpaceDE",
        "autoSpaceDN", "bidi", "adjustRightInd", "snapToGrid", "spacing", "ind",
        "contextualSpacing", "mirrorIndents", "suppressOverlap", "jc", "textDirection",
        "textAlignment", "textboxTightWrap", "outlineLvl", "divId", "cnfStyle", "rPr",
        "sectPr", "pPrChange",
    )
)

STYLE_ORDER: tuple[str, ...] = tuple(
    w(name)
    for name in (
        "name", "aliases", "basedOn", "next", "link", "autoRedefine", "hidden",
        "uiPriority", "semiHidden", "unhideWhenUsed", "qFormat", "locked", "personal",
        "personalCompose", "personalReply", "rsid", "pPr", "rPr", "tblPr", "trPr", "tcPr",
        "tblStylePr",
    )
)

SETTINGS_ORDER: tuple[str, ...] = (w("writeProtection"), w("view"), w("zoom"))


@dataclass(frozen=True, slots=True)
class ThemeFonts:
    """Concrete typefaces behind the ``*Theme`` font references of a package."""

    fonts: dict[str, str] = field(
        default_factory=lambda: {
            "majorAscii": "Calibri Light",
            "majorHAnsi": "Calibri Light",
            "majorEastAsia": "Calibri Light",
            "majorBidi": "Calibri Light",
            "minorAscii": "Calibri",
            "minorHAnsi": "Calibri",
            "minorEastAsia": "Calibri",
            "minorBidi": "Calibri",
        }
    )

    def resolve(self, reference: str) -> str:
        if reference in self.fonts:
            return self.fonts[reference]
        prefix = "major" if reference.startswith("major") else "minor"
        return self.fonts[f"{prefix}Ascii"]


def read_theme_fonts(data: bytes) -> ThemeFonts:
    root = parse_part(data)
    fonts = dict(ThemeFonts().fonts)
    for prefix in ("major", "minor"):
        scheme = root.find(f".//{{{A_NS}}}{prefix}Font")
        if scheme is None:
            continue
        latin = _typeface(scheme, "latin")
        if not latin:
            continue
        east_asia = _typeface(scheme, "ea") or latin
        complex_script = _typeface(scheme, "cs") or latin
        fonts[f"{prefix}Ascii"] = latin
        fonts[f"{prefix}HAnsi"] = latin
        fonts[f"{prefix}EastAsia"] = east_asia
        fonts[f"{prefix}Bidi"] = complex_script
    return ThemeFonts(fonts)


def _typeface(scheme: etree._Element, local: str) -> str:
    element = scheme.find(f"{{{A_NS}}}{local}")
    if element is None:
        return ""
    return (element.get("typeface") or "").strip()


__all__ = [
    "ALL_KINDS",
    "CONTENT_KINDS",
    "FORMATTING_KINDS",
    "PPR_ORDER",
    "PartKind",
    "RPR_ORDER",
    "SETTINGS_ORDER",
    "STYLE_ORDER",
    "THEME_PART",
    "ThemeFonts",
    "W14_NS",
    "W_NS",
    "WP_NS",
    "classify_part",
    "insert_ordered",
    "is_element",
    "parse_part",
    "read_theme_fonts",
    "remove_element",
    "round_half_up",
    "serialize_part",
    "w",
    "w14",
    "wp",
]
