from __future__ import annotations

from typing import Callable

import pytest
from lxml import etree

from conftest import W_NS, document_xml, settings_xml, styles_xml, theme_xml
from fidelity_converter.preprocessing.colors import normalize_colors
from fidelity_converter.preprocessing.context import PartContext
from fidelity_converter.preprocessing.counters import FixCounters
from fidelity_converter.preprocessing.effects import strip_effects
from fidelity_converter.preprocessing.fonts import FontSubstitution, normalize_fonts
from fidelity_converter.preprocessing.layout import (
    canonicalize_toggles,
    normalize_images,
    normalize_settings,
    simplify_numbering,
)
from fidelity_converter.preprocessing.ooxml import PartKind, parse_part, read_theme_fonts, w, w14, wp
from fidelity_converter.preprocessing.spacing import normalize_pagination, normalize_spacing
from fidelity_converter.preprocessing.styles import flatten_styles
from fidelity_converter.preprocessing.tables import optimize_tables, percent_to_dxa

PhaseFunc = Callable[[etree._Element, FixCounters, PartContext], None]


def apply(phase: PhaseFunc, root: etree._Element, context: PartContext | None = None) -> FixCounters:
    counters = FixCounters()
    phase(root, counters, context or PartContext(kind=PartKind.BODY))
    return counters


def body(xml: str) -> etree._Element:
    return parse_part(document_xml(xml))


def first(root: etree._Element, tag: str) -> etree._Element:
    element = next(root.iter(tag), None)
    assert element is not None, tag
    return element


def run_with_size(font: str, size: int) -> etree._Element:
    return body(
        f'<w:p><w:r><w:rPr><w:rFonts w:ascii="{font}" w:hAnsi="{font}"/>'
        f'<w:sz w:val="{size}"/></w:rPr><w:t>x</w:t></w:r></w:p>'
    )


def test_font_substitution_keeps_size_with_unit_multiplier() -> None:
    root = run_with_size("A", 20)
    context = PartContext(kind=PartKind.BODY, fonts={"A": FontSubstitution("B", 1.0)})
    counters = apply(normalize_fonts, root, context)
    rfonts = first(root, w("rFonts"))
    assert rfonts.get(w("ascii")) == "B"
    assert rfonts.get(w("hAnsi")) == "B"
    assert first(root, w("sz")).get(w("val")) == "20"
    assert counters["fonts_normalized"] == 2
    assert counters["font_sizes_adjusted"] == 0


def test_font_multiplier_rounds_to_nearest_integer() -> None:
    root = run_with_size("A", 20)
    context = PartContext(kind=PartKind.BODY, fonts={"A": FontSubstitution("B", 0.98)})
    apply(normalize_fonts, root, context)
    assert first(root, w("sz")).get(w("val")) == "20"

    root = run_with_size("A", 20)
    context = PartContext(kind=PartKind.BODY, fonts={"A": FontSubstitution("B", 1.1)})
    counters = apply(normalize_fonts, root, context)
    assert first(root, w("sz")).get(w("val")) == "22"
    assert counters["font_sizes_adjusted"] == 1


def test_theme_fonts_resolve_to_theme_typefaces() -> None:
    root = body('<w:p><w:r><w:rPr><w:rFonts w:asciiTheme="majorHAnsi" w:hAnsiTheme="minorHAnsi"/></w:rPr></w:r></w:p>')
    theme = read_theme_fonts(theme_xml(major="Georgia", minor="Aptos"))
    counters = apply(normalize_fonts, root, PartContext(kind=PartKind.BODY, theme_fonts=theme))
    rfonts = first(root, w("rFonts"))
    assert rfonts.get(w("asciiTheme")) is None
    assert rfonts.get(w("hAnsiTheme")) is None
    assert rfonts.get(w("ascii")) == "Georgia"
    # Aptos goes through the substitution table after theme resolution
    assert rfonts.get(w("hAnsi")) == "Calibri"
    assert counters["theme_fonts_resolved"] == 2


def test_theme_color_becomes_explicit_rgb() -> None:
    root = body('<w:p><w:r><w:rPr><w:color w:val="FF0000" w:themeColor="accent1" w:themeShade="BF"/></w:rPr></w:r></w:p>')
    counters = apply(normalize_colors, root)
    color = first(root, w("color"))
    assert color.get(w("val")) == "4472C4"
    assert color.get(w("themeColor")) is None
    assert color.get(w("themeShade")) is None
    assert counters["colors_converted"] == 1


def test_auto_colors_and_short_hex() -> None:
    root = body(
        '<w:p><w:pPr><w:shd w:val="clear" w:color="auto" w:fill="auto"/></w:pPr>'
        '<w:r><w:rPr><w:color w:val="f0a"/></w:rPr></w:r></w:p>'
    )
    apply(normalize_colors, root)
    shading = first(root, w("shd"))
    assert shading.get(w("color")) == "000000"
    assert shading.get(w("fill")) == "FFFFFF"
    assert first(root, w("color")).get(w("val")) == "FF00AA"


def test_theme_fill_drops_modifiers() -> None:
    root = body('<w:p><w:pPr><w:shd w:val="clear" w:fill="FFFFFF" w:themeFill="accent6" w:themeFillTint="33"/></w:pPr></w:p>')
    apply(normalize_colors, root)
    shading = first(root, w("shd"))
    assert shading.get(w("fill")) == "70AD47"
    assert shading.get(w("themeFillTint")) is None


def test_percent_widths_use_fiftieths_of_a_percent() -> None:
    assert percent_to_dxa("5000", 9360) == 9360
    assert percent_to_dxa("2500", 9360) == 4680
    assert percent_to_dxa("50%", 9360) == 4680
    assert percent_to_dxa("wide", 9360) is None


TABLE = (
    "<w:tbl><w:tblPr><w:tblW w:w=\"{width}\" w:type=\"{kind}\"/>"
    '<w:tblpPr w:leftFromText="180" w:vertAnchor="text"/><w:tblOverlap w:val="never"/></w:tblPr>'
    '<w:tblGrid><w:gridCol w:w="100"/><w:gridCol w:w="100"/></w:tblGrid>'
    "<w:tr><w:tc><w:tcPr><w:tcW w:w=\"0\" w:type=\"auto\"/>"
    '<w:tcBorders><w:top w:val="single" w:sz="12" w:color="FF0000"/><w:bottom w:val="nil"/></w:tcBorders>'
    "</w:tcPr><w:p/></w:tc>"
    '<w:tc><w:tcPr><w:tcW w:w="2500" w:type="pct"/></w:tcPr><w:p/></w:tc></w:tr></w:tbl>'
)


def test_table_widths_become_absolute() -> None:
    root = body(TABLE.format(width=5000, kind="pct"))
    counters = apply(optimize_tables, root)
    table_width = first(root, w("tblW"))
    assert (table_width.get(w("w")), table_width.get(w("type"))) == ("9360", "dxa")
    cells = list(root.iter(w("tcW")))
    assert [(cell.get(w("w")), cell.get(w("type"))) for cell in cells] == [("4680", "dxa"), ("4680", "dxa")]
    assert next(root.iter(w("tblpPr")), None) is None
    assert next(root.iter(w("tblOverlap")), None) is None
    top = first(root, w("top"))
    assert (top.get(w("sz")), top.get(w("color"))) == ("4", "000000")
    assert first(root, w("bottom")).get(w("sz")) is None
    assert counters["tables_optimized"] == 5
    assert counters["borders_normalized"] == 1


def test_half_width_table() -> None:
    root = body(TABLE.format(width=2500, kind="pct"))
    apply(optimize_tables, root)
    assert first(root, w("tblW")).get(w("w")) == "4680"


def test_auto_line_spacing_becomes_at_least() -> None:
    root = body(
        '<w:p><w:pPr><w:spacing w:line="360" w:lineRule="auto"/></w:pPr></w:p>'
        '<w:p><w:pPr><w:spacing w:line="1000"/></w:pPr></w:p>'
        '<w:p><w:pPr><w:spacing w:before="120" w:line="300" w:lineRule="exact"/></w:pPr></w:p>'
    )
    counters = apply(normalize_spacing, root)
    spacings = list(root.iter(w("spacing")))
    assert [s.get(w("line")) for s in spacings] == ["360", "240", "300"]
    assert [s.get(w("lineRule")) for s in spacings] == ["atLeast", "atLeast", "exact"]
    assert [s.get(w("before")) for s in spacings] == ["0", "0", "120"]
    assert all(s.get(w("after")) == "0" for s in spacings)
    assert counters["spacing_normalized"] == 3


def test_run_spacing_is_left_alone() -> None:
    root = body('<w:p><w:r><w:rPr><w:spacing w:val="20"/></w:rPr></w:r></w:p>')
    counters = apply(normalize_spacing, root)
    assert first(root, w("spacing")).get(w("line")) is None
    assert counters.total == 0


def test_fractional_indents_are_rounded() -> None:
    root = body('<w:p><w:pPr><w:ind w:left="720.6" w:hanging="359.4" w:right="0"/></w:pPr></w:p>')
    counters = apply(normalize_spacing, root)
    indent = first(root, w("ind"))
    assert (indent.get(w("left")), indent.get(w("hanging")), indent.get(w("right"))) == ("721", "359", "0")
    assert counters["indents_rounded"] == 1


def test_pagination_flags_and_sections() -> None:
    root = body(
        '<w:p><w:pPr><w:keepNext/><w:pageBreakBefore w:val="true"/><w:widowControl w:val="0"/></w:pPr>'
        "<w:r><w:t>text</w:t></w:r></w:p>"
        '<w:p><w:pPr><w:pageBreakBefore/></w:pPr></w:p>'
        '<w:sectPr><w:type w:val="evenPage"/></w:sectPr>'
    )
    counters = apply(normalize_pagination, root)
    assert next(root.iter(w("keepNext")), None) is None
    assert next(root.iter(w("widowControl")), None) is None
    assert [m.get(w("val")) for m in root.iter(w("pageBreakBefore"))] == ["1", "1"]
    assert first(root, w("type")).get(w("val")) == "nextPage"
    assert counters["pagination_fixed"] == 4
    assert counters["sections_normalized"] == 1


def test_effects_are_stripped_and_text_kept() -> None:
    root = body(
        '<w:p><w:r><w:rPr><w:b/><w:shadow/><w:emboss/><w14:glow w14:rad="63500"/></w:rPr>'
        "<w:t>glowing</w:t></w:r></w:p>"
    )
    counters = apply(strip_effects, root)
    assert counters["effects_removed"] == 3
    assert next(root.iter(w14("glow")), None) is None
    assert first(root, w("b")) is not None
    assert first(root, w("t")).text == "glowing"


def test_images_are_anchored_consistently() -> None:
    root = body(
        '<w:p><w:r><w:drawing><wp:inline distT="0" distB="0" distL="114300" distR="114300"/></w:drawing>'
        '<w:drawing><wp:anchor behindDoc="1" layoutInCell="0" distT="0"/></w:drawing></w:r></w:p>'
    )
    counters = apply(normalize_images, root)
    inline = first(root, wp("inline"))
    assert inline.get("distL") is None
    anchor = first(root, wp("anchor"))
    assert (anchor.get("behindDoc"), anchor.get("layoutInCell")) == ("0", "1")
    assert counters["images_normalized"] == 2


def test_boolean_run_properties_are_canonical() -> None:
    root = body('<w:p><w:r><w:rPr><w:b w:val="true"/><w:i w:val="off"/><w:caps/></w:rPr></w:r></w:p>')
    counters = apply(canonicalize_toggles, root)
    assert first(root, w("b")).get(w("val")) == "1"
    assert first(root, w("i")).get(w("val")) == "0"
    assert first(root, w("caps")).get(w("val")) is None
    assert counters["font_styles_fixed"] == 2


def test_unsupported_number_formats_fall_back_to_decimal() -> None:
    root = parse_part(
        f'<w:numbering xmlns:w="{W_NS}"><w:abstractNum w:abstractNumId="0">'
        '<w:lvl w:ilvl="0"><w:numFmt w:val="chicago" w:format="%1"/></w:lvl>'
        '<w:lvl w:ilvl="1"><w:numFmt w:val="lowerRoman"/></w:lvl>'
        "</w:abstractNum></w:numbering>".encode()
    )
    counters = apply(simplify_numbering, root, PartContext(kind=PartKind.NUMBERING))
    formats = list(root.iter(w("numFmt")))
    assert formats[0].get(w("val")) == "decimal"
    assert formats[0].get(w("format")) is None
    assert formats[1].get(w("val")) == "lowerRoman"
    assert counters["numbering_simplified"] == 1


def test_settings_force_print_layout_view() -> None:
    root = parse_part(settings_xml('<w:zoom w:percent="100"/><w:defaultTabStop w:val="720"/>'))
    counters = apply(normalize_settings, root, PartContext(kind=PartKind.SETTINGS))
    children = [child.tag for child in root]
    assert children[0] == w("view")
    assert first(root, w("view")).get(w("val")) == "print"
    assert counters["settings_normalized"] == 1

    root = parse_part(settings_xml('<w:view w:val="web"/>'))
    apply(normalize_settings, root, PartContext(kind=PartKind.SETTINGS))
    assert first(root, w("view")).get(w("val")) == "print"


STYLES = (
    '<w:style w:type="paragraph" w:styleId="Normal"><w:name w:val="Normal"/>'
    '<w:pPr><w:spacing w:after="160"/></w:pPr>'
    '<w:rPr><w:rFonts w:ascii="Calibri"/><w:sz w:val="22"/></w:rPr></w:style>'
    '<w:style w:type="paragraph" w:styleId="Heading1"><w:name w:val="heading 1"/>'
    '<w:basedOn w:val="Normal"/><w:next w:val="Normal"/>'
    '<w:pPr><w:spacing w:before="240"/><w:outlineLvl w:val="0"/></w:pPr>'
    '<w:rPr><w:b/><w:sz w:val="32"/></w:rPr></w:style>'
    '<w:style w:type="paragraph" w:styleId="Chapter"><w:name w:val="Chapter"/>'
    '<w:basedOn w:val="Heading1"/><w:rPr><w:caps/></w:rPr></w:style>'
)


def styles_root(xml: str = STYLES) -> etree._Element:
    return parse_part(styles_xml(xml))


def style(root: etree._Element, style_id: str) -> etree._Element:
    for element in root.iter(w("style")):
        if element.get(w("styleId")) == style_id:
            return element
    raise AssertionError(style_id)


def test_flattening_resolves_inherited_properties_first() -> None:
    root = styles_root()
    counters = apply(flatten_styles, root, PartContext(kind=PartKind.STYLES))
    assert next(root.iter(w("basedOn")), None) is None
    assert next(root.iter(w("next")), None) is None
    assert counters["styles_flattened"] == 2
    assert counters["styles_simplified"] == 1

    chapter = style(root, "Chapter")
    run = chapter.find(w("rPr"))
    assert run.find(w("caps")) is not None
    assert run.find(w("b")) is not None
    assert run.find(w("sz")).get(w("val")) == "32"
    assert run.find(w("rFonts")).get(w("ascii")) == "Calibri"
    spacing = chapter.find(w("pPr")).find(w("spacing"))
    assert (spacing.get(w("before")), spacing.get(w("after"))) == ("240", "160")
    # schema order: pPr before rPr
    tags = [child.tag for child in chapter]
    assert tags.index(w("pPr")) < tags.index(w("rPr"))


def test_flattening_survives_inheritance_cycles() -> None:
    root = styles_root(
        '<w:style w:styleId="A"><w:basedOn w:val="B"/><w:rPr><w:b/></w:rPr></w:style>'
        '<w:style w:styleId="B"><w:basedOn w:val="A"/><w:rPr><w:i/></w:rPr></w:style>'
    )
    counters = apply(flatten_styles, root, PartContext(kind=PartKind.STYLES))
    assert counters["styles_flattened"] == 2
    assert next(root.iter(w("basedOn")), None) is None


def test_flattening_ignores_other_parts() -> None:
    root = styles_root()
    counters = apply(flatten_styles, root, PartContext(kind=PartKind.BODY))
    assert counters.total == 0
    assert next(root.iter(w("basedOn")), None) is not None


IDEMPOTENCE_CASES = [
    (normalize_fonts, PartKind.BODY, '<w:p><w:r><w:rPr><w:rFonts w:ascii="Aptos" w:asciiTheme="minorHAnsi"/><w:sz w:val="25"/></w:rPr></w:r></w:p>'),
    (normalize_colors, PartKind.BODY, '<w:p><w:r><w:rPr><w:color w:val="auto" w:themeColor="text2"/></w:rPr></w:r></w:p>'),
    (optimize_tables, PartKind.BODY, TABLE.format(width=5000, kind="pct")),
    (normalize_spacing, PartKind.BODY, '<w:p><w:pPr><w:spacing w:line="276" w:lineRule="auto"/><w:ind w:left="10.5"/></w:pPr></w:p>'),
    (normalize_pagination, PartKind.BODY, '<w:p><w:pPr><w:keepNext/><w:pageBreakBefore w:val="on"/></w:pPr></w:p><w:sectPr><w:type w:val="oddPage"/></w:sectPr>'),
    (strip_effects, PartKind.BODY, "<w:p><w:r><w:rPr><w:outline/><w14:textFill/></w:rPr></w:r></w:p>"),
    (normalize_images, PartKind.BODY, '<w:p><w:r><w:drawing><wp:inline distT="1"/></w:drawing></w:r></w:p>'),
    (canonicalize_toggles, PartKind.BODY, '<w:p><w:r><w:rPr><w:strike w:val="true"/></w:rPr></w:r></w:p>'),
]


@pytest.mark.parametrize(("phase", "kind", "xml"), IDEMPOTENCE_CASES)
def test_each_phase_is_idempotent(phase: PhaseFunc, kind: PartKind, xml: str) -> None:
    root = body(xml)
    context = PartContext(kind=kind)
    assert apply(phase, root, context).total > 0
    assert apply(phase, root, context).total == 0


def test_style_flattening_is_idempotent() -> None:
    root = styles_root()
    context = PartContext(kind=PartKind.STYLES)
    apply(flatten_styles, root, context)
    assert apply(flatten_styles, root, context).total == 0


def test_settings_normalization_is_idempotent() -> None:
    root = parse_part(settings_xml())
    context = PartContext(kind=PartKind.SETTINGS)
    assert apply(normalize_settings, root, context).total == 1
    assert apply(normalize_settings, root, context).total == 0


def test_numbering_simplification_is_idempotent() -> None:
    root = parse_part(
        f'<w:numbering xmlns:w="{W_NS}"><w:abstractNum w:abstractNumId="3">'
        '<w:lvl w:ilvl="0"><w:numFmt w:val="ideographDigital"/></w:lvl>'
        '<w:lvl w:ilvl="1"><w:numFmt w:val="bullet"/></w:lvl>'
        "</w:abstractNum></w:numbering>".encode()
    )
    context = PartContext(kind=PartKind.NUMBERING)
    assert apply(simplify_numbering, root, context).total == 1
    assert apply(simplify_numbering, root, context).total == 0
    assert [fmt.get(w("val")) for fmt in root.iter(w("numFmt"))] == ["decimal", "bullet"]
