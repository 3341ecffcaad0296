from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    Flowable,
    Paragraph,
    Preformatted,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ..config import RenderConfig
from ..formats import DocumentFormat
from .base import EngineJob, LibraryEngine
from .markup import (
    MarkupBlock,
    csv_rows,
    docx_to_markup,
    sheet_to_markup,
    text_to_markup,
    workbook_tables,
)

logger = logging.getLogger(__name__)

PAGE_SIZES = {"A4": A4, "LETTER": letter}


@dataclass(frozen=True, slots=True)
class PageLayout:
    page_size: tuple[float, float]
    margin: float

    @classmethod
    def from_config(cls, config: RenderConfig, *, sheet: bool = False) -> "PageLayout":
        size = PAGE_SIZES.get(config.page_size.upper(), A4)
        if sheet:
            return cls(landscape(size), config.sheet_margin_in * inch)
        return cls(size, config.margin_in * inch)

    @property
    def frame_width(self) -> float:
        return self.page_size[0] - 2 * self.margin


def build_stylesheet() -> dict[str, ParagraphStyle]:
    sample = getSampleStyleSheet()
    body = sample["BodyText"]
    return {
        "h1": sample["Heading1"],
        "h1.title": sample["Title"],
        "h2": sample["Heading2"],
        "h2.subtitle": ParagraphStyle("Subtitle", parent=sample["Heading2"], textColor=colors.grey),
        "h3": sample["Heading3"],
        "h4": sample["Heading4"],
        "p": body,
        "li": ParagraphStyle("ListItem", parent=body, leftIndent=18, bulletIndent=6),
        "li.ordered": ParagraphStyle("OrderedItem", parent=body, leftIndent=18, bulletIndent=0),
        "blockquote": ParagraphStyle("Quote", parent=body, leftIndent=24, rightIndent=24, fontName="Helvetica-Oblique"),
        "blockquote.intense": ParagraphStyle(
            "IntenseQuote", parent=body, leftIndent=24, rightIndent=24, fontName="Helvetica-BoldOblique"
        ),
        "pre": sample["Code"],
        "cell": ParagraphStyle("Cell", parent=body, fontSize=8, leading=10),
    }


TABLE_STYLE = TableStyle(
    [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#D9D9D9")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 3),
        ("RIGHTPADDING", (0, 0), (-1, -1), 3),
    ]
)


def _table(rows: list[list[str]], styles: dict[str, ParagraphStyle], width: float) -> Table:
    columns = max(len(row) for row in rows)
    data = [[Paragraph(escape(cell), styles["cell"]) for cell in row] for row in rows]
    return Table(data, colWidths=[width / columns] * columns, repeatRows=1, style=TABLE_STYLE)


def build_story(blocks: Sequence[MarkupBlock], layout: PageLayout) -> list[Flowable]:
    styles = build_stylesheet()
    story: list[Flowable] = []
    counter = 0
    for block in blocks:
        if block.tag == "table" and block.rows:
            story.append(_table(block.rows, styles, layout.frame_width))
            story.append(Spacer(1, 8))
            continue
        if block.tag == "pre":
            story.append(Preformatted(block.html, styles["pre"]))
            continue
        if not block.html.strip():
            story.append(Spacer(1, 6))
            continue
        style = styles.get(block.style_key) or styles.get(block.tag) or styles["p"]
        if block.tag == "li":
            if block.css_class == "ordered":
                counter += 1
                bullet = f"{counter}."
            else:
                bullet = "•"
            story.append(Paragraph(block.html, style, bulletText=bullet))
            continue
        counter = 0
        story.append(Paragraph(block.html, style))
    return story or [Spacer(1, 1)]


def render_markup(blocks: Sequence[MarkupBlock], destination: Path, layout: PageLayout, *, title: str = "") -> None:
    logger.debug("Rendering %d blocks to %s", len(blocks), destination.name)
    document = SimpleDocTemplate(
        str(destination),
        pagesize=layout.page_size,
        leftMargin=layout.margin,
        rightMargin=layout.margin,
        topMargin=layout.margin,
        bottomMargin=layout.margin,
        title=title,
    )
    document.build(build_story(blocks, layout))


class DocumentRenderEngine(LibraryEngine):
    """Word document to PDF through reportlab; keeps headings, lists, emphasis and tables."""

    name = "docx-render"
    fidelity = 0.75

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()
        super().__init__(self._config.timeout_s)

    def render(self, job: EngineJob) -> list[str]:
        blocks = docx_to_markup(job.input_path)
        render_markup(blocks, job.output_path, PageLayout.from_config(self._config), title=job.input_path.stem)
        return ["images and page layout are not reproduced"]


class SpreadsheetRenderEngine(LibraryEngine):
    name = "sheet-render"
    fidelity = 0.8

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()
        super().__init__(self._config.timeout_s)

    def render(self, job: EngineJob) -> list[str]:
        if job.source is DocumentFormat.CSV:
            tables = [(job.input_path.stem, csv_rows(job.input_path))]
        else:
            tables = list(workbook_tables(job.input_path))
        layout = PageLayout.from_config(self._config, sheet=True)
        render_markup(sheet_to_markup(tables), job.output_path, layout, title=job.input_path.stem)
        return []


class TextRenderEngine(LibraryEngine):
    name = "text-render"
    fidelity = 0.95

    def __init__(self, config: RenderConfig | None = None) -> None:
        self._config = config or RenderConfig()
        super().__init__(self._config.timeout_s)

    def render(self, job: EngineJob) -> list[str]:
        text = job.input_path.read_text(encoding="utf-8", errors="replace")
        blocks = text_to_markup(text, preformatted=job.source is DocumentFormat.XML)
        render_markup(blocks, job.output_path, PageLayout.from_config(self._config), title=job.input_path.stem)
        return []


__all__ = [
    "DocumentRenderEngine",
    "PageLayout",
    "SpreadsheetRenderEngine",
    "TextRenderEngine",
    "build_story",
    "render_markup",
]
