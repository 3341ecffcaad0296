from __future__ import annotations

import logging
import statistics
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Sequence

import pdfplumber
from docx import Document
from docx.shared import Pt
from pypdf import PdfReader

from ..errors import EngineExecutionError
from ..reconstruct import (
    HEADING_MAX_LENGTH,
    BlockKind,
    PdfStructureReconstructor,
    StructureBlock,
    join_lines,
)
from ..utils import normalize_newlines
from .base import EngineJob, LibraryEngine

logger = logging.getLogger(__name__)

PARAGRAPH_SPACING = Pt(10)
LIST_SPACING = Pt(6)

LINE_TOLERANCE = 3.0
PARAGRAPH_GAP_RATIO = 0.8
HEADING_SIZE_RATIOS = ((1.6, 1), (1.3, 2), (1.15, 3))


@dataclass(frozen=True, slots=True)
class TableBlock:
    rows: list[list[str]]


@dataclass(frozen=True, slots=True)
class TextLine:
    text: str
    top: float
    bottom: float
    size: float

    @property
    def height(self) -> float:
        return max(self.bottom - self.top, 1.0)


Block = StructureBlock | TableBlock


def extract_pdf_text(path: Path, engine: str = "pdf-text") -> str:
    """Concatenated page text, pages separated by a blank line."""

    reader = PdfReader(str(path))
    if reader.is_encrypted and not reader.decrypt(""):
        raise EngineExecutionError(engine, "The PDF is password protected")
    pages = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text.strip("\n"))
    return "\n\n".join(pages)


def write_structured_docx(blocks: Sequence[Block], destination: Path) -> None:
    document = Document()
    for block in blocks:
        if isinstance(block, TableBlock):
            width = max(len(row) for row in block.rows)
            table = document.add_table(rows=len(block.rows), cols=width)
            table.style = "Table Grid"
            for row_index, row in enumerate(block.rows):
                for column, value in enumerate(row):
                    table.cell(row_index, column).text = value
            continue
        if block.kind is BlockKind.HEADING:
            document.add_heading(block.text, level=block.level or 2)
            continue
        if block.kind is BlockKind.LIST_ITEM:
            style = "List Paragraph" if block.ordered else "List Bullet"
            paragraph = document.add_paragraph(block.text, style=style)
            paragraph.paragraph_format.space_after = LIST_SPACING
            continue
        paragraph = document.add_paragraph(block.text)
        paragraph.paragraph_format.space_after = PARAGRAPH_SPACING
    document.save(str(destination))


def group_lines(words: Sequence[dict[str, Any]], tolerance: float = LINE_TOLERANCE) -> list[TextLine]:
    """Merge extracted words into visual lines, top to bottom."""

    rows: list[list[dict[str, Any]]] = []
    for word in sorted(words, key=lambda item: item["top"]):
        if rows and abs(rows[-1][0]["top"] - word["top"]) <= tolerance:
            rows[-1].append(word)
        else:
            rows.append([word])
    lines = []
    for row in rows:
        row.sort(key=lambda item: item["x0"])
        lines.append(
            TextLine(
                text=" ".join(item["text"] for item in row),
                top=min(item["top"] for item in row),
                bottom=max(item["bottom"] for item in row),
                size=max(float(item.get("size") or 0.0) for item in row),
            )
        )
    return lines


def heading_level_for(size: float, body_size: float) -> int | None:
    if body_size <= 0:
        return None
    ratio = size / body_size
    for threshold, level in HEADING_SIZE_RATIOS:
        if ratio >= threshold:
            return level
    return None


def _outside(bboxes: Sequence[tuple[float, float, float, float]]) -> Callable[[dict[str, Any]], bool]:
    def test(obj: dict[str, Any]) -> bool:
        if "x0" not in obj or "top" not in obj:
            return True
        h_mid = (obj["x0"] + obj["x1"]) / 2
        v_mid = (obj["top"] + obj["bottom"]) / 2
        return not any(x0 <= h_mid < x1 and top <= v_mid < bottom for x0, top, x1, bottom in bboxes)

    return test


def _table_rows(raw: Sequence[Sequence[str | None]]) -> list[list[str]]:
    rows = [[(cell or "").strip() for cell in row] for row in raw if row]
    return [row for row in rows if any(row)]


class PdfLayoutEngine(LibraryEngine):
    """PDF to Word from positioned text with ``pdfplumber``.

    Headings come from font size relative to the body text, paragraphs from
    vertical gaps between lines, and ruled tables are rebuilt as Word tables.
    """

    name = "pdf-layout"
    fidelity = 0.9

    def render(self, job: EngineJob) -> list[str]:
        pages: list[list[tuple[float, TextLine | TableBlock]]] = []
        sizes: list[float] = []
        with pdfplumber.open(str(job.input_path)) as pdf:
            for page in pdf.pages:
                items: list[tuple[float, TextLine | TableBlock]] = []
                tables = page.find_tables()
                for table in tables:
                    rows = _table_rows(table.extract())
                    if rows:
                        items.append((table.bbox[1], TableBlock(rows)))
                text_page = page.filter(_outside([table.bbox for table in tables])) if tables else page
                words = text_page.extract_words(extra_attrs=["size"])
                sizes.extend(float(word.get("size") or 0.0) for word in words)
                items.extend((line.top, line) for line in group_lines(words))
                items.sort(key=lambda item: item[0])
                pages.append(items)
        if not any(pages):
            raise EngineExecutionError(self.name, "The PDF contains no extractable text")
        body_size = statistics.median(sizes) if sizes else 0.0
        blocks: list[Block] = []
        for items in pages:
            blocks.extend(self._page_blocks([item for _, item in items], body_size))
        write_structured_docx(blocks, job.output_path)
        logger.debug("Rebuilt %d blocks from %d pages of %s", len(blocks), len(pages), job.input_path.name)
        return ["images and exact positioning are not preserved"]

    def _page_blocks(self, items: Sequence[TextLine | TableBlock], body_size: float) -> list[Block]:
        blocks: list[Block] = []
        pending: list[str] = []
        previous: TextLine | None = None

        def flush() -> None:
            if pending:
                blocks.append(StructureBlock(BlockKind.PARAGRAPH, join_lines(pending)))
                pending.clear()

        for item in items:
            if isinstance(item, TableBlock):
                flush()
                blocks.append(item)
                previous = None
                continue
            level = heading_level_for(item.size, body_size)
            if level is not None and len(item.text) < HEADING_MAX_LENGTH:
                flush()
                blocks.append(StructureBlock(BlockKind.HEADING, item.text, level=level))
                previous = None
                continue
            list_item = PdfStructureReconstructor.list_item(item.text)
            if list_item is not None:
                flush()
                blocks.append(list_item)
                previous = item
                continue
            if previous is not None and item.top - previous.bottom > previous.height * PARAGRAPH_GAP_RATIO:
                flush()
            pending.append(item.text)
            previous = item
        flush()
        return blocks


class PdfStructureEngine(LibraryEngine):
    """Text-level PDF to Word conversion that rebuilds headings and lists."""

    name = "pdf-structure"
    fidelity = 0.85

    def __init__(
        self,
        timeout_s: float | None = 60.0,
        reconstructor: PdfStructureReconstructor | None = None,
    ) -> None:
        super().__init__(timeout_s)
        self._reconstructor = reconstructor or PdfStructureReconstructor()

    def render(self, job: EngineJob) -> list[str]:
        text = extract_pdf_text(job.input_path, self.name)
        if not text.strip():
            raise EngineExecutionError(self.name, "The PDF contains no extractable text")
        blocks = self._reconstructor.reconstruct(text)
        logger.debug("Reconstructed %d blocks from %s", len(blocks), job.input_path.name)
        write_structured_docx(blocks, job.output_path)
        return ["layout, images and tables are not preserved"]


class PdfTextEngine(LibraryEngine):
    name = "pdf-text"
    fidelity = 0.9

    def render(self, job: EngineJob) -> None:
        text = extract_pdf_text(job.input_path, self.name)
        if not text.strip():
            raise EngineExecutionError(self.name, "The PDF contains no extractable text")
        job.output_path.write_text(normalize_newlines(text), encoding="utf-8")
        return None


__all__ = [
    "PdfLayoutEngine",
    "PdfStructureEngine",
    "PdfTextEngine",
    "TableBlock",
    "TextLine",
    "extract_pdf_text",
    "group_lines",
    "heading_level_for",
    "write_structured_docx",
]
