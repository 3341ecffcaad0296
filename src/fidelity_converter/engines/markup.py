"""Intermediate block markup shared by the render engines.

Word documents, spreadsheets and plain text are first reduced to a flat list
of :class:`MarkupBlock` records whose inline ``html`` uses the small tag set
reportlab paragraphs understand (``<b>``, ``<i>``, ``<u>``, ``<br/>``).
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator
from xml.sax.saxutils import escape

from docx import Document
from docx.document import Document as DocxDocument
from docx.table import Table
from docx.text.paragraph import Paragraph
from openpyxl import load_workbook

DOCX_STYLE_MAP: dict[str, tuple[str, str | None]] = {
    "Title": ("h1", "title"),
    "Subtitle": ("h2", "subtitle"),
    "Heading 1": ("h1", None),
    "Heading 2": ("h2", None),
    "Heading 3": ("h3", None),
    "Heading 4": ("h4", None),
    "Heading 5": ("h4", None),
    "Heading 6": ("h4", None),
    "List Paragraph": ("li", None),
    "List Bullet": ("li", None),
    "List Bullet 2": ("li", None),
    "List Number": ("li", "ordered"),
    "List Number 2": ("li", "ordered"),
    "Quote": ("blockquote", None),
    "Intense Quote": ("blockquote", "intense"),
}
RUN_STYLE_MAP = {"Strong": "b", "Emphasis": "i"}

MAX_SHEET_ROWS = 5000


@dataclass(slots=True)
class MarkupBlock:
    tag: str
    html: str = ""
    css_class: str | None = None
    rows: list[list[str]] | None = None

    @property
    def style_key(self) -> str:
        return f"{self.tag}.{self.css_class}" if self.css_class else self.tag


def _run_markup(paragraph: Paragraph) -> str:
    parts = []
    for run in paragraph.runs:
        text = escape(run.text).replace("\n", "<br/>")
        if not text:
            continue
        tags = []
        style_tag = RUN_STYLE_MAP.get(run.style.name if run.style is not None else "")
        if run.bold or style_tag == "b":
            tags.append("b")
        if run.italic or style_tag == "i":
            tags.append("i")
        if run.underline:
            tags.append("u")
        for tag in tags:
            text = f"<{tag}>{text}</{tag}>"
        parts.append(text)
    return "".join(parts)


def _iter_body(document: DocxDocument) -> Iterator[Paragraph | Table]:
    body = document.element.body
    for child in body.iterchildren():
        if child.tag.endswith("}p"):
            yield Paragraph(child, document)
        elif child.tag.endswith("}tbl"):
            yield Table(child, document)


def docx_to_markup(path: Path) -> list[MarkupBlock]:
    document = Document(str(path))
    blocks: list[MarkupBlock] = []
    for item in _iter_body(document):
        if isinstance(item, Table):
            rows = [[cell.text.strip() for cell in row.cells] for row in item.rows]
            if rows:
                blocks.append(MarkupBlock("table", rows=rows))
            continue
        style_name = item.style.name if item.style is not None else "Normal"
        tag, css_class = DOCX_STYLE_MAP.get(style_name, ("p", None))
        if style_name.startswith("Heading") and style_name not in DOCX_STYLE_MAP:
            tag = "h4"
        blocks.append(MarkupBlock(tag, _run_markup(item), css_class))
    return blocks


def text_to_markup(text: str, *, preformatted: bool = False) -> list[MarkupBlock]:
    if preformatted:
        return [MarkupBlock("pre", text)]
    blocks = []
    for chunk in text.replace("\r\n", "\n").split("\n\n"):
        lines = [escape(line) for line in chunk.split("\n")]
        if any(line.strip() for line in lines):
            blocks.append(MarkupBlock("p", "<br/>".join(lines)))
    return blocks


def _cell_text(value: object) -> str:
    return "" if value is None else str(value)


def workbook_tables(path: Path) -> Iterator[tuple[str, list[list[str]]]]:
    workbook = load_workbook(str(path), read_only=True, data_only=True)
    try:
        for sheet in workbook.worksheets:
            rows = []
            for row in sheet.iter_rows(values_only=True):
                if len(rows) >= MAX_SHEET_ROWS:
                    break
                rows.append([_cell_text(value) for value in row])
            yield sheet.title, _trim_rows(rows)
    finally:
        workbook.close()


def csv_rows(path: Path) -> list[list[str]]:
    with path.open(newline="", encoding="utf-8-sig", errors="replace") as handle:
        sample = handle.read(4096)
        handle.seek(0)
        try:
            dialect: type[csv.Dialect] | csv.Dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
        except csv.Error:
            dialect = csv.excel
        return _trim_rows(list(csv.reader(handle, dialect)))


def _trim_rows(rows: Iterable[list[str]]) -> list[list[str]]:
    trimmed = [row for row in rows if any(cell.strip() for cell in row)]
    width = max((len(row) for row in trimmed), default=0)
    while width and all(len(row) < width or not row[width - 1].strip() for row in trimmed):
        width -= 1
    return [(row + [""] * width)[:width] for row in trimmed]


def sheet_to_markup(tables: Iterable[tuple[str, list[list[str]]]]) -> list[MarkupBlock]:
    blocks = []
    for title, rows in tables:
        blocks.append(MarkupBlock("h2", escape(title)))
        if rows:
            blocks.append(MarkupBlock("table", rows=rows))
    return blocks


__all__ = [
    "DOCX_STYLE_MAP",
    "MarkupBlock",
    "csv_rows",
    "docx_to_markup",
    "sheet_to_markup",
    "text_to_markup",
    "workbook_tables",
]
