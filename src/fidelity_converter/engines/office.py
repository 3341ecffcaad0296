from __future__ import annotations

import csv
import logging
import re

from docx import Document
from openpyxl import Workbook, load_workbook

from ..errors import EngineExecutionError
from .base import EngineJob, LibraryEngine
from .markup import csv_rows

logger = logging.getLogger(__name__)

INVALID_SHEET_CHARS = re.compile(r"[\[\]:*?/\\]")


class TextDocumentEngine(LibraryEngine):
    name = "text-docx"
    fidelity = 0.95

    def render(self, job: EngineJob) -> None:
        text = job.input_path.read_text(encoding="utf-8", errors="replace")
        document = Document()
        for chunk in text.replace("\r\n", "\n").split("\n\n"):
            if not chunk.strip():
                continue
            paragraph = document.add_paragraph()
            lines = chunk.strip("\n").split("\n")
            for index, line in enumerate(lines):
                run = paragraph.add_run(line)
                if index < len(lines) - 1:
                    run.add_break()
        document.save(str(job.output_path))
        return None


class SheetCsvEngine(LibraryEngine):
    """Active worksheet to CSV; other sheets are reported as warnings."""

    name = "sheet-csv"
    fidelity = 0.95

    def render(self, job: EngineJob) -> list[str]:
        workbook = load_workbook(str(job.input_path), read_only=True, data_only=True)
        try:
            sheet = workbook.active
            if sheet is None:
                raise EngineExecutionError(self.name, "The workbook has no worksheets")
            with job.output_path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.writer(handle)
                for row in sheet.iter_rows(values_only=True):
                    writer.writerow(["" if value is None else value for value in row])
            skipped = [name for name in workbook.sheetnames if name != sheet.title]
        finally:
            workbook.close()
        if skipped:
            logger.info("Only the active sheet of %s was exported", job.input_path.name)
        return [f"sheet '{name}' not exported" for name in skipped]


class CsvSheetEngine(LibraryEngine):
    name = "csv-sheet"
    fidelity = 0.95

    def render(self, job: EngineJob) -> None:
        workbook = Workbook(write_only=True)
        sheet = workbook.create_sheet(title=INVALID_SHEET_CHARS.sub("_", job.input_path.stem)[:31] or "Sheet1")
        for row in csv_rows(job.input_path):
            sheet.append(row)
        workbook.save(str(job.output_path))
        return None


__all__ = ["CsvSheetEngine", "SheetCsvEngine", "TextDocumentEngine"]
