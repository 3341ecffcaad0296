from __future__ import annotations

from .base import EngineAdapter, EngineJob, EngineOutput, LibraryEngine, verify_output
from .libreoffice import LibreOfficeEngine
from .office import CsvSheetEngine, SheetCsvEngine, TextDocumentEngine
from .pdf import PdfLayoutEngine, PdfStructureEngine, PdfTextEngine
from .registry import FALLBACK_CHAINS, EngineRegistry, build_default_registry, default_engines
from .render import DocumentRenderEngine, SpreadsheetRenderEngine, TextRenderEngine
from .resolver import LibreOfficePathResolver

__all__ = [
    "CsvSheetEngine",
    "DocumentRenderEngine",
    "EngineAdapter",
    "EngineJob",
    "EngineOutput",
    "EngineRegistry",
    "FALLBACK_CHAINS",
    "LibraryEngine",
    "LibreOfficeEngine",
    "LibreOfficePathResolver",
    "PdfLayoutEngine",
    "PdfStructureEngine",
    "PdfTextEngine",
    "SheetCsvEngine",
    "SpreadsheetRenderEngine",
    "TextDocumentEngine",
    "TextRenderEngine",
    "build_default_registry",
    "default_engines",
    "verify_output",
]
