"""Declarative fallback table: one ordered engine chain per format pair."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from ..config import AppConfig
from ..formats import DocumentFormat as F, FormatPair
from .base import EngineAdapter
from .libreoffice import LibreOfficeEngine
from .office import CsvSheetEngine, SheetCsvEngine, TextDocumentEngine
from .pdf import PdfLayoutEngine, PdfStructureEngine, PdfTextEngine
from .render import DocumentRenderEngine, SpreadsheetRenderEngine, TextRenderEngine

logger = logging.getLogger(__name__)

LIBREOFFICE = "libreoffice"

FALLBACK_CHAINS: Mapping[FormatPair, tuple[str, ...]] = MappingProxyType(
    {
        (F.DOCX, F.PDF): (LIBREOFFICE, "docx-render"),
        (F.DOC, F.PDF): (LIBREOFFICE,),
        (F.ODT, F.PDF): (LIBREOFFICE,),
        (F.PPTX, F.PDF): (LIBREOFFICE,),
        (F.HTML, F.PDF): (LIBREOFFICE,),
        (F.DOCX, F.DOC): (LIBREOFFICE,),
        (F.DOC, F.DOCX): (LIBREOFFICE,),
        (F.DOCX, F.TXT): (LIBREOFFICE,),
        (F.DOC, F.TXT): (LIBREOFFICE,),
        (F.DOCX, F.HTML): (LIBREOFFICE,),
        (F.DOC, F.HTML): (LIBREOFFICE,),
        (F.PDF, F.DOCX): ("pdf-layout", LIBREOFFICE, "pdf-structure"),
        (F.PDF, F.TXT): ("pdf-text",),
        (F.XLSX, F.PDF): (LIBREOFFICE, "sheet-render"),
        (F.CSV, F.PDF): ("sheet-render", LIBREOFFICE),
        (F.XLSX, F.CSV): ("sheet-csv", LIBREOFFICE),
        (F.CSV, F.XLSX): ("csv-sheet", LIBREOFFICE),
        (F.TXT, F.PDF): ("text-render", LIBREOFFICE),
        (F.TXT, F.DOCX): ("text-docx", LIBREOFFICE),
        (F.XML, F.PDF): ("text-render",),
    }
)


class EngineRegistry:
    def __init__(
        self,
        adapters: Mapping[str, EngineAdapter] | Sequence[EngineAdapter],
        chains: Mapping[FormatPair, Sequence[str]] = FALLBACK_CHAINS,
    ) -> None:
        if isinstance(adapters, Mapping):
            self._adapters = dict(adapters)
        else:
            self._adapters = {adapter.name: adapter for adapter in adapters}
        self._chains: dict[FormatPair, tuple[str, ...]] = {}
        for pair, names in chains.items():
            if not names:
                raise ValueError(f"Empty fallback chain for {pair[0].value}->{pair[1].value}")
            unknown = [name for name in names if name not in self._adapters]
            if unknown:
                raise ValueError(f"Unknown engines {unknown} in chain for {pair[0].value}->{pair[1].value}")
            self._chains[pair] = tuple(names)

    def supports(self, source: F, target: F) -> bool:
        return (source, target) in self._chains

    def chain_for(self, source: F, target: F) -> list[EngineAdapter]:
        names = self._chains.get((source, target))
        if names is None:
            raise KeyError(f"No engine chain registered for {source.value}->{target.value}")
        return [self._adapters[name] for name in names]

    def supported_pairs(self) -> dict[FormatPair, tuple[str, ...]]:
        return dict(self._chains)

    def adapter(self, name: str) -> EngineAdapter:
        return self._adapters[name]

    @property
    def adapters(self) -> dict[str, EngineAdapter]:
        return dict(self._adapters)


def default_engines(config: AppConfig) -> list[EngineAdapter]:
    render_timeout = config.render.timeout_s
    return [
        LibreOfficeEngine(config.libreoffice),
        DocumentRenderEngine(config.render),
        SpreadsheetRenderEngine(config.render),
        TextRenderEngine(config.render),
        PdfLayoutEngine(render_timeout),
        PdfStructureEngine(render_timeout),
        PdfTextEngine(render_timeout),
        TextDocumentEngine(render_timeout),
        SheetCsvEngine(render_timeout),
        CsvSheetEngine(render_timeout),
    ]


def build_default_registry(config: AppConfig) -> EngineRegistry:
    registry = EngineRegistry(default_engines(config))
    logger.debug("Registered %d conversion pairs", len(registry.supported_pairs()))
    return registry


__all__ = ["EngineRegistry", "FALLBACK_CHAINS", "build_default_registry", "default_engines"]
