from __future__ import annotations

import logging
import time
import zipfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from lxml import etree

from ..config import PreprocessingConfig
from ..errors import PreprocessingError
from ..formats import DocumentFormat
from ..models import PreprocessingSummary
from .colors import THEME_COLORS, normalize_colors
from .context import PartContext
from .counters import FixCounters
from .effects import strip_effects
from .fonts import FONT_SUBSTITUTIONS, FontSubstitution, normalize_fonts
from .layout import canonicalize_toggles, normalize_images, normalize_settings, simplify_numbering
from .ooxml import (
    ALL_KINDS,
    CONTENT_KINDS,
    FORMATTING_KINDS,
    THEME_PART,
    PartKind,
    ThemeFonts,
    classify_part,
    parse_part,
    read_theme_fonts,
    serialize_part,
)
from .spacing import normalize_pagination, normalize_spacing
from .styles import flatten_styles
from .tables import optimize_tables

logger = logging.getLogger(__name__)

PhaseFunc = Callable[[etree._Element, FixCounters, PartContext], None]


@dataclass(frozen=True, slots=True)
class Phase:
    name: str
    apply: PhaseFunc
    kinds: frozenset[PartKind]


PHASES: tuple[Phase, ...] = (
    Phase("fonts", normalize_fonts, ALL_KINDS - {PartKind.SETTINGS}),
    Phase("colors", normalize_colors, ALL_KINDS - {PartKind.SETTINGS}),
    Phase("tables", optimize_tables, FORMATTING_KINDS),
    Phase("spacing", normalize_spacing, FORMATTING_KINDS | {PartKind.NUMBERING}),
    Phase("pagination", normalize_pagination, FORMATTING_KINDS),
    Phase("effects", strip_effects, ALL_KINDS - {PartKind.SETTINGS}),
    Phase("images", normalize_images, CONTENT_KINDS),
    Phase("run-properties", canonicalize_toggles, ALL_KINDS - {PartKind.SETTINGS}),
    Phase("numbering", simplify_numbering, frozenset({PartKind.NUMBERING})),
    Phase("settings", normalize_settings, frozenset({PartKind.SETTINGS})),
    Phase("styles", flatten_styles, frozenset({PartKind.STYLES})),
)

FEATURES: tuple[str, ...] = tuple(phase.name for phase in PHASES)


@dataclass(slots=True)
class PreprocessingReport:
    fixes: FixCounters
    parts: tuple[str, ...] = ()
    duration_ms: float = 0.0

    def to_summary(self) -> PreprocessingSummary:
        return PreprocessingSummary(applied=True, fixes=self.fixes.as_dict(), parts=self.parts)


@dataclass(slots=True)
class PartRewrite:
    name: str
    counters: FixCounters = field(default_factory=FixCounters)
    data: bytes | None = None

    @property
    def changed(self) -> bool:
        return self.data is not None


class PreprocessingEngine:
    """Rewrites the XML parts of a word-processing package for portable rendering.

    Only the parts matched by :func:`classify_part` are parsed. A part whose
    phases report no fixes keeps its original bytes, and every other entry of
    the package (images, embedded objects, relationships) is copied through
    untouched in its original order.
    """

    def __init__(
        self,
        config: PreprocessingConfig | None = None,
        *,
        fonts: Mapping[str, FontSubstitution] | None = None,
        colors: Mapping[str, str] | None = None,
        phases: tuple[Phase, ...] = PHASES,
    ) -> None:
        self._config = config or PreprocessingConfig()
        self._fonts = dict(fonts) if fonts is not None else FONT_SUBSTITUTIONS
        self._colors = dict(colors) if colors is not None else THEME_COLORS
        self._phases = phases

    @property
    def features(self) -> tuple[str, ...]:
        return tuple(phase.name for phase in self._phases)

    def applies_to(self, document_format: DocumentFormat) -> bool:
        return document_format is DocumentFormat.DOCX

    def context_for(self, name: str, kind: PartKind, theme_fonts: ThemeFonts | None = None) -> PartContext:
        return PartContext(
            kind=kind,
            name=name,
            theme_fonts=theme_fonts or ThemeFonts(),
            fonts=self._fonts,
            colors=self._colors,
            content_width_dxa=self._config.content_width_dxa,
        )

    def rewrite_part(
        self,
        name: str,
        data: bytes,
        theme_fonts: ThemeFonts | None = None,
    ) -> PartRewrite:
        kind = classify_part(name)
        rewrite = PartRewrite(name=name)
        if kind is None:
            return rewrite
        try:
            root = parse_part(data)
        except etree.XMLSyntaxError as exc:
            raise PreprocessingError("parse", "Document part is not well-formed XML", detail=f"{name}: {exc}") from exc
        context = self.context_for(name, kind, theme_fonts)
        for phase in self._phases:
            if kind not in phase.kinds:
                continue
            try:
                phase.apply(root, rewrite.counters, context)
            except Exception as exc:
                raise PreprocessingError(
                    phase.name,
                    f"Preprocessing phase '{phase.name}' failed",
                    detail=f"{name}: {exc!r}",
                ) from exc
        if rewrite.counters.total:
            rewrite.data = serialize_part(root)
        return rewrite

    def process(self, source: Path, destination: Path) -> PreprocessingReport:
        """Write a normalized copy of *source* to *destination*.

        On any failure *destination* is removed and :class:`PreprocessingError`
        is raised; the caller keeps using the original input.
        """

        if source.resolve() == destination.resolve():
            raise PreprocessingError("package", "Preprocessing needs a separate destination")
        started = time.perf_counter()
        counters = FixCounters()
        try:
            with zipfile.ZipFile(source) as archive:
                theme_fonts = self._theme_fonts(archive)
                rewritten: dict[str, bytes] = {}
                for info in archive.infolist():
                    if classify_part(info.filename) is None:
                        continue
                    rewrite = self.rewrite_part(info.filename, archive.read(info), theme_fonts)
                    counters.merge(rewrite.counters)
                    if rewrite.changed:
                        rewritten[info.filename] = rewrite.data  # type: ignore[assignment]
                self._write_package(archive, destination, rewritten)
        except PreprocessingError:
            destination.unlink(missing_ok=True)
            raise
        except Exception as exc:
            destination.unlink(missing_ok=True)
            raise PreprocessingError(
                "package",
                "Document package could not be preprocessed",
                detail=f"{source.name}: {exc}",
            ) from exc
        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Preprocessed %s: %d fixes across %d parts in %.1f ms",
            source.name,
            counters.total,
            len(rewritten),
            duration_ms,
        )
        return PreprocessingReport(fixes=counters, parts=tuple(sorted(rewritten)), duration_ms=duration_ms)

    def _theme_fonts(self, archive: zipfile.ZipFile) -> ThemeFonts:
        try:
            data = archive.read(THEME_PART)
        except KeyError:
            return ThemeFonts()
        try:
            return read_theme_fonts(data)
        except etree.XMLSyntaxError:
            logger.warning("Theme part is not well-formed; using default theme fonts")
            return ThemeFonts()

    @staticmethod
    def _write_package(
        archive: zipfile.ZipFile,
        destination: Path,
        rewritten: Mapping[str, bytes],
    ) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(destination, "w") as target:
            for info in archive.infolist():
                data = rewritten.get(info.filename)
                if data is None:
                    data = archive.read(info)
                entry = zipfile.ZipInfo(info.filename, date_time=info.date_time)
                entry.compress_type = info.compress_type
                entry.external_attr = info.external_attr
                entry.create_system = info.create_system
                target.writestr(entry, data)


__all__ = ["FEATURES", "PHASES", "Phase", "PreprocessingEngine", "PreprocessingReport", "PartRewrite"]
