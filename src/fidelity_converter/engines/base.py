from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ..errors import ConversionError, EngineExecutionError
from ..formats import DocumentFormat
from ..models import QualityTier
from ..utils import run_sync

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EngineJob:
    """One engine attempt.

    ``output_path`` is a staging location inside ``workdir``; the orchestrator
    publishes it to the caller's destination once the attempt succeeds.
    """

    input_path: Path
    source: DocumentFormat
    target: DocumentFormat
    output_path: Path
    workdir: Path
    quality: QualityTier = QualityTier.STANDARD
    preprocessed: bool = False


@dataclass(slots=True)
class EngineOutput:
    output_path: Path
    fidelity: float | None = None
    warnings: list[str] = field(default_factory=list)


class EngineAdapter(Protocol):
    name: str

    def timeout_for(self, job: EngineJob) -> float | None:  # pragma: no cover - interface
        ...

    async def convert(self, job: EngineJob) -> EngineOutput:  # pragma: no cover - interface
        ...

    async def available(self) -> bool:  # pragma: no cover - interface
        ...


def verify_output(produced: Path, engine: str) -> Path:
    if not produced.is_file():
        raise EngineExecutionError(
            engine,
            f"Conversion engine '{engine}' produced no output",
            detail=f"missing {produced}",
        )
    if produced.stat().st_size == 0:
        raise EngineExecutionError(
            engine,
            f"Conversion engine '{engine}' produced an empty file",
            detail=f"empty {produced}",
        )
    return produced


class LibraryEngine:
    """Base for engines backed by an in-process Python library.

    ``render`` runs in a worker thread; whatever it raises is reported as an
    :class:`EngineExecutionError` so the orchestrator can fall back.
    """

    name = "library"
    fidelity: float | None = None

    def __init__(self, timeout_s: float | None = 60.0) -> None:
        self._timeout_s = timeout_s

    def timeout_for(self, job: EngineJob) -> float | None:
        return self._timeout_s

    async def available(self) -> bool:
        return True

    async def convert(self, job: EngineJob) -> EngineOutput:
        job.output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            warnings = await run_sync(self.render, job)
        except ConversionError:
            raise
        except Exception as exc:
            logger.debug("%s failed on %s", self.name, job.input_path, exc_info=True)
            raise EngineExecutionError(
                self.name,
                f"Conversion engine '{self.name}' failed",
                detail=f"{type(exc).__name__}: {exc}",
            ) from exc
        verify_output(job.output_path, self.name)
        return EngineOutput(job.output_path, self.fidelity, list(warnings or []))

    def render(self, job: EngineJob) -> list[str] | None:
        raise NotImplementedError


__all__ = ["EngineAdapter", "EngineJob", "EngineOutput", "LibraryEngine", "verify_output"]
