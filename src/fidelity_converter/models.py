"""Domain models for conversion requests and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ConversionError
from .formats import DocumentFormat
from .utils import generate_run_id


class QualityTier(str, Enum):
    DRAFT = "draft"
    STANDARD = "standard"
    HIGH = "high"


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    """Per-request knobs.

    ``preprocess`` of ``None`` means "use the configured default for the
    quality tier"; ``timeout_s`` can only shorten the configured deadline.
    """

    quality: QualityTier = QualityTier.STANDARD
    timeout_s: float | None = None
    preprocess: bool | None = None


@dataclass(frozen=True, slots=True)
class ConversionRequest:
    """One inbound conversion call. Never mutated after creation."""

    input_path: Path
    source_format: DocumentFormat
    target_format: DocumentFormat
    options: ConversionOptions = field(default_factory=ConversionOptions)
    output_path: Path | None = None
    request_id: str = field(default_factory=lambda: generate_run_id("conv"))

    @property
    def operation(self) -> str:
        return f"{self.source_format.value}->{self.target_format.value}"


@dataclass(slots=True)
class EngineAttempt:
    """Transient record of one step of a fallback chain."""

    engine: str
    succeeded: bool
    duration_ms: float
    error: ConversionError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "engine": self.engine,
            "succeeded": self.succeeded,
            "duration_ms": round(self.duration_ms, 2),
            "error_code": self.error.code if self.error else None,
        }


@dataclass(slots=True)
class PreprocessingSummary:
    applied: bool
    fixes: dict[str, int] = field(default_factory=dict)
    parts: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "applied": self.applied,
            "fixes": dict(self.fixes),
            "parts": list(self.parts),
            "error": self.error,
        }


@dataclass(slots=True)
class ConversionResult:
    """Result metadata for an individual conversion."""

    request_id: str
    success: bool
    duration_ms: float
    method: str | None
    output_path: Path | None = None
    error_code: str | None = None
    error_message: str | None = None
    fidelity: float | None = None
    preprocessing: PreprocessingSummary | None = None
    attempts: list[EngineAttempt] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.success and self.output_path is None:
            raise ValueError("successful result requires an output path")
        if not self.success and self.output_path is not None:
            raise ValueError("failed result must not carry an output path")
        if not self.success and self.error_code is None:
            raise ValueError("failed result requires an error code")

    @property
    def degraded(self) -> bool:
        return self.preprocessing is not None and self.preprocessing.error is not None

    def to_payload(self) -> dict[str, Any]:
        """Caller-facing view: no filesystem paths, no engine output."""

        payload: dict[str, Any] = {
            "request_id": self.request_id,
            "success": self.success,
            "method": self.method,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.success:
            payload["fidelity"] = self.fidelity
            if self.output_path is not None:
                payload["filename"] = self.output_path.name
        else:
            payload["error"] = {"code": self.error_code, "message": self.error_message}
        if self.preprocessing is not None:
            payload["preprocessing"] = {
                "applied": self.preprocessing.applied,
                "fixes": dict(self.preprocessing.fixes),
                "degraded": self.degraded,
            }
        return payload


__all__ = [
    "ConversionOptions",
    "ConversionRequest",
    "ConversionResult",
    "EngineAttempt",
    "PreprocessingSummary",
    "QualityTier",
]
