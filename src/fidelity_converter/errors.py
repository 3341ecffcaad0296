"""Error taxonomy shared by the gate, the engines and the orchestrator.

Every error carries a stable ``code`` and a ``message`` that is safe to show
to a caller. Anything that may contain filesystem paths or engine output goes
into ``detail`` and is only ever written to the diagnostic log.
"""

from __future__ import annotations


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.detail = detail

    def describe(self) -> str:
        if self.detail:
            return f"{self.code}: {self.message} ({self.detail})"
        return f"{self.code}: {self.message}"


class ValidationError(ConversionError):
    """Request rejected before any engine was tried."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__("VALIDATION_ERROR", message, detail=detail)


class UnsupportedConversion(ValidationError):
    def __init__(self, source: str, target: str) -> None:
        super().__init__(f"Conversion from {source} to {target} is not supported")
        self.code = "UNSUPPORTED_CONVERSION"


class EngineError(ConversionError):
    code_name = "ENGINE_ERROR"

    def __init__(self, engine: str, message: str, *, detail: str | None = None) -> None:
        super().__init__(self.code_name, message, detail=detail)
        self.engine = engine


class EngineNotFound(EngineError):
    code_name = "ENGINE_NOT_FOUND"


class EngineTimeout(EngineError):
    code_name = "ENGINE_TIMEOUT"


class EngineExecutionError(EngineError):
    code_name = "ENGINE_EXECUTION_FAILED"

    def __init__(
        self,
        engine: str,
        message: str,
        *,
        detail: str | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(engine, message, detail=detail)
        self.exit_code = exit_code


class PreprocessingError(ConversionError):
    """Raised by the preprocessing engine; always recovered by the orchestrator."""

    def __init__(self, phase: str, message: str, *, detail: str | None = None) -> None:
        super().__init__("PREPROCESSING_FAILED", message, detail=detail)
        self.phase = phase


class PublishError(ConversionError):
    """The converted artifact could not be moved to its destination."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__("PUBLISH_FAILED", message, detail=detail)


class ResourceGateTimeout(ConversionError):
    def __init__(self, kind: str, key: str | None, waited_ms: float) -> None:
        target = f"{kind}:{key}" if key else kind
        super().__init__(
            "GATE_TIMEOUT",
            "Server is busy, no conversion slot became available in time",
            detail=f"{target} busy after {waited_ms:.0f} ms",
        )
        self.kind = kind
        self.key = key
        self.waited_ms = waited_ms


__all__ = [
    "ConversionError",
    "EngineError",
    "EngineExecutionError",
    "EngineNotFound",
    "EngineTimeout",
    "PreprocessingError",
    "PublishError",
    "ResourceGateTimeout",
    "UnsupportedConversion",
    "ValidationError",
]
