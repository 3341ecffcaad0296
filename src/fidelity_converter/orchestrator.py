from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import AppConfig
from .deadline import Deadline, run_bounded
from .engines import EngineAdapter, EngineJob, EngineOutput, EngineRegistry, LibreOfficeEngine
from .engines.registry import build_default_registry
from .errors import (
    ConversionError,
    EngineExecutionError,
    EngineTimeout,
    PreprocessingError,
    PublishError,
    UnsupportedConversion,
    ValidationError,
)
from .gate import CONVERSION, FILE_ACCESS, ResourceGate
from .models import (
    ConversionRequest,
    ConversionResult,
    EngineAttempt,
    PreprocessingSummary,
    QualityTier,
)
from .preprocessing import PreprocessingEngine
from .telemetry import StageTimings, TelemetryEvent, TelemetryLogger, TelemetrySink, emit
from .utils import publish_file, request_workspace, run_sync, slugify

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


@dataclass(slots=True)
class _ConversionContext:
    request: ConversionRequest
    workspace: Path
    deadline: Deadline
    timings: StageTimings = field(default_factory=StageTimings)
    attempts: list[EngineAttempt] = field(default_factory=list)
    preprocessing: PreprocessingSummary | None = None


@dataclass(slots=True)
class _Outcome:
    adapter: EngineAdapter
    output: EngineOutput


class ConversionOrchestrator:
    """Runs one request through gate, preprocessing, the engine chain and publishing.

    ``convert`` never raises for a conversion failure: every request ends in
    exactly one :class:`ConversionResult` and one telemetry event. The request
    workspace is removed on every path, including cancellation.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        gate: ResourceGate | None = None,
        registry: EngineRegistry | None = None,
        preprocessor: PreprocessingEngine | None = None,
        telemetry: TelemetrySink | None = None,
    ) -> None:
        self._config = config
        self._gate = gate or ResourceGate.from_config(config.gate)
        self._registry = registry or build_default_registry(config)
        self._preprocessor = preprocessor or PreprocessingEngine(config.preprocessing)
        self._telemetry = telemetry

    @classmethod
    def from_config(cls, config: AppConfig, *, telemetry: TelemetrySink | None = None) -> "ConversionOrchestrator":
        return cls(config, telemetry=telemetry or TelemetryLogger(config.runtime.telemetry_log))

    @property
    def gate(self) -> ResourceGate:
        return self._gate

    @property
    def registry(self) -> EngineRegistry:
        return self._registry

    async def convert(self, request: ConversionRequest) -> ConversionResult:
        start = time.perf_counter()
        context: _ConversionContext | None = None
        try:
            chain = self._validate(request)
            destination = self._destination(request)
            deadline = self._compute_deadline(request)
            with request_workspace(self._config.runtime.temp_root, request.request_id) as workspace:
                context = _ConversionContext(request=request, workspace=workspace, deadline=deadline)
                outcome = await self._convert_internal(chain, context)
                published = await self._publish(outcome.output.output_path, destination, context)
        except ConversionError as exc:
            result = self._failure(request, context, exc, start)
        else:
            assert context is not None
            result = ConversionResult(
                request_id=request.request_id,
                success=True,
                duration_ms=_elapsed_ms(start),
                method=outcome.adapter.name,
                output_path=published,
                fidelity=outcome.output.fidelity,
                preprocessing=context.preprocessing,
                attempts=context.attempts,
            )
            logger.info(
                "Converted %s (%s) with %s in %.0f ms",
                request.input_path.name,
                request.operation,
                result.method,
                result.duration_ms,
            )
        self._emit(request, result, context)
        return result

    async def _convert_internal(self, chain: list[EngineAdapter], context: _ConversionContext) -> _Outcome:
        gate_start = time.perf_counter()
        acquire_timeout = min(self._config.gate.acquire_timeout_s, context.deadline.remaining())
        async with self._gate.hold(CONVERSION, timeout=acquire_timeout):
            context.timings.gate_ms = _elapsed_ms(gate_start)
            source_path = await self._preprocess(context)
            return await self._run_chain(chain, source_path, context)

    def _validate(self, request: ConversionRequest) -> list[EngineAdapter]:
        path = request.input_path
        if not path.is_file():
            raise ValidationError("Input file does not exist", detail=str(path))
        if path.stat().st_size == 0:
            raise ValidationError("Input file is empty", detail=str(path))
        try:
            return self._registry.chain_for(request.source_format, request.target_format)
        except KeyError as exc:
            raise UnsupportedConversion(request.source_format.value, request.target_format.value) from exc

    def _destination(self, request: ConversionRequest) -> Path:
        if request.output_path is not None:
            destination = request.output_path
        else:
            name = f"{slugify(request.input_path.stem)}{request.target_format.extension}"
            destination = self._config.runtime.output_dir / name
        if destination.resolve() == request.input_path.resolve():
            raise ValidationError("Output would overwrite the input file", detail=str(destination))
        return destination

    def _compute_deadline(self, request: ConversionRequest) -> Deadline:
        candidate = float(self._config.runtime.convert_timeout_s)
        if request.options.timeout_s is not None:
            candidate = min(candidate, float(request.options.timeout_s))
        return Deadline.after(max(candidate, 0.0))

    def _should_preprocess(self, request: ConversionRequest) -> bool:
        if not self._preprocessor.applies_to(request.source_format):
            return False
        if request.options.preprocess is not None:
            return request.options.preprocess
        return self._config.preprocessing.enabled and request.options.quality is not QualityTier.DRAFT

    async def _preprocess(self, context: _ConversionContext) -> Path:
        request = context.request
        if not self._should_preprocess(request):
            return request.input_path
        started = time.perf_counter()
        staged = context.workspace / f"preprocessed{request.source_format.extension}"
        try:
            report = await run_sync(self._preprocessor.process, request.input_path, staged)
        except PreprocessingError as exc:
            logger.warning(
                "Preprocessing %s failed in phase %s; converting the original: %s",
                request.request_id,
                exc.phase,
                exc.describe(),
            )
            context.preprocessing = PreprocessingSummary(applied=False, error=f"{exc.code}: {exc.message}")
            return request.input_path
        finally:
            context.timings.preprocess_ms = _elapsed_ms(started)
        context.preprocessing = report.to_summary()
        return staged

    async def _run_chain(
        self,
        chain: list[EngineAdapter],
        source_path: Path,
        context: _ConversionContext,
    ) -> _Outcome:
        request = context.request
        preprocessed = source_path != request.input_path
        last_error: ConversionError | None = None
        convert_start = time.perf_counter()
        try:
            for index, adapter in enumerate(chain):
                workdir = context.workspace / f"{index}-{slugify(adapter.name)}"
                workdir.mkdir(parents=True, exist_ok=True)
                job = EngineJob(
                    input_path=source_path,
                    source=request.source_format,
                    target=request.target_format,
                    output_path=workdir / f"output{request.target_format.extension}",
                    workdir=workdir,
                    quality=request.options.quality,
                    preprocessed=preprocessed,
                )
                attempt_start = time.perf_counter()
                try:
                    output = await run_bounded(
                        adapter.convert(job),
                        deadline=context.deadline,
                        engine=adapter.name,
                        cap=adapter.timeout_for(job),
                    )
                except ConversionError as exc:
                    last_error = exc
                except Exception as exc:
                    logger.exception("Engine %s raised unexpectedly", adapter.name)
                    last_error = EngineExecutionError(
                        adapter.name,
                        f"Conversion engine '{adapter.name}' failed",
                        detail=f"{type(exc).__name__}: {exc}",
                    )
                else:
                    context.attempts.append(EngineAttempt(adapter.name, True, _elapsed_ms(attempt_start)))
                    return _Outcome(adapter, output)

                context.attempts.append(EngineAttempt(adapter.name, False, _elapsed_ms(attempt_start), last_error))
                logger.warning("Engine %s failed for %s: %s", adapter.name, request.request_id, last_error.describe())
                if isinstance(last_error, EngineTimeout) and context.deadline.expired:
                    break
        finally:
            context.timings.convert_ms = _elapsed_ms(convert_start)
        assert last_error is not None
        raise last_error

    async def _publish(self, staged: Path, destination: Path, context: _ConversionContext) -> Path:
        started = time.perf_counter()
        key = str(destination.resolve())
        async with self._gate.hold(FILE_ACCESS, key=key, timeout=self._config.gate.acquire_timeout_s):
            try:
                published = await run_sync(publish_file, staged, destination)
            except OSError as exc:
                raise PublishError(
                    "The converted file could not be written to its destination",
                    detail=f"{destination}: {exc}",
                ) from exc
        context.timings.publish_ms = _elapsed_ms(started)
        return published

    def _failure(
        self,
        request: ConversionRequest,
        context: _ConversionContext | None,
        exc: ConversionError,
        start: float,
    ) -> ConversionResult:
        logger.warning("Conversion %s (%s) failed: %s", request.request_id, request.operation, exc.describe())
        attempts = context.attempts if context else []
        return ConversionResult(
            request_id=request.request_id,
            success=False,
            duration_ms=_elapsed_ms(start),
            method=attempts[-1].engine if attempts else None,
            error_code=exc.code,
            error_message=exc.message,
            preprocessing=context.preprocessing if context else None,
            attempts=list(attempts),
        )

    def _emit(
        self,
        request: ConversionRequest,
        result: ConversionResult,
        context: _ConversionContext | None,
    ) -> None:
        emit(
            self._telemetry,
            TelemetryEvent(
                operation=request.operation,
                duration_ms=round(result.duration_ms, 2),
                success=result.success,
                request_id=request.request_id,
                method=result.method,
                error=result.error_code,
                attempts=[attempt.to_dict() for attempt in result.attempts],
                timings=context.timings if context else StageTimings(),
            ),
        )

    async def capabilities(self) -> dict[str, Any]:
        """Supported pairs with their chains, engine availability, preprocessing and gate state."""

        adapters = self._registry.adapters
        availability = {name: await adapter.available() for name, adapter in adapters.items()}
        version = None
        libreoffice = adapters.get("libreoffice")
        if isinstance(libreoffice, LibreOfficeEngine) and availability.get("libreoffice"):
            version = await libreoffice.version()
        return {
            "conversions": {
                f"{source.value}->{target.value}": list(chain)
                for (source, target), chain in sorted(
                    self._registry.supported_pairs().items(),
                    key=lambda item: (item[0][0].value, item[0][1].value),
                )
            },
            "engines": availability,
            "libreoffice_version": version,
            "preprocessing": list(self._preprocessor.features),
            "gate": self._gate.stats().to_dict(),
        }


__all__ = ["ConversionOrchestrator"]
