from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StageTimings:
    gate_ms: float = 0.0
    preprocess_ms: float = 0.0
    convert_ms: float = 0.0
    publish_ms: float = 0.0


@dataclass(slots=True)
class TelemetryEvent:
    operation: str
    duration_ms: float
    success: bool
    request_id: str
    method: str | None = None
    error: str | None = None
    attempts: list[dict[str, Any]] = field(default_factory=list)
    timings: StageTimings = field(default_factory=StageTimings)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class TelemetrySink(Protocol):
    def record(self, event: TelemetryEvent) -> None:  # pragma: no cover - interface
        ...


class TelemetryLogger:
    """Append-only JSONL sink, one line per finished conversion."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def log_file(self) -> Path:
        return self._log_file

    def record(self, event: TelemetryEvent) -> None:
        line = json.dumps(event.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


def emit(sink: TelemetrySink | None, event: TelemetryEvent) -> None:
    """Deliver *event* without letting a broken sink affect the caller."""

    if sink is None:
        return
    try:
        sink.record(event)
    except Exception:
        logger.warning("Telemetry sink failed for %s", event.request_id, exc_info=True)


__all__ = ["StageTimings", "TelemetryEvent", "TelemetryLogger", "TelemetrySink", "emit"]
