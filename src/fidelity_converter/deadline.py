from __future__ import annotations

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, TypeVar

from .errors import EngineTimeout

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Deadline:
    """Absolute point on the monotonic clock by which a request must finish."""

    expires_at: float

    @classmethod
    def after(cls, seconds: float) -> "Deadline":
        return cls(time.monotonic() + max(seconds, 0.0))

    def remaining(self) -> float:
        return max(self.expires_at - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def budget(self, cap: float | None = None) -> float:
        remaining = self.remaining()
        if cap is None:
            return remaining
        return min(remaining, max(cap, 0.0))


async def run_bounded(
    awaitable: Awaitable[T],
    *,
    deadline: Deadline,
    engine: str,
    cap: float | None = None,
) -> T:
    """Await *awaitable* within the request deadline and the engine's own cap.

    On expiry the wrapped task is cancelled; subprocess adapters kill their
    child process from the resulting ``CancelledError``.
    """

    timeout = deadline.budget(cap)
    if timeout <= 0:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise EngineTimeout(engine, f"Conversion engine '{engine}' had no time left to run")
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as exc:
        raise EngineTimeout(
            engine,
            f"Conversion engine '{engine}' timed out",
            detail=f"exceeded {timeout:.1f}s",
        ) from exc


__all__ = ["Deadline", "run_bounded"]
