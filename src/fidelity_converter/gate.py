"""Bounded-concurrency gate.

A gate owns a fixed set of named pools ("conversion", "file-access") and a
lazily grown map of keyed sub-locks. Acquiring a keyed slot takes the
sub-lock first and the pool slot second, so requests queued behind the same
key do not sit on pool capacity while they wait.

All counters are mutated from the event loop without intervening awaits, so
acquire and release are atomic with respect to each other. An idle gate can
be reused from a new event loop; slots held on one loop cannot be waited for
from another.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from .config import GateConfig
from .errors import ResourceGateTimeout

logger = logging.getLogger(__name__)

CONVERSION = "conversion"
FILE_ACCESS = "file-access"


@dataclass(frozen=True, slots=True)
class SlotStats:
    capacity: int
    available: int
    waiting: int

    def to_dict(self) -> dict[str, int]:
        return {"capacity": self.capacity, "available": self.available, "waiting": self.waiting}


@dataclass(frozen=True, slots=True)
class GateStats:
    pools: dict[str, SlotStats]
    resources: dict[str, SlotStats]

    def to_dict(self) -> dict[str, Any]:
        return {
            "pools": {name: stats.to_dict() for name, stats in self.pools.items()},
            "resources": {name: stats.to_dict() for name, stats in self.resources.items()},
        }


class _SlotPool:
    def __init__(self, name: str, capacity: int) -> None:
        _check_capacity(capacity)
        self.name = name
        self.capacity = capacity
        self._semaphore = asyncio.Semaphore(capacity)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_use = 0
        self._waiting = 0

    def _bind(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is loop:
            return
        if self._in_use or self._waiting:
            raise RuntimeError(f"Gate pool {self.name!r} is held on another event loop")
        # an idle pool moves to the caller's loop; a busy one stays on its own
        self._semaphore = asyncio.Semaphore(self.capacity)
        self._loop = loop

    async def acquire(self, timeout: float | None) -> None:
        self._bind()
        if not self._semaphore.locked():
            await self._semaphore.acquire()
        else:
            self._waiting += 1
            try:
                if timeout is None:
                    await self._semaphore.acquire()
                else:
                    await asyncio.wait_for(self._semaphore.acquire(), max(timeout, 0.0))
            finally:
                self._waiting -= 1
        self._in_use += 1

    def release(self) -> None:
        self._in_use -= 1
        self._semaphore.release()

    def snapshot(self) -> SlotStats:
        return SlotStats(
            capacity=self.capacity,
            available=self.capacity - self._in_use,
            waiting=self._waiting,
        )


def _check_capacity(value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"maxConcurrency must be a positive integer, got {value!r}")


@dataclass(eq=False, slots=True)
class ResourceLock:
    """Handle for one acquired slot. Releasing more than once is a no-op."""

    resource: str
    wait_ms: float
    releaser: Callable[[], None] = field(repr=False)
    released: bool = False

    def release(self) -> bool:
        if self.released:
            return False
        self.released = True
        self.releaser()
        return True

    def __enter__(self) -> "ResourceLock":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    async def __aenter__(self) -> "ResourceLock":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()


class ResourceGate:
    def __init__(self, pools: Mapping[str, int] | None = None) -> None:
        if pools is None:
            pools = {CONVERSION: GateConfig().conversion_slots, FILE_ACCESS: GateConfig().file_access_slots}
        self._pools = {name: _SlotPool(name, capacity) for name, capacity in pools.items()}
        self._resources: dict[str, _SlotPool] = {}

    @classmethod
    def from_config(cls, config: GateConfig) -> "ResourceGate":
        return cls({CONVERSION: config.conversion_slots, FILE_ACCESS: config.file_access_slots})

    @property
    def kinds(self) -> tuple[str, ...]:
        return tuple(self._pools)

    async def acquire(
        self,
        kind: str,
        key: str | None = None,
        max_concurrency: int = 1,
        timeout: float | None = None,
    ) -> ResourceLock:
        pool = self._pool(kind)
        _check_capacity(max_concurrency)
        if timeout is not None and timeout < 0:
            raise ValueError(f"timeout must be non-negative, got {timeout!r}")

        started = time.perf_counter()
        expires_at = None if timeout is None else started + timeout
        stages = [self._resource(kind, key, max_concurrency), pool] if key else [pool]
        held: list[_SlotPool] = []
        try:
            for stage in stages:
                remaining = None if expires_at is None else expires_at - time.perf_counter()
                await stage.acquire(remaining)
                held.append(stage)
        except TimeoutError as exc:
            self._release_all(held)
            waited_ms = (time.perf_counter() - started) * 1000
            logger.debug("Gate %s key=%s timed out after %.0f ms", kind, key, waited_ms)
            raise ResourceGateTimeout(kind, key, waited_ms) from exc
        except BaseException:
            self._release_all(held)
            raise

        wait_ms = (time.perf_counter() - started) * 1000
        resource = f"{kind}:{key}" if key else kind
        return ResourceLock(resource=resource, wait_ms=wait_ms, releaser=lambda: self._release_all(held))

    def release(self, lock: ResourceLock) -> bool:
        return lock.release()

    @asynccontextmanager
    async def hold(
        self,
        kind: str,
        key: str | None = None,
        max_concurrency: int = 1,
        timeout: float | None = None,
    ) -> AsyncIterator[ResourceLock]:
        lock = await self.acquire(kind, key, max_concurrency, timeout)
        try:
            yield lock
        finally:
            lock.release()

    def stats(self) -> GateStats:
        return GateStats(
            pools={name: pool.snapshot() for name, pool in self._pools.items()},
            resources={name: pool.snapshot() for name, pool in self._resources.items()},
        )

    def _pool(self, kind: str) -> _SlotPool:
        try:
            return self._pools[kind]
        except KeyError:
            raise ValueError(f"Unknown gate kind {kind!r}; expected one of {sorted(self._pools)}") from None

    def _resource(self, kind: str, key: str, max_concurrency: int) -> _SlotPool:
        name = f"{kind}:{key}"
        existing = self._resources.get(name)
        if existing is None:
            existing = _SlotPool(name, max_concurrency)
            self._resources[name] = existing
        elif existing.capacity != max_concurrency:
            logger.warning(
                "Sub-lock %s already configured with %d slots; ignoring request for %d",
                name,
                existing.capacity,
                max_concurrency,
            )
        return existing

    @staticmethod
    def _release_all(held: list[_SlotPool]) -> None:
        for stage in reversed(held):
            stage.release()


__all__ = [
    "CONVERSION",
    "FILE_ACCESS",
    "GateStats",
    "ResourceGate",
    "ResourceLock",
    "SlotStats",
]
