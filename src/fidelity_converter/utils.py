from __future__ import annotations

import asyncio
import hashlib
import os
import re
import shutil
import tempfile
import time
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, TypeVar

T = TypeVar("T")

SAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(value: str, max_length: int = 120) -> str:
    normalized = SAFE_FILENAME_RE.sub("-", value.strip())
    normalized = re.sub("-+", "-", normalized)
    normalized = normalized.replace("-.", ".")
    normalized = normalized.strip("-._")
    if not normalized:
        normalized = "file"
    if len(normalized) > max_length:
        normalized = normalized[:max_length]
    return normalized


def generate_run_id(prefix: str = "run") -> str:
    epoch_ms = int(time.time() * 1000)
    random_bits = hashlib.sha256(os.urandom(16)).hexdigest()[:8]
    return f"{prefix}-{epoch_ms}-{random_bits}"


@contextmanager
def request_workspace(temp_root: Path, request_id: str) -> Iterator[Path]:
    """Create a private scratch directory and remove it on every exit path."""

    temp_root.mkdir(parents=True, exist_ok=True)
    workspace = Path(tempfile.mkdtemp(prefix=f"{slugify(request_id)}-", dir=temp_root))
    try:
        yield workspace
    finally:
        shutil.rmtree(workspace, ignore_errors=True)


def atomic_write(path: Path, data: str, encoding: str = "utf-8") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", delete=False, dir=path.parent, encoding=encoding) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
    os.replace(tmp.name, path)


def publish_file(source: Path, destination: Path) -> Path:
    """Move *source* onto *destination*, replacing whatever is there."""

    destination.parent.mkdir(parents=True, exist_ok=True)
    try:
        os.replace(source, destination)
    except OSError:
        # different filesystem: copy next to the target, then swap
        with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent) as tmp:
            tmp_path = Path(tmp.name)
        try:
            shutil.copy2(source, tmp_path)
            os.replace(tmp_path, destination)
        finally:
            tmp_path.unlink(missing_ok=True)
        source.unlink(missing_ok=True)
    return destination


def normalize_newlines(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.splitlines()) + "\n"


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Execute *func* in a worker thread and return the result."""

    return await asyncio.to_thread(func, *args, **kwargs)


__all__ = [
    "atomic_write",
    "generate_run_id",
    "normalize_newlines",
    "publish_file",
    "request_workspace",
    "run_sync",
    "slugify",
]
