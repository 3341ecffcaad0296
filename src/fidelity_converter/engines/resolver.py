"""Locating the LibreOffice executable.

Candidates are checked in priority order: the forced bundled runtime, the
configured override, well-known system installs, and finally the bundled
runtime again. Every candidate must pass :meth:`LibreOfficePathResolver.is_allowed`
before it is returned; a rejected candidate is logged and skipped, never run.
"""

from __future__ import annotations

import glob
import logging
import os
import sys
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from ..config import LibreOfficeConfig
from ..errors import EngineNotFound

logger = logging.getLogger(__name__)

ENGINE_NAME = "libreoffice"


@dataclass(frozen=True, slots=True)
class ExecutableSpec:
    filename: str
    parent_dir: str


def platform_spec(platform: str | None = None) -> ExecutableSpec:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return ExecutableSpec("soffice.exe", "program")
    if platform == "darwin":
        return ExecutableSpec("soffice", "MacOS")
    return ExecutableSpec("soffice", "program")


def system_candidates(platform: str | None = None) -> list[Path]:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return [
            Path(r"C:\Program Files\LibreOffice\program\soffice.exe"),
            Path(r"C:\Program Files (x86)\LibreOffice\program\soffice.exe"),
        ]
    if platform == "darwin":
        return [Path("/Applications/LibreOffice.app/Contents/MacOS/soffice")]
    candidates = [
        Path("/usr/lib/libreoffice/program/soffice"),
        Path("/usr/lib64/libreoffice/program/soffice"),
        Path("/usr/local/lib/libreoffice/program/soffice"),
        Path("/opt/libreoffice/program/soffice"),
        Path("/snap/libreoffice/current/lib/libreoffice/program/soffice"),
    ]
    candidates.extend(Path(match) for match in sorted(glob.glob("/opt/libreoffice*/program/soffice")))
    return candidates


def system_base_dirs(platform: str | None = None) -> list[Path]:
    platform = platform or sys.platform
    if platform.startswith("win"):
        return [Path(r"C:\Program Files"), Path(r"C:\Program Files (x86)")]
    if platform == "darwin":
        return [Path("/Applications")]
    return [Path("/usr/lib"), Path("/usr/lib64"), Path("/usr/local/lib"), Path("/opt"), Path("/snap")]


class LibreOfficePathResolver:
    def __init__(
        self,
        config: LibreOfficeConfig,
        *,
        app_dir: Path | None = None,
        candidates: Sequence[Path] | None = None,
        base_dirs: Sequence[Path] | None = None,
        spec: ExecutableSpec | None = None,
    ) -> None:
        self._config = config
        self._app_dir = (app_dir or Path.cwd()).resolve()
        self._candidates = list(candidates) if candidates is not None else system_candidates()
        self._base_dirs = list(base_dirs) if base_dirs is not None else system_base_dirs()
        self._spec = spec or platform_spec()

    @property
    def bundled_path(self) -> Path:
        bundled = self._config.bundled_path
        return bundled if bundled.is_absolute() else self._app_dir / bundled

    @property
    def allowed_base_dirs(self) -> tuple[Path, ...]:
        bases = [self._app_dir, *self._config.allowed_base_dirs, *self._base_dirs]
        return tuple(_normalize(base) for base in bases)

    def is_allowed(self, candidate: Path) -> bool:
        normalized = _normalize(candidate)
        if os.path.normcase(normalized.name) != os.path.normcase(self._spec.filename):
            logger.warning("Rejected LibreOffice path %s: unexpected executable name", candidate)
            return False
        if os.path.normcase(normalized.parent.name) != os.path.normcase(self._spec.parent_dir):
            logger.warning(
                "Rejected LibreOffice path %s: executable must live in a '%s' directory",
                candidate,
                self._spec.parent_dir,
            )
            return False
        if not any(normalized.is_relative_to(base) for base in self.allowed_base_dirs):
            logger.warning("Rejected LibreOffice path %s: outside allowed base directories", candidate)
            return False
        return True

    def resolve(self) -> Path:
        for label, candidate in self._ordered_candidates():
            if not _is_executable(candidate):
                if label != "system":
                    logger.debug("LibreOffice %s candidate %s not present", label, candidate)
                continue
            if self.is_allowed(candidate):
                resolved = _normalize(candidate)
                logger.debug("Using %s LibreOffice at %s", label, resolved)
                return resolved
        raise EngineNotFound(
            ENGINE_NAME,
            "LibreOffice is not installed or could not be located",
            detail=f"bundled runtime expected at {self.bundled_path}",
        )

    def _ordered_candidates(self) -> Iterator[tuple[str, Path]]:
        if self._config.force_bundled:
            yield "bundled", self.bundled_path
        if self._config.executable_path is not None:
            yield "configured", self._config.executable_path
        for candidate in self._candidates:
            yield "system", candidate
        yield "bundled", self.bundled_path


def _normalize(path: Path) -> Path:
    return Path(os.path.expanduser(str(path))).resolve(strict=False)


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


__all__ = [
    "ENGINE_NAME",
    "ExecutableSpec",
    "LibreOfficePathResolver",
    "platform_spec",
    "system_base_dirs",
    "system_candidates",
]
