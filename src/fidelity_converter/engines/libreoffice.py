from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
import re
import signal
from pathlib import Path

from ..config import LibreOfficeConfig
from ..errors import EngineExecutionError, EngineNotFound
from ..formats import DocumentFormat
from ..models import QualityTier
from ..utils import publish_file
from .base import EngineJob, EngineOutput, verify_output
from .resolver import ENGINE_NAME, LibreOfficePathResolver

logger = logging.getLogger(__name__)

PDF_EXPORT_FAMILIES: dict[DocumentFormat, str] = {
    DocumentFormat.DOCX: "writer_pdf_Export",
    DocumentFormat.DOC: "writer_pdf_Export",
    DocumentFormat.ODT: "writer_pdf_Export",
    DocumentFormat.TXT: "writer_pdf_Export",
    DocumentFormat.HTML: "writer_web_pdf_Export",
    DocumentFormat.XML: "writer_pdf_Export",
    DocumentFormat.XLSX: "calc_pdf_Export",
    DocumentFormat.CSV: "calc_pdf_Export",
    DocumentFormat.PPTX: "impress_pdf_Export",
}

TARGET_FILTERS: dict[DocumentFormat, str] = {
    DocumentFormat.DOCX: "docx:MS Word 2007 XML",
    DocumentFormat.DOC: "doc:MS Word 97",
    DocumentFormat.ODT: "odt:writer8",
    DocumentFormat.TXT: "txt:Text (encoded):UTF8",
    DocumentFormat.HTML: "html:XHTML Writer File:UTF8",
    DocumentFormat.CSV: "csv:Text - txt - csv (StarCalc):44,34,76",
    DocumentFormat.XLSX: "xlsx:Calc MS Excel 2007 XML",
}

IMPORT_FILTERS: dict[DocumentFormat, str] = {
    DocumentFormat.PDF: "writer_pdf_import",
}

VERSION_RE = re.compile(r"LibreOffice\s+(\d+(?:\.\d+)+)")
VERSION_TIMEOUT_S = 15.0
STDERR_TAIL = 2000


def _flag(value: bool) -> dict[str, str]:
    return {"type": "boolean", "value": "true" if value else "false"}


def pdf_filter(source: DocumentFormat, quality: QualityTier) -> str:
    """``--convert-to`` argument for PDF output at the requested quality."""

    if quality is QualityTier.DRAFT:
        return "pdf"
    family = PDF_EXPORT_FAMILIES.get(source, "writer_pdf_Export")
    options: dict[str, dict[str, str]] = {
        "ReduceImageResolution": _flag(False),
        "ExportBookmarks": _flag(True),
        "ExportNotes": _flag(False),
        "Quality": {"type": "long", "value": "95"},
    }
    if quality is QualityTier.HIGH:
        options["UseLosslessCompression"] = _flag(True)
        options["EmbedStandardFonts"] = _flag(True)
        options["Quality"] = {"type": "long", "value": "100"}
    return f"pdf:{family}:{json.dumps(options, separators=(',', ':'))}"


def target_filter(source: DocumentFormat, target: DocumentFormat, quality: QualityTier) -> str:
    if target is DocumentFormat.PDF:
        return pdf_filter(source, quality)
    try:
        return TARGET_FILTERS[target]
    except KeyError as exc:
        raise EngineExecutionError(ENGINE_NAME, f"LibreOffice cannot produce {target.value}") from exc


class LibreOfficeEngine:
    """Headless ``soffice`` conversion, one process per job.

    Each job gets its own user profile inside the job directory so concurrent
    conversions never share LibreOffice state. A cancelled job kills the whole
    process group before the cancellation propagates.
    """

    name = ENGINE_NAME

    def __init__(
        self,
        config: LibreOfficeConfig | None = None,
        *,
        resolver: LibreOfficePathResolver | None = None,
    ) -> None:
        self._config = config or LibreOfficeConfig()
        self._resolver = resolver or LibreOfficePathResolver(self._config)

    def timeout_for(self, job: EngineJob) -> float | None:
        if job.source is DocumentFormat.DOCX:
            return self._config.docx_timeout_s
        return self._config.default_timeout_s

    def fidelity_for(self, job: EngineJob) -> float:
        if job.source is DocumentFormat.PDF:
            return 0.7
        return 0.98 if job.preprocessed else 0.95

    async def available(self) -> bool:
        try:
            self._resolver.resolve()
        except EngineNotFound:
            return False
        return True

    def build_command(self, executable: Path, job: EngineJob, outdir: Path) -> list[str]:
        profile = (job.workdir / "lo-profile").resolve()
        command = [
            str(executable),
            "--headless",
            "--invisible",
            "--nologo",
            "--nodefault",
            "--norestore",
            "--nolockcheck",
            f"-env:UserInstallation={profile.as_uri()}",
        ]
        import_filter = IMPORT_FILTERS.get(job.source)
        if import_filter is not None and job.target is not DocumentFormat.PDF:
            command.append(f"--infilter={import_filter}")
        command.extend(
            [
                "--convert-to",
                target_filter(job.source, job.target, job.quality),
                "--outdir",
                str(outdir),
                str(job.input_path.resolve()),
            ]
        )
        return command

    async def convert(self, job: EngineJob) -> EngineOutput:
        executable = self._resolver.resolve()
        outdir = job.workdir / "lo-out"
        outdir.mkdir(parents=True, exist_ok=True)
        command = self.build_command(executable, job, outdir)
        logger.debug("Running %s", " ".join(command))
        returncode, _, stderr = await self._run(command, executable, job.workdir)
        if returncode != 0:
            raise EngineExecutionError(
                self.name,
                "LibreOffice failed to convert the document",
                detail=_tail(stderr),
                exit_code=returncode,
            )
        produced = outdir / f"{job.input_path.stem}{job.target.extension}"
        if not produced.exists():
            logger.warning("LibreOffice exited cleanly without writing %s", produced.name)
        verify_output(produced, self.name)
        job.output_path.parent.mkdir(parents=True, exist_ok=True)
        publish_file(produced, job.output_path)
        return EngineOutput(job.output_path, self.fidelity_for(job))

    async def version(self) -> str | None:
        """Installed LibreOffice version, or ``None`` when it cannot be determined."""

        try:
            executable = self._resolver.resolve()
        except EngineNotFound:
            return None
        try:
            returncode, stdout, _ = await asyncio.wait_for(
                self._run([str(executable), "--version"], executable, None),
                VERSION_TIMEOUT_S,
            )
        except (TimeoutError, EngineNotFound):
            logger.warning("LibreOffice version check did not complete")
            return None
        if returncode != 0:
            return None
        match = VERSION_RE.search(stdout.decode("utf-8", "replace"))
        return match.group(1) if match else None

    async def _run(
        self,
        command: list[str],
        executable: Path,
        home: Path | None,
    ) -> tuple[int, bytes, bytes]:
        env = os.environ.copy()
        if home is not None:
            env.setdefault("HOME", str(home))
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                cwd=str(executable.parent),
                start_new_session=os.name == "posix",
            )
        except OSError as exc:
            raise EngineNotFound(
                self.name,
                "LibreOffice could not be started",
                detail=f"{executable}: {exc}",
            ) from exc
        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            _kill(process)
            with contextlib.suppress(ProcessLookupError):
                await process.wait()
            logger.info("Killed LibreOffice process %s after cancellation", process.pid)
            raise
        return process.returncode or 0, stdout, stderr


def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    with contextlib.suppress(ProcessLookupError, PermissionError):
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()


def _tail(stderr: bytes) -> str:
    text = stderr.decode("utf-8", "replace").strip()
    return text[-STDERR_TAIL:]


__all__ = [
    "LibreOfficeEngine",
    "PDF_EXPORT_FAMILIES",
    "TARGET_FILTERS",
    "pdf_filter",
    "target_filter",
]
