from __future__ import annotations

import asyncio
import json
import logging
import shutil
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import AppConfig, load_config
from ..engines.pdf import extract_pdf_text
from ..errors import ConversionError, PreprocessingError
from ..formats import DetectionError, DocumentFormat, detect_format
from ..models import ConversionOptions, ConversionRequest, QualityTier
from ..orchestrator import ConversionOrchestrator
from ..preprocessing import CATEGORIES, PreprocessingEngine
from ..reconstruct import PdfStructureReconstructor
from ..settings import get_settings
from ..utils import atomic_write

console = Console()

app = typer.Typer(help="High-fidelity document conversion toolkit")


def _load_config(path: Path | None) -> AppConfig:
    settings = get_settings()
    cfg = load_config(path or settings.config_path)
    return settings.apply(cfg)


def _configure_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _parse_format(value: str) -> DocumentFormat:
    try:
        return DocumentFormat.parse(value)
    except DetectionError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2) from exc


@app.command()
def convert(
    file: Path,
    to: str = typer.Option(..., "--to", help="Target format, e.g. pdf or docx"),
    source: str | None = typer.Option(None, "--from", help="Source format; detected from the file when omitted"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file path"),
    quality: QualityTier = typer.Option(QualityTier.STANDARD, "--quality", help="Conversion quality tier"),
    timeout: float | None = typer.Option(None, "--timeout", min=1.0, help="Request deadline in seconds"),
    preprocess: bool | None = typer.Option(
        None,
        "--preprocess/--no-preprocess",
        help="Force DOCX preprocessing on or off",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result payload as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    _configure_logging(cfg.runtime.log_level, verbose)
    if source is None:
        try:
            source_format = detect_format(file).document_format
        except (DetectionError, OSError) as exc:
            console.print(f"[red]Could not detect the input format[/red]: {exc}")
            raise typer.Exit(2) from exc
    else:
        source_format = _parse_format(source)
    request = ConversionRequest(
        input_path=file,
        source_format=source_format,
        target_format=_parse_format(to),
        options=ConversionOptions(quality=quality, timeout_s=timeout, preprocess=preprocess),
        output_path=output,
    )
    orchestrator = ConversionOrchestrator.from_config(cfg)
    result = asyncio.run(orchestrator.convert(request))
    if as_json:
        console.print_json(data=result.to_payload())
    elif result.success:
        fidelity = f", fidelity {result.fidelity:.2f}" if result.fidelity is not None else ""
        console.print(f"[green]Success[/green]: {result.output_path} via {result.method}{fidelity}")
        if result.degraded:
            console.print("[yellow]Preprocessing failed; the original document was converted[/yellow]")
    else:
        console.print(f"[red]Conversion failed[/red]: {result.error_code} - {result.error_message}")
    if not result.success:
        raise typer.Exit(1)


@app.command()
def preprocess(
    source: Path,
    destination: Path,
    show_all: bool = typer.Option(False, "--all", help="List categories with no fixes too"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    _configure_logging(cfg.runtime.log_level)
    engine = PreprocessingEngine(cfg.preprocessing)
    try:
        report = engine.process(source, destination)
    except PreprocessingError as exc:
        console.print(f"[red]Preprocessing failed[/red]: {exc.code} - {exc.message}")
        raise typer.Exit(1) from exc
    table = Table(title=f"Fixes applied to {source.name}")
    table.add_column("Category")
    table.add_column("Count", justify="right")
    for category in CATEGORIES:
        count = report.fixes[category]
        if count or show_all:
            table.add_row(category, str(count))
    console.print(table)
    console.print(f"{report.fixes.total} fixes across {len(report.parts)} parts in {report.duration_ms:.0f} ms")


@app.command()
def structure(
    file: Path,
    limit: int = typer.Option(80, "--width", min=20, help="Truncate block text to this many characters"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Also write the blocks as JSON"),
) -> None:
    try:
        if file.suffix.lower() == ".pdf":
            text = extract_pdf_text(file)
        else:
            text = file.read_text(encoding="utf-8", errors="replace")
    except (ConversionError, OSError) as exc:
        console.print(f"[red]Could not read {file.name}[/red]: {exc}")
        raise typer.Exit(1) from exc
    blocks = PdfStructureReconstructor().reconstruct(text)
    table = Table(title=f"Structure of {file.name}")
    table.add_column("Type")
    table.add_column("Level", justify="right")
    table.add_column("Text")
    for block in blocks:
        text = block.text if len(block.text) <= limit else block.text[: limit - 3] + "..."
        table.add_row(block.kind.value, str(block.level or "-"), text)
    console.print(table)
    if output is not None:
        atomic_write(output, json.dumps([block.to_dict() for block in blocks], indent=2, ensure_ascii=False) + "\n")
        console.print(f"Wrote {len(blocks)} blocks to {output}")


@app.command()
def engines(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    _configure_logging(cfg.runtime.log_level)
    orchestrator = ConversionOrchestrator(cfg)
    report = asyncio.run(orchestrator.capabilities())
    availability = report["engines"]
    table = Table(title="Supported conversions")
    table.add_column("Conversion")
    table.add_column("Engines (in fallback order)")
    for operation, chain in report["conversions"].items():
        names = [name if availability.get(name) else f"[dim]{name} (unavailable)[/dim]" for name in chain]
        table.add_row(operation, ", ".join(names))
    console.print(table)
    version = report["libreoffice_version"]
    console.print(f"LibreOffice: {version or 'not found'}")
    console.print(f"Preprocessing phases: {', '.join(report['preprocessing'])}")


@app.command()
def clean(
    older_than: int = typer.Option(
        0,
        "--older-than",
        min=0,
        help="Delete outputs older than the given days",
    ),
    keep: int = typer.Option(
        0,
        "--keep",
        min=0,
        help="Keep the most recent N outputs and delete the rest",
    ),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    output_dir = cfg.runtime.output_dir
    removed = 0
    if output_dir.exists():
        candidates = sorted([p for p in output_dir.iterdir() if p.is_file()], key=lambda p: p.stat().st_mtime)
        to_remove: set[Path] = set()
        if keep:
            to_remove.update(candidates[:-keep])
        if older_than:
            threshold = time.time() - older_than * 86400
            to_remove.update(p for p in candidates if p.stat().st_mtime < threshold)
        for path in to_remove:
            path.unlink(missing_ok=True)
        removed = len(to_remove)
    else:
        console.print("No output directory found.")
    stale = 0
    temp_root = cfg.runtime.temp_root
    if temp_root.exists():
        # workspaces are removed by their request; anything left is from a killed process
        cutoff = time.time() - 3600
        for workspace in temp_root.iterdir():
            if workspace.is_dir() and workspace.stat().st_mtime < cutoff:
                shutil.rmtree(workspace, ignore_errors=True)
                stale += 1
    console.print(f"Removed {removed} outputs and {stale} stale workspaces.")


if __name__ == "__main__":
    app()
