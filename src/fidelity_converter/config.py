from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from .constraint import DEFAULT_CONFIG_PATH, STANDARD_CONTENT_WIDTH_DXA


CONFIG_FILE = DEFAULT_CONFIG_PATH


@dataclass(slots=True)
class GateConfig:
    conversion_slots: int = 2
    file_access_slots: int = 5
    acquire_timeout_s: float = 30.0


@dataclass(slots=True)
class LibreOfficeConfig:
    executable_path: Path | None = None
    force_bundled: bool = False
    bundled_path: Path = Path("lib/libreoffice/program/soffice")
    allowed_base_dirs: tuple[Path, ...] = ()
    docx_timeout_s: float = 120.0
    default_timeout_s: float = 90.0


@dataclass(slots=True)
class RenderConfig:
    page_size: str = "A4"
    margin_in: float = 1.0
    sheet_margin_in: float = 0.5
    timeout_s: float = 60.0


@dataclass(slots=True)
class PreprocessingConfig:
    enabled: bool = True
    content_width_dxa: int = STANDARD_CONTENT_WIDTH_DXA


@dataclass(slots=True)
class RuntimeConfig:
    temp_root: Path = Path("tmp")
    output_dir: Path = Path("outputs")
    telemetry_log: Path = Path("logs/telemetry.jsonl")
    convert_timeout_s: float = 180.0
    log_level: str = "INFO"


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    libreoffice: LibreOfficeConfig = field(default_factory=LibreOfficeConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    value = raw.get(name)
    return value if isinstance(value, Mapping) else None


def _optional_path(value: object | None) -> Path | None:
    if value is None or value == "":
        return None
    return Path(str(value))


def _tuple_of_paths(value: object | None) -> tuple[Path, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (Path(value),)
    if isinstance(value, Iterable):
        return tuple(Path(str(item)) for item in value)
    raise TypeError(f"Unsupported allowed_base_dirs configuration: {value!r}")


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        temp_root=Path(str(data.get("temp_root", "tmp"))),
        output_dir=Path(str(data.get("output_dir", "outputs"))),
        telemetry_log=Path(str(data.get("telemetry_log", "logs/telemetry.jsonl"))),
        convert_timeout_s=float(data.get("convert_timeout_s", 180.0)),
        log_level=str(data.get("log_level", "INFO")).upper(),
    )


def _build_gate(data: Mapping[str, object] | None) -> GateConfig:
    if not data:
        return GateConfig()
    return GateConfig(
        conversion_slots=int(data.get("conversion_slots", 2)),
        file_access_slots=int(data.get("file_access_slots", 5)),
        acquire_timeout_s=float(data.get("acquire_timeout_s", 30.0)),
    )


def _build_libreoffice(data: Mapping[str, object] | None) -> LibreOfficeConfig:
    if not data:
        return LibreOfficeConfig()
    return LibreOfficeConfig(
        executable_path=_optional_path(data.get("executable_path")),
        force_bundled=bool(data.get("force_bundled", False)),
        bundled_path=Path(str(data.get("bundled_path", "lib/libreoffice/program/soffice"))),
        allowed_base_dirs=_tuple_of_paths(data.get("allowed_base_dirs")),
        docx_timeout_s=float(data.get("docx_timeout_s", 120.0)),
        default_timeout_s=float(data.get("default_timeout_s", 90.0)),
    )


def _build_render(data: Mapping[str, object] | None) -> RenderConfig:
    if not data:
        return RenderConfig()
    return RenderConfig(
        page_size=str(data.get("page_size", "A4")),
        margin_in=float(data.get("margin_in", 1.0)),
        sheet_margin_in=float(data.get("sheet_margin_in", 0.5)),
        timeout_s=float(data.get("timeout_s", 60.0)),
    )


def _build_preprocessing(data: Mapping[str, object] | None) -> PreprocessingConfig:
    if not data:
        return PreprocessingConfig()
    return PreprocessingConfig(
        enabled=bool(data.get("enabled", True)),
        content_width_dxa=int(data.get("content_width_dxa", STANDARD_CONTENT_WIDTH_DXA)),
    )


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        runtime=_build_runtime(_section(raw, "runtime")),
        gate=_build_gate(_section(raw, "gate")),
        libreoffice=_build_libreoffice(_section(raw, "libreoffice")),
        render=_build_render(_section(raw, "render")),
        preprocessing=_build_preprocessing(_section(raw, "preprocessing")),
    )


def dump_config(config: AppConfig) -> str:
    lo = config.libreoffice
    payload = {
        "runtime": {
            "temp_root": str(config.runtime.temp_root),
            "output_dir": str(config.runtime.output_dir),
            "telemetry_log": str(config.runtime.telemetry_log),
            "convert_timeout_s": config.runtime.convert_timeout_s,
            "log_level": config.runtime.log_level,
        },
        "gate": {
            "conversion_slots": config.gate.conversion_slots,
            "file_access_slots": config.gate.file_access_slots,
            "acquire_timeout_s": config.gate.acquire_timeout_s,
        },
        "libreoffice": {
            "executable_path": str(lo.executable_path) if lo.executable_path else None,
            "force_bundled": lo.force_bundled,
            "bundled_path": str(lo.bundled_path),
            "allowed_base_dirs": [str(p) for p in lo.allowed_base_dirs],
            "docx_timeout_s": lo.docx_timeout_s,
            "default_timeout_s": lo.default_timeout_s,
        },
        "render": {
            "page_size": config.render.page_size,
            "margin_in": config.render.margin_in,
            "sheet_margin_in": config.render.sheet_margin_in,
            "timeout_s": config.render.timeout_s,
        },
        "preprocessing": {
            "enabled": config.preprocessing.enabled,
            "content_width_dxa": config.preprocessing.content_width_dxa,
        },
    }
    return json.dumps(payload, indent=2)
