from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Callable

import pytest

from fidelity_converter.config import AppConfig, GateConfig, RuntimeConfig

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
NAMESPACES = (
    f'xmlns:w="{W_NS}" '
    'xmlns:w14="http://schemas.microsoft.com/office/word/2010/wordml" '
    'xmlns:wp="http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing"'
)
DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'

CONTENT_TYPES = (
    DECLARATION
    + '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Default Extension="png" ContentType="image/png"/>'
    "</Types>"
).encode()
DOCUMENT_RELS = (
    DECLARATION
    + '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships"/>'
).encode()
IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(256))


def document_xml(body: str) -> bytes:
    return f"{DECLARATION}<w:document {NAMESPACES}><w:body>{body}</w:body></w:document>".encode()


def styles_xml(styles: str) -> bytes:
    return f"{DECLARATION}<w:styles {NAMESPACES}>{styles}</w:styles>".encode()


def settings_xml(settings: str = "") -> bytes:
    return f"{DECLARATION}<w:settings {NAMESPACES}>{settings}</w:settings>".encode()


def theme_xml(major: str, minor: str) -> bytes:
    return (
        f"{DECLARATION}"
        '<a:theme xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" name="Office">'
        "<a:themeElements><a:fontScheme name=\"Office\">"
        f'<a:majorFont><a:latin typeface="{major}"/><a:ea typeface=""/><a:cs typeface=""/></a:majorFont>'
        f'<a:minorFont><a:latin typeface="{minor}"/><a:ea typeface=""/><a:cs typeface=""/></a:minorFont>'
        "</a:fontScheme></a:themeElements></a:theme>"
    ).encode()


def write_package(path: Path, parts: dict[str, bytes]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in parts.items():
            archive.writestr(name, data)
    return path


DocxFactory = Callable[..., Path]


@pytest.fixture
def docx_factory(tmp_path: Path) -> DocxFactory:
    def build(
        name: str = "sample.docx",
        body: str = "<w:p><w:r><w:t>Hello</w:t></w:r></w:p>",
        *,
        styles: str | None = None,
        settings: str | None = None,
        extra: dict[str, bytes] | None = None,
    ) -> Path:
        parts: dict[str, bytes] = {
            "[Content_Types].xml": CONTENT_TYPES,
            "word/_rels/document.xml.rels": DOCUMENT_RELS,
            "word/document.xml": document_xml(body),
            "word/media/image1.png": IMAGE_BYTES,
        }
        if styles is not None:
            parts["word/styles.xml"] = styles_xml(styles)
        if settings is not None:
            parts["word/settings.xml"] = settings_xml(settings)
        parts.update(extra or {})
        return write_package(tmp_path / "input" / name, parts)

    return build


def build_config(root: Path, **gate: float) -> AppConfig:
    runtime = RuntimeConfig(
        temp_root=root / "tmp",
        output_dir=root / "outputs",
        telemetry_log=root / "logs" / "telemetry.jsonl",
    )
    return AppConfig(runtime=runtime, gate=GateConfig(**gate))


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return build_config(tmp_path)
