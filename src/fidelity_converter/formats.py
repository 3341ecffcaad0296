from __future__ import annotations

import mimetypes
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class DocumentFormat(str, Enum):
    DOC = "doc"
    DOCX = "docx"
    ODT = "odt"
    PDF = "pdf"
    XLSX = "xlsx"
    CSV = "csv"
    PPTX = "pptx"
    TXT = "txt"
    HTML = "html"
    XML = "xml"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def mime_type(self) -> str:
        return MIME_MAP[self]

    @classmethod
    def parse(cls, value: "str | DocumentFormat") -> "DocumentFormat":
        if isinstance(value, DocumentFormat):
            return value
        normalized = value.strip().lower().lstrip(".")
        alias = EXTENSION_MAP.get(f".{normalized}")
        if alias is None:
            raise DetectionError(f"Unknown document format: {value or '<none>'}")
        return alias


FormatPair = tuple[DocumentFormat, DocumentFormat]


@dataclass(slots=True)
class DetectionResult:
    document_format: DocumentFormat
    mime_type: str
    extension: str


EXTENSION_MAP: dict[str, DocumentFormat] = {
    ".doc": DocumentFormat.DOC,
    ".docx": DocumentFormat.DOCX,
    ".odt": DocumentFormat.ODT,
    ".pdf": DocumentFormat.PDF,
    ".xlsx": DocumentFormat.XLSX,
    ".csv": DocumentFormat.CSV,
    ".pptx": DocumentFormat.PPTX,
    ".txt": DocumentFormat.TXT,
    ".text": DocumentFormat.TXT,
    ".html": DocumentFormat.HTML,
    ".htm": DocumentFormat.HTML,
    ".xml": DocumentFormat.XML,
}

MIME_MAP: dict[DocumentFormat, str] = {
    DocumentFormat.DOC: "application/msword",
    DocumentFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    DocumentFormat.ODT: "application/vnd.oasis.opendocument.text",
    DocumentFormat.PDF: "application/pdf",
    DocumentFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    DocumentFormat.CSV: "text/csv",
    DocumentFormat.PPTX: "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    DocumentFormat.TXT: "text/plain",
    DocumentFormat.HTML: "text/html",
    DocumentFormat.XML: "application/xml",
}

ZIP_CONTAINERS = {DocumentFormat.DOCX, DocumentFormat.XLSX, DocumentFormat.PPTX, DocumentFormat.ODT}
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


class DetectionError(RuntimeError):
    """Raised when format detection fails."""


def sniff_mime(path: Path) -> str:
    extension = path.suffix.lower()
    mime, _ = mimetypes.guess_type(str(path))
    declared = EXTENSION_MAP.get(extension)
    if declared in ZIP_CONTAINERS:
        if zipfile.is_zipfile(path):
            return MIME_MAP[declared]
        return "application/octet-stream"
    with path.open("rb") as handle:
        header = handle.read(512)
    if declared is DocumentFormat.PDF:
        if header.startswith(b"%PDF"):
            return MIME_MAP[DocumentFormat.PDF]
        return "application/octet-stream"
    if declared is DocumentFormat.DOC:
        if header.startswith(OLE_SIGNATURE):
            return MIME_MAP[DocumentFormat.DOC]
        return "application/octet-stream"
    if declared is DocumentFormat.HTML:
        sample = header.lower()
        if b"<html" in sample or b"<!doctype html" in sample:
            return MIME_MAP[DocumentFormat.HTML]
        return "application/octet-stream"
    if declared is DocumentFormat.XML:
        if header.lstrip().startswith(b"<"):
            return MIME_MAP[DocumentFormat.XML]
        return "application/octet-stream"
    if declared in {DocumentFormat.TXT, DocumentFormat.CSV}:
        return MIME_MAP[declared]
    return mime or "application/octet-stream"


def detect_format(path: Path) -> DetectionResult:
    extension = path.suffix.lower()
    declared = EXTENSION_MAP.get(extension)
    if not declared:
        raise DetectionError(f"Unsupported file extension: {extension or '<none>'}")
    mime = sniff_mime(path)
    expected_mime = MIME_MAP[declared]
    if mime != expected_mime:
        raise DetectionError(
            f"Content sniff mismatch: expected {expected_mime}, detected {mime or 'unknown'}",
        )
    return DetectionResult(document_format=declared, mime_type=mime, extension=extension)


__all__ = [
    "DetectionError",
    "DetectionResult",
    "DocumentFormat",
    "EXTENSION_MAP",
    "FormatPair",
    "MIME_MAP",
    "detect_format",
    "sniff_mime",
]
