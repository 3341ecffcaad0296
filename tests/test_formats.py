import zipfile

import pytest

from fidelity_converter.formats import DetectionError, DocumentFormat, detect_format


def test_detect_format_html(tmp_path):
    sample = tmp_path / "sample.html"
    sample.write_text("<html><body>Hi</body></html>")
    result = detect_format(sample)
    assert result.document_format == DocumentFormat.HTML
    assert result.mime_type == "text/html"


def test_detect_format_word_package(tmp_path):
    sample = tmp_path / "Report.DOCX"
    with zipfile.ZipFile(sample, "w") as archive:
        archive.writestr("word/document.xml", "<w:document/>")
    result = detect_format(sample)
    assert result.document_format == DocumentFormat.DOCX
    assert result.extension == ".docx"


def test_detect_format_unknown_extension(tmp_path):
    sample = tmp_path / "sample.xyz"
    sample.write_text("dummy")
    with pytest.raises(DetectionError) as exc:
        detect_format(sample)
    assert "Unsupported file extension" in str(exc.value)


@pytest.mark.parametrize(
    ("name", "content"),
    [
        ("fake.pdf", b"hello"),
        ("fake.docx", b"not a zip"),
        ("fake.doc", b"plain text"),
    ],
)
def test_detect_format_rejects_mismatched_content(tmp_path, name, content):
    sample = tmp_path / name
    sample.write_bytes(content)
    with pytest.raises(DetectionError) as exc:
        detect_format(sample)
    assert "Content sniff mismatch" in str(exc.value)


def test_parse_accepts_extensions_and_aliases():
    assert DocumentFormat.parse("PDF") is DocumentFormat.PDF
    assert DocumentFormat.parse(".docx") is DocumentFormat.DOCX
    assert DocumentFormat.parse("htm") is DocumentFormat.HTML
    assert DocumentFormat.parse(DocumentFormat.CSV) is DocumentFormat.CSV
    with pytest.raises(DetectionError):
        DocumentFormat.parse("exe")


def test_extension_includes_the_dot():
    assert DocumentFormat.XLSX.extension == ".xlsx"
    assert DocumentFormat.PDF.mime_type == "application/pdf"
