"""Shared fixtures for building small DOCX containers in tests."""

import zipfile
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple, Union
from xml.sax.saxutils import escape

import pytest

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
M_NS = "http://schemas.openxmlformats.org/officeDocument/2006/math"

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\r\n'

FIXED_DATE_TIME = (2020, 1, 2, 3, 4, 6)

CONTENT_TYPES_XML = (
    XML_DECLARATION
    + '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" '
    'ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    "</Types>"
).encode("utf-8")

RELS_XML = (
    XML_DECLARATION
    + '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" '
    'Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument" '
    'Target="word/document.xml"/>'
    "</Relationships>"
).encode("utf-8")

# Contains a denylisted character outside any run, which must survive
STYLES_XML = (
    XML_DECLARATION
    + f'<w:styles xmlns:w="{W_NS}">'
    '<w:style w:type="paragraph" w:styleId="Normal">'
    "<w:name w:val=\"Normal\u200b\"/>"
    "</w:style>"
    "</w:styles>"
).encode("utf-8")

EntryData = Union[bytes, str]


def build_document(*paragraphs: str, root: str = "document") -> bytes:
    """WordprocessingML part with one single-run paragraph per argument."""
    body = "".join(
        f'<w:p><w:r><w:t xml:space="preserve">{escape(text)}</w:t></w:r></w:p>'
        for text in paragraphs
    )
    if root == "document":
        content = f"<w:body>{body}</w:body>"
    else:
        content = body
    return (
        XML_DECLARATION + f'<w:{root} xmlns:w="{W_NS}">{content}</w:{root}>'
    ).encode("utf-8")


def default_entries(document: bytes) -> Dict[str, bytes]:
    return {
        "[Content_Types].xml": CONTENT_TYPES_XML,
        "_rels/.rels": RELS_XML,
        "word/document.xml": document,
        "word/styles.xml": STYLES_XML,
    }


def write_docx(
    path: Path,
    entries: Iterable[Tuple[str, EntryData]],
    compression: int = zipfile.ZIP_DEFLATED,
    comment: bytes = b"",
    compresslevel: Optional[int] = None,
) -> Path:
    with zipfile.ZipFile(path, "w") as zf:
        zf.comment = comment
        for name, data in entries:
            info = zipfile.ZipInfo(name, FIXED_DATE_TIME)
            info.compress_type = compression
            info.external_attr = 0o644 << 16
            if isinstance(data, str):
                data = data.encode("utf-8")
            zf.writestr(info, data, compresslevel=compresslevel)
    return path


def read_entries(path: Path) -> Dict[str, bytes]:
    with zipfile.ZipFile(path) as zf:
        return {info.filename: zf.read(info) for info in zf.infolist()}


@pytest.fixture
def make_docx(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a DOCX container into ``tmp_path``.

    ``entries`` replaces the default entry set; ``extra`` entries are appended
    to it. ``document`` replaces the default main document part.
    """
    def _make(
        entries: Optional[Dict[str, EntryData]] = None,
        document: Optional[bytes] = None,
        extra: Optional[Dict[str, EntryData]] = None,
        name: str = "input.docx",
        compression: int = zipfile.ZIP_DEFLATED,
        comment: bytes = b"",
        compresslevel: Optional[int] = None,
    ) -> Path:
        if entries is None:
            entries = default_entries(document or build_document("Hello\u200bWorld"))
        items = list(entries.items())
        if extra:
            items.extend(extra.items())
        return write_docx(tmp_path / name, items, compression, comment, compresslevel)

    return _make


@pytest.fixture
def document_xml() -> Callable[..., bytes]:
    return build_document


@pytest.fixture
def docx_entries() -> Callable[[Path], Dict[str, bytes]]:
    return read_entries
