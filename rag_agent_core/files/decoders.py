"""
Built-in document decoders.

Text formats are decoded with the standard library; PDF, Word and Excel
use pypdf, python-docx and openpyxl, imported when first needed.
"""

import csv
import io
import json
import logging
import re

from .base import DocumentDecoder, DocumentType

logger = logging.getLogger(__name__)


def decode_text(content: bytes) -> str:
    """Decode bytes to string, trying multiple encodings.

    UTF-16 is only tried when the content starts with a byte order mark.
    """
    encodings = ["utf-8", "cp1252"]
    if content.startswith((b"\xff\xfe", b"\xfe\xff")):
        encodings.insert(0, "utf-16")
    for encoding in encodings:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("latin-1")


class TextDecoder(DocumentDecoder):
    """Plain text and markdown."""

    @property
    def name(self) -> str:
        return "text"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.TXT, DocumentType.MD]

    async def decode(self, content: bytes) -> str:
        return decode_text(content)


class CsvDecoder(DocumentDecoder):
    """One block of `column: value` lines per data row."""

    @property
    def name(self) -> str:
        return "csv"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.CSV]

    async def decode(self, content: bytes) -> str:
        reader = csv.DictReader(io.StringIO(decode_text(content)))
        rows = []
        for row in reader:
            lines = [
                f"{(column or '').strip()}: {(value or '').strip()}"
                for column, value in row.items()
                if column is not None
            ]
            rows.append("\n".join(lines))
        return "\n\n".join(rows)


class JsonDecoder(DocumentDecoder):
    """Pretty-printed JSON."""

    @property
    def name(self) -> str:
        return "json"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.JSON]

    async def decode(self, content: bytes) -> str:
        data = json.loads(decode_text(content))
        return json.dumps(data, indent=2, ensure_ascii=False)


class HtmlDecoder(DocumentDecoder):
    """Visible text of an HTML page."""

    _SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
    _STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
    _TAG_RE = re.compile(r"<[^>]+>")
    _SPACE_RE = re.compile(r"\s+")

    @property
    def name(self) -> str:
        return "html"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.HTML]

    async def decode(self, content: bytes) -> str:
        text = decode_text(content)
        text = self._SCRIPT_RE.sub("", text)
        text = self._STYLE_RE.sub("", text)
        text = self._TAG_RE.sub(" ", text)
        return self._SPACE_RE.sub(" ", text).strip()


class PdfDecoder(DocumentDecoder):
    """
    PDF text extraction.

    Requires: pypdf (pip install pypdf)
    """

    @property
    def name(self) -> str:
        return "pdf"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.PDF]

    async def decode(self, content: bytes) -> str:
        try:
            from pypdf import PdfReader
        except ImportError:
            raise ImportError("pypdf is required for PDF decoding. Install with: pip install pypdf")

        reader = PdfReader(io.BytesIO(content))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n\n".join(p for p in pages if p.strip())


class DocxDecoder(DocumentDecoder):
    """
    Word document paragraphs followed by table rows.

    Requires: python-docx (pip install python-docx)
    """

    @property
    def name(self) -> str:
        return "docx"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.DOCX]

    async def decode(self, content: bytes) -> str:
        try:
            import docx
        except ImportError:
            raise ImportError(
                "python-docx is required for Word decoding. Install with: pip install python-docx"
            )

        doc = docx.Document(io.BytesIO(content))
        parts = [p.text for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                row_text = " | ".join(cell.text for cell in row.cells)
                if row_text.strip(" |"):
                    parts.append(row_text)

        return "\n\n".join(parts)


class XlsxDecoder(DocumentDecoder):
    """
    Excel workbook, one section per sheet.

    Requires: openpyxl (pip install openpyxl)
    """

    @property
    def name(self) -> str:
        return "xlsx"

    @property
    def supported_types(self) -> list[DocumentType]:
        return [DocumentType.XLSX]

    async def decode(self, content: bytes) -> str:
        try:
            import openpyxl
        except ImportError:
            raise ImportError(
                "openpyxl is required for Excel decoding. Install with: pip install openpyxl"
            )

        wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
        try:
            sections = []
            for sheet_name in wb.sheetnames:
                rows = []
                for row in wb[sheet_name].iter_rows(values_only=True):
                    row_text = " | ".join("" if cell is None else str(cell) for cell in row)
                    if row_text.strip(" |"):
                        rows.append(row_text)
                if rows:
                    sections.append(f"Sheet: {sheet_name}\n" + "\n".join(rows))
            return "\n\n".join(sections)
        finally:
            wb.close()
