"""Resume text extraction for PDF, DOCX and plain-text uploads."""

import zipfile
from dataclasses import dataclass
from io import BytesIO
from pathlib import PurePath

import docx
import structlog
from docx.opc.exceptions import PackageNotFoundError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

logger = structlog.get_logger()

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIME = "text/plain"

EXTENSION_KINDS = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".txt": "text",
}

MIME_KINDS = {
    PDF_MIME: "pdf",
    DOCX_MIME: "docx",
    TEXT_MIME: "text",
}

KIND_MIMES = {kind: mime for mime, kind in MIME_KINDS.items()}

_READ_ERRORS = (
    PdfReadError,
    PackageNotFoundError,
    zipfile.BadZipFile,
    ValueError,
    KeyError,
    OSError,
)


class ResumeParseError(Exception):
    """Raised when a document cannot be read."""

    pass


class UnsupportedDocumentError(ResumeParseError):
    """Raised for file types other than PDF, DOCX and TXT."""

    pass


@dataclass
class ExtractedDocument:
    text: str
    kind: str  # "pdf", "docx" or "text"

    @property
    def mime_type(self) -> str:
        return KIND_MIMES[self.kind]


def detect_kind(filename: str | None, content_type: str | None) -> str:
    """Resolve the document kind from the extension, then the content type."""
    if filename:
        kind = EXTENSION_KINDS.get(PurePath(filename).suffix.lower())
        if kind:
            return kind
    if content_type:
        kind = MIME_KINDS.get(content_type.split(";")[0].strip().lower())
        if kind:
            return kind
    raise UnsupportedDocumentError(
        f"Unsupported file type {filename or content_type!r}. Upload a PDF, DOCX or TXT file."
    )


def _pdf_text(data: bytes) -> str:
    reader = PdfReader(BytesIO(data))
    return "\n".join((page.extract_text() or "") for page in reader.pages)


def _docx_text(data: bytes) -> str:
    document = docx.Document(BytesIO(data))
    lines = [p.text for p in document.paragraphs]
    # Skills and contact details often live in tables
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def extract_text(
    data: bytes,
    filename: str | None = None,
    content_type: str | None = None,
) -> ExtractedDocument:
    """Extract plain text from an uploaded resume.

    Raises:
        UnsupportedDocumentError: For unknown file types.
        ResumeParseError: If the file is corrupt.
    """
    kind = detect_kind(filename, content_type)

    try:
        if kind == "pdf":
            text = _pdf_text(data)
        elif kind == "docx":
            text = _docx_text(data)
        else:
            text = data.decode("utf-8", errors="replace")
    except _READ_ERRORS as e:
        logger.warning("Resume extraction failed", kind=kind, error=str(e))
        raise ResumeParseError(f"Could not read the {kind} file") from e

    text = text.strip()
    logger.info("Resume text extracted", kind=kind, chars=len(text))
    return ExtractedDocument(text=text, kind=kind)
