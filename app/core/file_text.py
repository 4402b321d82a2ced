"""Text extraction for knowledge resources (TXT, JSON, PDF)."""

import io
from dataclasses import dataclass

from app.core.logging import get_logger

logger = get_logger(__name__)

# PDFs whose text layer is shorter than this are likely scanned images
MIN_PDF_TEXT_CHARS = 50

# Lazy import to avoid loading PyMuPDF at module load
fitz = None


@dataclass
class FileTextResult:
    """Result of text extraction from a file."""

    text: str
    detected_encoding: str


def _get_fitz():
    """Lazy load PyMuPDF."""
    global fitz
    if fitz is None:
        try:
            import fitz as _fitz
            fitz = _fitz
        except ImportError:
            raise ImportError(
                "PyMuPDF (fitz) is required for PDF extraction. "
                "Install with: pip install pymupdf"
            )
    return fitz


def decode_text_bytes(raw_bytes: bytes) -> FileTextResult:
    """
    Decode uploaded text using a fallback chain.

    Raises:
        ValueError: If no encoding works
    """
    if raw_bytes.startswith(b"\xef\xbb\xbf"):
        try:
            return FileTextResult(text=raw_bytes.decode("utf-8-sig"), detected_encoding="utf-8-sig")
        except UnicodeDecodeError:
            pass

    for encoding in ("utf-8", "latin-1"):
        try:
            return FileTextResult(text=raw_bytes.decode(encoding), detected_encoding=encoding)
        except UnicodeDecodeError:
            continue

    raise ValueError(
        "Unable to decode file content. Supported encodings: UTF-8, UTF-8-BOM, Latin-1."
    )


def extract_pdf_text(pdf_bytes: bytes, filename: str = "document.pdf") -> str:
    """
    Extract the text layer of a PDF, page by page.

    Args:
        pdf_bytes: Raw PDF content
        filename: Name used in log lines and errors

    Returns:
        Concatenated page text

    Raises:
        ValueError: If the PDF cannot be parsed or has no extractable text
    """
    fitz_lib = _get_fitz()

    try:
        doc = fitz_lib.open(stream=io.BytesIO(pdf_bytes), filetype="pdf")
    except Exception as e:
        raise ValueError(f"Failed to read/parse PDF {filename}: {e}") from e

    parts: list[str] = []
    try:
        for page in doc:
            page_text = page.get_text("text")
            if page_text.strip():
                parts.append(page_text)
    finally:
        doc.close()

    text = "\n".join(parts)
    if not text.strip():
        # No OCR here: scanned PDFs must be converted before upload
        raise ValueError(f"No text extracted from PDF {filename}")
    if len(text.strip()) < MIN_PDF_TEXT_CHARS:
        logger.warning(f"PDF {filename} has almost no text layer; it may be scanned")

    logger.info(f"Extracted {len(text)} characters from PDF {filename}")
    return text
