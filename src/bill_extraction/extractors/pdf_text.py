"""
PDF text layer extraction.

Thin wrapper around pypdf that turns document bytes into plain text.
Scanned PDFs without a text layer yield an empty string.
"""

import io
import logging

from pypdf import PdfReader

logger = logging.getLogger(__name__)


class TextExtractionError(Exception):
    """Raised when a document cannot be read as a PDF."""

    pass


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """
    Extract the text layer of every page, joined by newlines.

    Args:
        pdf_bytes: Complete PDF file contents

    Returns:
        Plain text of the document (may be empty)

    Raises:
        TextExtractionError: If the bytes are not a readable PDF
    """
    if not pdf_bytes:
        raise TextExtractionError("Empty document")

    # Damaged files surface as arbitrary exception types from pypdf
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        pages = [page.extract_text() or "" for page in reader.pages]
    except Exception as e:
        raise TextExtractionError(f"Could not read PDF: {e}") from e

    logger.debug("Extracted text from %d page(s)", len(pages))
    return "\n".join(pages)
