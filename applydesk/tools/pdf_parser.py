"""
PDF parsing for résumé import.

Extracts text content from PDF files using pypdf.
"""

import logging
from io import BytesIO

from pypdf import PdfReader
from pypdf.errors import PdfReadError

logger = logging.getLogger(__name__)


class PdfParseError(Exception):
    """The upload is not a readable PDF."""


def parse_pdf(pdf_content: bytes) -> str:
    """
    Extract text from a PDF file.

    Args:
        pdf_content: Raw bytes of the PDF file

    Returns:
        Extracted text content from all pages
    """
    try:
        reader = PdfReader(BytesIO(pdf_content))
        text_parts = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                text_parts.append(text)
    except (PdfReadError, ValueError) as e:
        logger.warning(f"PDF parse failed: {e}")
        raise PdfParseError(f"Error parsing PDF: {e}") from e

    return "\n\n".join(text_parts)
