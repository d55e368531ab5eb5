"""Default PDF text extraction collaborator built on ``pdfplumber``."""

from __future__ import annotations

from io import BytesIO

import pdfplumber

from ..errors import UnreadableInput
from ..logging_setup import get_logger

_logger = get_logger("statement_import.ingest.pdf_text")


def extract_pdf_text(data: bytes) -> str:
    """Return the text of every page joined by newlines.

    Raises
    ------
    UnreadableInput
        When the bytes are empty or ``pdfplumber`` cannot open the document.
    """

    if not data:
        raise UnreadableInput("PDF input is empty")
    try:
        with pdfplumber.open(BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:  # noqa: BLE001 - pdfminer raises a zoo of types
        raise UnreadableInput(f"Could not extract text from PDF: {e}") from e
    _logger.debug("pdf_text:extracted pages=%d chars=%d", len(pages), sum(map(len, pages)))
    return "\n".join(pages)


__all__ = ["extract_pdf_text"]
