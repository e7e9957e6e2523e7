"""
Text extraction collaborator: fetch a stored document and turn it into plain text.
"""
import asyncio
import io
import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import pdfplumber
import requests

from errors import ExtractionError
from settings import settings

logger = logging.getLogger("procedo.ingest")

PAGE_BREAK = "\f"  # keep page boundaries in the text


def pdf_bytes_to_text(data: bytes) -> str:
    """Extract text from PDF bytes with pdfplumber, pages joined by form feeds."""
    pages = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            text = page.extract_text() or ""  # avoid None
            pages.append(text.strip())
    return PAGE_BREAK.join(pages)


def bytes_to_text(data: bytes, filename: str = "") -> str:
    if filename.lower().endswith((".txt", ".md")):
        return data.decode("utf-8", errors="replace")
    return pdf_bytes_to_text(data)


def fetch_bytes(url: str, timeout: int = None) -> bytes:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path)).read_bytes()
    response = requests.get(url, timeout=timeout or settings.DOCUMENT_FETCH_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.content


class PdfTextExtractor:
    """Fetches a document URL (http(s) or file://) and extracts its text."""

    def _extract(self, url: str) -> str:
        try:
            data = fetch_bytes(url)
        except (requests.exceptions.RequestException, OSError) as e:
            raise ExtractionError(f"Failed to fetch document from URL: {e}") from e
        try:
            text = bytes_to_text(data, filename=urlparse(url).path)
        except Exception as e:
            raise ExtractionError(f"Failed to parse document: {e}") from e
        if not text.strip():
            raise ExtractionError("Document contains no extractable text")
        logger.debug("Extracted %d chars from %s", len(text), url)
        return text

    async def extract(self, url: str) -> str:
        return await asyncio.to_thread(self._extract, url)
