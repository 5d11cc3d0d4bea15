"""
SlideFoundry - Content Extractors
=================================

Turns raw HTML and PDF bytes into clean plain text for deck generation.

- HTML: BeautifulSoup, chrome stripped, main content block preferred
- PDF: pypdf, run in a worker thread
- Bot-block detection for challenge/captcha interstitials
"""

import asyncio
import io
import re
from dataclasses import dataclass
from typing import List, Optional

import structlog
from bs4 import BeautifulSoup
from pypdf import PdfReader

from slidefoundry.core.config import settings
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.generator.sanitizers import sanitize_text

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

PDF_MAGIC = b"%PDF-"

REMOVED_TAGS = ["script", "style", "nav", "header", "footer", "aside", "noscript", "iframe", "svg"]
CONTENT_SELECTORS = ["article", "main", ".content", ".post", ".article", "#content"]
MIN_CONTENT_BLOCK_CHARS = 200
META_DESCRIPTION_KEYS = ["description", "og:description", "twitter:description"]

BOT_BLOCK_SCAN_CHARS = 12_000
BOT_BLOCK_PATTERN = re.compile(
    r"captcha|cloudflare|bot verification|access denied|cf-chl|are you human",
    re.IGNORECASE,
)

_HTML_SNIFF = re.compile(
    r"<(?:!doctype\s+html|html|head|body|article|main|section|div|p|h[1-6])[\s>/]",
    re.IGNORECASE,
)


@dataclass
class ExtractedPdf:
    """Text pulled out of a PDF document."""
    text: str
    page_count: int
    title: Optional[str] = None


# =============================================================================
# PDF
# =============================================================================

def _read_pdf(data: bytes) -> ExtractedPdf:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    title = None
    if reader.metadata is not None and reader.metadata.title:
        title = sanitize_text(str(reader.metadata.title), 200) or None
    return ExtractedPdf(text="\n".join(pages), page_count=len(pages), title=title)


async def extract_pdf_text(
    data: bytes,
    max_bytes: Optional[int] = None,
    max_chars: Optional[int] = None,
) -> ExtractedPdf:
    """
    Extract and sanitize the text layer of a PDF.

    Args:
        data: Raw PDF bytes
        max_bytes: Size ceiling (defaults to MAX_PDF_BYTES)
        max_chars: Output clamp (defaults to MAX_SOURCE_CHARS)

    Returns:
        ExtractedPdf with sanitized text

    Raises:
        DeckError: PDF_EMPTY, PDF_TOO_LARGE, PDF_PARSE_FAILED, PDF_TEXT_NOT_FOUND
    """
    max_bytes = max_bytes if max_bytes is not None else settings.MAX_PDF_BYTES
    max_chars = max_chars if max_chars is not None else settings.MAX_SOURCE_CHARS

    if not data:
        raise DeckError(ErrorCode.PDF_EMPTY, "The PDF document is empty")
    if len(data) > max_bytes:
        raise DeckError(
            ErrorCode.PDF_TOO_LARGE,
            f"PDF is larger than {max_bytes // (1024 * 1024)}MB",
        )
    if not data.lstrip()[:5].startswith(PDF_MAGIC):
        raise DeckError(ErrorCode.PDF_PARSE_FAILED, "The document is not a valid PDF")

    try:
        extracted = await asyncio.to_thread(_read_pdf, data)
    except Exception as e:
        logger.warning("PDF parsing failed", error=str(e), error_type=type(e).__name__)
        raise DeckError(ErrorCode.PDF_PARSE_FAILED, "Could not parse the PDF document") from e

    text = sanitize_text(extracted.text, max_chars)
    if not text:
        raise DeckError(
            ErrorCode.PDF_TEXT_NOT_FOUND,
            "No extractable text was found in the PDF (scanned documents are not supported)",
        )

    logger.debug("PDF extracted", pages=extracted.page_count, chars=len(text))
    return ExtractedPdf(text=text, page_count=extracted.page_count, title=extracted.title)


# =============================================================================
# HTML
# =============================================================================

def _meta_descriptions(soup: BeautifulSoup) -> List[str]:
    found: List[str] = []
    for key in META_DESCRIPTION_KEYS:
        tag = soup.find("meta", attrs={"name": key}) or soup.find("meta", attrs={"property": key})
        if tag is None:
            continue
        content = sanitize_text(str(tag.get("content") or ""), 500)
        if content and content not in found:
            found.append(content)
    return found


def extract_html_text(html: str, max_chars: Optional[int] = None) -> str:
    """
    Convert an HTML document to plain text.

    Title and meta description come first, followed by the first content
    block with more than 200 characters of text, or the whole body.
    """
    max_chars = max_chars if max_chars is not None else settings.MAX_SOURCE_CHARS
    soup = BeautifulSoup(html or "", "html.parser")

    title = soup.title.get_text(" ", strip=True) if soup.title else ""
    descriptions = _meta_descriptions(soup)

    for element in soup(REMOVED_TAGS):
        element.decompose()

    body_text = ""
    for selector in CONTENT_SELECTORS:
        block = soup.select_one(selector)
        if block is None:
            continue
        text = sanitize_text(block.get_text(" ", strip=True))
        if len(text) > MIN_CONTENT_BLOCK_CHARS:
            body_text = text
            break

    if not body_text:
        root = soup.body or soup
        body_text = root.get_text(" ", strip=True)

    parts = [part for part in [title, *descriptions, body_text] if part]
    return sanitize_text("\n".join(parts), max_chars)


def detect_bot_block(html: str) -> bool:
    """True when the page looks like a captcha or challenge interstitial."""
    return bool(BOT_BLOCK_PATTERN.search((html or "")[:BOT_BLOCK_SCAN_CHARS]))


def looks_like_html(text: str) -> bool:
    """Sniff the head of a text document for HTML markup."""
    return bool(_HTML_SNIFF.search((text or "")[:4000]))
