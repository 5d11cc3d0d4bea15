"""
SlideFoundry - Content Extractor Tests
======================================
"""

import io
from unittest.mock import patch

import pytest
from pypdf import PdfWriter

from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.extractors import (
    ExtractedPdf,
    detect_bot_block,
    extract_html_text,
    extract_pdf_text,
    looks_like_html,
)

ARTICLE_BODY = " ".join(["Teams that write things down move faster and argue less."] * 6)

ARTICLE_HTML = f"""<!doctype html>
<html>
<head>
  <title>Writing Culture</title>
  <meta name="description" content="Why written communication scales.">
  <script>var tracking = "secret-script";</script>
</head>
<body>
  <nav>Home About Contact</nav>
  <article><h1>Writing Culture</h1><p>{ARTICLE_BODY}</p></article>
  <footer>Copyright footer text</footer>
</body>
</html>"""


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestHtmlExtraction:
    """HTML to plain text."""

    def test_prefers_article_and_keeps_title_and_description(self):
        text = extract_html_text(ARTICLE_HTML)

        assert text.startswith("Writing Culture")
        assert "Why written communication scales." in text
        assert "Teams that write things down" in text
        assert "secret-script" not in text
        assert "Home About Contact" not in text
        assert "Copyright footer" not in text

    def test_falls_back_to_body_for_short_blocks(self):
        html = "<html><body><main>Tiny</main><p>Body paragraph with the real content.</p></body></html>"
        text = extract_html_text(html)

        assert "Tiny" in text
        assert "Body paragraph with the real content." in text

    def test_clamps_output(self):
        assert len(extract_html_text(ARTICLE_HTML, max_chars=50)) <= 50


class TestDetection:
    """Bot-block and HTML sniffing."""

    def test_detects_challenge_pages(self):
        assert detect_bot_block("<title>Just a moment...</title><div id='cf-chl-widget'></div>")
        assert detect_bot_block("Please complete the CAPTCHA to continue")
        assert not detect_bot_block(ARTICLE_HTML)

    def test_looks_like_html(self):
        assert looks_like_html("<!DOCTYPE html><html><body></body></html>")
        assert looks_like_html("<div class='x'>hello</div>")
        assert not looks_like_html("Plain text with a < sign and > sign")


class TestPdfExtraction:
    """PDF validation and text extraction."""

    @pytest.mark.asyncio
    async def test_empty_pdf(self):
        with pytest.raises(DeckError) as exc_info:
            await extract_pdf_text(b"")
        assert exc_info.value.error_code == ErrorCode.PDF_EMPTY

    @pytest.mark.asyncio
    async def test_size_limit(self):
        with pytest.raises(DeckError) as exc_info:
            await extract_pdf_text(b"%PDF-1.4 " + b"x" * 100, max_bytes=50)
        assert exc_info.value.error_code == ErrorCode.PDF_TOO_LARGE

    @pytest.mark.asyncio
    async def test_rejects_non_pdf_bytes(self):
        with pytest.raises(DeckError) as exc_info:
            await extract_pdf_text(b"<html>not a pdf</html>")
        assert exc_info.value.error_code == ErrorCode.PDF_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_blank_pdf_has_no_text(self):
        """A PDF without a text layer reports PDF_TEXT_NOT_FOUND."""
        with pytest.raises(DeckError) as exc_info:
            await extract_pdf_text(_blank_pdf())
        assert exc_info.value.error_code == ErrorCode.PDF_TEXT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_parser_failure_is_reported(self):
        with patch("slidefoundry.services.extractors._read_pdf", side_effect=ValueError("broken xref")):
            with pytest.raises(DeckError) as exc_info:
                await extract_pdf_text(b"%PDF-1.7 broken")
        assert exc_info.value.error_code == ErrorCode.PDF_PARSE_FAILED

    @pytest.mark.asyncio
    async def test_text_is_sanitized_and_clamped(self):
        extracted = ExtractedPdf(text="  Quarterly\n\nresults   improved \x00 again ", page_count=2, title="Q3")
        with patch("slidefoundry.services.extractors._read_pdf", return_value=extracted):
            result = await extract_pdf_text(b"%PDF-1.7 fake", max_chars=25)

        assert result.text == "Quarterly results improve"
        assert result.page_count == 2
        assert result.title == "Q3"
