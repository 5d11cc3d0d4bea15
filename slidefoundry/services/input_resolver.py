"""
SlideFoundry - Input Resolver
=============================

Turns raw user input into a ResolvedInputSource.

Supported inputs:
- Local file paths (absolute, relative, ~, file://, drive letters), sandboxed
  to the configured ALLOWED_FILE_ROOTS
- Web URLs, SSRF-checked before the request and after redirects
- Direct payloads: base64 Markdown, inline Markdown, base64 PDF
"""

import asyncio
import base64
import binascii
import os
import re
import stat
from email.utils import parsedate_to_datetime
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, List, Optional
from urllib.parse import unquote, urlparse

import httpx
import structlog

from slidefoundry.core.config import settings
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.extractors import (
    detect_bot_block,
    extract_html_text,
    extract_pdf_text,
    looks_like_html,
)
from slidefoundry.services.generator.models import ResolvedInputSource, SourceType
from slidefoundry.services.generator.sanitizers import sanitize_markdown_text, sanitize_text
from slidefoundry.services.ssrf import assert_safe_public_url

logger = structlog.get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

FETCH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,text/plain,application/pdf",
    "Accept-Language": "en-US,en;q=0.9",
}

MARKDOWN_EXTENSIONS = {".md", ".markdown", ".mdown", ".mkd", ".txt"}
HTML_EXTENSIONS = {".html", ".htm"}
MARKDOWN_CONTENT_TYPES = {"text/markdown", "text/x-markdown", "application/markdown"}
TEXT_CONTENT_TYPES = {"text/plain"} | MARKDOWN_CONTENT_TYPES
HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}

NETWORK_BACKOFF_SECONDS = 0.35
STATUS_BACKOFF_SECONDS = 0.4

_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z\d+.-]*://")
_DRIVE_LETTER = re.compile(r"^[A-Za-z]:[\\/]")
_BARE_DOMAIN = re.compile(r"^[^/\s]+\.[^/\s]+(/.*)?$")
_EXPLICIT_PORT = re.compile(r":\d+(/|$)")
_IPV4_PREFIX = re.compile(r"^\d{1,3}(\.\d{1,3}){3}")
_DATA_URL_PREFIX = re.compile(r"^data:[^,]*;base64,", re.IGNORECASE)
_BASE64_ALPHABET = re.compile(r"^[A-Za-z0-9+/=]+$")


# =============================================================================
# Classification helpers
# =============================================================================

def is_likely_file_path(value: str) -> bool:
    """Decide whether raw input names a local file rather than a URL."""
    candidate = value.strip()
    if candidate.lower().startswith("file://"):
        return True
    if candidate.startswith(("/", "./", "../", "~")):
        return True
    if _DRIVE_LETTER.match(candidate):
        return True
    if _BARE_DOMAIN.match(candidate):
        return False
    if not _SCHEME.match(candidate) and ("/" in candidate or "\\" in candidate):
        return True
    return False


def normalize_input_path(value: str) -> str:
    """Decode file:// URLs and expand ~ to the home directory."""
    candidate = value.strip()

    if candidate.lower().startswith("file://"):
        try:
            parsed = urlparse(candidate)
        except ValueError as e:
            raise DeckError(ErrorCode.INVALID_FILE_URL, "Invalid file:// URL") from e
        if parsed.netloc not in ("", "localhost"):
            raise DeckError(ErrorCode.INVALID_FILE_URL, "file:// URLs must point at the local host")
        path = unquote(parsed.path)
        if re.match(r"^/[A-Za-z]:", path):
            path = path[1:]
        if not path:
            raise DeckError(ErrorCode.INVALID_FILE_URL, "Invalid file:// URL")
        return path

    if candidate == "~" or candidate.startswith(("~/", "~\\")):
        return os.path.expanduser(candidate)

    return candidate


def normalize_input_url(value: str) -> str:
    """Add a scheme when missing: http:// for host:port or IPv4 input, else https://."""
    candidate = value.strip()
    if _SCHEME.match(candidate):
        return candidate
    if _EXPLICIT_PORT.search(candidate) or _IPV4_PREFIX.match(candidate):
        return f"http://{candidate}"
    return f"https://{candidate}"


def source_type_for_path(path: str) -> SourceType:
    extension = Path(path).suffix.lower()
    if extension == ".pdf":
        return SourceType.PDF
    if extension in (".md", ".markdown"):
        return SourceType.MARKDOWN
    return SourceType.URL


def _is_within(path: str, root: str) -> bool:
    try:
        return os.path.commonpath([path, root]) == root
    except ValueError:
        return False


def _parse_retry_after(value: Optional[str], cap: float) -> float:
    """Seconds from a Retry-After header (delta-seconds or HTTP date), capped."""
    if not value:
        return 0.0
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            target = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return 0.0
        if target.tzinfo is None:
            target = target.replace(tzinfo=timezone.utc)
        seconds = (target - datetime.now(timezone.utc)).total_seconds()
    return min(max(seconds, 0.0), cap)


def _clean_base64(payload: str) -> str:
    cleaned = _DATA_URL_PREFIX.sub("", payload.strip())
    cleaned = re.sub(r"\s+", "", cleaned)
    return cleaned.replace("-", "+").replace("_", "/")


def _decode_base64(cleaned: str) -> Optional[bytes]:
    """Decode standard base64, tolerating missing padding. None when invalid."""
    if not _BASE64_ALPHABET.match(cleaned):
        return None
    stripped = cleaned.rstrip("=")
    padded = stripped + "=" * (-len(stripped) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError):
        return None


def _label_and_hint(file_name: Optional[str], default_label: str, default_hint: str):
    if file_name and file_name.strip():
        label = os.path.basename(file_name.strip().replace("\\", "/")) or default_label
        hint = Path(label).stem or default_hint
        return label, hint
    return default_label, default_hint


# =============================================================================
# Resolver
# =============================================================================

class InputResolver:
    """
    Resolves file paths, URLs and direct payloads into clean source text.

    Network access goes through httpx; pass a custom transport to run
    against a mock server.
    """

    def __init__(
        self,
        allowed_roots: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        fetch_timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._configured_roots = allowed_roots if allowed_roots is not None else settings.allowed_file_roots
        self._transport = transport
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else settings.URL_FETCH_TIMEOUT_SECONDS
        self.max_retries = max_retries if max_retries is not None else settings.MAX_URL_FETCH_RETRIES
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    async def resolve(self, raw_input: str) -> ResolvedInputSource:
        """
        Resolve a raw user string (path or URL) into source text.

        Raises:
            DeckError: On any validation, sandbox, network or extraction failure
        """
        candidate = (raw_input or "").strip()
        if not candidate:
            raise DeckError(ErrorCode.INPUT_REQUIRED, "An input URL or file path is required")

        if is_likely_file_path(candidate):
            return await self.read_source_from_file_path(candidate)
        return await self.fetch_url_content(normalize_input_url(candidate))

    # -------------------------------------------------------------------------
    # Local files
    # -------------------------------------------------------------------------

    def allowed_roots(self) -> List[str]:
        roots: List[str] = []
        for root in self._configured_roots:
            absolute = os.path.abspath(os.path.expanduser(root))
            for candidate in (absolute, os.path.realpath(absolute)):
                if candidate not in roots:
                    roots.append(candidate)
        return roots

    def _ensure_allowed(self, path: str) -> None:
        if not any(_is_within(path, root) for root in self.allowed_roots()):
            logger.warning("File path outside allowed roots", path=path)
            raise DeckError(
                ErrorCode.FILE_PATH_NOT_ALLOWED,
                "The file path is outside the allowed directories",
            )

    def resolve_safe_file_path(self, raw_path: str) -> str:
        """
        Canonicalize a path and confirm it is a regular file inside the roots.

        The check runs on the absolute path and again on the symlink-resolved
        path so links cannot escape the sandbox.
        """
        absolute = os.path.abspath(normalize_input_path(raw_path))
        self._ensure_allowed(absolute)

        try:
            canonical = str(Path(absolute).resolve(strict=True))
        except (OSError, RuntimeError) as e:
            raise DeckError(ErrorCode.FILE_NOT_FOUND, f"File not found: {raw_path}") from e

        self._ensure_allowed(canonical)

        try:
            info = os.stat(canonical)
        except OSError as e:
            raise DeckError(ErrorCode.FILE_STAT_FAILED, "Could not inspect the file") from e

        if not stat.S_ISREG(info.st_mode):
            raise DeckError(ErrorCode.NOT_A_FILE, "The path does not point at a regular file")

        return canonical

    async def read_source_from_file_path(self, raw_path: str) -> ResolvedInputSource:
        path = self.resolve_safe_file_path(raw_path)
        size = os.path.getsize(path)
        extension = Path(path).suffix.lower()
        label = os.path.basename(path)
        hint = Path(path).stem or label
        source_type = source_type_for_path(path)

        if size == 0:
            raise DeckError(ErrorCode.FILE_EMPTY, "The file is empty")

        if extension == ".pdf":
            if size > settings.MAX_PDF_BYTES:
                raise DeckError(ErrorCode.PDF_TOO_LARGE, "The PDF file is too large")
            try:
                data = await asyncio.to_thread(Path(path).read_bytes)
            except OSError as e:
                raise DeckError(ErrorCode.FILE_READ_FAILED, "Could not read the file") from e
            pdf = await extract_pdf_text(data)
            text = pdf.text
        else:
            if size > settings.MAX_TEXT_SOURCE_BYTES:
                raise DeckError(ErrorCode.FILE_TOO_LARGE, "The file is too large")
            try:
                raw = await asyncio.to_thread(Path(path).read_text, encoding="utf-8", errors="replace")
            except OSError as e:
                raise DeckError(ErrorCode.FILE_READ_FAILED, "Could not read the file") from e

            if extension in HTML_EXTENSIONS:
                text = extract_html_text(raw)
            elif extension in MARKDOWN_EXTENSIONS:
                text = sanitize_markdown_text(raw, settings.MAX_SOURCE_CHARS)
            elif looks_like_html(raw):
                text = extract_html_text(raw)
            else:
                text = sanitize_text(raw, settings.MAX_SOURCE_CHARS)

        self._ensure_long_enough(text)
        logger.info("Resolved local file", path=path, source_type=source_type.value, chars=len(text))
        return ResolvedInputSource(
            source_text=text,
            source_label=label,
            project_name_hint=hint,
            source_type=source_type,
        )

    # -------------------------------------------------------------------------
    # URLs
    # -------------------------------------------------------------------------

    async def _guard_request(self, request: httpx.Request) -> None:
        await assert_safe_public_url(str(request.url))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.fetch_timeout,
            follow_redirects=True,
            headers=FETCH_HEADERS,
            event_hooks={"request": [self._guard_request]},
        )

    async def fetch_url_content(self, url: str) -> ResolvedInputSource:
        """
        Fetch a URL with retries and extract its text.

        Retries network failures and HTTP 429/5xx up to max_retries times.
        The final post-redirect URL is validated again before the body is read.
        """
        await assert_safe_public_url(url)

        timed_out = False
        for attempt in range(self.max_retries + 1):
            retry_delay = NETWORK_BACKOFF_SECONDS * (attempt + 1)
            try:
                async with self._client() as client:
                    async with client.stream("GET", url) as response:
                        status = response.status_code
                        if status == 429 or status >= 500:
                            if attempt >= self.max_retries:
                                raise DeckError(
                                    ErrorCode.URL_FETCH_FAILED,
                                    f"The page responded with HTTP {status}",
                                )
                            retry_after = _parse_retry_after(
                                response.headers.get("retry-after"),
                                settings.MAX_RETRY_AFTER_SECONDS,
                            )
                            delay = max(retry_after, STATUS_BACKOFF_SECONDS * (attempt + 1))
                            logger.info("Retrying URL fetch", url=url, status=status, attempt=attempt + 1, delay=delay)
                            await self._sleep(delay)
                            continue
                        return await self._consume_response(response)
            except httpx.TimeoutException as e:
                timed_out = True
                logger.info("URL fetch timed out", url=url, attempt=attempt + 1, error=str(e))
            except httpx.TransportError as e:
                timed_out = False
                logger.info("URL fetch failed", url=url, attempt=attempt + 1, error=str(e))
            except httpx.TooManyRedirects as e:
                logger.info("URL redirect limit exceeded", url=url, error=str(e))
                raise DeckError(ErrorCode.URL_FETCH_FAILED, "The page redirected too many times") from e
            except httpx.RequestError as e:
                logger.info("URL fetch failed", url=url, error=str(e), error_type=type(e).__name__)
                raise DeckError(ErrorCode.URL_CONNECTION_FAILED, "Could not read the page") from e

            if attempt < self.max_retries:
                await self._sleep(retry_delay)

        if timed_out:
            raise DeckError(ErrorCode.URL_TIMEOUT, "The page took too long to respond")
        raise DeckError(ErrorCode.URL_CONNECTION_FAILED, "Could not connect to the page")

    async def _read_capped(self, response: httpx.Response, limit: int, error: DeckError) -> bytes:
        chunks: List[bytes] = []
        total = 0
        async for chunk in response.aiter_bytes():
            total += len(chunk)
            if total > limit:
                raise error
            chunks.append(chunk)
        return b"".join(chunks)

    async def _consume_response(self, response: httpx.Response) -> ResolvedInputSource:
        status = response.status_code
        if status == 403:
            raise DeckError(ErrorCode.URL_FORBIDDEN, "The site refused access (HTTP 403)")
        if not 200 <= status < 300:
            raise DeckError(ErrorCode.URL_FETCH_FAILED, f"The page responded with HTTP {status}")

        final_url = str(response.url)
        await assert_safe_public_url(final_url)

        parsed = urlparse(final_url)
        host = (parsed.hostname or "").lower()
        path_extension = Path(unquote(parsed.path)).suffix.lower()
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        is_pdf = content_type == "application/pdf"

        too_large = DeckError(ErrorCode.SOURCE_TOO_LARGE, "The page is too large to process")
        if not is_pdf:
            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > settings.MAX_TEXT_SOURCE_BYTES:
                raise too_large

        if is_pdf:
            body = await self._read_capped(
                response,
                settings.MAX_PDF_BYTES,
                DeckError(ErrorCode.PDF_TOO_LARGE, "The PDF is too large to process"),
            )
            pdf = await extract_pdf_text(body)
            return self._url_source(pdf.text, host, SourceType.PDF)

        if content_type not in TEXT_CONTENT_TYPES and content_type not in HTML_CONTENT_TYPES:
            raise DeckError(
                ErrorCode.UNSUPPORTED_CONTENT_TYPE,
                f"Unsupported content type '{content_type or 'unknown'}'",
            )

        body = await self._read_capped(response, settings.MAX_TEXT_SOURCE_BYTES, too_large)
        try:
            raw = body.decode(response.charset_encoding or "utf-8", errors="replace")
        except LookupError:
            raw = body.decode("utf-8", errors="replace")

        if content_type in TEXT_CONTENT_TYPES:
            markdown_like = content_type in MARKDOWN_CONTENT_TYPES or path_extension in MARKDOWN_EXTENSIONS
            if markdown_like:
                text = sanitize_markdown_text(raw, settings.MAX_SOURCE_CHARS)
                source_type = SourceType.MARKDOWN
            else:
                text = sanitize_text(raw, settings.MAX_SOURCE_CHARS)
                source_type = SourceType.URL
            self._ensure_long_enough(text)
            return self._url_source(text, host, source_type)

        if detect_bot_block(raw):
            logger.warning("Bot protection page detected", url=final_url)
            raise DeckError(
                ErrorCode.ANTI_BOT_DETECTED,
                "The site is protected by a bot check; upload a PDF or Markdown export instead",
            )

        text = extract_html_text(raw)
        self._ensure_long_enough(text)
        return self._url_source(text, host, SourceType.URL)

    def _url_source(self, text: str, host: str, source_type: SourceType) -> ResolvedInputSource:
        logger.info("Resolved URL", host=host, source_type=source_type.value, chars=len(text))
        return ResolvedInputSource(
            source_text=text,
            source_label=host or "url",
            project_name_hint=host or "URL Deck",
            source_type=source_type,
        )

    # -------------------------------------------------------------------------
    # Direct payloads
    # -------------------------------------------------------------------------

    def decode_markdown_payload(
        self,
        payload: str,
        file_name: Optional[str] = None,
    ) -> ResolvedInputSource:
        """Decode a (possibly URL-safe, possibly data-URL) base64 Markdown upload."""
        cleaned = _clean_base64(payload or "")
        if not cleaned:
            raise DeckError(ErrorCode.MARKDOWN_EMPTY, "The Markdown payload is empty")

        data = _decode_base64(cleaned)
        if not data:
            raise DeckError(ErrorCode.MARKDOWN_INVALID_BASE64, "The Markdown payload is not valid base64")
        if len(data) > settings.MAX_MARKDOWN_BYTES:
            raise DeckError(ErrorCode.MARKDOWN_TOO_LARGE, "The Markdown document is too large")

        text = sanitize_markdown_text(
            data.decode("utf-8", errors="replace").lstrip("\ufeff"),
            settings.MAX_SOURCE_CHARS,
        )
        self._ensure_long_enough(text)
        label, hint = _label_and_hint(file_name, "markdown", "Markdown Deck")
        return ResolvedInputSource(
            source_text=text,
            source_label=label,
            project_name_hint=hint,
            source_type=SourceType.MARKDOWN,
        )

    def resolve_inline_markdown(self, markdown: str) -> ResolvedInputSource:
        if not markdown or not markdown.strip():
            raise DeckError(ErrorCode.MARKDOWN_EMPTY, "The Markdown document is empty")
        if len(markdown.encode("utf-8")) > settings.MAX_MARKDOWN_BYTES:
            raise DeckError(ErrorCode.MARKDOWN_TOO_LARGE, "The Markdown document is too large")

        text = sanitize_markdown_text(markdown, settings.MAX_SOURCE_CHARS)
        self._ensure_long_enough(text)
        return ResolvedInputSource(
            source_text=text,
            source_label="markdown",
            project_name_hint="Markdown Deck",
            source_type=SourceType.MARKDOWN,
        )

    async def decode_pdf_payload(
        self,
        payload: str,
        file_name: Optional[str] = None,
        max_bytes: Optional[int] = None,
    ) -> ResolvedInputSource:
        """Decode a base64 PDF upload and extract its text."""
        cleaned = _clean_base64(payload or "")
        if not cleaned:
            raise DeckError(ErrorCode.PDF_EMPTY, "The PDF payload is empty")

        data = _decode_base64(cleaned)
        if not data:
            raise DeckError(ErrorCode.PDF_INVALID_BASE64, "The PDF payload is not valid base64")

        pdf = await extract_pdf_text(data, max_bytes=max_bytes)
        self._ensure_long_enough(pdf.text)
        label, hint = _label_and_hint(file_name, "document.pdf", "PDF Deck")
        if not file_name and pdf.title:
            hint = pdf.title
        return ResolvedInputSource(
            source_text=pdf.text,
            source_label=label,
            project_name_hint=hint,
            source_type=SourceType.PDF,
        )

    # -------------------------------------------------------------------------

    @staticmethod
    def _ensure_long_enough(text: str) -> None:
        if len(text.strip()) < settings.MIN_SOURCE_CHARS:
            raise DeckError(
                ErrorCode.SOURCE_TEXT_TOO_SHORT,
                f"The source must contain at least {settings.MIN_SOURCE_CHARS} characters of text",
            )
