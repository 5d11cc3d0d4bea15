"""
SlideFoundry - Error Taxonomy
=============================

Every failure a caller can observe is a DeckError carrying a stable code
and the HTTP status the API layer reports for it.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable, machine-readable failure codes."""
    # Input
    INPUT_REQUIRED = "INPUT_REQUIRED"
    SOURCE_TEXT_TOO_SHORT = "SOURCE_TEXT_TOO_SHORT"

    # Local files
    INVALID_FILE_URL = "INVALID_FILE_URL"
    FILE_PATH_NOT_ALLOWED = "FILE_PATH_NOT_ALLOWED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_STAT_FAILED = "FILE_STAT_FAILED"
    NOT_A_FILE = "NOT_A_FILE"
    FILE_EMPTY = "FILE_EMPTY"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_READ_FAILED = "FILE_READ_FAILED"

    # URLs
    INVALID_URL = "INVALID_URL"
    URL_SCHEME_NOT_ALLOWED = "URL_SCHEME_NOT_ALLOWED"
    URL_PRIVATE_ADDRESS = "URL_PRIVATE_ADDRESS"
    URL_HOST_UNRESOLVED = "URL_HOST_UNRESOLVED"
    URL_FORBIDDEN = "URL_FORBIDDEN"
    URL_FETCH_FAILED = "URL_FETCH_FAILED"
    URL_TIMEOUT = "URL_TIMEOUT"
    URL_CONNECTION_FAILED = "URL_CONNECTION_FAILED"
    SOURCE_TOO_LARGE = "SOURCE_TOO_LARGE"
    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    ANTI_BOT_DETECTED = "ANTI_BOT_DETECTED"

    # PDF
    PDF_EMPTY = "PDF_EMPTY"
    PDF_INVALID_BASE64 = "PDF_INVALID_BASE64"
    PDF_TOO_LARGE = "PDF_TOO_LARGE"
    PDF_PARSE_FAILED = "PDF_PARSE_FAILED"
    PDF_TEXT_NOT_FOUND = "PDF_TEXT_NOT_FOUND"

    # Markdown payloads
    MARKDOWN_EMPTY = "MARKDOWN_EMPTY"
    MARKDOWN_INVALID_BASE64 = "MARKDOWN_INVALID_BASE64"
    MARKDOWN_TOO_LARGE = "MARKDOWN_TOO_LARGE"

    # Generation
    GENERATION_BUSY = "GENERATION_BUSY"
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"
    GENERATION_FAILED = "GENERATION_FAILED"

    # Auth
    AUTH_REQUIRED = "AUTH_REQUIRED"


_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.FILE_PATH_NOT_ALLOWED: 403,
    ErrorCode.FILE_NOT_FOUND: 404,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.SOURCE_TOO_LARGE: 413,
    ErrorCode.PDF_TOO_LARGE: 413,
    ErrorCode.MARKDOWN_TOO_LARGE: 413,
    ErrorCode.UNSUPPORTED_CONTENT_TYPE: 415,
    ErrorCode.SOURCE_TEXT_TOO_SHORT: 422,
    ErrorCode.PDF_PARSE_FAILED: 422,
    ErrorCode.PDF_TEXT_NOT_FOUND: 422,
    ErrorCode.ANTI_BOT_DETECTED: 422,
    ErrorCode.URL_FORBIDDEN: 502,
    ErrorCode.URL_FETCH_FAILED: 502,
    ErrorCode.URL_CONNECTION_FAILED: 502,
    ErrorCode.URL_TIMEOUT: 504,
    ErrorCode.FILE_STAT_FAILED: 500,
    ErrorCode.FILE_READ_FAILED: 500,
    ErrorCode.GENERATION_BUSY: 409,
    ErrorCode.GENERATION_TIMEOUT: 504,
    ErrorCode.GENERATION_FAILED: 500,
    ErrorCode.AUTH_REQUIRED: 401,
}


def status_for(code: ErrorCode) -> int:
    """HTTP status reported for an error code (400 unless listed)."""
    return _STATUS_BY_CODE.get(code, 400)


class DeckError(Exception):
    """Base exception for every caller-visible failure."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code if status_code is not None else status_for(error_code)
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_code.value,
            "message": self.message,
            "status_code": self.status_code,
        }

    def __repr__(self) -> str:
        return f"DeckError({self.error_code.value}, {self.message!r})"


class AIResponseError(Exception):
    """The completion endpoint returned something that is not a slide list."""
