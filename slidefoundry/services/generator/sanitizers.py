"""
SlideFoundry - Text Sanitizers
==============================

Whitespace and control-character normalization shared by the extractors,
the fallback generator and the slide normalizer. Every function here is
pure and idempotent: sanitizing an already sanitized value is a no-op.
"""

import re
from typing import Iterable, List

DEFAULT_MAX_CHARS = 40_000

# C0 control characters other than tab/newline/carriage return
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")

_MD_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MD_CODE = re.compile(r"`([^`]+)`")
_MD_BOLD = re.compile(r"(\*\*|__)(.+?)\1")
_MD_ITALIC_STAR = re.compile(r"\*(?!\s)(.+?)\*")
_MD_ITALIC_UNDERSCORE = re.compile(r"(?<!\w)_(?!\s)(.+?)_(?!\w)")
_MD_STRIKE = re.compile(r"~~(.+?)~~")
_HTML_TAG = re.compile(r"<[^>]+>")

_SENTENCE_BREAK = re.compile(r"(?<=[.!?。！？])\s+")
MIN_SENTENCE_CHARS = 9


def sanitize_text(value: str, max_length: int = DEFAULT_MAX_CHARS) -> str:
    """Collapse all whitespace to single spaces, drop control chars, clamp."""
    if not value:
        return ""
    text = _CONTROL_CHARS.sub("", value)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:max_length].rstrip()


def sanitize_markdown_text(value: str, max_length: int = DEFAULT_MAX_CHARS) -> str:
    """
    Clean Markdown while keeping its line structure.

    Line endings are normalized to LF, tabs become two spaces, trailing
    spaces are removed and runs of blank lines collapse to one.
    """
    if not value:
        return ""
    text = value.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    text = text.replace("\t", "  ")
    text = re.sub(r"[ ]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = text.strip()
    return text[:max_length].rstrip()


def strip_markdown_inline(text: str) -> str:
    """Remove inline Markdown syntax and HTML tags, keeping the visible text."""
    if not text:
        return ""
    result = _MD_IMAGE.sub("", text)
    result = _MD_LINK.sub(r"\1", result)
    result = _MD_CODE.sub(r"\1", result)
    result = _MD_BOLD.sub(r"\2", result)
    result = _MD_ITALIC_STAR.sub(r"\1", result)
    result = _MD_ITALIC_UNDERSCORE.sub(r"\1", result)
    result = _MD_STRIKE.sub(r"\1", result)
    result = _HTML_TAG.sub("", result)
    return _WHITESPACE.sub(" ", result).strip()


def trim_ellipsis(value: str, max_length: int = 120) -> str:
    """Clamp to max_length, marking truncation with a trailing ellipsis."""
    if len(value) <= max_length:
        return value
    return value[: max(max_length - 3, 0)].rstrip() + "..."


def dedupe_strings(values: Iterable[str], limit: int) -> List[str]:
    """Case-insensitive de-duplication preserving first occurrence order."""
    seen = set()
    result: List[str] = []
    for value in values:
        if not value:
            continue
        key = value.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(value)
        if len(result) >= limit:
            break
    return result


def split_into_sentences(text: str) -> List[str]:
    """Split on sentence-final punctuation, dropping fragments under 9 chars."""
    cleaned = sanitize_text(text)
    if not cleaned:
        return []
    return [
        part.strip()
        for part in _SENTENCE_BREAK.split(cleaned)
        if len(part.strip()) >= MIN_SENTENCE_CHARS
    ]
