"""
Slide-Type Classifier

Heuristic rules mapping a window of Markdown tokens to one slide type.
Rules overlap, so they are evaluated in a fixed priority order and the
first match wins:

    title (0.95) > table (0.95) > quote (0.9) > comparison (0.85)
    > timeline (0.8) > card-grid (0.75)

Confidence is reported for callers and statistics only.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from slidefoundry.services.generator.markdown_parser import MarkdownToken, TokenType
from slidefoundry.services.generator.models import SlideType

COMPARISON_KEYWORDS = (" vs ", " versus ", " 대 ", " 비교 ")
ORDERED_STEP_KEYWORDS = ("step", "phase", "단계", "먼저", "그 다음", "마지막")
UNORDERED_STEP_KEYWORDS = ("step", "phase", "단계")
TITLE_META_KEYWORDS = ("presenter", "date", "by ", "발표자", "날짜")
_DATE_PREFIX = re.compile(r"^\d{4}[-/.]\d{1,2}[-/.]\d{1,2}")


@dataclass
class Classification:
    """Slide type chosen for a token window and the tokens it consumed."""
    slide_type: SlideType
    confidence: float
    tokens: List[MarkdownToken] = field(default_factory=list)


@dataclass
class ContentPattern:
    has_title: bool = False
    title_level: int = 0
    list_count: int = 0
    has_blockquote: bool = False
    has_table: bool = False
    has_comparison: bool = False
    has_steps: bool = False
    paragraph_count: int = 0


def _has_separator(text: str) -> bool:
    return ":" in text or " - " in text


# =============================================================================
# Rules
# =============================================================================

def _is_title(tokens: List[MarkdownToken], index: int) -> bool:
    token = tokens[index]
    if not token.is_heading(1):
        return False
    following = tokens[index + 1] if index + 1 < len(tokens) else None
    if following is None:
        return True
    if following.type != TokenType.PARAGRAPH:
        return False
    if index + 2 >= len(tokens):
        return True
    content = following.content.lower()
    return any(keyword in content for keyword in TITLE_META_KEYWORDS) or bool(_DATE_PREFIX.match(content))


def _is_table(tokens: List[MarkdownToken], index: int) -> bool:
    return tokens[index].type == TokenType.TABLE


def _is_quote(tokens: List[MarkdownToken], index: int) -> bool:
    token = tokens[index]
    return token.type == TokenType.BLOCKQUOTE and (len(token.content) > 20 or bool(token.author))


def _is_comparison(tokens: List[MarkdownToken], index: int) -> bool:
    token = tokens[index]
    if token.is_list:
        padded = f" {token.list_text()} "
        if any(keyword in padded for keyword in COMPARISON_KEYWORDS):
            return True
        if len(token.items) == 2 and all(_has_separator(item.content) for item in token.items):
            return True

    if token.is_heading(2, 3) and index + 2 < len(tokens):
        following, after = tokens[index + 1], tokens[index + 2]
        if following.is_list and not following.ordered and after.is_heading(2, 3):
            return True
    return False


def _is_timeline(tokens: List[MarkdownToken], index: int) -> bool:
    token = tokens[index]
    if not token.is_list:
        return False
    text = token.list_text()
    if token.ordered:
        return len(token.items) >= 3 or any(keyword in text for keyword in ORDERED_STEP_KEYWORDS)
    return any(keyword in text for keyword in UNORDERED_STEP_KEYWORDS)


def _is_card_grid(tokens: List[MarkdownToken], index: int) -> bool:
    token = tokens[index]
    if not token.is_list or not token.items:
        return False
    if 2 <= len(token.items) <= 4:
        return True
    return all(_has_separator(item.content) for item in token.items)


def _title_span(tokens: List[MarkdownToken], index: int) -> int:
    following = tokens[index + 1] if index + 1 < len(tokens) else None
    return 2 if following is not None and following.type == TokenType.PARAGRAPH else 1


_RULES: List[Tuple[SlideType, float, Callable[[List[MarkdownToken], int], bool]]] = [
    (SlideType.TITLE, 0.95, _is_title),
    (SlideType.TABLE, 0.95, _is_table),
    (SlideType.QUOTE, 0.9, _is_quote),
    (SlideType.COMPARISON, 0.85, _is_comparison),
    (SlideType.TIMELINE, 0.8, _is_timeline),
    (SlideType.CARD_GRID, 0.75, _is_card_grid),
]


# =============================================================================
# Public API
# =============================================================================

def classify(tokens: List[MarkdownToken], index: int) -> Classification:
    """Classify the token window starting at index."""
    token = tokens[index]

    for slide_type, confidence, rule in _RULES:
        if rule(tokens, index):
            span = _title_span(tokens, index) if slide_type == SlideType.TITLE else 1
            return Classification(slide_type, confidence, tokens[index:index + span])

    if token.type == TokenType.HEADING:
        following = tokens[index + 1] if index + 1 < len(tokens) else None
        if following is not None and following.is_list:
            return Classification(SlideType.CARD_GRID, 0.6, tokens[index:index + 2])
        return Classification(SlideType.TITLE, 0.5, [token])

    return Classification(SlideType.CARD_GRID, 0.4, [token])


def map_tokens_to_slides(tokens: List[MarkdownToken]) -> List[Classification]:
    """Walk the whole token stream, one classification per consumed window."""
    results: List[Classification] = []
    index = 0
    while index < len(tokens):
        result = classify(tokens, index)
        results.append(result)
        index += max(len(result.tokens), 1)
    return results


def analyze_content_pattern(tokens: List[MarkdownToken]) -> ContentPattern:
    pattern = ContentPattern()
    for token in tokens:
        if token.type == TokenType.HEADING:
            if not pattern.has_title:
                pattern.has_title = True
                pattern.title_level = token.level
        elif token.is_list:
            pattern.list_count += 1
            padded = f" {token.list_text()} "
            if any(keyword in padded for keyword in COMPARISON_KEYWORDS):
                pattern.has_comparison = True
            if token.ordered or any(keyword in padded for keyword in UNORDERED_STEP_KEYWORDS):
                pattern.has_steps = True
        elif token.type == TokenType.BLOCKQUOTE:
            pattern.has_blockquote = True
        elif token.type == TokenType.TABLE:
            pattern.has_table = True
        elif token.type == TokenType.PARAGRAPH:
            pattern.paragraph_count += 1
    return pattern


def mapping_statistics(results: List[Classification]) -> Dict[str, object]:
    by_type = {slide_type.value: 0 for slide_type in SlideType}
    for result in results:
        by_type[result.slide_type.value] += 1
    average = sum(r.confidence for r in results) / len(results) if results else 0.0
    return {"total": len(results), "by_type": by_type, "average_confidence": round(average, 3)}
