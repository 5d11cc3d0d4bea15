"""
Slide Normalizer

Coerces arbitrary slide data (AI output, heuristic output, user edits)
into the fixed field set of each slide type. Nothing here raises: garbage
degrades to the type's default shell. Normalizing an already normalized
slide returns an identical slide.
"""

import math
from typing import Any, Dict, Iterable, List, Optional

from slidefoundry.services.generator.models import (
    DEFAULT_AUTHOR,
    MAX_SLIDES,
    DeckSlide,
    SlideType,
)
from slidefoundry.services.generator.sanitizers import (
    dedupe_strings,
    sanitize_text,
    trim_ellipsis,
)

_TYPE_ALIASES: Dict[SlideType, tuple] = {
    SlideType.TITLE: ("title", "cover", "intro", "closing", "end", "ending"),
    SlideType.CARD_GRID: (
        "card-grid", "cards", "card", "grid", "summary", "bullets", "list", "content", "section",
    ),
    SlideType.COMPARISON: (
        "comparison", "compare", "vs", "pros-cons", "proscons", "two-column", "two-columns",
    ),
    SlideType.TIMELINE: ("timeline", "roadmap", "process", "steps", "step", "flow"),
    SlideType.QUOTE: ("quote", "big-quote", "citation", "insight", "pullquote"),
    SlideType.TABLE: ("table", "data", "matrix"),
}

_ALIAS_LOOKUP: Dict[str, SlideType] = {
    alias: slide_type for slide_type, aliases in _TYPE_ALIASES.items() for alias in aliases
}


# =============================================================================
# Value coercion
# =============================================================================

def to_text_value(value: Any, fallback: str = "", max_length: int = 180) -> str:
    """Sanitized string value, or fallback when value is not a usable string."""
    if not isinstance(value, str):
        return fallback
    cleaned = sanitize_text(value)
    if not cleaned:
        return fallback
    return trim_ellipsis(cleaned, max_length)


def to_string_list(value: Any, max_items: int = 6, max_length: int = 120) -> List[str]:
    """
    Coerce a list of strings or {title, description} objects to strings.

    Objects with both fields become "title: description".
    """
    if not isinstance(value, list):
        return []

    result: List[str] = []
    for item in value:
        text = ""
        if isinstance(item, str):
            text = to_text_value(item, "", max_length)
        elif isinstance(item, dict):
            title = to_text_value(item.get("title"), "", max_length)
            description = to_text_value(item.get("description"), "", max_length)
            if title and description:
                text = trim_ellipsis(f"{title}: {description}", max_length)
            else:
                text = title or description or to_text_value(item.get("text"), "", max_length)
        if text:
            result.append(text)
        if len(result) >= max_items:
            break
    return result


def to_table_rows(value: Any, max_rows: int = 6, max_cols: int = 6) -> List[List[str]]:
    if not isinstance(value, list):
        return []

    rows: List[List[str]] = []
    for row in value:
        if not isinstance(row, list):
            continue
        cells = [
            trim_ellipsis(sanitize_text("" if cell is None else str(cell)), 120)
            for cell in row[:max_cols]
        ]
        if cells:
            rows.append(cells)
        if len(rows) >= max_rows:
            break
    return rows


def normalize_slide_type(raw_type: Any) -> SlideType:
    """Map a free-form type name (aliases included) to a SlideType; unknown -> card-grid."""
    if isinstance(raw_type, SlideType):
        return raw_type
    if not isinstance(raw_type, str):
        return SlideType.CARD_GRID
    key = "-".join(raw_type.lower().strip().replace("_", " ").split())
    return _ALIAS_LOOKUP.get(key, SlideType.CARD_GRID)


# =============================================================================
# Per-type content
# =============================================================================

def _title_content(content: Dict[str, Any], index: int, project_name: str) -> Dict[str, Any]:
    opening = index == 0
    return {
        "title": to_text_value(content.get("title"), project_name if opening else "Key Takeaways"),
        "subtitle": to_text_value(
            content.get("subtitle"),
            "Slides generated automatically from the source document" if opening else "Thank you",
        ),
        "author": to_text_value(content.get("author"), DEFAULT_AUTHOR),
        "dayLabel": to_text_value(content.get("dayLabel"), "GENERATED DECK" if opening else "WRAP UP"),
    }


def _comparison_content(content: Dict[str, Any]) -> Dict[str, Any]:
    left = to_string_list(content.get("leftItems"), 5)
    right = to_string_list(content.get("rightItems"), 5)
    merged = to_string_list(content.get("items"), 8)
    if (not left or not right) and len(merged) >= 2:
        split = math.ceil(len(merged) / 2)
        if not left:
            left = merged[:split]
        if not right:
            right = merged[split:]

    return {
        "title": to_text_value(content.get("title"), "Comparison"),
        "leftTitle": to_text_value(content.get("leftTitle"), "Option A"),
        "rightTitle": to_text_value(content.get("rightTitle"), "Option B"),
        "leftItems": left or ["Key point"],
        "rightItems": right or ["Key point"],
    }


def _timeline_content(content: Dict[str, Any]) -> Dict[str, Any]:
    items: List[Dict[str, str]] = []
    raw_items = content.get("items")
    if isinstance(raw_items, list):
        for position, item in enumerate(raw_items[:6]):
            if isinstance(item, str):
                text = to_text_value(item, "", 120)
                if text:
                    items.append({"title": f"Step {position + 1}", "description": text})
            elif isinstance(item, dict):
                items.append({
                    "title": to_text_value(item.get("title"), f"Step {position + 1}", 80),
                    "description": to_text_value(item.get("description"), "", 140),
                })

    if not items:
        for position, step in enumerate(to_string_list(content.get("steps"), 6)):
            items.append({"title": f"Step {position + 1}", "description": step})

    return {
        "title": to_text_value(content.get("title"), "Process"),
        "items": items or [{"title": "Step 1", "description": "Outline of the key process."}],
    }


def _quote_content(content: Dict[str, Any]) -> Dict[str, Any]:
    fallback = to_text_value(content.get("text"), "The key message of the document, in one line.", 220)
    return {
        "quote": to_text_value(content.get("quote"), fallback, 220),
        "author": to_text_value(content.get("author"), DEFAULT_AUTHOR, 80),
    }


def _table_content(content: Dict[str, Any]) -> Dict[str, Any]:
    headers = to_string_list(content.get("headers"), 6, 50) or to_string_list(content.get("columns"), 6, 50)
    max_cols = max(2, len(headers)) if headers else 6
    rows = to_table_rows(content.get("rows"), 6, max_cols) or to_table_rows(content.get("data"), 6, max_cols)

    if not headers:
        width = len(rows[0]) if rows else 0
        headers = [f"Column {n + 1}" for n in range(width)] if width else ["Item", "Details"]

    return {
        "title": to_text_value(content.get("title"), "Data Summary"),
        "headers": headers,
        "rows": rows or [["Summary", "No tabular data found"]],
    }


def _card_grid_content(content: Dict[str, Any]) -> Dict[str, Any]:
    candidates: List[str] = []
    for key in ("items", "bullets", "points", "list"):
        candidates.extend(to_string_list(content.get(key), 6, 180))
    items = dedupe_strings(candidates, 6)

    if not items:
        summary = to_text_value(content.get("summary"), "", 180)
        if summary:
            items = [summary]

    return {
        "title": to_text_value(content.get("title"), "Key Points"),
        "items": items or ["Summary of the key points."],
    }


def normalize_slide_content(
    slide_type: SlideType,
    raw_content: Any,
    index: int,
    project_name: str,
) -> Dict[str, Any]:
    """
    Coerce raw content into the canonical field set for slide_type.

    Args:
        slide_type: Target slide type
        raw_content: Anything; non-dicts are treated as empty content
        index: Position in the deck (affects title defaults)
        project_name: Used as the opening title default

    Returns:
        A new content dict
    """
    content = raw_content if isinstance(raw_content, dict) else {}

    if slide_type == SlideType.TITLE:
        return _title_content(content, index, project_name)
    if slide_type == SlideType.COMPARISON:
        return _comparison_content(content)
    if slide_type == SlideType.TIMELINE:
        return _timeline_content(content)
    if slide_type == SlideType.QUOTE:
        return _quote_content(content)
    if slide_type == SlideType.TABLE:
        return _table_content(content)
    return _card_grid_content(content)


# =============================================================================
# Deck
# =============================================================================

def _raw_parts(slide: Any):
    if isinstance(slide, DeckSlide):
        return slide.type, slide.content
    return slide.get("type"), slide.get("content")


def normalize_slides(raw_slides: Optional[Iterable[Any]], project_name: str) -> List[DeckSlide]:
    """
    Normalize every slide, cap the deck and make sure it opens with a title.

    An empty input yields a two-slide placeholder deck.
    """
    candidates = [s for s in (raw_slides or []) if isinstance(s, (DeckSlide, dict))]

    slides: List[DeckSlide] = []
    for index, raw in enumerate(candidates[:MAX_SLIDES]):
        raw_type, raw_content = _raw_parts(raw)
        slide_type = normalize_slide_type(raw_type)
        slides.append(DeckSlide(slide_type, normalize_slide_content(slide_type, raw_content, index, project_name)))

    if not slides:
        return [
            DeckSlide(SlideType.TITLE, normalize_slide_content(
                SlideType.TITLE,
                {"title": project_name, "subtitle": "Generation returned no slides, showing a starter deck"},
                0,
                project_name,
            )),
            DeckSlide(SlideType.CARD_GRID, normalize_slide_content(
                SlideType.CARD_GRID,
                {"title": "Next Steps", "items": ["Check the input quality", "Review the text length", "Try generating again"]},
                1,
                project_name,
            )),
        ]

    if slides[0].type != SlideType.TITLE:
        slides.insert(0, DeckSlide(
            SlideType.TITLE,
            normalize_slide_content(SlideType.TITLE, {"title": project_name}, 0, project_name),
        ))

    return slides[:MAX_SLIDES]
