"""
AI Response Parser

Pulls a slide array out of free-form completion text. Tries a strict parse
first, then the outermost {...} span, then the outermost [...] span.
"""

import json
import re
from typing import Any, Dict, List, Optional

from slidefoundry.core.errors import AIResponseError
from slidefoundry.services.generator.models import DeckSlide, SlideType
from slidefoundry.services.generator.normalizer import normalize_slide_type

_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
_ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")


def _try_parse(text: str) -> Optional[List[Any]]:
    try:
        parsed = json.loads(text)
    except (ValueError, TypeError):
        return None
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("slides"), list):
        return parsed["slides"]
    return None


def extract_slides_from_response(raw: str) -> List[Any]:
    """
    Extract the raw slide list from a completion.

    Raises:
        AIResponseError: When nothing parses to a non-empty list
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise AIResponseError("AI response was empty")

    slides = _try_parse(trimmed)
    if slides is None:
        for pattern in (_OBJECT_SPAN, _ARRAY_SPAN):
            match = pattern.search(trimmed)
            if match:
                slides = _try_parse(match.group(0))
                if slides is not None:
                    break

    if slides is None:
        raise AIResponseError("AI response did not contain a slide array")
    if not slides:
        raise AIResponseError("AI response contained an empty slide array")
    return slides


def coerce_raw_slides(items: List[Any]) -> List[DeckSlide]:
    """
    Turn loosely shaped items into DeckSlides with raw (unnormalized) content.

    Non-dict items become empty card-grids. A dict "content" field is used
    as the content when present; otherwise every other key is.
    """
    slides: List[DeckSlide] = []
    for item in items:
        if not isinstance(item, dict):
            slides.append(DeckSlide(SlideType.CARD_GRID, {}))
            continue
        content: Dict[str, Any]
        if isinstance(item.get("content"), dict):
            content = item["content"]
        else:
            content = {key: value for key, value in item.items() if key != "type"}
        slides.append(DeckSlide(normalize_slide_type(item.get("type")), content))
    return slides
