"""
Deck Quality Evaluator & Self-Healing

Scores a deck on three axes and repairs decks that are too short.

Scoring (each axis starts at 100, penalized, clamped to 0..100):
- structure: slide count, opening title, body slides, closing slide
- readability: long fragments, dense slides, empty slides
- diversity: number of distinct slide types

overall = round(0.45 * structure + 0.35 * readability + 0.20 * diversity)
"""

import re
from typing import Any, List, Optional, Tuple

import structlog

from slidefoundry.core.config import settings
from slidefoundry.services.generator.fallback import build_fallback_slides
from slidefoundry.services.generator.models import (
    MAX_SLIDES,
    MIN_SLIDES,
    DeckQualityReport,
    DeckSlide,
    SlideType,
    SourceType,
)
from slidefoundry.services.generator.normalizer import normalize_slides
from slidefoundry.services.generator.sanitizers import (
    dedupe_strings,
    sanitize_text,
    split_into_sentences,
    trim_ellipsis,
)

logger = structlog.get_logger(__name__)

STRUCTURE_WEIGHT = 0.45
READABILITY_WEIGHT = 0.35
DIVERSITY_WEIGHT = 0.20

LONG_FRAGMENT_CHARS = 140
FRAGMENT_SCAN_CHARS = 260
MAX_ISSUES = 8

BODY_TYPES = {SlideType.CARD_GRID, SlideType.COMPARISON, SlideType.TIMELINE, SlideType.TABLE}
CLOSING_TYPES = {SlideType.TITLE, SlideType.QUOTE, SlideType.CARD_GRID}


def clamp_score(value: float) -> int:
    return max(0, min(100, int(round(value))))


# =============================================================================
# Evaluation
# =============================================================================

def _collect_text(value: Any, bucket: List[str]) -> None:
    if isinstance(value, str):
        cleaned = sanitize_text(value, FRAGMENT_SCAN_CHARS)
        if cleaned:
            bucket.append(cleaned)
    elif isinstance(value, list):
        for item in value:
            _collect_text(item, bucket)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_text(item, bucket)


def slide_text_fragments(slide: DeckSlide) -> List[str]:
    fragments: List[str] = []
    _collect_text(slide.content, fragments)
    return fragments


def _is_dense(slide: DeckSlide) -> bool:
    if slide.type in (SlideType.CARD_GRID, SlideType.TIMELINE):
        items = slide.content.get("items")
        return isinstance(items, list) and len(items) > 6
    if slide.type == SlideType.TABLE:
        rows = slide.content.get("rows")
        return isinstance(rows, list) and len(rows) > 7
    return False


def evaluate_quality(slides: List[DeckSlide]) -> DeckQualityReport:
    """Score a deck. Pure; never raises."""
    issues: List[str] = []

    structure = 100
    if len(slides) < MIN_SLIDES:
        structure -= 30
        issues.append(f"Too few slides ({len(slides)}/{MIN_SLIDES}).")
    if len(slides) > MAX_SLIDES:
        structure -= 12
        issues.append(f"Too many slides ({len(slides)}/{MAX_SLIDES}).")
    if not slides or slides[0].type != SlideType.TITLE:
        structure -= 45
        issues.append("The first slide is not a title slide.")
    if sum(1 for slide in slides if slide.type in BODY_TYPES) < 2:
        structure -= 20
        issues.append("Not enough body slides.")
    if not slides or slides[-1].type not in CLOSING_TYPES:
        structure -= 8
        issues.append("The closing slide is weak.")
    structure = clamp_score(structure)

    long_count = dense_count = empty_count = 0
    for slide in slides:
        fragments = slide_text_fragments(slide)
        if not fragments:
            empty_count += 1
            continue
        long_count += sum(1 for text in fragments if len(text) > LONG_FRAGMENT_CHARS)
        if _is_dense(slide):
            dense_count += 1

    readability = clamp_score(100 - long_count * 4 - dense_count * 8 - empty_count * 14)
    if long_count:
        issues.append(f"Too many long sentences ({long_count}).")
    if dense_count:
        issues.append(f"Overcrowded slides ({dense_count}).")
    if empty_count:
        issues.append(f"Slides without content ({empty_count}).")

    type_count = len({slide.type for slide in slides})
    if type_count >= 4:
        diversity = 100
    elif type_count == 3:
        diversity = 85
    elif type_count == 2:
        diversity = 65
    else:
        diversity = 40
    if type_count < 3:
        issues.append(f"Low slide type variety ({type_count} types).")

    overall = clamp_score(
        structure * STRUCTURE_WEIGHT + readability * READABILITY_WEIGHT + diversity * DIVERSITY_WEIGHT
    )

    return DeckQualityReport(
        structure=structure,
        readability=readability,
        diversity=diversity,
        overall=overall,
        issues=dedupe_strings(issues, MAX_ISSUES),
    )


# =============================================================================
# Repair
# =============================================================================

def build_source_points(source: str, max_items: int = 10) -> List[str]:
    normalized = sanitize_text(source)
    sentences = dedupe_strings([trim_ellipsis(s, 120) for s in split_into_sentences(normalized)], max_items)
    if sentences:
        return sentences
    parts = [trim_ellipsis(sanitize_text(part), 120) for part in re.split(r"\n|[;•·]", source or "")]
    return dedupe_strings([part for part in parts if len(part) > 10], max_items)


def ensure_minimum_slides(slides: List[DeckSlide], source: str, project_name: str) -> List[DeckSlide]:
    """
    Pad a short deck up to MIN_SLIDES with synthesized slides.

    Padding cycles card-grid / timeline / quote by current deck length and
    draws its text from source sentences.
    """
    target = min(max(MIN_SLIDES, 3), MAX_SLIDES)
    if len(slides) >= target:
        return list(slides[:MAX_SLIDES])

    repaired = list(slides)
    points = build_source_points(source, 12)
    pointer = 0
    while len(repaired) < target:
        point = points[pointer % len(points)] if points else f"Key point {len(repaired) + 1}"
        pattern = len(repaired) % 3
        if pattern == 0:
            repaired.append(DeckSlide(SlideType.CARD_GRID, {
                "title": "Additional Highlights",
                "items": [point],
            }))
        elif pattern == 1:
            repaired.append(DeckSlide(SlideType.TIMELINE, {
                "title": "Additional Flow",
                "items": [{"title": f"Step {pointer + 1}", "description": point}],
            }))
        else:
            repaired.append(DeckSlide(SlideType.QUOTE, {"quote": point, "author": project_name}))
        pointer += 1

    return repaired[:MAX_SLIDES]


def _repair(slides: List[DeckSlide], source: str, project_name: str) -> List[DeckSlide]:
    normalized = normalize_slides(slides, project_name)
    return normalize_slides(ensure_minimum_slides(normalized, source, project_name), project_name)


def apply_quality_self_healing(
    slides: List[DeckSlide],
    source: str,
    source_type: SourceType,
    project_name: str,
    threshold: Optional[int] = None,
) -> Tuple[List[DeckSlide], DeckQualityReport, bool]:
    """
    Repair a candidate deck and race it against the deterministic fallback.

    Returns:
        (slides, quality, used_fallback). The fallback replaces the candidate
        only when the candidate scores below threshold and the fallback
        scores strictly higher.
    """
    threshold = threshold if threshold is not None else settings.QUALITY_FALLBACK_THRESHOLD

    repaired = _repair(slides, source, project_name)
    repaired_quality = evaluate_quality(repaired)
    if repaired_quality.overall >= threshold:
        return repaired, repaired_quality, False

    fallback = _repair(build_fallback_slides(source, source_type, project_name), source, project_name)
    fallback_quality = evaluate_quality(fallback)

    logger.info(
        "Quality self-healing compared candidates",
        candidate_score=repaired_quality.overall,
        fallback_score=fallback_quality.overall,
        threshold=threshold,
    )

    if fallback_quality.overall > repaired_quality.overall:
        return fallback, fallback_quality, True
    return repaired, repaired_quality, False
