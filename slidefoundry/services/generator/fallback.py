"""
Fallback Generator

Deterministic deck assembly used when AI generation is unavailable,
fails, or scores below the quality threshold.

- Markdown sources: one slide per heading section, typed by the same
  priority as the classifier (table > comparison > timeline > quote > card-grid)
- Plain text, URL and PDF sources: sentence points spread over a summary,
  comparison, timeline and closing quote
"""

import math
import re
from typing import List, Optional, Tuple

import structlog

from slidefoundry.services.generator.markdown_parser import (
    DEFAULT_SECTION_HEADING,
    TokenType,
    build_sections,
    parse_markdown,
)
from slidefoundry.services.generator.models import (
    DEFAULT_AUTHOR,
    MAX_FALLBACK_SECTION_DECK,
    DeckSlide,
    MarkdownSection,
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
from slidefoundry.services.generator.slide_classifier import (
    classify,
    map_tokens_to_slides,
    mapping_statistics,
)

logger = structlog.get_logger(__name__)

COMPARISON_HINT = re.compile(
    r"(\bvs\.?(?!\w)|비교|장단점|\bpros\b|\bcons\b|찬반|\bbefore\b|\bafter\b|대안|옵션|\bversus\b)",
    re.IGNORECASE,
)
TIMELINE_HINT = re.compile(r"(단계|절차|프로세스|과정|로드맵|timeline|roadmap|process|flow|steps?\b)", re.IGNORECASE)
VERSUS_HEADING = re.compile(r"^(.+?)\s+(?:vs\.?|versus|대\s*비|비교)\s+(.+)$", re.IGNORECASE)
PLAIN_SPLIT = re.compile(r"[;•·]\s*| - ")


# =============================================================================
# Markdown sections
# =============================================================================

def section_points(section: MarkdownSection, max_items: int = 6) -> List[str]:
    """De-duplicated bullets, ordered items and paragraph sentences."""
    sentences: List[str] = []
    for paragraph in section.paragraphs:
        sentences.extend(split_into_sentences(paragraph))
    return dedupe_strings(section.bullets + section.ordered + sentences, max_items)


def _classified_types(section: MarkdownSection) -> set:
    tokens = section.tokens
    return {
        classify(tokens, index).slide_type
        for index, token in enumerate(tokens)
        if token.type in (TokenType.LIST, TokenType.BLOCKQUOTE, TokenType.TABLE)
    }


def _table_slide(section: MarkdownSection) -> Optional[DeckSlide]:
    headers = section.table_rows[0][:6]
    rows = []
    for row in section.table_rows[1:7]:
        cells = [trim_ellipsis(row[i] if i < len(row) else "", 80) for i in range(len(headers))]
        if any(cells):
            rows.append(cells)
    if len(headers) < 2 or not rows:
        return None
    return DeckSlide(SlideType.TABLE, {"title": section.heading, "headers": headers, "rows": rows})


def build_slide_from_section(section: MarkdownSection) -> DeckSlide:
    """Pick the best-fitting slide type for one Markdown section."""
    heading = section.heading or "Key Content"
    points = section_points(section, 8)
    classified = _classified_types(section)

    if len(section.table_rows) >= 2:
        table = _table_slide(section)
        if table is not None:
            return table

    if (COMPARISON_HINT.search(heading) or SlideType.COMPARISON in classified) and len(points) >= 2:
        versus = VERSUS_HEADING.match(heading)
        split = math.ceil(len(points) / 2)
        return DeckSlide(SlideType.COMPARISON, {
            "title": heading,
            "leftTitle": trim_ellipsis(versus.group(1), 40) if versus else "Option A",
            "rightTitle": trim_ellipsis(versus.group(2), 40) if versus else "Option B",
            "leftItems": points[:split],
            "rightItems": points[split:],
        })

    timeline_signal = (
        TIMELINE_HINT.search(heading)
        or len(section.ordered) >= 3
        or SlideType.TIMELINE in classified
    )
    if timeline_signal and len(points) >= 2:
        steps = dedupe_strings(section.ordered, 6) if section.ordered else points[:6]
        return DeckSlide(SlideType.TIMELINE, {
            "title": heading,
            "items": [
                {"title": f"Step {position + 1}", "description": step}
                for position, step in enumerate(steps)
            ],
        })

    if section.quotes and len(points) <= 2:
        quote, author = section.quotes[0]
        return DeckSlide(SlideType.QUOTE, {"quote": quote, "author": author or heading})

    return DeckSlide(SlideType.CARD_GRID, {
        "title": heading,
        "items": points[:6] or ["Summary of the key points."],
    })


def _first_unused_quote(
    sections: List[MarkdownSection],
    deck: List[DeckSlide],
) -> Optional[Tuple[str, Optional[str]]]:
    shown = {
        slide.content.get("quote", "").lower()
        for slide in deck
        if slide.type == SlideType.QUOTE
    }
    for section in sections:
        for quote, author in section.quotes:
            if quote.lower() not in shown:
                return quote, author
    return None


def build_fallback_from_markdown(source: str, project_name: str) -> List[DeckSlide]:
    tokens = parse_markdown(source)
    sections = build_sections(tokens)
    logger.debug("Markdown structure classified", **mapping_statistics(map_tokens_to_slides(tokens)))

    summary_points = dedupe_strings(
        [point for section in sections for point in section_points(section, 4)],
        6,
    )

    first = sections[0] if sections else None
    subtitle_seed = (
        (first.paragraphs[0] if first and first.paragraphs else "")
        or (first.heading if first and first.heading != DEFAULT_SECTION_HEADING else "")
        or (summary_points[0] if summary_points else "")
        or "Presentation flow generated from the Markdown document."
    )

    slides: List[DeckSlide] = [
        DeckSlide(SlideType.TITLE, {"title": project_name, "subtitle": trim_ellipsis(subtitle_seed, 90)}),
    ]
    if summary_points:
        slides.append(DeckSlide(SlideType.CARD_GRID, {"title": "Key Takeaways", "items": summary_points}))

    for section in sections:
        if len(slides) >= MAX_FALLBACK_SECTION_DECK:
            break
        if not section.has_content():
            continue
        slides.append(build_slide_from_section(section))

    if len(slides) < MAX_FALLBACK_SECTION_DECK + 1:
        candidate = _first_unused_quote(sections, slides)
        if candidate is not None:
            quote, author = candidate
            slides.append(DeckSlide(SlideType.QUOTE, {"quote": quote, "author": author or "Source Note"}))

    if len(slides) < 3:
        slides.append(DeckSlide(SlideType.CARD_GRID, {
            "title": "Key Points",
            "items": ["Key items extracted from the document structure."],
        }))

    return normalize_slides(slides, project_name)


# =============================================================================
# Plain text
# =============================================================================

def plain_text_points(source: str, max_items: int = 8) -> List[str]:
    normalized = sanitize_text(source)
    sentences = dedupe_strings([trim_ellipsis(s, 120) for s in split_into_sentences(normalized)], max_items)
    if sentences:
        return sentences
    parts = [trim_ellipsis(part.strip(), 120) for part in PLAIN_SPLIT.split(normalized)]
    return dedupe_strings([part for part in parts if len(part) > 10], 6)


def build_fallback_from_plain_text(
    source: str,
    source_type: SourceType,
    project_name: str,
) -> List[DeckSlide]:
    normalized = sanitize_text(source)
    points = plain_text_points(normalized)

    slides: List[DeckSlide] = [
        DeckSlide(SlideType.TITLE, {
            "title": project_name,
            "subtitle": f"Built automatically from {source_type.value.upper()} input",
        }),
        DeckSlide(SlideType.CARD_GRID, {
            "title": "Key Summary",
            "items": points[:6] or ["Summary generated from the input document."],
        }),
    ]

    if len(points) >= 4:
        split = math.ceil(len(points) / 2)
        slides.append(DeckSlide(SlideType.COMPARISON, {
            "title": "Key Comparison",
            "leftTitle": "Perspective A",
            "rightTitle": "Perspective B",
            "leftItems": points[:split],
            "rightItems": points[split:],
        }))

    if len(points) >= 3 and len(slides) < 5:
        slides.append(DeckSlide(SlideType.TIMELINE, {
            "title": "Key Flow",
            "items": [
                {"title": f"Step {position + 1}", "description": point}
                for position, point in enumerate(points[:5])
            ],
        }))

    slides.append(DeckSlide(SlideType.QUOTE, {
        "quote": (points[0] if points else "") or trim_ellipsis(normalized, 180)
        or "Key insights drawn from the input document.",
        "author": DEFAULT_AUTHOR,
    }))

    return normalize_slides(slides, project_name)


def build_fallback_slides(source: str, source_type: SourceType, project_name: str) -> List[DeckSlide]:
    """Deterministic deck for any source type."""
    if source_type == SourceType.MARKDOWN:
        return build_fallback_from_markdown(source, project_name)
    return build_fallback_from_plain_text(source, source_type, project_name)
