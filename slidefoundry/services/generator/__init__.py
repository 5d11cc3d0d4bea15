"""
Deck Generator Package

Turns clean source text into a bounded, typed slide deck.

Workflow:
1. Parse Markdown structure and classify token windows into slide types
2. Ask the AI model for a deck, or build one deterministically
3. Normalize every slide into its canonical field set
4. Repair the slide count, score quality and race against the fallback deck

The orchestrator lives in .service and is imported from there directly.
"""

from .models import (
    MAX_SLIDES,
    MIN_SLIDES,
    DeckQualityReport,
    DeckSlide,
    GenerationResult,
    MarkdownSection,
    ResolvedInputSource,
    SlideType,
    SourceType,
)
from .normalizer import normalize_slide_content, normalize_slide_type, normalize_slides
from .fallback import build_fallback_slides
from .quality import apply_quality_self_healing, ensure_minimum_slides, evaluate_quality

__all__ = [
    "MAX_SLIDES",
    "MIN_SLIDES",
    "DeckQualityReport",
    "DeckSlide",
    "GenerationResult",
    "MarkdownSection",
    "ResolvedInputSource",
    "SlideType",
    "SourceType",
    "normalize_slide_content",
    "normalize_slide_type",
    "normalize_slides",
    "build_fallback_slides",
    "apply_quality_self_healing",
    "ensure_minimum_slides",
    "evaluate_quality",
]
