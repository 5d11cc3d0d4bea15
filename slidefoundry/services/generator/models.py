"""
Deck Generation Models

Core data models shared by the parser, classifier, normalizer,
fallback generator, quality evaluator and orchestrator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


# =============================================================================
# Constants
# =============================================================================

MIN_SLIDES = 5
MAX_SLIDES = 12
MAX_FALLBACK_SECTION_DECK = 8
DEFAULT_AUTHOR = "Auto Slide Foundry"


# =============================================================================
# Enums
# =============================================================================

class SlideType(str, Enum):
    """The closed set of slide layouts a deck may contain."""
    TITLE = "title"
    CARD_GRID = "card-grid"
    COMPARISON = "comparison"
    TIMELINE = "timeline"
    QUOTE = "quote"
    TABLE = "table"


class SourceType(str, Enum):
    """Where a deck's source text came from."""
    URL = "url"
    MARKDOWN = "markdown"
    PDF = "pdf"


# =============================================================================
# Deck
# =============================================================================

@dataclass
class DeckSlide:
    """A single typed slide. Content shape depends on the slide type."""
    type: SlideType
    content: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "content": self.content}


@dataclass(frozen=True)
class ResolvedInputSource:
    """Clean text ready for generation plus its provenance."""
    source_text: str
    source_label: str
    project_name_hint: str
    source_type: SourceType


@dataclass
class MarkdownSection:
    """Content grouped under one Markdown heading."""
    heading: str = "Overview"
    level: int = 2
    bullets: List[str] = field(default_factory=list)
    ordered: List[str] = field(default_factory=list)
    paragraphs: List[str] = field(default_factory=list)
    quotes: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    table_rows: List[List[str]] = field(default_factory=list)
    tokens: List[Any] = field(default_factory=list, repr=False, compare=False)

    def has_content(self) -> bool:
        return bool(
            self.bullets or self.ordered or self.paragraphs or self.quotes or self.table_rows
        )


@dataclass
class DeckQualityReport:
    """Multi-axis quality score for a deck, each axis 0..100."""
    structure: int
    readability: int
    diversity: int
    overall: int
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "structure": self.structure,
            "readability": self.readability,
            "diversity": self.diversity,
            "overall": self.overall,
            "issues": list(self.issues),
        }


@dataclass
class GenerationResult:
    """What a generate operation hands to the persistence layer."""
    deck: List[DeckSlide]
    quality: DeckQualityReport
    project_name: str
    source_type: SourceType
    source_label: str
    used_fallback: bool = False

    @property
    def description(self) -> str:
        return f"{self.source_type.value.upper()} · {self.source_label} · Q{self.quality.overall}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deck": [slide.to_dict() for slide in self.deck],
            "quality": self.quality.to_dict(),
            "projectName": self.project_name,
            "description": self.description,
            "sourceType": self.source_type.value,
            "sourceLabel": self.source_label,
            "usedFallback": self.used_fallback,
        }
