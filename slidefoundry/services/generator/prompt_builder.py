"""
Deck Generation Prompt Builder

Builds the system and user messages that turn a source document into a
JSON slide array.
"""

from typing import List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from slidefoundry.core.config import settings
from slidefoundry.services.generator.models import SourceType

SLIDE_SCHEMA_GUIDE = """Allowed slide types and their exact fields:
- "title": {"title": string, "subtitle": string, "author": string, "dayLabel": string}
- "card-grid": {"title": string, "items": string[] (2-6 short items)}
- "comparison": {"title": string, "leftTitle": string, "rightTitle": string, "leftItems": string[], "rightItems": string[]}
- "timeline": {"title": string, "items": [{"title": string, "description": string}] (3-6 steps)}
- "quote": {"quote": string, "author": string}
- "table": {"title": string, "headers": string[], "rows": string[][] (at most 6 rows)}"""

MAPPING_RULES = """Mapping rules:
- Lists of 2-6 parallel points -> "card-grid"
- Two options, before/after, pros/cons -> "comparison"
- Ordered steps, phases, roadmaps -> "timeline"
- A memorable sentence or key insight -> "quote"
- Tabular or numeric data -> "table"
- Keep every text fragment under 140 characters"""

SOURCE_DESCRIPTIONS = {
    SourceType.URL: "text extracted from a web page",
    SourceType.MARKDOWN: "a Markdown document (use its headings as the slide structure)",
    SourceType.PDF: "text extracted from a PDF document",
}


class PromptBuilder:
    """Builds prompts for the slide-structure completion call."""

    def __init__(self, language: Optional[str] = None, min_slides: int = 5, max_slides: int = 9):
        self.language = language or settings.DECK_LANGUAGE
        self.min_slides = min_slides
        self.max_slides = max_slides

    def build_system_prompt(self) -> str:
        """
        Build the system prompt describing the output contract.

        Returns:
            System prompt string
        """
        return f"""You are a deterministic document-to-slide-structure compiler.
Convert the document you receive into a presentation deck.

{SLIDE_SCHEMA_GUIDE}

{MAPPING_RULES}

Requirements:
- The first slide MUST be of type "title"
- Produce between {self.min_slides} and {self.max_slides} slides
- Write all slide text in {self.language}
- Use a mix of slide types where the content allows it
- Output ONLY a JSON object of the form {{"slides": [{{"type": "...", "content": {{...}}}}]}}
- Do not wrap the JSON in code fences and do not add any prose before or after it"""

    def build_user_prompt(self, source: str, source_type: SourceType, project_name: str) -> str:
        """
        Build the user prompt carrying the document.

        Args:
            source: Clean source text
            source_type: Where the text came from
            project_name: Deck name to use on the title slide

        Returns:
            User prompt string
        """
        return f"""INPUT TYPE: {source_type.value.upper()} ({SOURCE_DESCRIPTIONS[source_type]})
PROJECT NAME: {project_name}

DOCUMENT:
{source}

Return the slide JSON now."""

    def build_messages(self, source: str, source_type: SourceType, project_name: str) -> List[BaseMessage]:
        return [
            SystemMessage(content=self.build_system_prompt()),
            HumanMessage(content=self.build_user_prompt(source, source_type, project_name)),
        ]
