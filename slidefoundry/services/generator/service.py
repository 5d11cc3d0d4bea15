"""
SlideFoundry - Deck Generation Service
======================================

Top-level coordinator for a generation request:

1. Resolve the input (fail fast on validation errors)
2. Take the per-user generation lock
3. Under the pipeline deadline: AI generation, falling back to the
   deterministic generator on any failure
4. Normalize, repair the slide count, score, and race against the fallback
5. Release the lock whatever happened
"""

import asyncio
from typing import List, Optional, Tuple

import structlog

from slidefoundry.core.config import settings
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.generation_lock import GenerationLockStore
from slidefoundry.services.generator.ai_client import SlideGenerationClient
from slidefoundry.services.generator.fallback import build_fallback_slides
from slidefoundry.services.generator.models import (
    DeckSlide,
    GenerationResult,
    ResolvedInputSource,
    SourceType,
)
from slidefoundry.services.generator.quality import apply_quality_self_healing
from slidefoundry.services.generator.sanitizers import sanitize_text
from slidefoundry.services.input_resolver import InputResolver

logger = structlog.get_logger(__name__)

DEFAULT_PROJECT_NAMES = {
    SourceType.URL: "URL Deck",
    SourceType.PDF: "PDF Deck",
    SourceType.MARKDOWN: "Markdown Deck",
}

# Seconds kept back from the AI call so self-healing finishes inside the deadline
HEALING_RESERVE_SECONDS = 2.0
MIN_AI_TIMEOUT_SECONDS = 1.0


def derive_project_name(custom_name: Optional[str], source: ResolvedInputSource) -> str:
    """Custom name, else the source's hint (hostname, file stem), else a per-type default."""
    for candidate in (custom_name, source.project_name_hint):
        if isinstance(candidate, str):
            cleaned = sanitize_text(candidate, 120)
            if cleaned:
                return cleaned
    return DEFAULT_PROJECT_NAMES[source.source_type]


class DeckGenerationService:
    """
    Self-healing deck generation with per-user locking and a hard deadline.

    Collaborators are injectable so tests can swap the resolver transport,
    the chat model and the lock store.
    """

    def __init__(
        self,
        resolver: Optional[InputResolver] = None,
        ai_client: Optional[SlideGenerationClient] = None,
        locks: Optional[GenerationLockStore] = None,
        timeout_seconds: Optional[float] = None,
        quality_threshold: Optional[int] = None,
    ):
        self.resolver = resolver if resolver is not None else InputResolver()
        self.ai_client = ai_client if ai_client is not None else SlideGenerationClient()
        self.locks = locks if locks is not None else GenerationLockStore()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.GENERATION_TIMEOUT_SECONDS
        self.quality_threshold = (
            quality_threshold if quality_threshold is not None else settings.QUALITY_FALLBACK_THRESHOLD
        )

    # =========================================================================
    # Operations
    # =========================================================================

    async def generate_from_url(
        self,
        user_id: str,
        url: str,
        name: Optional[str] = None,
    ) -> GenerationResult:
        """Generate a deck from a URL (or an allow-listed local path)."""
        source = await self.resolver.resolve(url)
        return await self.generate_from_source(user_id, source, name)

    async def generate_from_markdown(
        self,
        user_id: str,
        base64_payload: Optional[str] = None,
        markdown: Optional[str] = None,
        file_name: Optional[str] = None,
        name: Optional[str] = None,
    ) -> GenerationResult:
        """Generate a deck from a base64 Markdown upload or inline Markdown."""
        if base64_payload and base64_payload.strip():
            source = self.resolver.decode_markdown_payload(base64_payload, file_name)
        elif markdown and markdown.strip():
            source = self.resolver.resolve_inline_markdown(markdown)
        else:
            raise DeckError(ErrorCode.INPUT_REQUIRED, "Markdown content or a base64 payload is required")
        return await self.generate_from_source(user_id, source, name)

    async def generate_from_pdf(
        self,
        user_id: str,
        base64_payload: str,
        file_name: Optional[str] = None,
        name: Optional[str] = None,
    ) -> GenerationResult:
        """Generate a deck from a base64 PDF upload."""
        source = await self.resolver.decode_pdf_payload(base64_payload, file_name)
        return await self.generate_from_source(user_id, source, name)

    async def generate_from_source(
        self,
        user_id: str,
        source: ResolvedInputSource,
        name: Optional[str] = None,
    ) -> GenerationResult:
        """
        Run the locked, deadline-bound pipeline for an already resolved source.

        Raises:
            DeckError: SOURCE_TEXT_TOO_SHORT, GENERATION_BUSY or GENERATION_TIMEOUT
        """
        if len(source.source_text.strip()) < settings.MIN_SOURCE_CHARS:
            raise DeckError(
                ErrorCode.SOURCE_TEXT_TOO_SHORT,
                f"The source must contain at least {settings.MIN_SOURCE_CHARS} characters of text",
            )

        project_name = derive_project_name(name, source)
        loop = asyncio.get_running_loop()

        async with self.locks.hold(user_id):
            deadline = loop.time() + self.timeout_seconds
            try:
                result = await asyncio.wait_for(
                    self._generate(source, project_name, deadline),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                logger.warning(
                    "Deck generation timed out",
                    user_id=user_id,
                    timeout_seconds=self.timeout_seconds,
                )
                raise DeckError(
                    ErrorCode.GENERATION_TIMEOUT,
                    "Deck generation took too long; try a shorter document",
                ) from e

        logger.info(
            "Deck generated",
            user_id=user_id,
            project_name=project_name,
            source_type=source.source_type.value,
            slide_count=len(result.deck),
            quality=result.quality.overall,
            used_fallback=result.used_fallback,
        )
        return result

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _generate(
        self,
        source: ResolvedInputSource,
        project_name: str,
        deadline: float,
    ) -> GenerationResult:
        candidate, from_ai = await self._initial_candidate(source, project_name, deadline)

        slides, quality, replaced = apply_quality_self_healing(
            candidate,
            source.source_text,
            source.source_type,
            project_name,
            threshold=self.quality_threshold,
        )

        return GenerationResult(
            deck=slides,
            quality=quality,
            project_name=project_name,
            source_type=source.source_type,
            source_label=source.source_label,
            used_fallback=replaced or not from_ai,
        )

    async def _initial_candidate(
        self,
        source: ResolvedInputSource,
        project_name: str,
        deadline: float,
    ) -> Tuple[List[DeckSlide], bool]:
        if not self.ai_client.enabled:
            logger.info("AI generation disabled, using deterministic fallback")
            return build_fallback_slides(source.source_text, source.source_type, project_name), False

        remaining = deadline - asyncio.get_running_loop().time() - HEALING_RESERVE_SECONDS
        try:
            slides = await self.ai_client.generate_slides(
                source.source_text,
                source.source_type,
                project_name,
                timeout=max(remaining, MIN_AI_TIMEOUT_SECONDS),
            )
            return slides, True
        except Exception as e:
            # AI failures are recovered locally and never surfaced
            logger.warning(
                "AI generation failed, using deterministic fallback",
                error=str(e),
                error_type=type(e).__name__,
            )
            return build_fallback_slides(source.source_text, source.source_type, project_name), False
