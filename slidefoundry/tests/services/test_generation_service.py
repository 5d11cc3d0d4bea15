"""
SlideFoundry - Deck Generation Service Tests
============================================

End-to-end pipeline behaviour with a mocked chat model and resolver.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.messages import AIMessage

from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.generator.models import MIN_SLIDES, SlideType, SourceType
from slidefoundry.services.generator.service import derive_project_name

from conftest import SAMPLE_MARKDOWN, make_fake_llm, make_service, make_source


class TestDeriveProjectName:
    """Project name precedence."""

    def test_custom_name_wins(self):
        assert derive_project_name("  My   Deck ", make_source()) == "My Deck"

    def test_hint_when_no_custom_name(self):
        assert derive_project_name(None, make_source(hint="atlas")) == "atlas"
        assert derive_project_name("   ", make_source(hint="atlas")) == "atlas"

    def test_default_per_source_type(self):
        assert derive_project_name(None, make_source(hint="", source_type=SourceType.PDF)) == "PDF Deck"
        assert derive_project_name(None, make_source(hint="", source_type=SourceType.URL)) == "URL Deck"


class TestGenerateFromSource:
    """Locked, deadline-bound pipeline."""

    @pytest.mark.asyncio
    async def test_ai_disabled_uses_fallback(self, markdown_source):
        service = make_service()

        result = await service.generate_from_source("u1", markdown_source)

        assert result.used_fallback is True
        assert result.deck[0].type == SlideType.TITLE
        assert result.deck[0].content["title"] == "atlas"
        assert len(result.deck) >= MIN_SLIDES
        assert result.description == f"MARKDOWN · atlas.md · Q{result.quality.overall}"
        assert not service.locks.is_locked("u1")

    @pytest.mark.asyncio
    async def test_good_ai_deck_is_used(self, markdown_source, good_ai_reply):
        llm = make_fake_llm(good_ai_reply)
        service = make_service(llm=llm)

        result = await service.generate_from_source("u1", markdown_source, name="Atlas")

        assert result.used_fallback is False
        assert result.project_name == "Atlas"
        assert result.quality.overall == 100
        assert [s.content.get("title") for s in result.deck][:2] == ["Atlas", "Goals"]
        llm.ainvoke.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ai_failure_falls_back_silently(self, plain_source):
        service = make_service(llm=make_fake_llm(side_effect=RuntimeError("provider down")))

        result = await service.generate_from_source("u1", plain_source)

        assert result.used_fallback is True
        assert result.deck[0].content["subtitle"] == "Built automatically from URL input"
        assert not service.locks.is_locked("u1")

    @pytest.mark.asyncio
    async def test_malformed_ai_slide_is_normalized_and_padded(self, plain_source):
        """An unknown slide type becomes a default card grid and the deck is padded."""
        service = make_service(llm=make_fake_llm(json.dumps([{"type": "foo"}])))

        result = await service.generate_from_source("u1", plain_source)

        assert len(result.deck) >= MIN_SLIDES
        assert result.deck[0].type == SlideType.TITLE
        assert result.deck[1].type == SlideType.CARD_GRID
        assert result.deck[1].content == {"title": "Key Points", "items": ["Summary of the key points."]}

    @pytest.mark.asyncio
    async def test_short_source_is_rejected_before_locking(self):
        service = make_service()
        service.locks = MagicMock(wraps=service.locks)

        with pytest.raises(DeckError) as exc_info:
            await service.generate_from_source("u1", make_source(text="too short"))

        assert exc_info.value.error_code == ErrorCode.SOURCE_TEXT_TOO_SHORT
        service.locks.hold.assert_not_called()

    @pytest.mark.asyncio
    async def test_busy_user_is_rejected(self, markdown_source):
        service = make_service()
        service.locks.acquire("u1")

        with pytest.raises(DeckError) as exc_info:
            await service.generate_from_source("u1", markdown_source)

        assert exc_info.value.error_code == ErrorCode.GENERATION_BUSY
        assert service.locks.is_locked("u1")

        result = await service.generate_from_source("u2", markdown_source)
        assert result.deck

    @pytest.mark.asyncio
    async def test_concurrent_requests_for_one_user(self, markdown_source, good_ai_reply):
        """The second request fails fast while the first is still in flight."""
        release = asyncio.Event()

        async def slow_reply(messages):
            await release.wait()
            return AIMessage(content=good_ai_reply)

        service = make_service(llm=make_fake_llm(side_effect=slow_reply))
        first = asyncio.create_task(service.generate_from_source("u1", markdown_source))
        while not service.locks.is_locked("u1"):
            await asyncio.sleep(0)

        with pytest.raises(DeckError) as exc_info:
            await service.generate_from_source("u1", markdown_source)
        assert exc_info.value.error_code == ErrorCode.GENERATION_BUSY

        release.set()
        result = await first
        assert result.used_fallback is False
        assert not service.locks.is_locked("u1")

    @pytest.mark.asyncio
    async def test_timeout_releases_lock(self, markdown_source):
        async def never_returns(messages):
            await asyncio.sleep(10)

        service = make_service(llm=make_fake_llm(side_effect=never_returns), timeout_seconds=0.05)

        with pytest.raises(DeckError) as exc_info:
            await service.generate_from_source("u1", markdown_source)

        assert exc_info.value.error_code == ErrorCode.GENERATION_TIMEOUT
        assert not service.locks.is_locked("u1")


class TestEntryPoints:
    """URL, Markdown and PDF entry points."""

    @pytest.mark.asyncio
    async def test_generate_from_url_resolves_first(self, plain_source):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=plain_source)
        service = make_service(resolver=resolver)

        result = await service.generate_from_url("u1", "example.com", name=None)

        resolver.resolve.assert_awaited_once_with("example.com")
        assert result.project_name == "example.com"
        assert result.source_type == SourceType.URL

    @pytest.mark.asyncio
    async def test_resolution_errors_do_not_take_the_lock(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=DeckError(ErrorCode.URL_PRIVATE_ADDRESS, "private"))
        service = make_service(resolver=resolver)

        with pytest.raises(DeckError) as exc_info:
            await service.generate_from_url("u1", "http://127.0.0.1")

        assert exc_info.value.error_code == ErrorCode.URL_PRIVATE_ADDRESS
        assert len(service.locks) == 0

    @pytest.mark.asyncio
    async def test_generate_from_inline_markdown(self):
        service = make_service()

        result = await service.generate_from_markdown("u1", markdown=SAMPLE_MARKDOWN)

        assert result.source_type == SourceType.MARKDOWN
        assert result.source_label == "markdown"
        assert result.project_name == "Markdown Deck"

    @pytest.mark.asyncio
    async def test_generate_from_markdown_requires_input(self):
        with pytest.raises(DeckError) as exc_info:
            await make_service().generate_from_markdown("u1", base64_payload="  ", markdown="")
        assert exc_info.value.error_code == ErrorCode.INPUT_REQUIRED

    @pytest.mark.asyncio
    async def test_generate_from_pdf(self, plain_source):
        resolver = MagicMock()
        resolver.decode_pdf_payload = AsyncMock(return_value=make_source(
            text=plain_source.source_text,
            source_type=SourceType.PDF,
            label="report.pdf",
            hint="report",
        ))
        service = make_service(resolver=resolver)

        result = await service.generate_from_pdf("u1", "JVBERi0=", file_name="report.pdf", name="Q3")

        resolver.decode_pdf_payload.assert_awaited_once_with("JVBERi0=", "report.pdf")
        assert result.project_name == "Q3"
        assert result.to_dict()["sourceType"] == "pdf"
