"""
SlideFoundry - AI Generation Tests
==================================

Prompt building, response parsing and the LangChain client. The chat
model is always a mock; no test calls a real endpoint.
"""

import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from slidefoundry.core.errors import AIResponseError
from slidefoundry.services.generator.ai_client import SlideGenerationClient
from slidefoundry.services.generator.models import SlideType, SourceType
from slidefoundry.services.generator.prompt_builder import PromptBuilder
from slidefoundry.services.generator.response_parser import (
    coerce_raw_slides,
    extract_slides_from_response,
)

from conftest import GOOD_AI_DECK, make_fake_llm


# =============================================================================
# Prompt Builder
# =============================================================================

class TestPromptBuilder:
    """Prompt contents."""

    def test_system_prompt_states_contract(self):
        prompt = PromptBuilder(language="German", min_slides=5, max_slides=9).build_system_prompt()

        assert "between 5 and 9 slides" in prompt
        assert "Write all slide text in German" in prompt
        assert '"card-grid"' in prompt

    def test_user_prompt_carries_document(self):
        prompt = PromptBuilder().build_user_prompt("Body text", SourceType.PDF, "Atlas")

        assert prompt.startswith("INPUT TYPE: PDF")
        assert "PROJECT NAME: Atlas" in prompt
        assert "Body text" in prompt

    def test_messages(self):
        messages = PromptBuilder().build_messages("Body", SourceType.URL, "Atlas")

        assert isinstance(messages[0], SystemMessage)
        assert isinstance(messages[1], HumanMessage)


# =============================================================================
# Response Parser
# =============================================================================

class TestExtractSlides:
    """Strict parse, then bracket-span recovery."""

    def test_plain_array(self):
        assert extract_slides_from_response('[{"type": "title"}]') == [{"type": "title"}]

    def test_slides_object(self):
        assert extract_slides_from_response(json.dumps(GOOD_AI_DECK)) == GOOD_AI_DECK["slides"]

    def test_object_inside_prose_and_fences(self):
        raw = 'Here is your deck:\n```json\n{"slides": [{"type": "quote"}]}\n```\nEnjoy!'
        assert extract_slides_from_response(raw) == [{"type": "quote"}]

    def test_array_inside_prose(self):
        raw = 'Result: [{"type": "table"}, {"type": "title"}] done'
        assert extract_slides_from_response(raw) == [{"type": "table"}, {"type": "title"}]

    @pytest.mark.parametrize("raw", ["", "   ", "no json here", '{"deck": []}', "[]", '{"slides": [}'])
    def test_unusable_responses(self, raw):
        with pytest.raises(AIResponseError):
            extract_slides_from_response(raw)


class TestCoerceRawSlides:
    """Loose items into typed slides."""

    def test_shapes(self):
        slides = coerce_raw_slides([
            "not a dict",
            {"type": "quote", "quote": "Flat fields", "author": "Ann"},
            {"type": "Big Quote", "content": {"quote": "Nested"}},
            {"type": "foo"},
        ])

        assert [s.type for s in slides] == [
            SlideType.CARD_GRID, SlideType.QUOTE, SlideType.QUOTE, SlideType.CARD_GRID,
        ]
        assert slides[0].content == {}
        assert slides[1].content == {"quote": "Flat fields", "author": "Ann"}
        assert slides[2].content == {"quote": "Nested"}
        assert slides[3].content == {}


# =============================================================================
# Client
# =============================================================================

class TestSlideGenerationClient:
    """LangChain client wrapper."""

    def test_enabled_flag(self):
        assert SlideGenerationClient(api_key="").enabled is False
        assert SlideGenerationClient(api_key="   ").enabled is False
        assert SlideGenerationClient(api_key="key").enabled is True
        assert SlideGenerationClient(llm=make_fake_llm("[]"), api_key="").enabled is True

    def test_builds_chat_openai_from_settings(self):
        llm = SlideGenerationClient(api_key="key")._build_llm(timeout=10)

        assert isinstance(llm, ChatOpenAI)
        assert llm.max_retries == 0

    @pytest.mark.asyncio
    async def test_generate_slides(self, good_ai_reply):
        llm = make_fake_llm(good_ai_reply)
        client = SlideGenerationClient(llm=llm)

        slides = await client.generate_slides("Body text", SourceType.MARKDOWN, "Atlas", timeout=5)

        assert len(slides) == 6
        assert slides[0].type == SlideType.TITLE
        messages = llm.ainvoke.await_args.args[0]
        assert isinstance(messages[0], SystemMessage)
        assert "Body text" in messages[1].content

    @pytest.mark.asyncio
    async def test_content_blocks_are_joined(self):
        llm = make_fake_llm()
        llm.ainvoke.return_value = AIMessage(content=[
            {"type": "text", "text": '[{"type": "timeline", '},
            {"type": "text", "text": '"content": {"title": "Flow"}}]'},
        ])

        slides = await SlideGenerationClient(llm=llm).generate_slides("Body", SourceType.URL, "Atlas")

        assert slides[0].type == SlideType.TIMELINE
        assert slides[0].content == {"title": "Flow"}

    @pytest.mark.asyncio
    async def test_unparseable_reply_raises(self):
        client = SlideGenerationClient(llm=make_fake_llm("I cannot help with that."))

        with pytest.raises(AIResponseError):
            await client.generate_slides("Body", SourceType.URL, "Atlas")

    @pytest.mark.asyncio
    async def test_provider_errors_propagate(self):
        client = SlideGenerationClient(llm=make_fake_llm(side_effect=ConnectionError("down")))

        with pytest.raises(ConnectionError):
            await client.generate_slides("Body", SourceType.URL, "Atlas")
