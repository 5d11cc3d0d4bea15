"""
SlideFoundry - Pytest Configuration
===================================

Shared fixtures and configuration for all tests.
"""

import json
import os
from typing import AsyncGenerator, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment BEFORE any imports
os.environ["APP_ENV"] = "test"
os.environ["AI_API_KEY"] = ""
os.environ["ZAI_API_KEY"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["TRUST_USER_ID_HEADER"] = "true"

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from langchain_core.messages import AIMessage

# Import app components after setting env vars
from slidefoundry.api.main import create_app
from slidefoundry.services.generation_lock import GenerationLockStore
from slidefoundry.services.generator.ai_client import SlideGenerationClient
from slidefoundry.services.generator.models import ResolvedInputSource, SourceType
from slidefoundry.services.generator.service import DeckGenerationService
from slidefoundry.services.input_resolver import InputResolver
from slidefoundry.services.session_store import SessionStore


# =============================================================================
# Sample Content
# =============================================================================

SAMPLE_MARKDOWN = """# Project Atlas

Atlas is a platform for turning documents into presentations.

## Goals
- Faster onboarding for new teams
- Consistent slide structure across decks
- Less manual formatting work

## Rollout Process
1. Collect the source documents
2. Generate the first draft deck
3. Review the draft with the team
4. Publish the final presentation

## Cloud vs On-Premise
- Cloud: quick setup and elastic scaling
- On-Premise: full control over the data

## Pricing
| Plan | Price |
| --- | --- |
| Starter | Free |
| Team | $20 |

> Good structure makes every deck easier to follow — Jane Doe
"""

SAMPLE_PLAIN_TEXT = (
    "Remote work changed how teams communicate. "
    "Written updates replaced many status meetings. "
    "Time zones forced teams to document decisions. "
    "Async tools became part of the daily routine. "
    "Managers now measure outcomes instead of hours."
)

GOOD_AI_DECK = {
    "slides": [
        {"type": "title", "content": {"title": "Atlas", "subtitle": "Platform overview"}},
        {"type": "card-grid", "content": {"title": "Goals", "items": ["Faster onboarding", "Consistent decks"]}},
        {"type": "comparison", "content": {
            "title": "Cloud vs On-Premise",
            "leftTitle": "Cloud",
            "rightTitle": "On-Premise",
            "leftItems": ["Quick setup"],
            "rightItems": ["Full control"],
        }},
        {"type": "timeline", "content": {"title": "Rollout", "items": [
            {"title": "Collect", "description": "Gather the documents"},
            {"title": "Draft", "description": "Generate the first deck"},
            {"title": "Publish", "description": "Share the final deck"},
        ]}},
        {"type": "table", "content": {"title": "Pricing", "headers": ["Plan", "Price"], "rows": [["Team", "$20"]]}},
        {"type": "quote", "content": {"quote": "Structure makes decks easy to follow.", "author": "Jane Doe"}},
    ]
}


# =============================================================================
# Factories
# =============================================================================

def make_source(
    text: str = SAMPLE_MARKDOWN,
    source_type: SourceType = SourceType.MARKDOWN,
    label: str = "atlas.md",
    hint: str = "atlas",
) -> ResolvedInputSource:
    return ResolvedInputSource(
        source_text=text,
        source_label=label,
        project_name_hint=hint,
        source_type=source_type,
    )


def make_fake_llm(reply: Optional[str] = None, side_effect=None) -> MagicMock:
    """A chat model stand-in whose ainvoke returns reply as an AIMessage."""
    llm = MagicMock()
    if side_effect is not None:
        llm.ainvoke = AsyncMock(side_effect=side_effect)
    else:
        llm.ainvoke = AsyncMock(return_value=AIMessage(content=reply or ""))
    return llm


def make_service(
    llm: Optional[MagicMock] = None,
    resolver: Optional[InputResolver] = None,
    timeout_seconds: float = 5.0,
    quality_threshold: Optional[int] = None,
) -> DeckGenerationService:
    ai_client = SlideGenerationClient(llm=llm) if llm is not None else SlideGenerationClient(api_key="")
    return DeckGenerationService(
        resolver=resolver if resolver is not None else InputResolver(allowed_roots=[]),
        ai_client=ai_client,
        locks=GenerationLockStore(),
        timeout_seconds=timeout_seconds,
        quality_threshold=quality_threshold,
    )


@pytest.fixture
def sample_markdown() -> str:
    return SAMPLE_MARKDOWN


@pytest.fixture
def good_ai_reply() -> str:
    return json.dumps(GOOD_AI_DECK)


@pytest.fixture
def markdown_source() -> ResolvedInputSource:
    return make_source()


@pytest.fixture
def plain_source() -> ResolvedInputSource:
    return make_source(SAMPLE_PLAIN_TEXT, SourceType.URL, "example.com", "example.com")


# =============================================================================
# FastAPI Test Client
# =============================================================================

@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore(ttl_seconds=3600)


@pytest.fixture
def deck_service() -> DeckGenerationService:
    return make_service()


@pytest.fixture
def test_app(deck_service: DeckGenerationService, session_store: SessionStore) -> FastAPI:
    """Create a test FastAPI application with AI generation disabled."""
    return create_app(deck_service=deck_service, session_store=session_store)


@pytest.fixture
async def async_client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def user_headers() -> dict:
    return {"X-User-Id": "user-1"}


def slide_types(deck: List) -> List[str]:
    return [slide.type.value for slide in deck]
