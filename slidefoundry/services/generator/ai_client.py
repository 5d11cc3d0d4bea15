"""
SlideFoundry - AI Generation Client
===================================

Calls an OpenAI-compatible chat completion endpoint through LangChain and
turns the reply into raw DeckSlides. Output is untrusted: callers normalize
it and fall back to the deterministic generator on any failure.
"""

from typing import List, Optional

import structlog
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI

from slidefoundry.core.config import settings
from slidefoundry.services.generator.models import DeckSlide, SourceType
from slidefoundry.services.generator.prompt_builder import PromptBuilder
from slidefoundry.services.generator.response_parser import (
    coerce_raw_slides,
    extract_slides_from_response,
)

logger = structlog.get_logger(__name__)


def _message_text(content) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
        return "".join(parts)
    return ""


class SlideGenerationClient:
    """
    Slide generation over a LangChain chat model.

    A model can be injected (tests, alternative providers); otherwise a
    ChatOpenAI client is built from settings when an API key is configured.
    """

    def __init__(
        self,
        llm: Optional[BaseChatModel] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        api_key: Optional[str] = None,
    ):
        self._llm = llm
        self._api_key = api_key if api_key is not None else settings.AI_API_KEY
        self.prompt_builder = prompt_builder or PromptBuilder()

    @property
    def enabled(self) -> bool:
        return self._llm is not None or bool(self._api_key.strip())

    def _build_llm(self, timeout: float) -> BaseChatModel:
        if self._llm is not None:
            return self._llm
        return ChatOpenAI(
            model=settings.AI_MODEL,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
            api_key=self._api_key,
            base_url=settings.AI_BASE_URL,
            timeout=timeout,
            max_retries=0,
        )

    async def generate_slides(
        self,
        source: str,
        source_type: SourceType,
        project_name: str,
        timeout: Optional[float] = None,
    ) -> List[DeckSlide]:
        """
        Ask the model for a deck.

        Args:
            source: Clean source text
            source_type: Where the text came from
            project_name: Deck name
            timeout: Seconds allowed for the call (bounded by the pipeline deadline)

        Returns:
            Raw slides; content is not yet normalized

        Raises:
            AIResponseError: If the reply holds no slide array
            Exception: Any transport or provider error from the model
        """
        call_timeout = min(
            timeout if timeout is not None else settings.AI_REQUEST_TIMEOUT_SECONDS,
            settings.AI_REQUEST_TIMEOUT_SECONDS,
        )
        llm = self._build_llm(call_timeout)
        messages = self.prompt_builder.build_messages(source, source_type, project_name)

        logger.info(
            "Requesting AI slide generation",
            source_type=source_type.value,
            source_chars=len(source),
            timeout=round(call_timeout, 2),
        )
        response = await llm.ainvoke(messages)
        raw_slides = extract_slides_from_response(_message_text(response.content))
        slides = coerce_raw_slides(raw_slides)
        logger.info("AI slide generation complete", slide_count=len(slides))
        return slides
