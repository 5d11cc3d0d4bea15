"""
SlideFoundry - Deck Generation API Routes
=========================================

Endpoints that turn a URL, Markdown or PDF into a slide deck.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field, field_validator

from slidefoundry.api.deps import get_current_user_id, get_deck_service
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.generator.service import DeckGenerationService

logger = structlog.get_logger(__name__)

router = APIRouter()

MAX_NAME_CHARS = 120


# =============================================================================
# Request / Response Models
# =============================================================================

class _GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, description="Custom project name")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v[:MAX_NAME_CHARS] or None


class FromUrlRequest(_GenerateRequest):
    url: Optional[str] = Field(default=None, description="Web address or allow-listed file path")
    input: Optional[str] = Field(default=None, description="Alias of url")

    @property
    def target(self) -> str:
        return (self.url or self.input or "").strip()


class FromMarkdownRequest(_GenerateRequest):
    base64: Optional[str] = Field(default=None, description="Base64 (or data URL) Markdown upload")
    markdown: Optional[str] = Field(default=None, description="Inline Markdown text")
    file_name: Optional[str] = Field(default=None, alias="fileName")


class FromPdfRequest(_GenerateRequest):
    base64: str = Field(default="", description="Base64 (or data URL) PDF upload")
    file_name: Optional[str] = Field(default=None, alias="fileName")


class QualityResponse(BaseModel):
    structure: int
    readability: int
    diversity: int
    overall: int
    issues: List[str]


class DeckResponse(BaseModel):
    deck: List[Dict[str, Any]]
    quality: QualityResponse
    projectName: str
    description: str
    sourceType: str
    sourceLabel: str
    usedFallback: bool


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/from-url", response_model=DeckResponse)
async def generate_from_url(
    request: FromUrlRequest,
    user_id: str = Depends(get_current_user_id),
    service: DeckGenerationService = Depends(get_deck_service),
):
    """Generate a deck from a web page (or an allow-listed local file)."""
    if not request.target:
        raise DeckError(ErrorCode.INPUT_REQUIRED, "A URL or file path is required")

    logger.info("Generate from URL requested", user_id=user_id)
    result = await service.generate_from_url(user_id, request.target, request.name)
    return result.to_dict()


@router.post("/from-markdown", response_model=DeckResponse)
async def generate_from_markdown(
    request: FromMarkdownRequest,
    user_id: str = Depends(get_current_user_id),
    service: DeckGenerationService = Depends(get_deck_service),
):
    """Generate a deck from a Markdown upload or inline Markdown."""
    logger.info("Generate from Markdown requested", user_id=user_id, file_name=request.file_name)
    result = await service.generate_from_markdown(
        user_id,
        base64_payload=request.base64,
        markdown=request.markdown,
        file_name=request.file_name,
        name=request.name,
    )
    return result.to_dict()


@router.post("/from-pdf", response_model=DeckResponse)
async def generate_from_pdf(
    request: FromPdfRequest,
    user_id: str = Depends(get_current_user_id),
    service: DeckGenerationService = Depends(get_deck_service),
):
    """Generate a deck from a PDF upload."""
    logger.info("Generate from PDF requested", user_id=user_id, file_name=request.file_name)
    result = await service.generate_from_pdf(
        user_id,
        request.base64,
        file_name=request.file_name,
        name=request.name,
    )
    return result.to_dict()
