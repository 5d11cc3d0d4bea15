"""
SlideFoundry - Core Configuration
=================================

Centralized configuration using Pydantic settings.
Settings can be configured via:
1. Environment variables (.env file)
2. Defaults - Sensible defaults for all settings

Usage:
    from slidefoundry.core.config import settings

    roots = settings.allowed_file_roots
    timeout = settings.GENERATION_TIMEOUT_SECONDS
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

import structlog

logger = structlog.get_logger(__name__)


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = Field(default="SlideFoundry", description="Application name")
    APP_ENV: str = Field(default="development", description="Environment name")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_FORMAT: str = Field(default="console", description="console or json")

    # ==========================================================================
    # HTTP API
    # ==========================================================================
    CORS_ORIGIN: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of origins allowed by CORS",
    )
    TRUST_USER_ID_HEADER: bool = Field(
        default=False,
        description="Accept X-User-Id as the caller identity (only behind a trusted auth proxy)",
    )

    # ==========================================================================
    # Input Resolution
    # ==========================================================================
    ALLOWED_FILE_ROOTS: str = Field(
        default="",
        description="Comma-separated directories local file input may read from "
                    "(defaults to the working directory and /tmp)",
    )
    URL_FETCH_TIMEOUT_SECONDS: float = Field(default=12.0, description="Per-attempt URL fetch timeout")
    MAX_URL_FETCH_RETRIES: int = Field(default=2, description="Retries after the first fetch attempt")
    MAX_RETRY_AFTER_SECONDS: float = Field(default=12.0, description="Ceiling for honoured Retry-After")
    MAX_SOURCE_CHARS: int = Field(default=40_000, description="Cap on extracted source text")
    MIN_SOURCE_CHARS: int = Field(default=20, description="Shortest usable source text")
    MAX_TEXT_SOURCE_BYTES: int = Field(default=2 * 1024 * 1024, description="Cap on HTML/text payloads")
    MAX_MARKDOWN_BYTES: int = Field(default=2 * 1024 * 1024, description="Cap on uploaded Markdown")
    MAX_PDF_BYTES: int = Field(default=8 * 1024 * 1024, description="Cap on PDF documents")

    # ==========================================================================
    # AI Generation
    # ==========================================================================
    AI_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("AI_API_KEY", "ZAI_API_KEY"),
        description="API key for the OpenAI-compatible completion endpoint",
    )
    AI_BASE_URL: str = Field(
        default="https://api.z.ai/api/paas/v4",
        description="Base URL of the OpenAI-compatible completion endpoint",
    )
    AI_MODEL: str = Field(default="glm-4.7", description="Chat model used for slide generation")
    AI_TEMPERATURE: float = Field(default=0.35, description="Sampling temperature")
    AI_MAX_TOKENS: int = Field(default=4096, description="Completion token ceiling")
    AI_REQUEST_TIMEOUT_SECONDS: float = Field(default=40.0, description="Per-call AI timeout")
    DECK_LANGUAGE: str = Field(default="English", description="Language the deck is written in")

    # ==========================================================================
    # Generation Pipeline
    # ==========================================================================
    GENERATION_TIMEOUT_SECONDS: float = Field(default=45.0, description="Hard deadline per request")
    QUALITY_FALLBACK_THRESHOLD: int = Field(
        default=60,
        description="Overall quality below which the fallback deck is considered",
    )
    GENERATION_LOCK_MAX_AGE_SECONDS: float = Field(
        default=300.0,
        description="Locks older than this are swept as stale",
    )
    GENERATION_LOCK_SWEEP_INTERVAL_SECONDS: float = Field(
        default=60.0,
        description="Stale-lock sweep period",
    )

    # ==========================================================================
    # Sessions
    # ==========================================================================
    SESSION_TTL_SECONDS: int = Field(default=7 * 24 * 60 * 60, description="Session lifetime")
    SESSION_SWEEP_INTERVAL_SECONDS: float = Field(default=3600.0, description="Expired-session sweep period")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @property
    def allowed_file_roots(self) -> List[str]:
        roots = _split_csv(self.ALLOWED_FILE_ROOTS)
        if not roots:
            roots = [os.getcwd(), "/tmp"]
        return roots

    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ORIGIN)

    @property
    def ai_enabled(self) -> bool:
        return bool(self.AI_API_KEY.strip())


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
