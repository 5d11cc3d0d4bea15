"""
SlideFoundry - FastAPI Application Entry Point
==============================================

Initializes the FastAPI application with the generation routes,
CORS, error handlers and the session sweeper.
"""

from pathlib import Path

# Load environment variables from .env file
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
else:
    load_dotenv()

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from slidefoundry import __version__
from slidefoundry.api.errors import register_exception_handlers
from slidefoundry.api.routes.generate import router as generate_router
from slidefoundry.core.config import settings
from slidefoundry.services.generator.service import DeckGenerationService
from slidefoundry.services.session_store import SessionStore

logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.LOG_FORMAT == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start and stop the session and stale-lock sweepers."""
    logger.info("Starting SlideFoundry API", version=__version__, ai_enabled=settings.ai_enabled)
    app.state.session_store.start_sweeper()
    app.state.deck_service.locks.start_sweeper()

    yield

    logger.info("Shutting down SlideFoundry API")
    await app.state.deck_service.locks.stop_sweeper()
    await app.state.session_store.stop_sweeper()


# =============================================================================
# Application Factory
# =============================================================================

def create_app(
    deck_service: Optional[DeckGenerationService] = None,
    session_store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        deck_service: Generation service to use (defaults to a new one)
        session_store: Session store to use (defaults to a new one)

    Returns:
        FastAPI: Configured application instance
    """
    app = FastAPI(
        title="SlideFoundry",
        description="Turn web pages, PDFs and Markdown into structured slide decks",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.deck_service = deck_service if deck_service is not None else DeckGenerationService()
    app.state.session_store = session_store if session_store is not None else SessionStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    register_exception_handlers(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all API routes."""

    @app.get("/api/health", tags=["Health"])
    async def health_check():
        """Check if the API is running."""
        return {
            "status": "healthy",
            "service": "SlideFoundry",
            "version": __version__,
            "ai_enabled": app.state.deck_service.ai_client.enabled,
        }

    app.include_router(generate_router, prefix="/api/generate", tags=["Generate"])


app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(
        "slidefoundry.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.APP_ENV == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
