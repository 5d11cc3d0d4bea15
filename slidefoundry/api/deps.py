"""
SlideFoundry - API Dependencies
===============================

Request-scoped access to the shared services and the caller's identity.
The core performs no authentication: identity comes from a session token
issued elsewhere, or, when TRUST_USER_ID_HEADER is on, from a header set by
a trusted upstream proxy.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from slidefoundry.core.config import settings
from slidefoundry.core.errors import DeckError, ErrorCode
from slidefoundry.services.generator.service import DeckGenerationService
from slidefoundry.services.session_store import SessionStore


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_deck_service(request: Request) -> DeckGenerationService:
    return request.app.state.deck_service


async def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    sessions: SessionStore = Depends(get_session_store),
) -> str:
    """
    Resolve the caller's user id.

    Raises:
        DeckError: AUTH_REQUIRED when no valid identity is present
    """
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            session = sessions.get(token.strip())
            if session is not None:
                return session.user_id
        raise DeckError(ErrorCode.AUTH_REQUIRED, "The session is invalid or has expired")

    if settings.TRUST_USER_ID_HEADER and x_user_id and x_user_id.strip():
        return x_user_id.strip()

    raise DeckError(ErrorCode.AUTH_REQUIRED, "Authentication is required")
