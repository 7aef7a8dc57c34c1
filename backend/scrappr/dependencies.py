from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from scrappr.core.schemas.auth import AuthUser
from scrappr.core.services.note_service import NoteService
from scrappr.core.services.tag_index_service import TagIndexService
from scrappr.db.base import create_document_store, create_request_supabase_client
from scrappr.utils.logging import get_logger

logger = get_logger(__name__)

# Use auto_error=False to handle missing tokens gracefully
http_bearer = HTTPBearer(auto_error=False)

if TYPE_CHECKING:
    from scrappr.core.repositories.document_store import DocumentStore


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization") or request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return None


def get_document_store(request: Request) -> DocumentStore:
    """Request-scoped document store; with Supabase, RLS applies to the caller's JWT."""
    return create_document_store(_bearer_token(request))


def get_tag_index_service(store: DocumentStore = Depends(get_document_store)) -> TagIndexService:
    return TagIndexService(store)


def get_note_service(
    store: DocumentStore = Depends(get_document_store),
    tag_index: TagIndexService = Depends(get_tag_index_service),
) -> NoteService:
    return NoteService(store, tag_index)


async def _validate_jwt(jwt: str) -> AuthUser:
    supabase = create_request_supabase_client(jwt)
    try:
        resp = await asyncio.to_thread(lambda: supabase.auth.get_user(jwt))
    except Exception as err:
        error_msg = str(err).lower()
        logger.warning(
            "JWT validation failed",
            extra={
                "error_type": type(err).__name__,
                "error_summary": error_msg[:100] if error_msg else "Unknown error",
            }
        )
        detail = "Token is invalid or expired" if ("invalid" in error_msg or "expired" in error_msg) else "Authentication failed"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from err

    user = getattr(resp, "user", None)
    user_id = getattr(user, "id", None) if user else None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user data",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthUser(
        id=user_id,
        email=getattr(user, "email", None) or "",
        role=getattr(user, "role", None),
    )


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Security(http_bearer),
) -> AuthUser | None:
    """Authenticated user, or None when the request carries no bearer token."""
    if not credentials:
        return None
    jwt = credentials.credentials
    if not jwt or len(jwt.split(".")) != 3:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _validate_jwt(jwt)


async def get_current_user(user: AuthUser | None = Depends(get_optional_user)) -> AuthUser:
    """Validate JWT via Supabase and return authenticated user."""
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user
