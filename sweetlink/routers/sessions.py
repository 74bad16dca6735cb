"""Sessions router.

Login, token refresh and logout.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.rate_limit import limiter
from sweetlink.database import get_db
from sweetlink.schemas.auth import LoginRequest, RefreshRequest, SessionResponse
from sweetlink.services import session_service

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", response_model=SessionResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Authenticate with email + password and return a session."""
    return await session_service.login(db, body.email, body.password)


@router.post("/refresh", response_model=SessionResponse)
async def refresh(
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Exchange a valid refresh token for a new session (rotation)."""
    return await session_service.refresh_session(db, body.refresh_token)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Revoke the provided refresh token."""
    await session_service.end_session(db, body.refresh_token)
    # Always 204 regardless of whether the token was found
    return None
