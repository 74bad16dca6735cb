"""Accounts router.

Registration and the caller's own account.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.dependencies import get_current_account
from sweetlink.core.errors import InvalidInputError
from sweetlink.core.rate_limit import limiter
from sweetlink.database import get_db
from sweetlink.models.account import Account
from sweetlink.schemas.account import AccountCreate, AccountResponse
from sweetlink.schemas.auth import SessionResponse
from sweetlink.services import credential_store, session_service

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def _check_confirmation(body: AccountCreate) -> None:
    if body.password_confirm is not None and body.password != body.password_confirm:
        raise InvalidInputError("Passwords do not match")


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def create_account(
    request: Request,
    body: AccountCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a new account."""
    _check_confirmation(body)
    return await credential_store.register(db, body.username, body.email, body.password)


@router.post(
    "/register-and-login",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def register_and_login(
    request: Request,
    body: AccountCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Register a new account and open a session for it in one step."""
    _check_confirmation(body)
    return await session_service.register_and_login(
        db, body.username, body.email, body.password,
    )


@router.get("/me", response_model=AccountResponse)
async def get_me(current_account: Account = Depends(get_current_account)):
    """Return the currently authenticated account."""
    return current_account
