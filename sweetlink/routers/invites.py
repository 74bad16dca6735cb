"""Invites router.

Issue, inspect, revoke and redeem invite codes.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.core.dependencies import ensure_same_account, get_current_account
from sweetlink.core.errors import InviteExpiredError, InviteNotActiveError
from sweetlink.database import get_db
from sweetlink.models.account import Account
from sweetlink.schemas.invite import InviteCreate, InviteRedeem, InviteResponse
from sweetlink.schemas.relationship import RelationshipResponse
from sweetlink.services import invite_registry, session_service

router = APIRouter(prefix="/invites", tags=["Invites"])


@router.post("", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def create_invite(
    db: Annotated[AsyncSession, Depends(get_db)],
    body: InviteCreate | None = None,
    current_account: Account = Depends(get_current_account),
):
    """Issue an invite code for the caller."""
    account_id = ensure_same_account(current_account, body.account_id if body else None)
    return await session_service.create_invite(db, account_id)


@router.get("/mine", response_model=InviteResponse | None)
async def get_my_invite(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_account: Account = Depends(get_current_account),
):
    """Return the caller's active invite code, or null."""
    return await invite_registry.active_code_for(db, current_account.id)


@router.get("/{code}", response_model=InviteResponse)
async def get_invite(
    code: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_account: Account = Depends(get_current_account),
):
    """Look up an invite code."""
    return await invite_registry.lookup(db, code)


@router.delete("/{code}", response_model=InviteResponse)
async def revoke_invite(
    code: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_account: Account = Depends(get_current_account),
):
    """Revoke one of the caller's own active codes."""
    try:
        return await invite_registry.revoke(db, code, current_account.id)
    except InviteNotActiveError:
        # Persist the lazy expiry even though the request fails
        await db.commit()
        raise


@router.post("/{code}/redeem", response_model=RelationshipResponse)
async def redeem_invite(
    code: str,
    body: InviteRedeem,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_account: Account = Depends(get_current_account),
):
    """Redeem an invite code and establish the relationship."""
    account_id = ensure_same_account(current_account, body.account_id)
    try:
        return await session_service.accept_invite(db, account_id, code, body.kind)
    except InviteExpiredError:
        # Persist the lazy expiry even though the request fails
        await db.commit()
        raise
