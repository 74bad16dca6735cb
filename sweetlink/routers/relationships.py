"""Relationships router."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.core.dependencies import get_current_account
from sweetlink.database import get_db
from sweetlink.models.account import Account
from sweetlink.schemas.relationship import RelationshipResponse
from sweetlink.services import session_service

router = APIRouter(prefix="/relationships", tags=["Relationships"])


@router.get("/me", response_model=RelationshipResponse | None)
async def get_my_relationship(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_account: Account = Depends(get_current_account),
):
    """Return the caller's active relationship, or null when unlinked."""
    return await session_service.get_relationship(db, current_account.id)
