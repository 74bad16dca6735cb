"""Account Session Service.

The façade the mobile client talks to: registration, login, token rotation,
invite creation and acceptance. Every function works inside the caller's
``AsyncSession`` so one request is one transaction.
"""

import hashlib
import logging
import uuid
from datetime import timedelta, timezone

from jose import JWTError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.errors import InvalidInputError, InvalidTokenError, SweetLinkError
from sweetlink.core.security import create_access_token, create_refresh_token, decode_token
from sweetlink.database import utcnow
from sweetlink.models.account import Account, RefreshToken
from sweetlink.models.invite_code import InviteCode
from sweetlink.models.relationship import Relationship, RelationshipKind
from sweetlink.schemas.account import AccountResponse
from sweetlink.schemas.auth import SessionResponse
from sweetlink.services import credential_store, invite_registry, relationship_linker

logger = logging.getLogger(__name__)


def _hash_token(token: str) -> str:
    """Return the SHA-256 hex digest of a raw token string."""
    return hashlib.sha256(token.encode()).hexdigest()


async def _open_session(db: AsyncSession, account: Account) -> SessionResponse:
    """Create an access + refresh token pair and persist the refresh token."""
    access_token = create_access_token(data={"sub": str(account.id)})
    raw_refresh = create_refresh_token(data={"sub": str(account.id)})

    db.add(RefreshToken(
        account_id=account.id,
        token_hash=_hash_token(raw_refresh),
        expires_at=utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    ))
    await db.flush()

    return SessionResponse(
        access_token=access_token,
        refresh_token=raw_refresh,
        account=AccountResponse.model_validate(account),
    )


async def register_and_login(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
) -> SessionResponse:
    account = await credential_store.register(db, username, email, password)
    return await _open_session(db, account)


async def login(db: AsyncSession, email: str, password: str) -> SessionResponse:
    account = await credential_store.verify(db, email, password)
    logger.info("Session opened for account %s", account.id)
    return await _open_session(db, account)


async def refresh_session(db: AsyncSession, refresh_token: str) -> SessionResponse:
    """Exchange a valid refresh token for a new pair; the old one is revoked."""
    try:
        payload = decode_token(refresh_token)
    except JWTError as exc:
        raise InvalidTokenError("Invalid refresh token") from exc
    account_id = payload.get("sub")
    if account_id is None or payload.get("type") != "refresh":
        raise InvalidTokenError("Invalid refresh token")

    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == _hash_token(refresh_token),
            RefreshToken.revoked == False,  # noqa: E712
        )
    )
    stored_token = result.scalar_one_or_none()
    if stored_token is None:
        raise InvalidTokenError("Refresh token not found or already revoked")

    expires = stored_token.expires_at
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    if expires < utcnow():
        raise InvalidTokenError("Refresh token expired")

    stored_token.revoked = True
    await db.flush()

    account = await db.get(Account, uuid.UUID(account_id))
    if account is None:
        raise InvalidTokenError("Account not found")

    return await _open_session(db, account)


async def end_session(db: AsyncSession, refresh_token: str) -> None:
    """Revoke a refresh token. Unknown tokens are ignored."""
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == _hash_token(refresh_token),
            RefreshToken.revoked == False,  # noqa: E712
        )
    )
    stored_token = result.scalar_one_or_none()
    if stored_token is not None:
        stored_token.revoked = True
        await db.flush()


async def create_invite(db: AsyncSession, account_id: uuid.UUID) -> InviteCode:
    return await invite_registry.issue(db, account_id)


async def accept_invite(
    db: AsyncSession,
    account_id: uuid.UUID,
    code: str,
    kind: RelationshipKind | str,
) -> Relationship:
    """Redeem ``code`` and link its owner with ``account_id`` as one unit.

    If ``link`` fails the redemption is undone before the error propagates:
    a rejected link is compensated by putting the code back to active, and a
    failed flush rolls the whole transaction back. A code is never left
    consumed without a relationship.
    """
    try:
        kind = RelationshipKind(kind)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown relationship kind: {kind!r}") from exc

    invite = await invite_registry.redeem(db, code, account_id)
    # A rollback expires loaded instances, so keep plain values for logging
    invite_id = invite.id
    try:
        return await relationship_linker.link(
            db,
            invite.owner_account_id,
            account_id,
            kind,
            invite_code_id=invite_id,
        )
    except SweetLinkError as exc:
        if isinstance(exc.__cause__, IntegrityError):
            await db.rollback()
        else:
            await invite_registry.release(db, invite, account_id)
        logger.warning("Link failed after redeeming invite %s, redemption undone", invite_id)
        raise


async def get_relationship(db: AsyncSession, account_id: uuid.UUID) -> Relationship | None:
    return await relationship_linker.get_active_relationship(db, account_id)
