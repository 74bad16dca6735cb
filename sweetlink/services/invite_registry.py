"""Invite Code Registry.

Issue, look up, redeem and revoke single-use invite codes. Expiry is applied
lazily whenever a code is observed; ``expire_stale`` is an optional bulk sweep.
"""

import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.errors import (
    AccountAlreadyLinkedError,
    AlreadyHasActiveCodeError,
    AlreadyRedeemedError,
    CodeGenerationError,
    InviteExpiredError,
    InviteNotActiveError,
    InviteNotFoundError,
    InviteRevokedError,
    RedeemerAlreadyLinkedError,
    SelfRedemptionError,
)
from sweetlink.database import utcnow
from sweetlink.models.invite_code import InviteCode, InviteStatus
from sweetlink.services import relationship_linker

logger = logging.getLogger(__name__)

# Uppercase letters and digits: 36^8 ~ 2.8e12 codes at the default length
CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_GENERATION_ATTEMPTS = 10


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_code(code: str) -> str:
    return code.strip().upper()


def is_overdue(invite: InviteCode, now: datetime | None = None) -> bool:
    return _as_utc(invite.expires_at) <= (now or utcnow())


def _generate_code(length: int | None = None) -> str:
    """Generate a random code like 'EBQPMUY7'."""
    length = length or settings.INVITE_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


async def generate_invite_code(db: AsyncSession) -> str:
    """Generate a code that no existing invite uses, retrying on collision."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        code = _generate_code()
        result = await db.execute(select(InviteCode.id).where(InviteCode.code == code))
        if result.scalar_one_or_none() is None:
            return code
        logger.warning("Invite code collision, regenerating")

    raise CodeGenerationError()


async def _get_by_code(db: AsyncSession, code: str) -> InviteCode:
    normalized = normalize_code(code)
    if not normalized:
        raise InviteNotFoundError()
    result = await db.execute(select(InviteCode).where(InviteCode.code == normalized))
    invite = result.scalar_one_or_none()
    if invite is None:
        raise InviteNotFoundError()
    return invite


def _mark_expired_if_overdue(invite: InviteCode, now: datetime) -> bool:
    if invite.status == InviteStatus.ACTIVE.value and is_overdue(invite, now):
        invite.status = InviteStatus.EXPIRED.value
        return True
    return False


def _ensure_redeemable(invite: InviteCode, now: datetime) -> None:
    _mark_expired_if_overdue(invite, now)
    if invite.status == InviteStatus.REDEEMED.value:
        raise AlreadyRedeemedError()
    if invite.status == InviteStatus.REVOKED.value:
        raise InviteRevokedError()
    if invite.status == InviteStatus.EXPIRED.value:
        raise InviteExpiredError()


def _violates_owner_index(exc: IntegrityError) -> bool:
    """True when the one-active-code-per-owner index rejected the insert.

    PostgreSQL reports the index name, SQLite the indexed column.
    """
    message = str(exc.orig)
    return "uq_invite_codes_owner_active" in message or "invite_codes.owner_account_id" in message


async def issue(
    db: AsyncSession,
    owner_account_id: uuid.UUID,
    now: datetime | None = None,
) -> InviteCode:
    """Issue a new invite code for an account that is not yet linked.

    Raises:
        AccountAlreadyLinkedError: the owner already has a relationship.
        AlreadyHasActiveCodeError: the owner holds an unexpired active code.
        CodeGenerationError: no free code after repeated collisions, or the
            chosen code was taken by a concurrent insert.
    """
    now = now or utcnow()

    if await relationship_linker.get_active_relationship(db, owner_account_id) is not None:
        raise AccountAlreadyLinkedError()

    result = await db.execute(
        select(InviteCode).where(
            InviteCode.owner_account_id == owner_account_id,
            InviteCode.status == InviteStatus.ACTIVE.value,
        )
    )
    current = result.scalar_one_or_none()
    if current is not None:
        if not _mark_expired_if_overdue(current, now):
            raise AlreadyHasActiveCodeError()
        # Expired codes must leave the partial unique index before the insert
        await db.flush()

    invite = InviteCode(
        code=await generate_invite_code(db),
        owner_account_id=owner_account_id,
        status=InviteStatus.ACTIVE.value,
        created_at=now,
        expires_at=now + timedelta(days=settings.INVITE_CODE_TTL_DAYS),
    )
    db.add(invite)
    try:
        await db.flush()
    except IntegrityError as exc:
        if _violates_owner_index(exc):
            raise AlreadyHasActiveCodeError() from exc
        # Another insert took the same code after the availability check
        logger.warning("Invite code taken concurrently for account %s", owner_account_id)
        raise CodeGenerationError() from exc

    logger.info("Invite code issued for account %s (expires %s)", owner_account_id, invite.expires_at)
    return invite


async def lookup(db: AsyncSession, code: str, now: datetime | None = None) -> InviteCode:
    """Return the invite for ``code``; overdue active codes are expired on the way out."""
    invite = await _get_by_code(db, code)
    if _mark_expired_if_overdue(invite, now or utcnow()):
        await db.flush()
        logger.info("Invite code %s expired on lookup", invite.id)
    return invite


async def active_code_for(db: AsyncSession, owner_account_id: uuid.UUID) -> InviteCode | None:
    """Return the owner's current active, unexpired code if there is one."""
    result = await db.execute(
        select(InviteCode).where(
            InviteCode.owner_account_id == owner_account_id,
            InviteCode.status == InviteStatus.ACTIVE.value,
        )
    )
    invite = result.scalar_one_or_none()
    if invite is None:
        return None
    if _mark_expired_if_overdue(invite, utcnow()):
        await db.flush()
        return None
    return invite


async def redeem(
    db: AsyncSession,
    code: str,
    redeemer_account_id: uuid.UUID,
    now: datetime | None = None,
) -> InviteCode:
    """Consume an invite code on behalf of ``redeemer_account_id``.

    The state change is one conditional UPDATE keyed by the code's id and its
    ``active`` status, so among concurrent callers exactly one matches a row.
    Losers re-read the row and report why it is no longer redeemable.

    Raises:
        InviteNotFoundError, SelfRedemptionError, AlreadyRedeemedError,
        InviteRevokedError, InviteExpiredError, RedeemerAlreadyLinkedError
    """
    now = now or utcnow()
    invite = await _get_by_code(db, code)

    if invite.owner_account_id == redeemer_account_id:
        raise SelfRedemptionError()

    _ensure_redeemable(invite, now)

    if await relationship_linker.get_active_relationship(db, redeemer_account_id) is not None:
        raise RedeemerAlreadyLinkedError()

    result = await db.execute(
        update(InviteCode)
        .where(
            InviteCode.id == invite.id,
            InviteCode.status == InviteStatus.ACTIVE.value,
            InviteCode.expires_at > now,
        )
        .values(
            status=InviteStatus.REDEEMED.value,
            redeemed_by_account_id=redeemer_account_id,
            redeemed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(invite)

    if result.rowcount != 1:
        logger.warning("Redemption of invite %s lost to a concurrent redeemer", invite.id)
        _ensure_redeemable(invite, now)
        raise AlreadyRedeemedError()

    logger.info("Invite %s redeemed by account %s", invite.id, redeemer_account_id)
    return invite


async def release(
    db: AsyncSession,
    invite: InviteCode,
    redeemer_account_id: uuid.UUID,
) -> None:
    """Undo a redemption whose follow-up link was rejected; the code is active again."""
    await db.execute(
        update(InviteCode)
        .where(
            InviteCode.id == invite.id,
            InviteCode.status == InviteStatus.REDEEMED.value,
            InviteCode.redeemed_by_account_id == redeemer_account_id,
        )
        .values(
            status=InviteStatus.ACTIVE.value,
            redeemed_by_account_id=None,
            redeemed_at=None,
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(invite)
    logger.info("Redemption of invite %s released", invite.id)


async def revoke(
    db: AsyncSession,
    code: str,
    owner_account_id: uuid.UUID,
    now: datetime | None = None,
) -> InviteCode:
    """Withdraw an active code. Only the owner may revoke; others see NotFound."""
    now = now or utcnow()
    invite = await _get_by_code(db, code)
    if invite.owner_account_id != owner_account_id:
        raise InviteNotFoundError()

    if _mark_expired_if_overdue(invite, now):
        await db.flush()
        raise InviteNotActiveError()

    result = await db.execute(
        update(InviteCode)
        .where(
            InviteCode.id == invite.id,
            InviteCode.status == InviteStatus.ACTIVE.value,
        )
        .values(status=InviteStatus.REVOKED.value, revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(invite)
    if result.rowcount != 1:
        raise InviteNotActiveError()

    logger.info("Invite %s revoked by owner", invite.id)
    return invite


async def expire_stale(db: AsyncSession, now: datetime | None = None) -> int:
    """Bulk-expire overdue active codes. Returns the number of codes touched."""
    result = await db.execute(
        update(InviteCode)
        .where(
            InviteCode.status == InviteStatus.ACTIVE.value,
            InviteCode.expires_at <= (now or utcnow()),
        )
        .values(status=InviteStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
