"""Relationship Linker.

Pairs two accounts into an exclusive relationship. Exclusivity lives in the
store: ``relationship_members.account_id`` is a primary key, so a second
membership for the same account fails at flush time even under a race.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.core.errors import AccountAlreadyLinkedError, InvalidInputError
from sweetlink.database import utcnow
from sweetlink.models.invite_code import InviteCode, InviteStatus
from sweetlink.models.relationship import Relationship, RelationshipKind, RelationshipMember

logger = logging.getLogger(__name__)


async def get_active_relationship(
    db: AsyncSession,
    account_id: uuid.UUID,
) -> Relationship | None:
    result = await db.execute(
        select(Relationship)
        .join(RelationshipMember, RelationshipMember.relationship_id == Relationship.id)
        .where(RelationshipMember.account_id == account_id)
    )
    return result.scalar_one_or_none()


async def _revoke_open_codes(
    db: AsyncSession,
    account_ids: list[uuid.UUID],
    now: datetime,
) -> int:
    """Linked accounts cannot be invited any more, so their active codes are withdrawn."""
    result = await db.execute(
        update(InviteCode)
        .where(
            InviteCode.owner_account_id.in_(account_ids),
            InviteCode.status == InviteStatus.ACTIVE.value,
        )
        .values(status=InviteStatus.REVOKED.value, revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def link(
    db: AsyncSession,
    account_a: uuid.UUID,
    account_b: uuid.UUID,
    kind: RelationshipKind | str,
    invite_code_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> Relationship:
    """Create a relationship between two distinct, unlinked accounts.

    Meant to run in the same transaction as the invite redemption that
    triggered it; on failure the caller's transaction is rolled back.

    Raises:
        InvalidInputError: both ids are the same account or ``kind`` is unknown.
        AccountAlreadyLinkedError: either account is already in a relationship.
    """
    if account_a == account_b:
        raise InvalidInputError("An account cannot be linked with itself")
    try:
        kind = RelationshipKind(kind)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown relationship kind: {kind!r}") from exc

    for account_id in (account_a, account_b):
        if await get_active_relationship(db, account_id) is not None:
            raise AccountAlreadyLinkedError()

    now = now or utcnow()
    first, second = sorted((account_a, account_b), key=str)
    relationship = Relationship(
        account_a_id=first,
        account_b_id=second,
        kind=kind.value,
        invite_code_id=invite_code_id,
        established_at=now,
    )
    db.add(relationship)
    await db.flush()

    db.add_all([
        RelationshipMember(account_id=first, relationship_id=relationship.id, joined_at=now),
        RelationshipMember(account_id=second, relationship_id=relationship.id, joined_at=now),
    ])
    try:
        await db.flush()
    except IntegrityError as exc:
        raise AccountAlreadyLinkedError() from exc

    revoked = await _revoke_open_codes(db, [first, second], now)
    logger.info(
        "Relationship %s established (%s), %d open invite(s) revoked",
        relationship.id, kind.value, revoked,
    )
    return relationship
