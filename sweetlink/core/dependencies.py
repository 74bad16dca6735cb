import uuid
from typing import Annotated

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.errors import AccountMismatchError, AccountNotFoundError, InvalidTokenError
from sweetlink.core.security import decode_token
from sweetlink.database import get_db
from sweetlink.models.account import Account
from sweetlink.services import credential_store

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_PREFIX}/sessions")


async def get_current_account(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Account:
    """Extract and validate the access JWT from the Authorization header.

    Returns the Account ORM instance for the authenticated caller.

    Raises:
        InvalidTokenError: If the token is invalid, expired, not an access
            token, or the account no longer exists.
    """
    try:
        payload = decode_token(token)
    except JWTError as exc:
        raise InvalidTokenError() from exc

    account_id: str | None = payload.get("sub")
    if account_id is None or payload.get("type") != "access":
        raise InvalidTokenError()

    try:
        return await credential_store.get_account(db, uuid.UUID(account_id))
    except (ValueError, AccountNotFoundError) as exc:
        raise InvalidTokenError() from exc


def ensure_same_account(current: Account, claimed_id: uuid.UUID | None) -> uuid.UUID:
    """Resolve the acting account; an explicit ``account_id`` must be the caller's own."""
    if claimed_id is not None and claimed_id != current.id:
        raise AccountMismatchError()
    return current.id
