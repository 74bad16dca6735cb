"""Credential Store.

Durable account records with salted password hashes.
"""

import logging
import re
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sweetlink.config import settings
from sweetlink.core.errors import (
    AccountNotFoundError,
    BadCredentialsError,
    DuplicateEmailError,
    InvalidInputError,
)
from sweetlink.core.security import burn_password_check, get_password_hash, verify_password
from sweetlink.models.account import Account

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate(username: str, email: str, password: str) -> None:
    if not username or not username.strip():
        raise InvalidInputError("Username must not be empty")
    if len(username.strip()) > 100:
        raise InvalidInputError("Username must be at most 100 characters")
    if not _EMAIL_RE.match(email):
        raise InvalidInputError("Email address is not valid")
    if not password:
        raise InvalidInputError("Password must not be empty")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )


async def find_by_email(db: AsyncSession, email: str) -> Account | None:
    result = await db.execute(select(Account).where(Account.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def register(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
) -> Account:
    """Create an account.

    Raises:
        InvalidInputError: blank username/password or malformed email.
        DuplicateEmailError: the normalized email is already registered,
            including when a concurrent registration wins the unique index.
    """
    normalized = normalize_email(email)
    _validate(username, normalized, password)

    if await find_by_email(db, normalized) is not None:
        raise DuplicateEmailError()

    account = Account(
        username=username.strip(),
        email=normalized,
        password_hash=get_password_hash(password),
    )
    db.add(account)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise DuplicateEmailError() from exc

    logger.info("Account registered: %s", account.id)
    return account


async def verify(db: AsyncSession, email: str, password: str) -> Account:
    """Return the account whose credentials match.

    Both failure paths run one bcrypt check so response time does not tell
    an unknown email apart from a wrong password.

    Raises:
        AccountNotFoundError: no account with that email.
        BadCredentialsError: the password does not match.
    """
    account = await find_by_email(db, email)
    if account is None:
        burn_password_check(password)
        logger.warning("Login failed: unknown email")
        raise AccountNotFoundError()

    if not verify_password(password, account.password_hash):
        logger.warning("Login failed: bad password for account %s", account.id)
        raise BadCredentialsError()

    return account


async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    account = await db.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError()
    return account
