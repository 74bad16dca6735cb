"""Tests for the credential store against the database."""

import asyncio

import pytest

from sweetlink.core.errors import (
    AccountNotFoundError,
    BadCredentialsError,
    DuplicateEmailError,
    InvalidInputError,
)
from sweetlink.services import credential_store


class TestRegister:
    async def test_register_stores_hash_not_password(self, db_session):
        account = await credential_store.register(db_session, "alice", "a@x.com", "pw1")
        assert account.id is not None
        assert account.password_hash != "pw1"
        assert account.password_hash.startswith("$2")

    async def test_email_normalized(self, db_session):
        account = await credential_store.register(db_session, "alice", "  Alice@X.COM ", "pw1")
        assert account.email == "alice@x.com"

    async def test_duplicate_email_case_insensitive(self, db_session):
        await credential_store.register(db_session, "alice", "a@x.com", "pw1")
        with pytest.raises(DuplicateEmailError):
            await credential_store.register(db_session, "alice2", "A@X.com", "pw2")

    @pytest.mark.parametrize("username,email,password", [
        ("", "a@x.com", "pw1"),
        ("   ", "a@x.com", "pw1"),
        ("alice", "not-an-email", "pw1"),
        ("alice", "a@x.com", ""),
        ("alice", "a@x.com", "pw"),
        ("a" * 101, "a@x.com", "pw1"),
    ])
    async def test_invalid_input(self, db_session, username, email, password):
        with pytest.raises(InvalidInputError):
            await credential_store.register(db_session, username, email, password)

    async def test_concurrent_registration_same_email(self, session_factory):
        async def attempt(username):
            async with session_factory() as db:
                try:
                    await credential_store.register(db, username, "same@x.com", "pw1")
                    await db.commit()
                    return "ok"
                except DuplicateEmailError:
                    await db.rollback()
                    return "duplicate"

        results = await asyncio.gather(*(attempt(f"user{i}") for i in range(5)))
        assert results.count("ok") == 1
        assert results.count("duplicate") == 4


class TestVerify:
    async def test_verify_returns_same_account(self, db_session):
        account = await credential_store.register(db_session, "alice", "a@x.com", "pw1")
        verified = await credential_store.verify(db_session, "A@x.com", "pw1")
        assert verified.id == account.id

    async def test_wrong_password(self, db_session):
        await credential_store.register(db_session, "alice", "a@x.com", "pw1")
        with pytest.raises(BadCredentialsError):
            await credential_store.verify(db_session, "a@x.com", "nope")

    async def test_unknown_email_still_hashes(self, db_session, monkeypatch):
        calls = []
        monkeypatch.setattr(credential_store, "burn_password_check", calls.append)

        with pytest.raises(AccountNotFoundError):
            await credential_store.verify(db_session, "ghost@x.com", "pw1")
        assert calls == ["pw1"]

    async def test_get_account(self, db_session):
        import uuid

        account = await credential_store.register(db_session, "alice", "a@x.com", "pw1")
        assert (await credential_store.get_account(db_session, account.id)).id == account.id
        with pytest.raises(AccountNotFoundError):
            await credential_store.get_account(db_session, uuid.uuid4())
