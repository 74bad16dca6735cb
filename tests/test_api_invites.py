"""API tests for invite codes and the pairing flow."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import update

from sweetlink.database import utcnow
from sweetlink.models.invite_code import InviteCode

PREFIX = "/api/v1/invites"


async def _issue(client, account) -> dict:
    resp = await client.post(PREFIX, headers=account["headers"])
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestIssue:
    async def test_issue(self, client, alice):
        invite = await _issue(client, alice)
        assert len(invite["code"]) == 8
        assert invite["code"].isalnum() and invite["code"] == invite["code"].upper()
        assert invite["status"] == "active"
        assert invite["owner_account_id"] == alice["account_id"]
        assert datetime.fromisoformat(invite["expires_at"]) > datetime.fromisoformat(invite["created_at"])

    async def test_issue_with_explicit_account(self, client, alice):
        resp = await client.post(
            PREFIX, headers=alice["headers"], json={"account_id": alice["account_id"]},
        )
        assert resp.status_code == 201

    async def test_issue_for_someone_else_forbidden(self, client, alice, bob):
        resp = await client.post(
            PREFIX, headers=alice["headers"], json={"account_id": bob["account_id"]},
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "account_mismatch"

    async def test_second_active_code_conflicts(self, client, alice):
        await _issue(client, alice)
        resp = await client.post(PREFIX, headers=alice["headers"])
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "already_has_active_code"

    async def test_requires_token(self, client):
        assert (await client.post(PREFIX)).status_code == 401


class TestLookup:
    async def test_lookup_round_trip(self, client, alice, bob):
        invite = await _issue(client, alice)
        resp = await client.get(f"{PREFIX}/{invite['code']}", headers=bob["headers"])
        assert resp.status_code == 200
        found = resp.json()
        assert found["owner_account_id"] == alice["account_id"]
        assert found["expires_at"] == invite["expires_at"]

    async def test_lookup_is_case_insensitive(self, client, alice, bob):
        invite = await _issue(client, alice)
        resp = await client.get(f"{PREFIX}/{invite['code'].lower()}", headers=bob["headers"])
        assert resp.status_code == 200

    async def test_unknown_code(self, client, alice):
        resp = await client.get(f"{PREFIX}/ZZZZ9999", headers=alice["headers"])
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "invite_not_found"

    async def test_mine(self, client, alice):
        assert (await client.get(f"{PREFIX}/mine", headers=alice["headers"])).json() is None
        invite = await _issue(client, alice)
        resp = await client.get(f"{PREFIX}/mine", headers=alice["headers"])
        assert resp.json()["code"] == invite["code"]


class TestRevoke:
    async def test_revoke_own_code(self, client, alice):
        invite = await _issue(client, alice)
        resp = await client.delete(f"{PREFIX}/{invite['code']}", headers=alice["headers"])
        assert resp.status_code == 200
        assert resp.json()["status"] == "revoked"
        await _issue(client, alice)

    async def test_revoke_expired_code_stores_expiry(self, client, session_factory, alice):
        invite = await _issue(client, alice)
        async with session_factory() as db:
            await db.execute(
                update(InviteCode)
                .where(InviteCode.id == uuid.UUID(invite["id"]))
                .values(expires_at=utcnow() - timedelta(minutes=1))
            )
            await db.commit()

        resp = await client.delete(f"{PREFIX}/{invite['code']}", headers=alice["headers"])
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "invite_not_active"

        async with session_factory() as db:
            stored = await db.get(InviteCode, uuid.UUID(invite["id"]))
            assert stored.status == "expired"

    async def test_cannot_revoke_others_code(self, client, alice, bob):
        invite = await _issue(client, alice)
        resp = await client.delete(f"{PREFIX}/{invite['code']}", headers=bob["headers"])
        assert resp.status_code == 404


class TestRedeem:
    async def test_redeem_links_both_accounts(self, client, alice, bob):
        invite = await _issue(client, alice)
        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem",
            headers=bob["headers"],
            json={"kind": "family"},
        )
        assert resp.status_code == 200
        relationship = resp.json()
        assert relationship["kind"] == "family"
        assert {relationship["account_a_id"], relationship["account_b_id"]} == {
            alice["account_id"], bob["account_id"],
        }

        for account in (alice, bob):
            mine = await client.get("/api/v1/relationships/me", headers=account["headers"])
            assert mine.status_code == 200
            assert mine.json()["id"] == relationship["id"]

        status = await client.get(f"{PREFIX}/{invite['code']}", headers=alice["headers"])
        assert status.json()["status"] == "redeemed"
        assert status.json()["redeemed_by_account_id"] == bob["account_id"]

    async def test_second_redeem_conflicts(self, client, register_account, alice, bob):
        carol = await register_account("carol")
        invite = await _issue(client, alice)
        url = f"{PREFIX}/{invite['code']}/redeem"
        assert (await client.post(url, headers=bob["headers"], json={"kind": "friends"})).status_code == 200

        resp = await client.post(url, headers=carol["headers"], json={"kind": "friends"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "already_redeemed"

    async def test_linked_account_cannot_redeem(self, client, register_account, alice, bob):
        carol = await register_account("carol")
        invite = await _issue(client, alice)
        await client.post(
            f"{PREFIX}/{invite['code']}/redeem", headers=bob["headers"], json={"kind": "friends"},
        )
        other = await _issue(client, carol)
        resp = await client.post(
            f"{PREFIX}/{other['code']}/redeem", headers=bob["headers"], json={"kind": "friends"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "redeemer_already_linked"

    async def test_self_redemption(self, client, alice):
        invite = await _issue(client, alice)
        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem", headers=alice["headers"], json={"kind": "friends"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "self_redemption"

    async def test_revoked_code(self, client, alice, bob):
        invite = await _issue(client, alice)
        await client.delete(f"{PREFIX}/{invite['code']}", headers=alice["headers"])
        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem", headers=bob["headers"], json={"kind": "friends"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "invite_revoked"

    async def test_unknown_code(self, client, bob):
        resp = await client.post(
            f"{PREFIX}/ZZZZ9999/redeem", headers=bob["headers"], json={"kind": "friends"},
        )
        assert resp.status_code == 404

    async def test_expired_code(self, client, session_factory, alice, bob):
        invite = await _issue(client, alice)
        async with session_factory() as db:
            await db.execute(
                update(InviteCode)
                .where(InviteCode.id == uuid.UUID(invite["id"]))
                .values(expires_at=utcnow() - timedelta(minutes=1))
            )
            await db.commit()

        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem", headers=bob["headers"], json={"kind": "friends"},
        )
        assert resp.status_code == 410
        assert resp.json()["error"]["code"] == "invite_expired"

        async with session_factory() as db:
            stored = await db.get(InviteCode, uuid.UUID(invite["id"]))
            assert stored.status == "expired"

        # The code stays unusable and the redeemer stays unlinked
        mine = await client.get("/api/v1/relationships/me", headers=bob["headers"])
        assert mine.json() is None

    async def test_unknown_kind(self, client, alice, bob):
        invite = await _issue(client, alice)
        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem", headers=bob["headers"], json={"kind": "rivals"},
        )
        assert resp.status_code == 400

    async def test_redeem_for_someone_else_forbidden(self, client, register_account, alice, bob):
        carol = await register_account("carol")
        invite = await _issue(client, alice)
        resp = await client.post(
            f"{PREFIX}/{invite['code']}/redeem",
            headers=bob["headers"],
            json={"kind": "friends", "account_id": carol["account_id"]},
        )
        assert resp.status_code == 403
