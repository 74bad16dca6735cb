"""Health endpoint tests."""


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["db"] == "ok"


async def test_unknown_route(client):
    assert (await client.get("/api/v1/nope")).status_code == 404


async def test_oversized_body_rejected(client):
    resp = await client.post(
        "/api/v1/accounts",
        content=b"x" * (64 * 1024 + 1),
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "request_too_large"


async def test_malformed_content_length_rejected(client):
    resp = await client.get("/health", headers={"Content-Length": "abc"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_input"
