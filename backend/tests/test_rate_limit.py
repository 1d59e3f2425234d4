"""
全局限流：窗口内超过次数返回 429
"""

import pytest

from bizsite.core.rate_limit import limiter

from fakes import auth_headers


@pytest.fixture
def limited(monkeypatch):
    monkeypatch.setattr(limiter, "enabled", True)
    limiter.reset()
    yield
    limiter.reset()


async def test_requests_over_the_limit_get_429(client, limited):
    for _ in range(5):
        assert (await client.get("/api/health")).status_code == 200

    resp = await client.get("/api/health")

    assert resp.status_code == 429
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "RATE_LIMIT_EXCEEDED"
    assert body["details"]["limit"]


async def test_limit_is_shared_across_routes(client, limited, transport):
    for _ in range(5):
        await client.get("/api/auth/me", headers=auth_headers())

    resp = await client.post("/api/contact/test")

    assert resp.status_code == 429
    assert transport.sent == []


async def test_disabled_limiter_lets_everything_through(client):
    for _ in range(10):
        assert (await client.get("/api/health")).status_code == 200
