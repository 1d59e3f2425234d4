"""
Auth0 边界：令牌校验、权限提取、角色接口、Management API 客户端
"""

import json
import time

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from bizsite.config import settings
from bizsite.core.auth import TokenVerifier, get_permissions, user_info
from bizsite.core.auth0_management import Auth0ManagementClient
from bizsite.core.errors import AuthError, UpstreamError

from fakes import auth_headers

DOMAIN = "gogestia.eu.auth0.com"
AUDIENCE = "https://api.gogestia.es"


class StaticKeyClient:
    """替代 PyJWKClient，直接返回测试公钥"""

    def __init__(self, public_key):
        self.key = public_key

    def get_signing_key_from_jwt(self, token):
        return self


@pytest.fixture(scope="module")
def private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def verifier(private_key):
    return TokenVerifier(DOMAIN, AUDIENCE, jwks_client=StaticKeyClient(private_key.public_key()))


def sign(private_key, **overrides) -> str:
    now = int(time.time())
    claims = {
        "sub": "auth0|123",
        "iss": f"https://{DOMAIN}/",
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + 300,
        "permissions": ["read:posts"],
    }
    claims.update(overrides)
    return jwt.encode(claims, private_key, algorithm="RS256")


# ==================== 令牌校验 ====================

async def test_valid_token_returns_claims(verifier, private_key):
    claims = await verifier.verify(sign(private_key))
    assert claims["sub"] == "auth0|123"


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "https://otra-api"},
        {"iss": "https://evil.auth0.com/"},
        {"exp": int(time.time()) - 10},
    ],
)
async def test_invalid_claims_are_rejected(verifier, private_key, overrides):
    with pytest.raises(AuthError) as exc_info:
        await verifier.verify(sign(private_key, **overrides))
    assert exc_info.value.status_code == 401


async def test_token_signed_with_other_key_is_rejected(verifier):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(AuthError):
        await verifier.verify(sign(other))


def test_verifier_requires_configuration():
    with pytest.raises(AuthError):
        TokenVerifier(domain="", audience="")


# ==================== 声明解析 ====================

def test_permissions_fall_back_to_scope():
    assert get_permissions({"permissions": ["a"], "scope": "b c"}) == ["a"]
    assert get_permissions({"scope": "openid read:posts"}) == ["openid", "read:posts"]
    assert get_permissions({}) == []


def test_user_info_reads_roles_from_known_claims():
    namespaced = user_info({"sub": "u1", "https://gogestia.com/roles": ["admin"]})
    assert namespaced["id"] == "u1"
    assert namespaced["roles"] == ["admin"]

    assert user_info({"roles": ["editor"]})["roles"] == ["editor"]
    assert user_info({"app_metadata": {"roles": ["viewer"]}})["roles"] == ["viewer"]
    assert user_info({})["roles"] == []


# ==================== 接口 ====================

async def test_me(client):
    resp = await client.get("/api/auth/me", headers=auth_headers())
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == "auth0|admin"
    assert data["roles"] == ["admin"]
    assert "create:posts" in data["permissions"]

    assert (await client.get("/api/auth/me")).status_code == 401


async def test_my_permissions_from_scope(client):
    resp = await client.get("/api/auth/permissions", headers=auth_headers("viewer-token"))
    data = resp.json()["data"]
    assert data["permissions"] == ["openid", "profile", "read:posts", "read:users"]
    assert data["roles"] == ["viewer"]


async def test_role_catalog(client):
    resp = await client.get("/api/roles", headers=auth_headers("viewer-token"))
    assert resp.status_code == 200
    roles = {r["name"]: r["permissions"] for r in resp.json()["data"]}
    assert set(roles) == {"admin", "editor", "viewer"}
    assert "delete:posts" in roles["admin"]
    assert "delete:posts" not in roles["editor"]


async def test_catalog_role_lookup(client):
    resp = await client.get("/api/roles/editor", headers=auth_headers("viewer-token"))
    assert resp.status_code == 200
    assert "create:posts" in resp.json()["data"]["permissions"]

    missing = await client.get("/api/roles/superuser", headers=auth_headers("viewer-token"))
    assert missing.status_code == 404
    assert missing.json()["code"] == "ROLE_NOT_FOUND"


async def test_initialize_creates_missing_roles(client, auth0_requests, monkeypatch):
    monkeypatch.setattr(settings, "AUTH0_AUDIENCE", AUDIENCE)
    resp = await client.post("/api/roles/initialize", headers=auth_headers())

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data == {"created": ["editor", "viewer"], "existing": ["admin"]}

    grants = [r for r in auth0_requests if r.url.path.startswith("/api/v2/roles/")]
    assert [r.url.path for r in grants] == [
        "/api/v2/roles/rol_editor/permissions",
        "/api/v2/roles/rol_viewer/permissions",
    ]
    permissions = json.loads(grants[1].content)["permissions"]
    assert {"resource_server_identifier": AUDIENCE, "permission_name": "read:posts"} in permissions


async def test_initialize_requires_edit_roles(client):
    resp = await client.post("/api/roles/initialize", headers=auth_headers("viewer-token"))
    assert resp.status_code == 403


async def test_user_roles_lookup(client, auth0_requests):
    resp = await client.get("/api/roles/user/auth0|42", headers=auth_headers("viewer-token"))

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["roles"] == [{"id": "rol_viewer", "name": "viewer"}]
    assert data["permissions"] == [{"permission_name": "read:posts"}]
    paths = [r.url.raw_path.decode() for r in auth0_requests]
    assert paths == [
        "/oauth/token",
        "/api/v2/users/auth0%7C42/roles",
        "/api/v2/users/auth0%7C42/permissions",
    ]


async def test_assign_requires_edit_users(client):
    body = {"role_ids": ["rol_admin"]}
    denied = await client.post("/api/roles/user/auth0|42", json=body, headers=auth_headers("viewer-token"))
    assert denied.status_code == 403

    allowed = await client.post("/api/roles/user/auth0|42", json=body, headers=auth_headers())
    assert allowed.status_code == 200
    assert allowed.json()["data"]["role_ids"] == ["rol_admin"]


async def test_remove_roles(client, auth0_requests):
    resp = await client.request(
        "DELETE",
        "/api/roles/user/auth0|42",
        json={"role_ids": ["rol_viewer"]},
        headers=auth_headers(),
    )
    assert resp.status_code == 200
    assert auth0_requests[-1].method == "DELETE"


async def test_assign_rejects_empty_role_list(client):
    resp = await client.post("/api/roles/user/auth0|42", json={"role_ids": []}, headers=auth_headers())
    assert resp.status_code == 400


# ==================== Management API 客户端 ====================

async def test_management_token_is_cached(management_client, auth0_requests):
    await management_client.list_roles()
    await management_client.list_roles()

    token_calls = [r for r in auth0_requests if r.url.path == "/oauth/token"]
    assert len(token_calls) == 1
    assert auth0_requests[-1].headers["Authorization"] == "Bearer mgmt-token"


async def test_management_errors_become_upstream_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "t", "expires_in": 3600})
        return httpx.Response(404, json={"message": "user not found"})

    client = Auth0ManagementClient(
        domain=DOMAIN, client_id="cid", client_secret="secret", transport=httpx.MockTransport(handler)
    )
    with pytest.raises(UpstreamError) as exc_info:
        await client.get_user_roles("auth0|missing")

    assert exc_info.value.status_code == 502
    assert exc_info.value.details == {"status": 404}


async def test_management_requires_credentials():
    client = Auth0ManagementClient(domain=DOMAIN, client_id="", client_secret="")
    with pytest.raises(UpstreamError):
        await client.list_roles()
