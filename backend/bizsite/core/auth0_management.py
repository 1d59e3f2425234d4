"""
Auth0 HTTP 客户端
- Management API：用户 / 角色管理，client-credentials 获取管理令牌，缓存到过期前
- Authentication API：密码登录、刷新令牌、用户信息、重置密码邮件
"""

import logging
import time
from typing import Optional
from urllib.parse import quote

import httpx

from bizsite.config import settings
from bizsite.core.errors import UpstreamError

logger = logging.getLogger(__name__)

# 令牌提前刷新的余量（秒）
TOKEN_EXPIRY_MARGIN = 60

# 用户名密码数据库连接
DB_CONNECTION = "Username-Password-Authentication"


class _Auth0HttpClient:
    """共用的 httpx 客户端构造与错误映射"""

    def __init__(
        self,
        domain: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.domain = domain or settings.AUTH0_DOMAIN
        self.client_id = client_id or settings.AUTH0_CLIENT_ID
        self.client_secret = client_secret or settings.AUTH0_CLIENT_SECRET
        self.timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"

    def _ensure_configured(self):
        if not self.domain or not self.client_id or not self.client_secret:
            raise UpstreamError("Auth0 未配置", code="AUTH0_NOT_CONFIGURED")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            trust_env=False,
            transport=self._transport,
        )

    async def _send(self, method: str, path: str, *, json=None, headers=None) -> httpx.Response:
        """发送请求；非 2xx 转为 UpstreamError，details 带上游状态码"""
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Auth0 接口错误: {method} {path} -> {e.response.status_code}")
            raise UpstreamError(
                f"Auth0 接口返回 {e.response.status_code}",
                details={"status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Auth0 请求失败: {method} {path}: {e}")
            raise UpstreamError("Auth0 请求失败") from e
        return response

    @staticmethod
    def _json(response: httpx.Response):
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


# ==================== Management API ====================

class Auth0ManagementClient(_Auth0HttpClient):
    """用户创建 / 更新，角色查询 / 分配 / 移除"""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

    async def _get_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        self._ensure_configured()

        payload = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "audience": f"{self.base_url}/api/v2/",
        }
        try:
            data = (await self._send("POST", "/oauth/token", json=payload)).json()
        except UpstreamError as e:
            logger.error(f"获取 Auth0 管理令牌失败: {e.message}")
            raise UpstreamError("获取 Auth0 管理令牌失败", details=e.details) from e

        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 86400))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        return self._token

    async def _request(self, method: str, path: str, json=None):
        token = await self._get_token()
        response = await self._send(
            method, path, json=json, headers={"Authorization": f"Bearer {token}"}
        )
        return self._json(response)

    @staticmethod
    def _user_path(user_id: str, suffix: str = "") -> str:
        path = f"/api/v2/users/{quote(user_id, safe='')}"
        return f"{path}/{suffix}" if suffix else path

    # ---- 用户 ----

    async def create_user(self, email: str, password: str, name: str, nickname: Optional[str] = None) -> dict:
        user = await self._request(
            "POST",
            "/api/v2/users",
            json={
                "connection": DB_CONNECTION,
                "email": email,
                "password": password,
                "name": name,
                "nickname": nickname or name,
                "email_verified": False,
            },
        )
        logger.info(f"Auth0 用户已创建: {user.get('user_id')}")
        return user

    async def update_user(self, user_id: str, fields: dict) -> dict:
        return await self._request("PATCH", self._user_path(user_id), json=fields)

    async def send_verification_email(self, user_id: str):
        await self._request("POST", "/api/v2/jobs/verification-email", json={"user_id": user_id})
        logger.info(f"已为 {user_id} 发送验证邮件")

    # ---- 角色 ----

    async def list_roles(self) -> list[dict]:
        return await self._request("GET", "/api/v2/roles") or []

    async def create_role(self, name: str, description: str) -> dict:
        return await self._request(
            "POST", "/api/v2/roles", json={"name": name, "description": description}
        )

    async def add_role_permissions(self, role_id: str, permissions: list[str], resource_server: str):
        await self._request(
            "POST",
            f"/api/v2/roles/{quote(role_id, safe='')}/permissions",
            json={
                "permissions": [
                    {"resource_server_identifier": resource_server, "permission_name": p}
                    for p in permissions
                ]
            },
        )

    async def get_user_roles(self, user_id: str) -> list[dict]:
        return await self._request("GET", self._user_path(user_id, "roles")) or []

    async def assign_roles(self, user_id: str, role_ids: list[str]):
        await self._request("POST", self._user_path(user_id, "roles"), json={"roles": role_ids})
        logger.info(f"已为用户 {user_id} 分配角色: {role_ids}")

    async def remove_roles(self, user_id: str, role_ids: list[str]):
        await self._request("DELETE", self._user_path(user_id, "roles"), json={"roles": role_ids})
        logger.info(f"已移除用户 {user_id} 的角色: {role_ids}")

    async def get_user_permissions(self, user_id: str) -> list[dict]:
        return await self._request("GET", self._user_path(user_id, "permissions")) or []


# ==================== Authentication API ====================

class Auth0AuthenticationClient(_Auth0HttpClient):
    """以应用身份调用的登录相关接口"""

    scope = "openid profile email offline_access"

    def __init__(self, *args, audience: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.audience = audience or settings.AUTH0_AUDIENCE

    async def _token(self, payload: dict) -> dict:
        self._ensure_configured()
        payload = {"client_id": self.client_id, "client_secret": self.client_secret, **payload}
        return (await self._send("POST", "/oauth/token", json=payload)).json()

    async def password_grant(self, email: str, password: str) -> dict:
        return await self._token(
            {
                "grant_type": "password",
                "username": email,
                "password": password,
                "audience": self.audience,
                "scope": self.scope,
            }
        )

    async def refresh_token(self, refresh_token: str) -> dict:
        return await self._token({"grant_type": "refresh_token", "refresh_token": refresh_token})

    async def get_userinfo(self, access_token: str) -> dict:
        response = await self._send(
            "GET", "/userinfo", headers={"Authorization": f"Bearer {access_token}"}
        )
        return response.json()

    async def change_password(self, email: str):
        self._ensure_configured()
        await self._send(
            "POST",
            "/dbconnections/change_password",
            json={"client_id": self.client_id, "email": email, "connection": DB_CONNECTION},
        )
        logger.info(f"已请求重置密码邮件: {email}")


_management_client: Optional[Auth0ManagementClient] = None
_authentication_client: Optional[Auth0AuthenticationClient] = None


def get_management_client() -> Auth0ManagementClient:
    global _management_client
    if _management_client is None:
        _management_client = Auth0ManagementClient()
    return _management_client


def get_authentication_client() -> Auth0AuthenticationClient:
    global _authentication_client
    if _authentication_client is None:
        _authentication_client = Auth0AuthenticationClient()
    return _authentication_client
