"""
Auth0 认证边界
- 校验 Bearer Token（RS256，JWKS 公钥，audience / issuer）
- 从声明中取权限、角色，提供 FastAPI 依赖做权限控制
"""

import asyncio
import logging
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bizsite.config import settings
from bizsite.core.errors import AuthError, PermissionDenied

logger = logging.getLogger(__name__)

# ==================== 权限 / 角色 ====================

PERM_CREATE_POSTS = "create:posts"
PERM_EDIT_POSTS = "edit:posts"
PERM_DELETE_POSTS = "delete:posts"
PERM_READ_POSTS = "read:posts"
PERM_READ_USERS = "read:users"
PERM_EDIT_USERS = "edit:users"
PERM_EDIT_ROLES = "edit:roles"

# 静态角色目录，实际分配以 Auth0 中的角色为准
ROLE_CATALOG = [
    {
        "name": "admin",
        "description": "拥有全部资源的管理权限",
        "permissions": [
            "read:users", "edit:users", "create:users", "delete:users",
            "read:roles", "edit:roles", "create:roles", "delete:roles",
            "read:posts", "edit:posts", "create:posts", "delete:posts",
            "read:categories", "edit:categories", "create:categories", "delete:categories",
            "read:tags", "edit:tags", "create:tags", "delete:tags",
            "read:comments", "edit:comments", "create:comments", "delete:comments",
            "system:backup", "system:restore", "system:config",
        ],
    },
    {
        "name": "editor",
        "description": "可以创建、查看和修改内容",
        "permissions": [
            "read:posts", "edit:posts", "create:posts",
            "read:categories", "edit:categories", "create:categories",
            "read:tags", "edit:tags", "create:tags",
            "read:comments", "edit:comments", "create:comments",
            "read:users",
        ],
    },
    {
        "name": "viewer",
        "description": "只读访问",
        "permissions": [
            "read:posts",
            "read:categories",
            "read:tags",
            "read:comments",
            "read:users",
        ],
    },
]


def get_permissions(claims: dict) -> list[str]:
    """权限优先取 permissions 声明，否则取空格分隔的 scope"""
    permissions = claims.get("permissions")
    if isinstance(permissions, list):
        return permissions
    scope = claims.get("scope")
    if isinstance(scope, str):
        return scope.split()
    return []


def get_roles(claims: dict) -> list[str]:
    for roles in (
        claims.get(settings.AUTH0_ROLES_CLAIM),
        claims.get("roles"),
        (claims.get("app_metadata") or {}).get("roles"),
    ):
        if isinstance(roles, list):
            return roles
    return []


def user_info(claims: dict) -> dict:
    """从 Token 声明整理出当前用户信息"""
    return {
        "id": claims.get("sub"),
        "email": claims.get("email"),
        "name": claims.get("name"),
        "nickname": claims.get("nickname"),
        "picture": claims.get("picture"),
        "roles": get_roles(claims),
        "permissions": get_permissions(claims),
    }


# ==================== Token 校验 ====================

class TokenVerifier:
    """Auth0 访问令牌校验器"""

    algorithms = ["RS256"]

    def __init__(
        self,
        domain: Optional[str] = None,
        audience: Optional[str] = None,
        jwks_client: Optional[jwt.PyJWKClient] = None,
    ):
        self.domain = domain or settings.AUTH0_DOMAIN
        self.audience = audience or settings.AUTH0_AUDIENCE
        if not self.domain or not self.audience:
            raise AuthError("认证服务未配置", code="AUTH_NOT_CONFIGURED")
        self.issuer = f"https://{self.domain}/"
        self.jwks_client = jwks_client or jwt.PyJWKClient(
            f"https://{self.domain}/.well-known/jwks.json",
            cache_keys=True,
        )

    async def verify(self, token: str) -> dict:
        try:
            # PyJWKClient 的 JWKS 拉取是同步 IO
            signing_key = await asyncio.to_thread(
                self.jwks_client.get_signing_key_from_jwt, token
            )
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.PyJWTError as e:
            logger.info(f"访问令牌无效: {e}")
            raise AuthError("访问令牌无效或已过期", code="INVALID_TOKEN") from e


_verifier: Optional[TokenVerifier] = None


def get_token_verifier() -> TokenVerifier:
    global _verifier
    if _verifier is None:
        _verifier = TokenVerifier()
    return _verifier


# ==================== FastAPI 依赖 ====================

bearer_scheme = HTTPBearer(auto_error=False)


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> dict:
    """要求有效的访问令牌，返回声明"""
    if credentials is None or not credentials.credentials:
        raise AuthError("需要访问令牌", code="MISSING_TOKEN")
    return await verifier.verify(credentials.credentials)


def require_permission(permission: str):
    """生成检查单个权限的依赖"""

    async def checker(claims: dict = Depends(require_auth)) -> dict:
        permissions = get_permissions(claims)
        if permission not in permissions:
            raise PermissionDenied(
                f"权限不足，需要: {permission}",
                details={"required_permission": permission, "user_permissions": permissions},
            )
        return claims

    return checker
