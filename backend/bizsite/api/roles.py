"""
角色管理 API 路由
角色目录是静态数据，用户角色的查询与分配走 Auth0 Management API
"""

import logging

from fastapi import APIRouter, Depends

from bizsite.api.deps import ok
from bizsite.config import settings
from bizsite.core.auth import (
    PERM_EDIT_ROLES,
    PERM_EDIT_USERS,
    PERM_READ_USERS,
    ROLE_CATALOG,
    require_permission,
)
from bizsite.core.auth0_management import Auth0ManagementClient, get_management_client
from bizsite.core.errors import NotFoundError, UpstreamError
from bizsite.schemas.auth import RoleAssignmentRequest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/roles", tags=["角色管理"])


@router.get("", summary="角色目录")
async def list_role_catalog(_claims: dict = Depends(require_permission(PERM_READ_USERS))):
    return ok(ROLE_CATALOG)


@router.get("/auth0", summary="Auth0 中定义的角色")
async def list_auth0_roles(
    client: Auth0ManagementClient = Depends(get_management_client),
    _claims: dict = Depends(require_permission(PERM_READ_USERS)),
):
    return ok(await client.list_roles())


@router.post("/initialize", summary="在 Auth0 中创建缺失的默认角色")
async def initialize_roles(
    client: Auth0ManagementClient = Depends(get_management_client),
    claims: dict = Depends(require_permission(PERM_EDIT_ROLES)),
):
    if not settings.AUTH0_AUDIENCE:
        raise UpstreamError("AUTH0_AUDIENCE 未配置", code="AUTH0_NOT_CONFIGURED")

    existing = {role["name"] for role in await client.list_roles()}
    created = []
    for role in ROLE_CATALOG:
        if role["name"] in existing:
            continue
        new_role = await client.create_role(role["name"], role["description"])
        await client.add_role_permissions(new_role["id"], role["permissions"], settings.AUTH0_AUDIENCE)
        created.append(role["name"])

    logger.info(f"{claims.get('sub')} 初始化默认角色，新建: {created}")
    return ok(
        {"created": created, "existing": sorted(existing)},
        message="默认角色已初始化",
    )


@router.get("/{role_name}", summary="角色目录中的单个角色")
async def get_catalog_role(
    role_name: str,
    _claims: dict = Depends(require_permission(PERM_READ_USERS)),
):
    for role in ROLE_CATALOG:
        if role["name"] == role_name:
            return ok(role)
    raise NotFoundError(f"角色不存在: {role_name}", code="ROLE_NOT_FOUND")


@router.get("/user/{user_id}", summary="用户的角色与权限")
async def get_user_roles(
    user_id: str,
    client: Auth0ManagementClient = Depends(get_management_client),
    _claims: dict = Depends(require_permission(PERM_READ_USERS)),
):
    roles = await client.get_user_roles(user_id)
    permissions = await client.get_user_permissions(user_id)
    return ok({"user_id": user_id, "roles": roles, "permissions": permissions})


@router.post("/user/{user_id}", summary="为用户分配角色")
async def assign_user_roles(
    user_id: str,
    request: RoleAssignmentRequest,
    client: Auth0ManagementClient = Depends(get_management_client),
    claims: dict = Depends(require_permission(PERM_EDIT_USERS)),
):
    await client.assign_roles(user_id, request.role_ids)
    logger.info(f"{claims.get('sub')} 为 {user_id} 分配角色 {request.role_ids}")
    return ok({"user_id": user_id, "role_ids": request.role_ids}, message="角色分配成功")


@router.delete("/user/{user_id}", summary="移除用户角色")
async def remove_user_roles(
    user_id: str,
    request: RoleAssignmentRequest,
    client: Auth0ManagementClient = Depends(get_management_client),
    claims: dict = Depends(require_permission(PERM_EDIT_USERS)),
):
    await client.remove_roles(user_id, request.role_ids)
    logger.info(f"{claims.get('sub')} 移除 {user_id} 的角色 {request.role_ids}")
    return ok({"user_id": user_id, "role_ids": request.role_ids}, message="角色已移除")
