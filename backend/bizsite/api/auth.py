"""
认证 API 路由
账号注册 / 登录 / 刷新令牌代理到 Auth0，其余接口解析访问令牌
"""

from fastapi import APIRouter, Depends

from bizsite.api.deps import get_account_service, ok
from bizsite.core.account_service import AccountService
from bizsite.core.auth import get_permissions, get_roles, require_auth, user_info
from bizsite.schemas.auth import (
    LoginRequest,
    PasswordResetRequest,
    ProfileUpdateRequest,
    RefreshTokenRequest,
    RegisterRequest,
    TokenResponse,
    UserInfoResponse,
    UserResponse,
)

router = APIRouter(prefix="/auth", tags=["认证"])


# ==================== 账号 ====================

@router.post("/register", status_code=201, summary="注册")
async def register(
    request: RegisterRequest,
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.register(request)
    return ok(UserResponse.model_validate(user), message="注册成功")


@router.post("/login", summary="邮箱密码登录")
async def login(
    request: LoginRequest,
    accounts: AccountService = Depends(get_account_service),
):
    tokens, user = await accounts.login(request.email, request.password)
    return ok(
        {"tokens": TokenResponse(**tokens), "user": UserResponse.model_validate(user)},
        message="登录成功",
    )


@router.post("/refresh-token", summary="刷新访问令牌")
async def refresh_token(
    request: RefreshTokenRequest,
    accounts: AccountService = Depends(get_account_service),
):
    tokens = await accounts.refresh(request.refresh_token)
    return ok({"tokens": TokenResponse(**tokens)})


@router.post("/logout", summary="退出登录")
async def logout():
    # 令牌由前端丢弃，Auth0 会话在前端注销
    return ok(message="已退出登录")


@router.post("/request-password-reset", summary="发送重置密码邮件")
async def request_password_reset(
    request: PasswordResetRequest,
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.request_password_reset(request.email)
    return ok(message="重置密码邮件已发送")


# ==================== 当前用户 ====================

@router.get("/profile", summary="个人资料")
async def get_profile(
    claims: dict = Depends(require_auth),
    accounts: AccountService = Depends(get_account_service),
):
    return ok(UserResponse.model_validate(await accounts.get_profile(claims["sub"])))


@router.put("/profile", summary="更新个人资料")
async def update_profile(
    request: ProfileUpdateRequest,
    claims: dict = Depends(require_auth),
    accounts: AccountService = Depends(get_account_service),
):
    user = await accounts.update_profile(claims["sub"], request)
    return ok(UserResponse.model_validate(user), message="个人资料已更新")


@router.post("/send-verification-email", summary="重新发送邮箱验证邮件")
async def send_verification_email(
    claims: dict = Depends(require_auth),
    accounts: AccountService = Depends(get_account_service),
):
    await accounts.send_verification_email(claims["sub"])
    return ok(message="验证邮件已发送")


@router.get("/me", summary="当前用户信息")
async def me(claims: dict = Depends(require_auth)):
    return ok(UserInfoResponse(**user_info(claims)))


@router.get("/permissions", summary="当前用户的权限与角色")
async def my_permissions(claims: dict = Depends(require_auth)):
    return ok({"permissions": get_permissions(claims), "roles": get_roles(claims)})
