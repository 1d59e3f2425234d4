"""
账号服务
注册、登录、刷新令牌走 Auth0，本地 users 表保存资料镜像
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bizsite.core.auth0_management import Auth0AuthenticationClient, Auth0ManagementClient
from bizsite.core.errors import (
    AuthError,
    ConflictError,
    NotFoundError,
    RateLimitError,
    StorageError,
    UpstreamError,
    ValidationError,
)
from bizsite.models.base import utcnow
from bizsite.models.user import User
from bizsite.schemas.auth import ProfileUpdateRequest, RegisterRequest

logger = logging.getLogger(__name__)


def _upstream_status(error: UpstreamError) -> Optional[int]:
    if isinstance(error.details, dict):
        return error.details.get("status")
    return None


def _tokens(result: dict) -> dict:
    return {
        "access_token": result["access_token"],
        "refresh_token": result.get("refresh_token"),
        "id_token": result.get("id_token"),
        "token_type": result.get("token_type", "Bearer"),
        "expires_in": result.get("expires_in"),
    }


class AccountService:
    """账号相关操作（每个请求用自己的会话实例化）"""

    def __init__(
        self,
        db: AsyncSession,
        management: Auth0ManagementClient,
        authentication: Auth0AuthenticationClient,
    ):
        self.db = db
        self.management = management
        self.authentication = authentication

    # ==================== 注册 / 登录 ====================

    async def register(self, data: RegisterRequest) -> User:
        """先在 Auth0 创建账号，再写入本地用户表"""
        try:
            created = await self.management.create_user(
                email=data.email,
                password=data.password,
                name=data.name,
                nickname=data.nickname,
            )
        except UpstreamError as e:
            status = _upstream_status(e)
            if status == 409:
                raise ConflictError("该邮箱已注册", code="EMAIL_ALREADY_REGISTERED") from e
            if status == 400:
                raise ValidationError("注册数据无效", code="REGISTRATION_ERROR") from e
            raise

        user = User(
            auth0_id=created["user_id"],
            email=created.get("email", data.email),
            name=created.get("name", data.name),
            nickname=created.get("nickname"),
            picture=created.get("picture"),
            email_verified=bool(created.get("email_verified", False)),
            locale="es",
            is_active=True,
        )
        self.db.add(user)
        await self._save(user, "注册用户失败")
        logger.info(f"用户已注册: id={user.id}, auth0_id={user.auth0_id}")
        return user

    async def login(self, email: str, password: str) -> tuple[dict, User]:
        """
        密码登录

        Returns:
            (令牌, 本地用户)；本地没有记录时按 Auth0 资料创建
        """
        try:
            result = await self.authentication.password_grant(email, password)
        except UpstreamError as e:
            status = _upstream_status(e)
            if status in (401, 403):
                raise AuthError("邮箱或密码错误", code="INVALID_CREDENTIALS") from e
            if status == 429:
                raise RateLimitError("登录尝试过多，请稍后再试", code="TOO_MANY_ATTEMPTS") from e
            raise

        profile = await self.authentication.get_userinfo(result["access_token"])
        user = await self._find_user(profile["sub"])
        if user is None:
            user = User(
                auth0_id=profile["sub"],
                email=profile.get("email", email),
                name=profile.get("name") or email,
                nickname=profile.get("nickname"),
                locale=profile.get("locale") or "es",
                is_active=True,
            )
            self.db.add(user)
        user.picture = profile.get("picture") or user.picture
        user.email_verified = bool(profile.get("email_verified", user.email_verified))
        user.last_login = utcnow()
        await self._save(user, "保存登录信息失败")

        logger.info(f"用户登录: {user.auth0_id}")
        return _tokens(result), user

    async def refresh(self, refresh_token: str) -> dict:
        try:
            result = await self.authentication.refresh_token(refresh_token)
        except UpstreamError as e:
            status = _upstream_status(e)
            if status is not None and 400 <= status < 500:
                raise AuthError("刷新令牌无效", code="INVALID_REFRESH_TOKEN") from e
            raise
        return _tokens(result)

    # ==================== 个人资料 ====================

    async def get_profile(self, auth0_id: str) -> User:
        user = await self._find_user(auth0_id)
        if user is None:
            raise NotFoundError("用户不存在", code="USER_NOT_FOUND")
        return user

    async def update_profile(self, auth0_id: str, data: ProfileUpdateRequest) -> User:
        """name / nickname 同步到 Auth0，locale 只保存在本地"""
        user = await self.get_profile(auth0_id)
        fields = data.model_dump(exclude_unset=True, exclude_none=True)

        remote = {k: v for k, v in fields.items() if k in ("name", "nickname")}
        if remote:
            await self.management.update_user(auth0_id, remote)

        for key, value in fields.items():
            setattr(user, key, value)
        await self._save(user, "更新个人资料失败")
        return user

    async def send_verification_email(self, auth0_id: str):
        await self.management.send_verification_email(auth0_id)

    async def request_password_reset(self, email: str):
        await self.authentication.change_password(email)

    # ==================== 内部方法 ====================

    async def _find_user(self, auth0_id: str) -> Optional[User]:
        try:
            result = await self.db.execute(select(User).where(User.auth0_id == auth0_id))
        except SQLAlchemyError as e:
            raise StorageError(f"查询用户失败: {e}") from e
        return result.scalar_one_or_none()

    async def _save(self, user: User, action: str):
        """提交并重新读取，返回前所有列都已加载"""
        try:
            await self.db.commit()
            await self.db.refresh(user)
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(f"{action}: 用户已存在", code="USER_ALREADY_EXISTS") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StorageError(f"{action}: {e}") from e
