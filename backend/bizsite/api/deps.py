"""
路由共用的依赖与响应封装
测试中通过 app.dependency_overrides 替换这些依赖
"""

from typing import Any, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from bizsite.core.account_service import AccountService
from bizsite.core.auth0_management import (
    Auth0AuthenticationClient,
    Auth0ManagementClient,
    get_authentication_client,
    get_management_client,
)
from bizsite.core.blog_service import BlogService
from bizsite.core.image_service import ImageService
from bizsite.core.mailer import ContactMailer, SmtpTransport
from bizsite.database.connection import get_db


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """统一成功响应 {"success": true, "data": ...}"""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def get_blog_service(db: AsyncSession = Depends(get_db)) -> BlogService:
    return BlogService(db)


def get_mailer() -> ContactMailer:
    return ContactMailer(SmtpTransport())


def get_image_service() -> ImageService:
    return ImageService()


def get_account_service(
    db: AsyncSession = Depends(get_db),
    management: Auth0ManagementClient = Depends(get_management_client),
    authentication: Auth0AuthenticationClient = Depends(get_authentication_client),
) -> AccountService:
    return AccountService(db, management, authentication)
