"""
API 路由聚合
将所有子路由挂载到统一的 /api 前缀下
"""

from fastapi import APIRouter

from bizsite.api.auth import router as auth_router
from bizsite.api.blog import router as blog_router
from bizsite.api.contact import router as contact_router
from bizsite.api.roles import router as roles_router
from bizsite.api.upload import router as upload_router

# 主路由器，统一 /api 前缀
api_router = APIRouter(prefix="/api")

# 挂载各子路由（子路由自身已带 prefix，此处不再重复）
api_router.include_router(contact_router)
api_router.include_router(blog_router)
api_router.include_router(upload_router)
api_router.include_router(auth_router)
api_router.include_router(roles_router)
