"""
测试公共夹具
每个测试一个内存 SQLite 库；邮件通道、图床、令牌校验、Auth0 接口均替换为假实现
"""

import json
import os

# 必须在导入 bizsite 之前设置，Settings 在导入时读取环境变量
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL_OVERRIDE"] = "sqlite+aiosqlite://"
os.environ["EMAIL_FROM"] = "web@gogestia.es"
os.environ["EMAIL_TO"] = "ops@gogestia.es"
os.environ["SMTP_USER"] = "web@gogestia.es"
os.environ["IMGBB_API_KEY"] = "test-key"
# 限流默认关闭，由限流测试单独打开
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_MAX_REQUESTS"] = "5"

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from bizsite.api.deps import get_image_service, get_mailer
from bizsite.core.auth import get_token_verifier
from bizsite.core.auth0_management import (
    Auth0AuthenticationClient,
    Auth0ManagementClient,
    get_authentication_client,
    get_management_client,
)
from bizsite.core.blog_service import BlogService
from bizsite.core.image_service import ImageService, ImgbbClient
from bizsite.core.mailer import ContactMailer
from bizsite.database.connection import build_engine, get_db, init_db
from bizsite.main import app

from fakes import TAKEN_EMAIL, FakeAuth0Authentication, FakeImgbb, FakeTransport, FakeVerifier, SleepRecorder


# ==================== 数据库 ====================

@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def service(db):
    return BlogService(db)


# ==================== 外部依赖 ====================

@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def mailer(transport, sleep):
    return ContactMailer(transport, max_attempts=3, base_delay=1.0, max_delay=5.0, sleep=sleep)


@pytest.fixture
def imgbb():
    return FakeImgbb()


@pytest.fixture
def image_service(imgbb):
    return ImageService(ImgbbClient(api_key="test-key", transport=httpx.MockTransport(imgbb)))


@pytest.fixture
def auth0_requests():
    return []


@pytest.fixture
def management_client(auth0_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        auth0_requests.append(request)
        path = request.url.path
        if path == "/oauth/token":
            return httpx.Response(200, json={"access_token": "mgmt-token", "expires_in": 3600})
        if request.method == "POST" and path == "/api/v2/users":
            body = json.loads(request.content)
            if body["email"] == TAKEN_EMAIL:
                return httpx.Response(409, json={"message": "The user already exists."})
            return httpx.Response(
                201,
                json={
                    "user_id": "auth0|new",
                    "email": body["email"],
                    "name": body["name"],
                    "nickname": body["nickname"],
                    "picture": "https://s.gravatar.com/avatar/new.png",
                    "email_verified": False,
                },
            )
        if request.method == "PATCH":
            return httpx.Response(200, json={"user_id": "auth0|admin", **json.loads(request.content)})
        if path == "/api/v2/jobs/verification-email":
            return httpx.Response(201, json={"id": "job_1", "type": "verification_email", "status": "pending"})
        if request.method == "POST" and path == "/api/v2/roles":
            name = json.loads(request.content)["name"]
            return httpx.Response(200, json={"id": f"rol_{name}", "name": name})
        if request.method == "POST" and path.endswith("/permissions"):
            return httpx.Response(201)
        if path == "/api/v2/roles":
            return httpx.Response(200, json=[{"id": "rol_admin", "name": "admin"}])
        if path.endswith("/permissions"):
            return httpx.Response(200, json=[{"permission_name": "read:posts"}])
        if request.method == "GET":
            return httpx.Response(200, json=[{"id": "rol_viewer", "name": "viewer"}])
        return httpx.Response(204)

    return Auth0ManagementClient(
        domain="gogestia.eu.auth0.com",
        client_id="cid",
        client_secret="secret",
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def auth0_login():
    return FakeAuth0Authentication()


@pytest.fixture
def authentication_client(auth0_login):
    return Auth0AuthenticationClient(
        domain="gogestia.eu.auth0.com",
        client_id="cid",
        client_secret="secret",
        audience="https://api.gogestia.es",
        transport=httpx.MockTransport(auth0_login),
    )


@pytest.fixture
async def client(session_factory, mailer, image_service, management_client, authentication_client):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_image_service] = lambda: image_service
    app.dependency_overrides[get_token_verifier] = lambda: FakeVerifier()
    app.dependency_overrides[get_management_client] = lambda: management_client
    app.dependency_overrides[get_authentication_client] = lambda: authentication_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
