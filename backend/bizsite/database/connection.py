"""
数据库连接管理
使用 aiosqlite + SQLAlchemy async 引擎
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bizsite.config import settings


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """创建异步引擎；SQLite 下打开外键约束"""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_async_engine(url, echo=False, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


# 创建异步引擎（关闭 SQL echo，避免日志刷屏）
engine = build_engine(settings.DATABASE_URL)

# 创建异步会话工厂
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """
    FastAPI 依赖注入：获取数据库会话
    使用 async with 确保会话正确关闭
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db(target: AsyncEngine = None):
    """
    初始化数据库：创建所有表
    在应用启动时调用
    """
    import bizsite.models  # noqa: F401
    from bizsite.models.base import Base

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """
    关闭数据库连接
    在应用关闭时调用
    """
    await engine.dispose()
