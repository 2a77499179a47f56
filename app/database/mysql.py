import logging
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text
from app.core.config import settings

# Base class for SQLAlchemy models
Base = declarative_base()

logger = logging.getLogger(__name__)


def build_engine(url: str) -> AsyncEngine:
    """Create the async engine; pool tuning only applies to server databases"""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.debug)
    return create_async_engine(
        url,
        echo=settings.debug,  # Log SQL queries in debug mode
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Validate connections before use
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)

# Async session factory
AsyncSessionLocal = build_session_factory(engine)


async def init_mysql_db():
    """Initialize database tables"""
    # 모델 등록을 위해 import
    import app.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def check_mysql_connection(session_factory: Optional[async_sessionmaker] = None) -> bool:
    """SELECT 1로 연결 확인 (기본값은 전역 세션 팩토리)"""
    session_factory = session_factory or AsyncSessionLocal
    try:
        async with session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar_one() == 1
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False


async def close_mysql_db():
    """Close database connections"""
    await engine.dispose()
    logger.info("Database connections closed")
