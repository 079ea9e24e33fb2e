"""
Async SQLAlchemy engine and sessions for the user store.

PostgreSQL through asyncpg in production; any async SQLAlchemy URL works
when DATABASE_URL is set (tests use aiosqlite).
"""

from functools import lru_cache
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings
from src.infra.models import Base

logger = get_logger(__name__)
settings = get_settings()


class DatabaseManager:
    """Owns the engine and session factory for one database URL"""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL or (
            f"postgresql+asyncpg://{settings.POSTGRES_USER}:{settings.POSTGRES_PASSWORD}"
            f"@{settings.POSTGRES_HOST}:{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
        )
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def safe_url(self) -> str:
        return make_url(self.database_url).render_as_string(hide_password=True)

    def _engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": settings.DB_LOGGING_ENABLED, "pool_pre_ping": True}
        if make_url(self.database_url).get_backend_name() == "postgresql":
            options.update(
                pool_size=settings.POSTGRES_MIN_POOL_SIZE,
                max_overflow=settings.POSTGRES_MAX_POOL_SIZE - settings.POSTGRES_MIN_POOL_SIZE,
                pool_recycle=3600
            )
        return options

    async def connect(self) -> AsyncEngine:
        """Create the engine on first use and check it can reach the database"""
        if self._engine is not None:
            return self._engine

        engine = create_async_engine(self.database_url, **self._engine_options())
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            await engine.dispose()
            logger.error("Failed to connect to database", extra={"database_url": self.safe_url, "error": str(e)})
            raise

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
        logger.info("Connected to database", extra={"database_url": self.safe_url, "dialect": engine.dialect.name})
        return engine

    async def ping(self) -> None:
        engine = await self.connect()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        """Create missing tables"""
        engine = await self.connect()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    async def close(self) -> None:
        if self._engine is None:
            return
        try:
            await self._engine.dispose()
            logger.info("Database engine closed")
        finally:
            self._engine = None
            self._session_factory = None

    def get_engine(self) -> Optional[AsyncEngine]:
        return self._engine

    def get_session_factory(self) -> Optional[async_sessionmaker]:
        return self._session_factory


@lru_cache()
def get_database_manager() -> DatabaseManager:
    """Process-wide manager for the configured database"""
    return DatabaseManager()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database session
    Use with FastAPI Depends()
    """
    db_manager = get_database_manager()
    if db_manager.get_session_factory() is None:
        await db_manager.connect()

    async with db_manager.get_session_factory()() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
