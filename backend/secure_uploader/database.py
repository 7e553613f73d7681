"""Async SQLAlchemy engine and session factory for the metadata store.

The engine is created lazily on first use and owned by whoever built the
``Database`` (the FastAPI lifespan in production, fixtures in tests).

Usage:
    db = Database(settings)
    async with db.session() as session:
        result = await session.execute(select(FileRecord))
    await db.dispose()
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from secure_uploader.config import Settings
from secure_uploader.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Lazily initialized engine + session factory."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    def _engine_kwargs(self) -> dict:
        url = self.settings.DATABASE_URL
        kwargs: dict = {"echo": False, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            kwargs["pool_size"] = self.settings.DATABASE_POOL_SIZE
            kwargs["max_overflow"] = self.settings.DATABASE_MAX_OVERFLOW
            kwargs["pool_timeout"] = self.settings.STORE_CONNECT_TIMEOUT_MS / 1000
        if url.startswith("postgresql+asyncpg"):
            kwargs["connect_args"] = {
                "timeout": self.settings.STORE_CONNECT_TIMEOUT_MS / 1000,
                "command_timeout": self.settings.STORE_OPERATION_TIMEOUT,
            }
        return kwargs

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.settings.DATABASE_URL, **self._engine_kwargs())
            self._sessionmaker = async_sessionmaker(self._engine, class_=AsyncSession, expire_on_commit=False)
            logger.info("Metadata store engine created (%s)", self._engine.url.render_as_string(hide_password=True))
        return self._engine

    def session(self) -> AsyncSession:
        """Open a new session. Use as an async context manager."""
        if self._sessionmaker is None:
            _ = self.engine  # builds the sessionmaker too
        return self._sessionmaker()

    async def create_all(self) -> None:
        """Create tables that don't exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Metadata store engine disposed")
        self._engine = None
        self._sessionmaker = None

    @property
    def initialized(self) -> bool:
        return self._engine is not None
