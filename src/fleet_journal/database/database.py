import asyncio
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import text

from src.fleet_journal.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Tables of the sql entity store register on this base
Base = declarative_base()

engine = create_async_engine(
    settings.database_url,
    echo=settings.DEBUG_MODE,
    pool_size=settings.DATABASE_POOL_SIZE,
    pool_pre_ping=True,
)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class DatabaseManager:
    """
    Process-wide PostgreSQL connection state for the sql entity store.
    The store checks is_connected before handing out sessions and calls
    reconnect from the request dependency when the database drops.
    """

    is_connected: bool = False
    retry_interval: int = 5  # seconds

    @classmethod
    async def connect(cls):
        if cls.is_connected:
            return
        try:
            async with engine.connect() as conn:
                await conn.scalar(text("SELECT 1"))
        except SQLAlchemyError as e:
            cls.is_connected = False
            logger.error(
                f"Entity store database {settings.POSTGRES_HOST}:"
                f"{settings.POSTGRES_PORT}/{settings.POSTGRES_DB} "
                f"unreachable: {str(e)}"
            )
            raise
        cls.is_connected = True
        logger.info(f"Entity store database {settings.POSTGRES_DB} connected")

    @classmethod
    async def disconnect(cls):
        if not cls.is_connected:
            return
        await engine.dispose()
        cls.is_connected = False
        logger.info("Entity store database pool disposed")

    @classmethod
    async def reconnect(cls, max_attempts: Optional[int] = None):
        max_attempts = max_attempts or settings.DATABASE_CONNECT_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            if cls.is_connected:
                return
            try:
                await cls.connect()
            except SQLAlchemyError:
                logger.warning(f"Reconnect attempt {attempt}/{max_attempts} failed")
                if attempt < max_attempts:
                    await asyncio.sleep(cls.retry_interval)
        if not cls.is_connected:
            raise SQLAlchemyError(
                f"Database still unreachable after {max_attempts} attempts"
            )

    @classmethod
    async def init_schema(cls):
        """Create the entity record table when it does not exist yet."""
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @classmethod
    def get_session(cls) -> AsyncSession:
        if not cls.is_connected:
            raise RuntimeError("Entity store database is not connected")
        return SessionLocal()


db = DatabaseManager()
