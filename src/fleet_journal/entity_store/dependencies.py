import logging
from functools import lru_cache

from fastapi import HTTPException, status
from src.fleet_journal.config import Settings, get_settings
from src.fleet_journal.entity_store.interface import IEntityStore
from src.fleet_journal.entity_store.memory import InMemoryEntityStore

logger = logging.getLogger(__name__)


def build_entity_store(settings: Settings) -> IEntityStore:
    if settings.STORE_BACKEND == "sql":
        from src.fleet_journal.entity_store.sql import SqlEntityStore

        logger.info("Using PostgreSQL entity store")
        return SqlEntityStore()
    logger.info("Using in-memory entity store")
    return InMemoryEntityStore()


@lru_cache()
def get_entity_store() -> IEntityStore:
    return build_entity_store(get_settings())


async def verify_entity_store() -> IEntityStore:
    """Return the store, reconnecting the database first when it is SQL-backed."""
    store = get_entity_store()
    if get_settings().STORE_BACKEND == "sql":
        from src.fleet_journal.database.database import db

        if not db.is_connected:
            try:
                await db.reconnect()
            except Exception:
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Database connection is not available",
                )
    return store
