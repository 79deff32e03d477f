import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import JSON, TIMESTAMP, String, delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from src.fleet_journal.database.database import Base, DatabaseManager
from src.fleet_journal.entity_store.exceptions import (
    EntityNotFoundException,
    StoreWriteException,
)
from src.fleet_journal.entity_store.interface import (
    IEntityCollection,
    IEntityStore,
    Record,
    apply_query,
)

logger = logging.getLogger(__name__)

RESERVED_FIELDS = ("id", "created_date", "updated_date")


class EntityRecordModel(Base):
    __tablename__ = "entity_records"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    collection: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_date: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )


def to_record(model: EntityRecordModel) -> Record:
    return {
        **model.data,
        "id": model.id,
        "created_date": model.created_date.isoformat() if model.created_date else None,
        "updated_date": model.updated_date.isoformat() if model.updated_date else None,
    }


def strip_reserved(data: Record) -> Record:
    return {k: v for k, v in data.items() if k not in RESERVED_FIELDS}


class SqlCollection(IEntityCollection):
    """
    Collection backed by the generic entity_records table. Conditions and
    ordering are evaluated on the loaded payloads so every field of the
    JSON document can be queried.
    """

    def __init__(self, name: str, session_factory: Callable[[], AsyncSession]):
        self.name = name
        self._session_factory = session_factory

    async def _load(self, session: AsyncSession) -> List[Record]:
        result = await session.execute(
            select(EntityRecordModel)
            .where(EntityRecordModel.collection == self.name)
            .order_by(EntityRecordModel.created_date)
        )
        return [to_record(m) for m in result.scalars().all()]

    async def list(
        self, order_by: Optional[str] = "created_date", limit: Optional[int] = 100
    ) -> List[Record]:
        async with self._session_factory() as session:
            return apply_query(await self._load(session), None, order_by, limit)

    async def filter(
        self,
        conditions: Dict[str, Any],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        async with self._session_factory() as session:
            return apply_query(await self._load(session), conditions, order_by, limit)

    async def get(self, entity_id: str) -> Optional[Record]:
        async with self._session_factory() as session:
            model = await self._get_model(session, entity_id)
            return to_record(model) if model else None

    async def _get_model(
        self, session: AsyncSession, entity_id: str
    ) -> Optional[EntityRecordModel]:
        result = await session.execute(
            select(EntityRecordModel).where(
                EntityRecordModel.collection == self.name,
                EntityRecordModel.id == entity_id,
            )
        )
        return result.scalars().first()

    async def create(self, data: Record) -> Record:
        async with self._session_factory() as session:
            model = EntityRecordModel(
                id=data.get("id") or uuid.uuid4().hex,
                collection=self.name,
                data=strip_reserved(data),
            )
            try:
                session.add(model)
                await session.commit()
                await session.refresh(model)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Error creating {self.name} record: {str(e)}")
                raise StoreWriteException(self.name, str(e))
            return to_record(model)

    async def update(self, entity_id: str, patch: Record) -> Record:
        async with self._session_factory() as session:
            model = await self._get_model(session, entity_id)
            if model is None:
                raise EntityNotFoundException(self.name, entity_id)
            # JSON columns only persist on reassignment
            model.data = {**model.data, **strip_reserved(patch)}
            try:
                await session.commit()
                await session.refresh(model)
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"Error updating {self.name} {entity_id}: {str(e)}")
                raise StoreWriteException(self.name, str(e))
            return to_record(model)

    async def delete(self, entity_id: str) -> Dict[str, bool]:
        async with self._session_factory() as session:
            await session.execute(
                delete(EntityRecordModel).where(
                    EntityRecordModel.collection == self.name,
                    EntityRecordModel.id == entity_id,
                )
            )
            await session.commit()
        return {"success": True}


class SqlEntityStore(IEntityStore):
    def __init__(self, session_factory: Callable[[], AsyncSession] | None = None):
        self._session_factory = session_factory or DatabaseManager.get_session

    def collection(self, name: str) -> SqlCollection:
        return SqlCollection(name, self._session_factory)

    async def connect(self) -> None:
        await DatabaseManager.connect()
        await DatabaseManager.init_schema()

    async def disconnect(self) -> None:
        await DatabaseManager.disconnect()
