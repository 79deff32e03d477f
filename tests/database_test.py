from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from fastapi import HTTPException, status
from src.fleet_journal.database.database import DatabaseManager
from src.fleet_journal.entity_store.dependencies import verify_entity_store
from src.fleet_journal.entity_store.sql import (
    EntityRecordModel,
    SqlEntityStore,
    strip_reserved,
    to_record,
)


@pytest.fixture(autouse=True)
def reset_connection():
    DatabaseManager.is_connected = False
    yield
    DatabaseManager.is_connected = False


# Test connect method
@patch("src.fleet_journal.database.database.engine")
async def test_connect_success(mock_engine):
    await DatabaseManager.connect()
    assert DatabaseManager.is_connected is True


@patch("sqlalchemy.ext.asyncio.engine.AsyncEngine.connect")
async def test_connect_failure(mock_connect):
    mock_connect.side_effect = SQLAlchemyError("Connection error")
    with pytest.raises(SQLAlchemyError):
        await DatabaseManager.connect()
    assert DatabaseManager.is_connected is False


@patch("src.fleet_journal.database.database.engine")
async def test_connect_already_connected(mock_engine):
    DatabaseManager.is_connected = True
    await DatabaseManager.connect()
    mock_engine.connect.assert_not_called()


@patch("src.fleet_journal.database.database.engine")
async def test_disconnect_success(mock_engine):
    mock_engine.dispose = AsyncMock()
    DatabaseManager.is_connected = True
    await DatabaseManager.disconnect()
    assert DatabaseManager.is_connected is False
    mock_engine.dispose.assert_awaited_once()


@patch("sqlalchemy.ext.asyncio.engine.AsyncEngine.connect")
async def test_reconnect_failure(mock_connect):
    mock_connect.side_effect = SQLAlchemyError("Reconnection error")
    with patch.object(DatabaseManager, "retry_interval", 0):
        with pytest.raises(SQLAlchemyError):
            await DatabaseManager.reconnect(max_attempts=2)
    assert mock_connect.call_count == 2


def test_get_session_requires_connection():
    with pytest.raises(RuntimeError):
        DatabaseManager.get_session()


async def test_verify_store_reports_unavailable_database(monkeypatch):
    from src.fleet_journal.config import get_settings
    from src.fleet_journal.entity_store.dependencies import get_entity_store

    monkeypatch.setenv("STORE_BACKEND", "sql")
    get_settings.cache_clear()
    get_entity_store.cache_clear()

    with patch.object(
        DatabaseManager, "reconnect", AsyncMock(side_effect=SQLAlchemyError("down"))
    ):
        with pytest.raises(HTTPException) as exc_info:
            await verify_entity_store()

    assert exc_info.value.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert isinstance(get_entity_store(), SqlEntityStore)


def test_record_mapping_keeps_store_fields_out_of_payload():
    payload = strip_reserved({"id": "x", "created_date": "t", "name": "Lager"})
    model = EntityRecordModel(id="g1", collection="Geofence", data=payload)

    record = to_record(model)

    assert payload == {"name": "Lager"}
    assert record["id"] == "g1"
    assert record["name"] == "Lager"
    assert record["created_date"] is None
