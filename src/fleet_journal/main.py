import asyncio
import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

from sqlalchemy.exc import SQLAlchemyError

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from src.fleet_journal.classification.exceptions import (
    EntryNotInSessionException,
    InvalidTransitionException,
)
from src.fleet_journal.config import get_settings
from src.fleet_journal.entity_store.dependencies import get_entity_store
from src.fleet_journal.entity_store.exceptions import (
    EntityNotFoundException,
    StoreWriteException,
)
from src.fleet_journal.geofences.routes import geofences_router
from src.fleet_journal.health_check.routes import health_router
from src.fleet_journal.journal.dependencies import get_trip_reconciler
from src.fleet_journal.journal.routes import journal_router
from src.fleet_journal.logging_config import setup_logging
from src.fleet_journal.redis.redis import redis_manager
from src.fleet_journal.sync.scheduler import JournalSyncScheduler
from src.fleet_journal.vehicles.routes import vehicles_router

setup_logging()
logger = logging.getLogger(__name__)
settings = get_settings()
PROJECT_NAME = settings.PROJECT_NAME
ALL_CORS_ORIGINS = settings.all_cors_origins


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore
    store = get_entity_store()
    scheduler = None
    try:
        await store.connect()
        if settings.REDIS_ENABLED:
            await redis_manager.init_redis()

        if settings.SYNC_INTERVAL_MINUTES > 0:
            loop = asyncio.get_running_loop()
            scheduler = JournalSyncScheduler(
                get_trip_reconciler(), loop, settings.SYNC_INTERVAL_MINUTES
            )
            scheduler.run()

        logger.info("Startup complete")
        yield

        logger.info("Shutting down...")
        if scheduler:
            scheduler.stop()
        await redis_manager.close_redis()
    except Exception as e:
        logger.error(f"Startup failed: {str(e)}")
        raise
    finally:
        await store.disconnect()
        logger.info("Shutdown complete")


app = FastAPI(title=PROJECT_NAME, version="0.1.0", lifespan=lifespan)


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    return JSONResponse(
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        content={
            "detail": "Database connection error. Please try again later.",
            "error": str(exc),
        },
    )


@app.exception_handler(StoreWriteException)
async def store_write_exception_handler(request: Request, exc: StoreWriteException):
    return JSONResponse(
        status_code=HTTPStatus.SERVICE_UNAVAILABLE,
        content={"detail": exc.message, "written_ids": exc.written_ids},
    )


@app.exception_handler(EntityNotFoundException)
async def not_found_exception_handler(request: Request, exc: EntityNotFoundException):
    return JSONResponse(
        status_code=HTTPStatus.NOT_FOUND, content={"detail": exc.message}
    )


@app.exception_handler(EntryNotInSessionException)
async def not_in_session_exception_handler(
    request: Request, exc: EntryNotInSessionException
):
    return JSONResponse(
        status_code=HTTPStatus.NOT_FOUND, content={"detail": exc.message}
    )


@app.exception_handler(InvalidTransitionException)
async def invalid_transition_exception_handler(
    request: Request, exc: InvalidTransitionException
):
    return JSONResponse(
        status_code=HTTPStatus.CONFLICT, content={"detail": exc.message}
    )


# Set all CORS enabled origins
if ALL_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALL_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# API Routes
api_router = APIRouter(prefix="/api")
api_router.include_router(journal_router)
api_router.include_router(vehicles_router)
api_router.include_router(geofences_router)
app.include_router(api_router)
app.include_router(health_router)
