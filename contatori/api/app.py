import datetime as dt
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from contatori.api.routes import api_router, public_router
from contatori.config import AppConfig
from contatori.notifier.factory import build_notifier
from contatori.notifier.ports import AbstractOperatorNotifier
from contatori.scheduling.service import SchedulingService
from contatori.store.adapters.sql import SqlAppointmentStore
from contatori.store.ports import AbstractAppointmentStore


def _build_store(config: AppConfig) -> AbstractAppointmentStore:
    db = config.database
    return SqlAppointmentStore(
        db.url,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_recycle=db.pool_recycle,
    )


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected malformed request on {}", request.url.path)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Richiesta non valida",
            "details": jsonable_encoder(exc.errors()),
        },
    )


def create_app(
    config: AppConfig | None = None,
    *,
    store: AbstractAppointmentStore | None = None,
    notifier: AbstractOperatorNotifier | None = None,
    clock: Callable[[], dt.datetime] | None = None,
) -> FastAPI:
    """Build the HTTP gateway.

    ``store`` and ``notifier`` default to the adapters selected by ``config``;
    the schema is migrated once when the app starts.
    """
    config = config or AppConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_store = store or _build_store(config)
        app_notifier = notifier or build_notifier(config.sms)
        await app_store.migrate()

        service = SchedulingService(
            app_store,
            app_notifier,
            timezone=config.timezone,
            slot_capacity=config.slot_capacity,
            clock=clock,
        )
        app.state.service = service
        if not config.api.api_token:
            logger.warning("API_TOKEN is not set; /api endpoints accept unauthenticated calls")
        logger.info("Scheduling service ready (timezone={})", config.timezone)
        try:
            yield
        finally:
            await service.close()

    app = FastAPI(title="Agente Telefonico Contatori", lifespan=lifespan)
    app.state.config = config
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _invalid_body)  # type: ignore[arg-type]
    app.include_router(public_router)
    app.include_router(api_router)
    return app
