# src/planledger/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from planledger.api.routers import (
    decisions_router,
    health_router,
    plan_versions_router,
    signatures_router,
)
from planledger.app_logger import get_logger, setup_logging
from planledger.core.config import Settings, settings
from planledger.db.session import build_engine, build_sessionmaker, get_sessionmaker
from planledger.exceptions import PlanLedgerError
from planledger.services import ExpirySweeper, KeyedLockRegistry, unit_of_work_factory

log = get_logger("main")


def _integrity_status(exc: IntegrityError) -> tuple[int, str]:
    """
    Map DB integrity errors to clear 4xx responses instead of 500.
    - Unique constraint -> 409 Conflict
    - Not-null / FK / Check -> 422 Unprocessable Entity (validation-like)
    - Otherwise -> 400 Bad Request
    """
    low = str(getattr(exc, "orig", None) or exc).lower()
    if "unique constraint" in low or "duplicate key" in low:
        return 409, "Unique constraint violation"
    if "foreign key" in low:
        return 422, "Foreign key constraint failed"
    if "not null" in low or "null value in column" in low:
        return 422, "Missing required field (NOT NULL violation)"
    if "check constraint" in low:
        return 422, "Check constraint failed"
    return 400, "Integrity error"


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PlanLedgerError)
    async def plan_ledger_error_handler(request: Request, exc: PlanLedgerError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} -> {exc!r}")
        else:
            log.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}")
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "ERR_API_VALIDATION_FAILED",
                    "message": "Invalid request data",
                    "details": {"errors": jsonable_encoder(exc.errors())},
                }
            },
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        status_code, reason = _integrity_status(exc)
        # Log once with context; don't leak sensitive values
        log.exception(f"IntegrityError on {request.method} {request.url.path} -> {status_code}")
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": "ERR_API_INTEGRITY", "message": reason}},
        )


def create_app(cfg: Optional[Settings] = None) -> FastAPI:
    cfg = cfg or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Handles startup/shutdown tasks for the app (runs once on start, once on stop).
        """
        # ---------------- STARTUP ----------------
        setup_logging(cfg.LOG_LEVEL, cfg.LOG_JSON)

        # DB engine/sessionmaker bound to THIS loop, unless a test already
        # supplied its own
        engine = None
        if get_sessionmaker not in app.dependency_overrides:
            engine = build_engine(cfg)
            app.state.async_sessionmaker = build_sessionmaker(engine)

            def _sessionmaker_override():
                return app.state.async_sessionmaker

            app.dependency_overrides[get_sessionmaker] = _sessionmaker_override

        sessionmaker = app.dependency_overrides[get_sessionmaker]()
        sweeper = ExpirySweeper(
            unit_of_work_factory(sessionmaker, cfg), cfg.EXPIRY_SWEEP_INTERVAL_SECONDS
        )
        sweeper.start()
        app.state.expiry_sweeper = sweeper
        log.info(f"{cfg.APP_NAME} {cfg.APP_VERSION} started")

        yield

        # ---------------- SHUTDOWN ----------------
        await sweeper.stop()
        if engine is not None:
            await engine.dispose()
        log.info(f"{cfg.APP_NAME} stopped")

    app = FastAPI(title=cfg.APP_NAME, version=cfg.APP_VERSION, lifespan=lifespan)
    app.state.settings = cfg
    app.state.plan_locks = KeyedLockRegistry()

    install_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(plan_versions_router)
    app.include_router(decisions_router)
    app.include_router(signatures_router)
    return app
