# src/planledger/api/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planledger import __version__
from planledger.app_logger import get_logger
from planledger.db.session import get_sessionmaker

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "version": __version__}


@router.get("/readyz")
async def readyz(sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker)):
    try:
        async with sessionmaker() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning(f"Readiness check failed: {exc}")
        return JSONResponse(status_code=503, content={"status": "unavailable"})
    return {"status": "ok"}
