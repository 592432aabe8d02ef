# tests/conftest.py
from __future__ import annotations

import logging
import os
import sys
import uuid
from typing import Any, Dict, Optional

import pytest
from httpx import ASGITransport, AsyncClient

from planledger.core.config import Settings
from planledger.db import models  # noqa: F401  (registers tables)
from planledger.db.base import Base
from planledger.db.models import PlanInstance, PlanMeeting
from planledger.db.session import build_engine, build_sessionmaker, get_sessionmaker
from planledger.main import create_app
from planledger.services import PlanFinalizer, unit_of_work_factory

MANAGER = {"X-User-Id": "cm-1", "X-User-Role": "CASE_MANAGER"}
ADMIN = {"X-User-Id": "admin-1", "X-User-Role": "ADMIN"}
PARENT = {"X-User-Id": "parent-1", "X-User-Role": "PARENT"}


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """
    Ensure test logs go to stdout so they show up under pytest -s or log_cli=true.
    Avoid duplicates if handler is already present.
    """
    root = logging.getLogger()
    want = None
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout:
            want = h
            break
    if want is None:
        want = logging.StreamHandler(sys.stdout)
        want.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(want)

    # Let the user override via TEST_LOG_LEVEL=DEBUG/INFO/WARNING...
    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# ==============================================================
# Database
# ==============================================================

@pytest.fixture
def cfg(tmp_path) -> Settings:
    export_dir = tmp_path / "exports"
    export_dir.mkdir()
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'planledger.db'}",
        TESTING=True,
        EXPORT_STORAGE_DIR=str(export_dir),
        EXPIRY_SWEEP_INTERVAL_SECONDS=0,
    )


@pytest.fixture
async def engine(cfg):
    eng = build_engine(cfg)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def uow_factory(sessionmaker, cfg):
    return unit_of_work_factory(sessionmaker, cfg)


@pytest.fixture
def finalizer(uow_factory, cfg):
    return PlanFinalizer(uow_factory, cfg)


# ==============================================================
# Plan / meeting seeding (the authoring stores own these rows)
# ==============================================================

@pytest.fixture
def make_plan(sessionmaker):
    async def _make(
        plan_type_code: str = "IEP",
        status: str = "DRAFT",
        content: Optional[Dict[str, Any]] = None,
    ) -> uuid.UUID:
        async with sessionmaker() as session:
            plan = PlanInstance(
                plan_type_code=plan_type_code,
                status=status,
                content_json=content
                if content is not None
                else {
                    "student": {"firstName": "Ada", "lastName": "Lovelace"},
                    "goals": [{"area": "Reading", "goal": "Read 90 wpm"}],
                    "services": [{"service": "Speech", "minutesPerWeek": 60}],
                },
            )
            session.add(plan)
            await session.commit()
            return plan.id

    return _make


@pytest.fixture
def make_meeting(sessionmaker):
    async def _make(plan_id: uuid.UUID) -> uuid.UUID:
        async with sessionmaker() as session:
            meeting = PlanMeeting(plan_instance_id=plan_id, meeting_type="ANNUAL_REVIEW")
            session.add(meeting)
            await session.commit()
            return meeting.id

    return _make


@pytest.fixture
def set_plan_content(sessionmaker):
    async def _set(plan_id: uuid.UUID, **changes: Any) -> None:
        async with sessionmaker() as session:
            plan = await session.get(PlanInstance, plan_id)
            content = dict(plan.content_json)
            content.update(changes)
            plan.content_json = content
            await session.commit()

    return _set


# ==============================================================
# HTTP client against the in-process app
# ==============================================================

@pytest.fixture
async def client(cfg, sessionmaker):
    app = create_app(cfg)
    app.dependency_overrides[get_sessionmaker] = lambda: sessionmaker
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
