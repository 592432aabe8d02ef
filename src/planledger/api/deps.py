# src/planledger/api/deps.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planledger.core.config import Settings, settings
from planledger.db.session import get_sessionmaker
from planledger.exceptions import AuthRequiredError, ForbiddenError
from planledger.services import KeyedLockRegistry, PlanFinalizer, UnitOfWork, unit_of_work_factory


@dataclass(frozen=True)
class Actor:
    """Caller identity as asserted by the upstream gateway."""

    user_id: str
    role: str


def get_settings(request: Request) -> Settings:
    # create_app(cfg) pins its settings on app.state
    return getattr(request.app.state, "settings", settings)


def get_actor(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> Actor:
    user_id = (x_user_id or "").strip()
    role = (x_user_role or "").strip().upper()
    if not user_id or not role:
        raise AuthRequiredError("Authentication required")
    return Actor(user_id=user_id, role=role)


def require_manager(
    actor: Actor = Depends(get_actor),
    cfg: Settings = Depends(get_settings),
) -> Actor:
    if actor.role not in cfg.MANAGER_ROLES:
        raise ForbiddenError(
            "Not authorized for this operation",
            details={"role": actor.role, "allowed": list(cfg.MANAGER_ROLES)},
        )
    return actor


def get_uow_factory(
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
    cfg: Settings = Depends(get_settings),
) -> Callable[[], UnitOfWork]:
    return unit_of_work_factory(sessionmaker, cfg)


def get_plan_locks(request: Request) -> KeyedLockRegistry:
    locks = getattr(request.app.state, "plan_locks", None)
    if locks is None:
        locks = request.app.state.plan_locks = KeyedLockRegistry()
    return locks


def get_finalizer(
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
    cfg: Settings = Depends(get_settings),
    locks: KeyedLockRegistry = Depends(get_plan_locks),
) -> PlanFinalizer:
    return PlanFinalizer(uow_factory, cfg, locks)


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
