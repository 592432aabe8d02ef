# src/planledger/api/routers/decisions.py
from __future__ import annotations

import uuid
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query, status

from planledger.api.deps import Actor, get_actor, get_uow_factory, require_manager
from planledger.db.models import DECISION_TYPE_LABELS, DecisionStatus, DecisionType
from planledger.exceptions import plan_not_found
from planledger.schemas import DecisionCreate, DecisionOut, DecisionTypeOut, DecisionVoid
from planledger.services import DecisionFilters, UnitOfWork

router = APIRouter(prefix="/api", tags=["decisions"])


@router.get("/decision-types", response_model=List[DecisionTypeOut])
async def list_decision_types():
    return [
        DecisionTypeOut(value=dtype, label=label, description=description)
        for dtype, (label, description) in DECISION_TYPE_LABELS.items()
    ]


@router.post(
    "/plans/{plan_id}/decisions",
    response_model=DecisionOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_decision(
    plan_id: uuid.UUID,
    payload: DecisionCreate,
    actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        entry = await uow.decisions.record(
            plan_id,
            payload.decision_type,
            payload.summary,
            payload.rationale,
            actor.user_id,
            options_considered=payload.options_considered,
            participants=payload.participants,
            meeting_id=payload.meeting_id,
            plan_version_id=payload.plan_version_id,
            section_key=payload.section_key,
            decided_at=payload.decided_at,
        )
        out = DecisionOut.model_validate(entry)
    return out


@router.get("/plans/{plan_id}/decisions", response_model=List[DecisionOut])
async def list_decisions(
    plan_id: uuid.UUID,
    decision_type: Optional[DecisionType] = Query(None, alias="type"),
    decision_status: Optional[DecisionStatus] = Query(None, alias="status"),
    section: Optional[str] = Query(None),
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    filters = DecisionFilters(
        decision_type=decision_type,
        status=decision_status,
        section_key=section or None,
    )
    async with uow_factory() as uow:
        if not await uow.repos.plans.exists(plan_id):
            raise plan_not_found(plan_id)
        entries = await uow.decisions.query(plan_id, filters)
        return [DecisionOut.model_validate(e) for e in entries]


@router.get("/decisions/{decision_id}", response_model=DecisionOut)
async def get_decision(
    decision_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        return DecisionOut.model_validate(await uow.decisions.get(decision_id))


@router.post("/decisions/{decision_id}/void", response_model=DecisionOut)
async def void_decision(
    decision_id: uuid.UUID,
    payload: DecisionVoid,
    actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        entry = await uow.decisions.void(decision_id, payload.void_reason, actor.user_id)
        out = DecisionOut.model_validate(entry)
    return out
