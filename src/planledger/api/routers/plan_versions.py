# src/planledger/api/routers/plan_versions.py
from __future__ import annotations

import uuid
from typing import Callable, List

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse

from planledger.api.deps import Actor, get_actor, get_finalizer, get_uow_factory, require_manager
from planledger.exceptions import plan_not_found
from planledger.schemas import (
    FinalizeOut,
    FinalizeRequest,
    PlanExportCreate,
    PlanExportOut,
    PlanVersionDetail,
    PlanVersionSummary,
)
from planledger.services import DecisionInput, PlanFinalizer, SignerInput, UnitOfWork

router = APIRouter(prefix="/api", tags=["plan-versions"])


@router.post(
    "/plans/{plan_id}/finalize",
    response_model=FinalizeOut,
    status_code=status.HTTP_201_CREATED,
)
async def finalize_plan(
    plan_id: uuid.UUID,
    payload: FinalizeRequest,
    actor: Actor = Depends(require_manager),
    finalizer: PlanFinalizer = Depends(get_finalizer),
):
    result = await finalizer.finalize(
        plan_id,
        actor.user_id,
        version_notes=payload.version_notes,
        decision_inputs=[DecisionInput(**d.model_dump()) for d in payload.decisions],
        create_signature_packet=payload.create_signature_packet,
        required_signature_roles=payload.required_signature_roles,
        signature_expires_at=payload.signature_expires_at,
        signers=[SignerInput(**s.model_dump()) for s in payload.signers] if payload.signers else None,
    )
    return FinalizeOut.model_validate(result)


@router.get("/plans/{plan_id}/versions", response_model=List[PlanVersionSummary])
async def list_versions(
    plan_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        if not await uow.repos.plans.exists(plan_id):
            raise plan_not_found(plan_id)
        versions = await uow.versions.list_versions(plan_id)
        return [PlanVersionSummary.model_validate(v) for v in versions]


@router.get("/plan-versions/{version_id}", response_model=PlanVersionDetail)
async def get_version(
    version_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        version = await uow.versions.get_version_detail(version_id)
        return PlanVersionDetail.model_validate(version)


@router.post("/plan-versions/{version_id}/distribute", response_model=PlanVersionSummary)
async def distribute_version(
    version_id: uuid.UUID,
    actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        version = await uow.versions.mark_distributed(version_id, actor.user_id)
        out = PlanVersionSummary.model_validate(version)
    return out


@router.post(
    "/plan-versions/{version_id}/exports",
    response_model=PlanExportOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_export(
    version_id: uuid.UUID,
    payload: PlanExportCreate,
    actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        export = await uow.exports.record_export(
            version_id,
            payload.storage_key,
            payload.file_name,
            actor.user_id,
            format=payload.format,
            file_size_bytes=payload.file_size_bytes,
            mime_type=payload.mime_type,
        )
        out = PlanExportOut.model_validate(export)
    return out


@router.get("/plan-versions/{version_id}/exports", response_model=List[PlanExportOut])
async def list_exports(
    version_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        await uow.versions.get_version(version_id)
        return [PlanExportOut.model_validate(e) for e in await uow.exports.list_exports(version_id)]


@router.get("/plan-exports/{export_id}/download")
async def download_export(
    export_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        download = await uow.exports.resolve_download(export_id, actor.user_id)
    return FileResponse(
        download.path,
        media_type=download.export.mime_type,
        filename=download.export.file_name,
    )
