# src/planledger/api/routers/signatures.py
from __future__ import annotations

import uuid
from typing import Callable

from fastapi import APIRouter, Depends, Request, status

from planledger.api.deps import (
    Actor,
    client_ip,
    get_actor,
    get_settings,
    get_uow_factory,
    require_manager,
)
from planledger.core.config import Settings
from planledger.db.models import SIGNATURE_ROLE_LABELS, SignaturePacket
from planledger.exceptions import ForbiddenError, record_not_found
from planledger.schemas import (
    DeclineRequest,
    PacketCreate,
    RecordCreate,
    SignatureRecordOut,
    SignatureRoleOut,
    SignatureRolesOut,
    SignaturePacketOut,
    SignOut,
    SignRequest,
)
from planledger.services import ELECTRONIC_ATTESTATION, SignerInput, UnitOfWork

router = APIRouter(prefix="/api", tags=["signatures"])


def _authorize_signer(actor: Actor, cfg: Settings, packet: SignaturePacket, record_id: uuid.UUID) -> None:
    """Managers may act on any record; anyone else only on their own."""
    if actor.role in cfg.MANAGER_ROLES:
        return
    record = next((r for r in packet.records if r.id == record_id), None)
    if record is None:
        raise record_not_found(record_id)
    if record.signer_user_id != actor.user_id:
        raise ForbiddenError(
            "Not authorized to act on behalf of this signer",
            details={"signatureRecordId": str(record_id)},
        )


@router.get("/signature-roles", response_model=SignatureRolesOut)
async def list_signature_roles():
    return SignatureRolesOut(
        roles=[SignatureRoleOut(value=role, label=label) for role, label in SIGNATURE_ROLE_LABELS.items()],
        electronic_attestation=ELECTRONIC_ATTESTATION,
    )


@router.post(
    "/plan-versions/{version_id}/signature-packets",
    response_model=SignaturePacketOut,
    status_code=status.HTTP_201_CREATED,
)
async def open_packet(
    version_id: uuid.UUID,
    payload: PacketCreate,
    actor: Actor = Depends(require_manager),
    cfg: Settings = Depends(get_settings),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.open_packet(
            version_id,
            cfg.DEFAULT_SIGNATURE_ROLES if payload.required_roles is None else payload.required_roles,
            actor.user_id,
            expires_at=payload.expires_at,
            initial_signers=[SignerInput(**s.model_dump()) for s in payload.signers]
            if payload.signers
            else None,
        )
        out = SignaturePacketOut.model_validate(packet)
    return out


@router.get("/plan-versions/{version_id}/signatures", response_model=SignaturePacketOut)
async def get_version_signatures(
    version_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.get_packet_for_version(version_id)
        out = SignaturePacketOut.model_validate(packet)
    return out


@router.get("/signature-packets/{packet_id}", response_model=SignaturePacketOut)
async def get_packet(
    packet_id: uuid.UUID,
    _actor: Actor = Depends(get_actor),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.get_packet(packet_id)
        out = SignaturePacketOut.model_validate(packet)
    return out


@router.post("/signature-packets/{packet_id}/sign", response_model=SignOut)
async def sign(
    packet_id: uuid.UUID,
    payload: SignRequest,
    request: Request,
    actor: Actor = Depends(get_actor),
    cfg: Settings = Depends(get_settings),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.get_packet(packet_id)
        _authorize_signer(actor, cfg, packet, payload.signature_record_id)
        result = await uow.signatures.sign(
            packet_id,
            payload.signature_record_id,
            payload.method,
            payload.signer_name,
            payload.attestation,
            signer_user_id=actor.user_id,
            signer_email=payload.signer_email,
            signer_title=payload.signer_title,
            ip_address=client_ip(request),
        )
        out = SignOut(
            signature=SignatureRecordOut.model_validate(result.record),
            packet=SignaturePacketOut.model_validate(result.packet),
            packet_complete=result.packet_complete,
        )
    return out


@router.post("/signature-packets/{packet_id}/decline", response_model=SignatureRecordOut)
async def decline(
    packet_id: uuid.UUID,
    payload: DeclineRequest,
    actor: Actor = Depends(get_actor),
    cfg: Settings = Depends(get_settings),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.get_packet(packet_id)
        _authorize_signer(actor, cfg, packet, payload.signature_record_id)
        record = await uow.signatures.decline(
            packet_id,
            payload.signature_record_id,
            payload.decline_reason,
            actor_user_id=actor.user_id,
        )
        out = SignatureRecordOut.model_validate(record)
    return out


@router.post(
    "/signature-packets/{packet_id}/records",
    response_model=SignatureRecordOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_record(
    packet_id: uuid.UUID,
    payload: RecordCreate,
    _actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        record = await uow.signatures.add_record(
            packet_id,
            payload.role,
            payload.signer_name,
            signer_email=payload.signer_email,
            signer_title=payload.signer_title,
            signer_user_id=payload.signer_user_id,
        )
        out = SignatureRecordOut.model_validate(record)
    return out


@router.post("/signature-packets/{packet_id}/expire", response_model=SignaturePacketOut)
async def expire_packet(
    packet_id: uuid.UUID,
    _actor: Actor = Depends(require_manager),
    uow_factory: Callable[[], UnitOfWork] = Depends(get_uow_factory),
):
    async with uow_factory() as uow:
        packet = await uow.signatures.expire(packet_id)
        out = SignaturePacketOut.model_validate(packet)
    return out
