# src/planledger/services/signature_workflow.py
"""
SignatureWorkflow: required signer roles tracked against one plan version.

Packet:  OPEN -> COMPLETE | OPEN -> EXPIRED   (both terminal)
Record:  PENDING -> SIGNED | PENDING -> DECLINED   (both terminal)

A packet is COMPLETE once every required role has at least one SIGNED
record. A DECLINED record never counts, so a declined required role holds
the packet open until a replacement record for that role is added and signed.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError

from planledger.app_logger import get_logger
from planledger.core.config import Settings
from planledger.db.base import utcnow
from planledger.db.models import (
    SignatureMethod,
    SignaturePacket,
    SignaturePacketStatus,
    SignatureRecord,
    SignatureRole,
    SignatureStatus,
)
from planledger.exceptions import (
    InvalidStateError,
    ValidationError,
    packet_not_found,
    packet_not_open,
    record_not_found,
    record_not_pending,
    version_not_found,
)
from planledger.repositories import RepositoryFactory

from .audit import AuditEvent, AuditTrail
from .common import as_utc, clean_text, coerce_enum, require_text

logger = get_logger(__name__)

ELECTRONIC_ATTESTATION = (
    "By typing my name below, I confirm that I am the person named above, "
    "I have reviewed the document, and I agree to sign this document electronically. "
    "I understand that my electronic signature has the same legal effect as a "
    "handwritten signature."
)


@dataclass(frozen=True)
class SignerInput:
    role: SignatureRole | str
    signer_name: str = ""
    signer_email: Optional[str] = None
    signer_title: Optional[str] = None
    signer_user_id: Optional[str] = None


@dataclass(frozen=True)
class SignResult:
    record: SignatureRecord
    packet: SignaturePacket
    packet_complete: bool


def packet_satisfied(required_roles: Iterable[str], records: Iterable[SignatureRecord]) -> bool:
    """True when every required role has at least one SIGNED record."""
    signed = {SignatureRole(r.role).value for r in records if r.status == SignatureStatus.SIGNED}
    return all(SignatureRole(role).value in signed for role in required_roles)


def is_overdue(packet: SignaturePacket, now: Optional[datetime] = None) -> bool:
    return (
        packet.status == SignaturePacketStatus.OPEN
        and packet.expires_at is not None
        and packet.expires_at <= (now or utcnow())
    )


def normalize_roles(required_roles: Sequence[SignatureRole | str]) -> List[SignatureRole]:
    roles = [coerce_enum(SignatureRole, r, "requiredRoles") for r in required_roles or ()]
    if not roles:
        raise ValidationError(
            "At least one required signature role is needed",
            "ERR_SIGN_ROLES_REQUIRED",
            {"field": "requiredRoles"},
        )
    duplicates = sorted({r.value for r in roles if roles.count(r) > 1})
    if duplicates:
        raise ValidationError(
            "Required signature roles must not repeat",
            "ERR_SIGN_ROLES_DUPLICATED",
            {"field": "requiredRoles", "duplicates": duplicates},
        )
    return roles


class SignatureWorkflow:
    def __init__(self, repos: RepositoryFactory, cfg: Settings, audit: AuditTrail) -> None:
        self.repos = repos
        self.cfg = cfg
        self.audit = audit

    # ------------------------------------------------------------------
    # Packets
    # ------------------------------------------------------------------
    async def open_packet(
        self,
        plan_version_id: uuid.UUID,
        required_roles: Sequence[SignatureRole | str],
        created_by_user_id: str,
        *,
        expires_at: Optional[datetime] = None,
        initial_signers: Optional[Sequence[SignerInput]] = None,
    ) -> SignaturePacket:
        """
        Open the packet for a version.

        Named ``initial_signers`` get a PENDING record each; every required
        role none of them covers gets a blank PENDING record.

        Raises:
            ValidationError: empty/duplicate/unknown roles or a past expiry
            NotFoundError: unknown version
            InvalidStateError: the version already has a packet
        """
        roles = normalize_roles(required_roles)
        expires_at = as_utc(expires_at)
        now = utcnow()
        if expires_at is None and self.cfg.SIGNATURE_PACKET_TTL_DAYS:
            expires_at = now + timedelta(days=self.cfg.SIGNATURE_PACKET_TTL_DAYS)
        if expires_at is not None and expires_at <= now:
            raise ValidationError(
                "expiresAt must be in the future", details={"field": "expiresAt"}
            )

        version = await self.repos.versions.get_by_id(plan_version_id)
        if version is None:
            raise version_not_found(plan_version_id)
        if await self.repos.packets.get_for_version(plan_version_id) is not None:
            raise self._packet_exists(plan_version_id)

        signers = [
            SignerInput(
                role=coerce_enum(SignatureRole, s.role, "signers.role"),
                signer_name=(s.signer_name or "").strip(),
                signer_email=clean_text(s.signer_email),
                signer_title=clean_text(s.signer_title),
                signer_user_id=clean_text(s.signer_user_id),
            )
            for s in initial_signers or ()
        ]
        covered = {s.role for s in signers}
        signers.extend(SignerInput(role=r) for r in roles if r not in covered)

        packet = SignaturePacket(
            plan_version_id=plan_version_id,
            status=SignaturePacketStatus.OPEN,
            required_roles=[r.value for r in roles],
            expires_at=expires_at,
            created_by_user_id=created_by_user_id,
        )
        try:
            await self.repos.packets.add(packet)
        except IntegrityError as exc:
            raise self._packet_exists(plan_version_id) from exc

        await self.repos.records.add_all(
            [
                SignatureRecord(
                    packet_id=packet.id,
                    role=s.role,
                    signer_name=s.signer_name,
                    signer_email=s.signer_email,
                    signer_title=s.signer_title,
                    signer_user_id=s.signer_user_id,
                    status=SignatureStatus.PENDING,
                )
                for s in signers
            ]
        )
        logger.info(
            f"Opened signature packet {packet.id} for version {plan_version_id} "
            f"(roles={','.join(r.value for r in roles)})"
        )
        return await self._load(packet.id)

    async def get_packet(self, packet_id: uuid.UUID) -> SignaturePacket:
        """Packet with records; an overdue OPEN packet is expired first."""
        packet = await self._load(packet_id)
        if is_overdue(packet):
            await self._expire(packet)
            packet = await self._load(packet_id)
        return packet

    async def get_packet_for_version(self, plan_version_id: uuid.UUID) -> SignaturePacket:
        if not await self.repos.versions.exists(plan_version_id):
            raise version_not_found(plan_version_id)
        packet = await self.repos.packets.get_for_version(plan_version_id)
        if packet is None:
            raise packet_not_found(plan_version_id)
        return await self.get_packet(packet.id)

    async def expire(self, packet_id: uuid.UUID) -> SignaturePacket:
        """
        Explicit OPEN -> EXPIRED. Expiring an already EXPIRED packet is a no-op;
        a COMPLETE packet cannot expire.
        """
        packet = await self._load(packet_id)
        if packet.status == SignaturePacketStatus.EXPIRED:
            return packet
        if packet.status != SignaturePacketStatus.OPEN or not await self._expire(packet):
            packet = await self._load(packet_id)
            if packet.status != SignaturePacketStatus.EXPIRED:
                raise packet_not_open(packet_id, packet.status)
        return await self._load(packet_id)

    async def expire_overdue(self, now: Optional[datetime] = None) -> List[uuid.UUID]:
        """Expire every OPEN packet past its expiry; returns the ids moved."""
        now = now or utcnow()
        expired: List[uuid.UUID] = []
        for packet_id in await self.repos.packets.list_overdue_open_ids(now):
            if await self.repos.packets.transition(
                packet_id, SignaturePacketStatus.OPEN, SignaturePacketStatus.EXPIRED
            ):
                expired.append(packet_id)
        if expired:
            logger.info(f"Expired {len(expired)} overdue signature packet(s)")
        return expired

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------
    async def sign(
        self,
        packet_id: uuid.UUID,
        record_id: uuid.UUID,
        method: SignatureMethod | str,
        signer_name: str,
        attestation: bool,
        *,
        signer_user_id: Optional[str] = None,
        signer_email: Optional[str] = None,
        signer_title: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> SignResult:
        """
        PENDING -> SIGNED, then re-evaluate packet completion.

        Raises:
            NotFoundError: unknown packet, or a record not in this packet
            InvalidStateError: packet not OPEN (or past expiry) or record not PENDING
            ValidationError: bad method, blank name, or an electronic
                signature without attestation
        """
        packet = await self._load_open(packet_id)
        record = self._find_record(packet, record_id)
        if record.status != SignatureStatus.PENDING:
            raise record_not_pending(record_id, record.status)

        sig_method = coerce_enum(SignatureMethod, method, "method")
        name = require_text(signer_name, "signerName")
        electronic = sig_method == SignatureMethod.ELECTRONIC
        if electronic and not attestation:
            raise ValidationError(
                "Attestation is required for electronic signatures",
                "ERR_SIGN_ATTESTATION_REQUIRED",
                {"field": "attestation"},
            )

        signed = await self.repos.records.sign_if_pending(
            record.id,
            signer_name=name,
            method=sig_method,
            signed_at=utcnow(),
            signer_user_id=clean_text(signer_user_id),
            signer_email=clean_text(signer_email),
            signer_title=clean_text(signer_title),
            attestation_text=ELECTRONIC_ATTESTATION if electronic else None,
            ip_address=clean_text(ip_address) if electronic else None,
        )
        if not signed:
            current = await self.repos.records.get_by_id(record.id, fresh=True)
            raise record_not_pending(record.id, current.status if current else None)

        packet = await self._load(packet_id)
        complete = False
        if packet_satisfied(packet.required_roles, packet.records):
            complete = await self.repos.packets.transition(
                packet.id,
                SignaturePacketStatus.OPEN,
                SignaturePacketStatus.COMPLETE,
                completed_at=utcnow(),
            )
            if complete:
                logger.info(f"Signature packet {packet.id} complete")
                packet = await self._load(packet_id)

        record = self._find_record(packet, record_id)
        logger.info(f"Signature record {record.id} signed ({record.role.value}, {sig_method.value})")
        self.audit.record(
            AuditEvent.SIGNATURE_ADDED,
            actor_user_id=signer_user_id,
            signature_record_id=record.id,
            packet_id=packet.id,
            plan_version_id=packet.plan_version_id,
        )
        return SignResult(record=record, packet=packet, packet_complete=complete)

    async def decline(
        self,
        packet_id: uuid.UUID,
        record_id: uuid.UUID,
        decline_reason: str,
        *,
        actor_user_id: Optional[str] = None,
    ) -> SignatureRecord:
        reason = require_text(decline_reason, "declineReason", "ERR_SIGN_DECLINE_REQUIRES_REASON")
        packet = await self._load_open(packet_id)
        record = self._find_record(packet, record_id)
        if record.status != SignatureStatus.PENDING:
            raise record_not_pending(record_id, record.status)

        if not await self.repos.records.decline_if_pending(record.id, reason, utcnow()):
            current = await self.repos.records.get_by_id(record.id, fresh=True)
            raise record_not_pending(record.id, current.status if current else None)

        record = await self.repos.records.get_by_id(record.id, fresh=True)
        logger.info(f"Signature record {record.id} declined ({record.role.value})")
        self.audit.record(
            AuditEvent.SIGNATURE_DECLINED,
            actor_user_id=actor_user_id,
            signature_record_id=record.id,
            packet_id=packet.id,
            plan_version_id=packet.plan_version_id,
        )
        return record

    async def add_record(
        self,
        packet_id: uuid.UUID,
        role: SignatureRole | str,
        signer_name: str,
        *,
        signer_email: Optional[str] = None,
        signer_title: Optional[str] = None,
        signer_user_id: Optional[str] = None,
    ) -> SignatureRecord:
        """Append an ad-hoc PENDING record to an OPEN packet."""
        packet = await self._load_open(packet_id)
        record = await self.repos.records.create(
            packet_id=packet.id,
            role=coerce_enum(SignatureRole, role, "role"),
            signer_name=require_text(signer_name, "signerName"),
            signer_email=clean_text(signer_email),
            signer_title=clean_text(signer_title),
            signer_user_id=clean_text(signer_user_id),
            status=SignatureStatus.PENDING,
        )
        logger.info(f"Added signature record {record.id} ({record.role.value}) to packet {packet.id}")
        return record

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _load(self, packet_id: uuid.UUID) -> SignaturePacket:
        packet = await self.repos.packets.get_packet(packet_id)
        if packet is None:
            raise packet_not_found(packet_id)
        return packet

    async def _load_open(self, packet_id: uuid.UUID) -> SignaturePacket:
        await self.repos.packets.lock_packet(packet_id)
        packet = await self._load(packet_id)
        # past expiry counts as expired even before the sweep records it
        if packet.status != SignaturePacketStatus.OPEN or is_overdue(packet):
            status = SignaturePacketStatus.EXPIRED if is_overdue(packet) else packet.status
            raise packet_not_open(packet_id, status)
        return packet

    async def _expire(self, packet: SignaturePacket) -> bool:
        moved = await self.repos.packets.transition(
            packet.id, SignaturePacketStatus.OPEN, SignaturePacketStatus.EXPIRED
        )
        if moved:
            logger.info(f"Signature packet {packet.id} expired")
        return moved

    @staticmethod
    def _find_record(packet: SignaturePacket, record_id: uuid.UUID) -> SignatureRecord:
        for record in packet.records:
            if record.id == record_id:
                return record
        raise record_not_found(record_id)

    @staticmethod
    def _packet_exists(plan_version_id: uuid.UUID) -> InvalidStateError:
        return InvalidStateError(
            "Signature packet already exists for this version",
            "ERR_SIGN_PACKET_EXISTS",
            {"versionId": str(plan_version_id)},
        )
