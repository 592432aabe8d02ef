# src/planledger/services/plan_finalizer.py
"""
PlanFinalizer: turn the current state of a plan into an immutable version.

One finalize is one unit of work, run under the plan's advisory lock
(PostgreSQL) so finalizes in other workers queue behind it:

    0. supersede the plan's FINAL/DISTRIBUTED versions
    1. read the plan snapshot (NotFoundError if missing)
    2. create the new FINAL version
    3. record each decision input against the new version
    4. optionally open the signature packet

Any failure rolls the whole transaction back, so no version, decision or
packet from a failed call survives. A lost version-number race
(ConflictError) re-runs everything from the top.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from planledger.app_logger import get_logger
from planledger.core.config import Settings, settings
from planledger.db.models import (
    DecisionLedgerEntry,
    DecisionType,
    PlanVersion,
    SignaturePacket,
    SignatureRole,
)
from planledger.exceptions import ConflictError, InvalidStateError, plan_not_found

from .audit import AuditEvent
from .locks import KeyedLockRegistry
from .signature_workflow import SignerInput
from .unit_of_work import UnitOfWork

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecisionInput:
    decision_type: DecisionType | str
    summary: str
    rationale: str
    options_considered: Optional[str] = None
    participants: Optional[str] = None
    section_key: Optional[str] = None
    meeting_id: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None


@dataclass(frozen=True)
class FinalizeResult:
    version: PlanVersion
    decisions: List[DecisionLedgerEntry] = field(default_factory=list)
    signature_packet: Optional[SignaturePacket] = None


class PlanFinalizer:
    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        cfg: Settings = settings,
        locks: Optional[KeyedLockRegistry] = None,
    ) -> None:
        self.uow_factory = uow_factory
        self.cfg = cfg
        self.locks = locks or KeyedLockRegistry()

    async def finalize(
        self,
        plan_instance_id: uuid.UUID,
        requested_by_user_id: str,
        *,
        version_notes: Optional[str] = None,
        decision_inputs: Sequence[DecisionInput] = (),
        create_signature_packet: bool = False,
        required_signature_roles: Optional[Sequence[SignatureRole | str]] = None,
        signature_expires_at: Optional[datetime] = None,
        signers: Optional[Sequence[SignerInput]] = None,
    ) -> FinalizeResult:
        attempts = self.cfg.FINALIZE_MAX_ATTEMPTS
        attempt = 1
        while True:
            try:
                async with self.locks.hold(plan_instance_id):
                    return await self._finalize_once(
                        plan_instance_id,
                        requested_by_user_id,
                        version_notes=version_notes,
                        decision_inputs=decision_inputs,
                        create_signature_packet=create_signature_packet,
                        required_signature_roles=required_signature_roles,
                        signature_expires_at=signature_expires_at,
                        signers=signers,
                    )
            except ConflictError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    f"Finalize of plan {plan_instance_id} lost the version race "
                    f"(attempt {attempt}/{attempts}); retrying"
                )
                attempt += 1

    async def _finalize_once(
        self,
        plan_instance_id: uuid.UUID,
        requested_by_user_id: str,
        *,
        version_notes: Optional[str],
        decision_inputs: Sequence[DecisionInput],
        create_signature_packet: bool,
        required_signature_roles: Optional[Sequence[SignatureRole | str]],
        signature_expires_at: Optional[datetime],
        signers: Optional[Sequence[SignerInput]],
    ) -> FinalizeResult:
        async with self.uow_factory() as uow:
            # held until commit; other workers queue here, ahead of the supersede
            await uow.versions.lock_plan(plan_instance_id)
            snapshot = await uow.plans.get_plan_snapshot(plan_instance_id)
            if snapshot is None:
                raise plan_not_found(plan_instance_id)
            if snapshot.status not in self.cfg.FINALIZABLE_PLAN_STATUSES:
                raise InvalidStateError(
                    f"Plan in status {snapshot.status} cannot be finalized",
                    "ERR_PLAN_STATUS_INVALID",
                    {
                        "planInstanceId": str(plan_instance_id),
                        "status": snapshot.status,
                        "allowed": list(self.cfg.FINALIZABLE_PLAN_STATUSES),
                    },
                )

            await uow.versions.supersede_active(plan_instance_id)
            version = await uow.versions.create_version(
                plan_instance_id, snapshot.data, requested_by_user_id, version_notes
            )

            decisions: List[DecisionLedgerEntry] = []
            for item in decision_inputs:
                decisions.append(
                    await uow.decisions.record(
                        plan_instance_id,
                        item.decision_type,
                        item.summary,
                        item.rationale,
                        requested_by_user_id,
                        options_considered=item.options_considered,
                        participants=item.participants,
                        meeting_id=item.meeting_id,
                        plan_version_id=version.id,
                        section_key=item.section_key,
                        decided_at=item.decided_at,
                    )
                )

            packet: Optional[SignaturePacket] = None
            if create_signature_packet:
                packet = await uow.signatures.open_packet(
                    version.id,
                    self.cfg.DEFAULT_SIGNATURE_ROLES
                    if required_signature_roles is None
                    else required_signature_roles,
                    requested_by_user_id,
                    expires_at=signature_expires_at,
                    initial_signers=signers,
                )

            uow.audit.record(
                AuditEvent.PLAN_FINALIZED,
                actor_user_id=requested_by_user_id,
                plan_instance_id=plan_instance_id,
                plan_version_id=version.id,
                version_number=version.version_number,
            )

        logger.info(
            f"Finalized plan {plan_instance_id} as v{version.version_number} "
            f"({len(decisions)} decision(s), packet={'yes' if packet else 'no'})"
        )
        return FinalizeResult(version=version, decisions=decisions, signature_packet=packet)
