# src/planledger/services/decision_ledger.py
"""
DecisionLedger: append-only record of team decisions.

Entries are never deleted. The only state change is a single ACTIVE -> VOID,
applied as a compare-and-set so that of two concurrent voids exactly one
wins and the other sees AlreadyVoidedError.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from planledger.app_logger import get_logger
from planledger.core.config import Settings
from planledger.db.base import utcnow
from planledger.db.models import DecisionLedgerEntry, DecisionStatus, DecisionType
from planledger.exceptions import (
    NotEligibleError,
    ValidationError,
    decision_already_voided,
    decision_not_found,
    plan_not_found,
)
from planledger.repositories import RepositoryFactory

from .audit import AuditEvent, AuditTrail
from .common import as_utc, clean_text, coerce_enum, require_text
from .plan_store import MeetingStore, PlanStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecisionFilters:
    """Every supported query filter; None means "any"."""

    decision_type: Optional[DecisionType] = None
    status: Optional[DecisionStatus] = None
    section_key: Optional[str] = None


class DecisionLedger:
    def __init__(
        self,
        repos: RepositoryFactory,
        cfg: Settings,
        plans: PlanStore,
        meetings: MeetingStore,
        audit: AuditTrail,
    ) -> None:
        self.repos = repos
        self.cfg = cfg
        self.plans = plans
        self.meetings = meetings
        self.audit = audit

    async def record(
        self,
        plan_instance_id: uuid.UUID,
        decision_type: DecisionType | str,
        summary: str,
        rationale: str,
        decided_by_user_id: str,
        *,
        options_considered: Optional[str] = None,
        participants: Optional[str] = None,
        meeting_id: Optional[uuid.UUID] = None,
        plan_version_id: Optional[uuid.UUID] = None,
        section_key: Optional[str] = None,
        decided_at: Optional[datetime] = None,
    ) -> DecisionLedgerEntry:
        """
        Append an ACTIVE decision.

        Raises:
            NotFoundError: the plan does not exist
            NotEligibleError: the plan type does not record team decisions
            ValidationError: blank summary/rationale, unknown type, or a
                meeting/version that belongs to another plan
        """
        snapshot = await self.plans.get_plan_snapshot(plan_instance_id)
        if snapshot is None:
            raise plan_not_found(plan_instance_id)
        if snapshot.plan_type_code not in self.cfg.DECISION_PLAN_TYPES:
            raise NotEligibleError(
                f"Decisions can only be recorded for {', '.join(self.cfg.DECISION_PLAN_TYPES)} plans",
                "ERR_DECISION_CREATE_FOR_NON_ELIGIBLE_PLAN",
                {"planInstanceId": str(plan_instance_id), "planTypeCode": snapshot.plan_type_code},
            )

        dtype = coerce_enum(DecisionType, decision_type, "decisionType")
        summary = require_text(summary, "summary")
        rationale = require_text(rationale, "rationale")

        if meeting_id is not None:
            meeting = await self.meetings.get_meeting(meeting_id)
            if meeting is None or meeting.plan_instance_id != plan_instance_id:
                raise ValidationError(
                    "Invalid meeting ID",
                    "ERR_DECISION_MEETING_MISMATCH",
                    {"meetingId": str(meeting_id), "planInstanceId": str(plan_instance_id)},
                )
        if plan_version_id is not None:
            version = await self.repos.versions.get_by_id(plan_version_id)
            if version is None or version.plan_instance_id != plan_instance_id:
                raise ValidationError(
                    "Invalid plan version ID",
                    "ERR_DECISION_VERSION_MISMATCH",
                    {"planVersionId": str(plan_version_id), "planInstanceId": str(plan_instance_id)},
                )

        entry = await self.repos.decisions.create(
            plan_instance_id=plan_instance_id,
            plan_version_id=plan_version_id,
            meeting_id=meeting_id,
            decision_type=dtype,
            section_key=clean_text(section_key),
            summary=summary,
            rationale=rationale,
            options_considered=clean_text(options_considered),
            participants=clean_text(participants),
            decided_at=as_utc(decided_at) or utcnow(),
            decided_by_user_id=decided_by_user_id,
            status=DecisionStatus.ACTIVE,
        )
        logger.info(f"Recorded decision {entry.id} ({dtype.value}) on plan {plan_instance_id}")
        self.audit.record(
            AuditEvent.DECISION_RECORDED,
            actor_user_id=decided_by_user_id,
            decision_id=entry.id,
            plan_instance_id=plan_instance_id,
            plan_version_id=plan_version_id,
        )
        return entry

    async def void(
        self, entry_id: uuid.UUID, void_reason: str, voided_by_user_id: str
    ) -> DecisionLedgerEntry:
        reason = require_text(void_reason, "voidReason", "ERR_DECISION_VOID_REQUIRES_REASON")
        entry = await self.get(entry_id)
        if entry.status == DecisionStatus.VOID:
            raise decision_already_voided(entry_id)

        if not await self.repos.decisions.void_if_active(
            entry_id, reason, voided_by_user_id, utcnow()
        ):
            raise decision_already_voided(entry_id)

        entry = await self.get(entry_id)
        logger.info(f"Voided decision {entry.id} by {voided_by_user_id}")
        self.audit.record(
            AuditEvent.DECISION_VOIDED,
            actor_user_id=voided_by_user_id,
            decision_id=entry.id,
            plan_instance_id=entry.plan_instance_id,
        )
        return entry

    async def get(self, entry_id: uuid.UUID) -> DecisionLedgerEntry:
        entry = await self.repos.decisions.get_by_id(entry_id, fresh=True)
        if entry is None:
            raise decision_not_found(entry_id)
        return entry

    async def query(
        self, plan_instance_id: uuid.UUID, filters: Optional[DecisionFilters] = None
    ) -> List[DecisionLedgerEntry]:
        filters = filters or DecisionFilters()
        return await self.repos.decisions.query(
            plan_instance_id,
            decision_type=filters.decision_type,
            status=filters.status,
            section_key=filters.section_key,
        )
