# src/planledger/services/plan_store.py
"""
Ports for the external Plan Store and Meeting Store, and the SQL adapters
that read their mirror tables.

The ledger only ever reads plans and meetings. ``PlanSnapshot.data`` is a
JSON-safe deep copy, so nothing the ledger does to it can reach back into
the authoring store.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from pydantic_core import to_jsonable_python

from planledger.repositories import RepositoryFactory

# content_json keys copied into every snapshot, in this order
SNAPSHOT_SECTIONS = (
    "student",
    "schema",
    "fieldValues",
    "goals",
    "services",
    "accommodations",
    "assessmentDecisions",
    "transition",
    "esy",
)


@dataclass(frozen=True)
class PlanSnapshot:
    plan_instance_id: uuid.UUID
    plan_type_code: str
    status: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class MeetingRef:
    id: uuid.UUID
    plan_instance_id: uuid.UUID


class PlanStore(Protocol):
    async def get_plan_snapshot(self, plan_instance_id: uuid.UUID) -> Optional[PlanSnapshot]:
        ...


class MeetingStore(Protocol):
    async def get_meeting(self, meeting_id: uuid.UUID) -> Optional[MeetingRef]:
        ...


class SqlPlanStore:
    def __init__(self, repos: RepositoryFactory) -> None:
        self.repos = repos

    async def get_plan_snapshot(self, plan_instance_id: uuid.UUID) -> Optional[PlanSnapshot]:
        plan = await self.repos.plans.get_by_id(plan_instance_id, fresh=True)
        if plan is None:
            return None
        content = plan.content_json or {}
        data: Dict[str, Any] = {
            "planInstanceId": str(plan.id),
            "planType": plan.plan_type_code,
            "status": plan.status,
            "startDate": plan.start_date,
            "endDate": plan.end_date,
        }
        for key in SNAPSHOT_SECTIONS:
            data[key] = content.get(key)
        # anything else the authoring store keeps rides along untouched
        for key, value in content.items():
            data.setdefault(key, value)
        return PlanSnapshot(
            plan_instance_id=plan.id,
            plan_type_code=(plan.plan_type_code or "").upper(),
            status=(plan.status or "").upper(),
            data=to_jsonable_python(data),
        )


class SqlMeetingStore:
    def __init__(self, repos: RepositoryFactory) -> None:
        self.repos = repos

    async def get_meeting(self, meeting_id: uuid.UUID) -> Optional[MeetingRef]:
        meeting = await self.repos.meetings.get_by_id(meeting_id)
        if meeting is None:
            return None
        return MeetingRef(id=meeting.id, plan_instance_id=meeting.plan_instance_id)
