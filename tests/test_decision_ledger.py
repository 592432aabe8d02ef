# tests/test_decision_ledger.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from planledger.db.models import DecisionStatus, DecisionType, PlanInstance
from planledger.db.base import utcnow
from planledger.exceptions import (
    AlreadyVoidedError,
    NotEligibleError,
    NotFoundError,
    ValidationError,
)
from planledger.services import DecisionFilters, DecisionInput


async def _record(uow_factory, plan_id, **kw):
    args = dict(
        decision_type=DecisionType.PLACEMENT_LRE,
        summary="General education 80% of the day",
        rationale="Student progresses with push-in supports",
        decided_by_user_id="cm-1",
    )
    args.update(kw)
    async with uow_factory() as uow:
        return await uow.decisions.record(
            plan_id,
            args.pop("decision_type"),
            args.pop("summary"),
            args.pop("rationale"),
            args.pop("decided_by_user_id"),
            **args,
        )


async def test_record_decision(make_plan, uow_factory):
    plan_id = await make_plan()

    entry = await _record(uow_factory, plan_id, section_key=" LRE ", participants="Team")

    assert entry.status == DecisionStatus.ACTIVE
    assert entry.decision_type == DecisionType.PLACEMENT_LRE
    assert entry.section_key == "LRE"
    assert entry.decided_by_user_id == "cm-1"
    assert entry.plan_version_id is None
    assert entry.voided_at is None


async def test_record_accepts_type_as_string(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id, decision_type="esy_decision")
    assert entry.decision_type == DecisionType.ESY_DECISION


async def test_record_unknown_type(make_plan, uow_factory):
    plan_id = await make_plan()
    with pytest.raises(ValidationError):
        await _record(uow_factory, plan_id, decision_type="NOT_A_TYPE")


@pytest.mark.parametrize("field", ["summary", "rationale"])
async def test_record_requires_summary_and_rationale(make_plan, uow_factory, field):
    plan_id = await make_plan()
    with pytest.raises(ValidationError) as ei:
        await _record(uow_factory, plan_id, **{field: "   "})
    assert ei.value.details["field"] == field


async def test_record_unknown_plan(uow_factory):
    with pytest.raises(NotFoundError) as ei:
        await _record(uow_factory, uuid.uuid4())
    assert ei.value.error_code == "ERR_API_PLAN_NOT_FOUND"


async def test_record_rejected_for_non_eligible_plan_type(make_plan, uow_factory):
    plan_id = await make_plan(plan_type_code="504")
    with pytest.raises(NotEligibleError) as ei:
        await _record(uow_factory, plan_id)
    assert ei.value.error_code == "ERR_DECISION_CREATE_FOR_NON_ELIGIBLE_PLAN"

    async with uow_factory() as uow:
        assert await uow.decisions.query(plan_id) == []


async def test_record_with_meeting_of_same_plan(make_plan, make_meeting, uow_factory):
    plan_id = await make_plan()
    meeting_id = await make_meeting(plan_id)

    entry = await _record(uow_factory, plan_id, meeting_id=meeting_id)

    assert entry.meeting_id == meeting_id


async def test_record_with_meeting_of_other_plan(make_plan, make_meeting, uow_factory):
    plan_id = await make_plan()
    other = await make_plan()
    meeting_id = await make_meeting(other)

    with pytest.raises(ValidationError) as ei:
        await _record(uow_factory, plan_id, meeting_id=meeting_id)
    assert ei.value.message == "Invalid meeting ID"
    assert ei.value.error_code == "ERR_DECISION_MEETING_MISMATCH"


async def test_record_with_unknown_meeting(make_plan, uow_factory):
    plan_id = await make_plan()
    with pytest.raises(ValidationError) as ei:
        await _record(uow_factory, plan_id, meeting_id=uuid.uuid4())
    assert ei.value.error_code == "ERR_DECISION_MEETING_MISMATCH"


async def test_record_with_version_of_other_plan(make_plan, finalizer, uow_factory):
    plan_id = await make_plan()
    other = await make_plan()
    other_version = (await finalizer.finalize(other, "cm-1")).version

    with pytest.raises(ValidationError) as ei:
        await _record(uow_factory, plan_id, plan_version_id=other_version.id)
    assert ei.value.error_code == "ERR_DECISION_VERSION_MISMATCH"


# ---------------------------------------------------------------------------
# Void
# ---------------------------------------------------------------------------

async def test_void_decision(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id)

    async with uow_factory() as uow:
        voided = await uow.decisions.void(entry.id, "  entered on wrong plan ", "cm-2")

    assert voided.status == DecisionStatus.VOID
    assert voided.void_reason == "entered on wrong plan"
    assert voided.voided_by_user_id == "cm-2"
    assert voided.voided_at is not None
    # the original content is kept
    assert voided.summary == entry.summary
    assert voided.rationale == entry.rationale


async def test_void_requires_reason(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id)

    with pytest.raises(ValidationError) as ei:
        async with uow_factory() as uow:
            await uow.decisions.void(entry.id, "   ", "cm-1")
    assert ei.value.error_code == "ERR_DECISION_VOID_REQUIRES_REASON"

    async with uow_factory() as uow:
        assert (await uow.decisions.get(entry.id)).status == DecisionStatus.ACTIVE


async def test_void_reason_checked_before_lookup(uow_factory):
    with pytest.raises(ValidationError):
        async with uow_factory() as uow:
            await uow.decisions.void(uuid.uuid4(), "", "cm-1")


async def test_void_unknown_decision(uow_factory):
    with pytest.raises(NotFoundError) as ei:
        async with uow_factory() as uow:
            await uow.decisions.void(uuid.uuid4(), "duplicate", "cm-1")
    assert ei.value.error_code == "ERR_DECISION_NOT_FOUND"


async def test_void_twice(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id)
    async with uow_factory() as uow:
        await uow.decisions.void(entry.id, "duplicate", "cm-1")

    with pytest.raises(AlreadyVoidedError) as ei:
        async with uow_factory() as uow:
            await uow.decisions.void(entry.id, "again", "cm-2")
    assert ei.value.error_code == "ERR_DECISION_ALREADY_VOIDED"

    async with uow_factory() as uow:
        stored = await uow.decisions.get(entry.id)
    assert stored.void_reason == "duplicate"
    assert stored.voided_by_user_id == "cm-1"


async def test_void_race_exactly_one_wins(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id)

    # second caller read the entry while it was still ACTIVE
    async with uow_factory() as slow:
        stale = await slow.decisions.get(entry.id)
        assert stale.status == DecisionStatus.ACTIVE

    async with uow_factory() as fast:
        await fast.decisions.void(entry.id, "first", "cm-1")

    async with uow_factory() as slow:
        assert not await slow.repos.decisions.void_if_active(entry.id, "second", "cm-2", utcnow())

    async with uow_factory() as uow:
        stored = await uow.decisions.get(entry.id)
    assert stored.void_reason == "first"


async def test_deleting_plan_never_removes_ledger_rows(make_plan, finalizer, uow_factory, sessionmaker):
    plan_id = await make_plan()
    await finalizer.finalize(
        plan_id,
        "cm-1",
        decision_inputs=[DecisionInput(decision_type="OTHER", summary="s", rationale="r")],
        create_signature_packet=True,
    )

    async with sessionmaker() as session:
        with pytest.raises(IntegrityError):
            await session.execute(delete(PlanInstance).where(PlanInstance.id == plan_id))
        await session.rollback()

    async with uow_factory() as uow:
        assert len(await uow.decisions.query(plan_id)) == 1
        assert len(await uow.versions.list_versions(plan_id)) == 1
        assert await uow.repos.packets.count() == 1


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------

async def test_query_filters_and_order(make_plan, uow_factory):
    plan_id = await make_plan()
    base = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    lre = await _record(
        uow_factory, plan_id, section_key="LRE", decided_at=base
    )
    services = await _record(
        uow_factory,
        plan_id,
        decision_type=DecisionType.SERVICES_CHANGE,
        section_key="SERVICES",
        decided_at=base + timedelta(days=2),
    )
    esy = await _record(
        uow_factory,
        plan_id,
        decision_type=DecisionType.ESY_DECISION,
        section_key="ESY",
        decided_at=base + timedelta(days=1),
    )
    async with uow_factory() as uow:
        await uow.decisions.void(esy.id, "superseded by later meeting", "cm-1")

    async with uow_factory() as uow:
        everything = await uow.decisions.query(plan_id)
        only_active = await uow.decisions.query(plan_id, DecisionFilters(status=DecisionStatus.ACTIVE))
        only_void = await uow.decisions.query(plan_id, DecisionFilters(status=DecisionStatus.VOID))
        by_type = await uow.decisions.query(
            plan_id, DecisionFilters(decision_type=DecisionType.PLACEMENT_LRE)
        )
        by_section = await uow.decisions.query(plan_id, DecisionFilters(section_key="SERVICES"))
        combined = await uow.decisions.query(
            plan_id,
            DecisionFilters(decision_type=DecisionType.ESY_DECISION, status=DecisionStatus.ACTIVE),
        )

    # newest decision first; voided entries stay in the unfiltered list
    assert [e.id for e in everything] == [services.id, esy.id, lre.id]
    assert [e.id for e in only_active] == [services.id, lre.id]
    assert [e.id for e in only_void] == [esy.id]
    assert [e.id for e in by_type] == [lre.id]
    assert [e.id for e in by_section] == [services.id]
    assert combined == []


async def test_query_is_scoped_to_plan(make_plan, uow_factory):
    a = await make_plan()
    b = await make_plan()
    await _record(uow_factory, a)

    async with uow_factory() as uow:
        assert await uow.decisions.query(b) == []


async def test_naive_decided_at_is_treated_as_utc(make_plan, uow_factory):
    plan_id = await make_plan()
    entry = await _record(uow_factory, plan_id, decided_at=datetime(2026, 5, 1, 9, 30))

    async with uow_factory() as uow:
        stored = await uow.decisions.get(entry.id)
    assert stored.decided_at == datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)
