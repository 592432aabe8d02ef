# tests/test_signature_workflow.py
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from planledger.db.base import utcnow
from planledger.db.models import (
    SignatureMethod,
    SignaturePacketStatus,
    SignatureRole,
    SignatureStatus,
)
from planledger.exceptions import InvalidStateError, NotFoundError, ValidationError
from planledger.repositories import SignaturePacketRepository, SignatureRecordRepository
from planledger.services import ELECTRONIC_ATTESTATION, ExpirySweeper, SignerInput, packet_satisfied

ROLES = ["CASE_MANAGER", "PARENT_GUARDIAN"]


@pytest.fixture
def version_id(make_plan, finalizer):
    async def _make():
        plan_id = await make_plan()
        return (await finalizer.finalize(plan_id, "cm-1")).version.id

    return _make


async def _open(uow_factory, version_id, roles=ROLES, **kw):
    async with uow_factory() as uow:
        return await uow.signatures.open_packet(version_id, roles, "cm-1", **kw)


def _record_for(packet, role):
    return next(r for r in packet.records if r.role == SignatureRole(role))


async def _sign(uow_factory, packet, role, method=SignatureMethod.IN_PERSON, name="Signer", attestation=False, **kw):
    async with uow_factory() as uow:
        return await uow.signatures.sign(
            packet.id, _record_for(packet, role).id, method, name, attestation, **kw
        )


# ---------------------------------------------------------------------------
# Opening packets
# ---------------------------------------------------------------------------

async def test_open_packet_creates_pending_record_per_role(version_id, uow_factory):
    vid = await version_id()

    packet = await _open(uow_factory, vid)

    assert packet.status == SignaturePacketStatus.OPEN
    assert packet.required_roles == ROLES
    assert packet.created_by_user_id == "cm-1"
    assert packet.completed_at is None
    assert sorted(r.role.value for r in packet.records) == sorted(ROLES)
    assert all(r.status == SignatureStatus.PENDING for r in packet.records)
    assert all(r.signer_name == "" for r in packet.records)


async def test_open_packet_with_named_signers(version_id, uow_factory):
    vid = await version_id()

    packet = await _open(
        uow_factory,
        vid,
        initial_signers=[
            SignerInput(role="PARENT_GUARDIAN", signer_name=" Pat Parent ", signer_email="pat@example.org"),
            SignerInput(role="GENERAL_ED_TEACHER", signer_name="Gene Teacher"),
        ],
    )

    by_role = {r.role.value: r for r in packet.records}
    assert set(by_role) == {"PARENT_GUARDIAN", "GENERAL_ED_TEACHER", "CASE_MANAGER"}
    assert by_role["PARENT_GUARDIAN"].signer_name == "Pat Parent"
    assert by_role["PARENT_GUARDIAN"].signer_email == "pat@example.org"
    assert by_role["CASE_MANAGER"].signer_name == ""


async def test_second_packet_for_version_rejected(version_id, uow_factory):
    vid = await version_id()
    await _open(uow_factory, vid)

    with pytest.raises(InvalidStateError) as ei:
        await _open(uow_factory, vid)
    assert ei.value.error_code == "ERR_SIGN_PACKET_EXISTS"


async def test_open_packet_unknown_version(uow_factory):
    with pytest.raises(NotFoundError) as ei:
        await _open(uow_factory, uuid.uuid4())
    assert ei.value.error_code == "ERR_VERSION_NOT_FOUND"


@pytest.mark.parametrize(
    "roles, code",
    [
        ([], "ERR_SIGN_ROLES_REQUIRED"),
        (["CASE_MANAGER", "case_manager"], "ERR_SIGN_ROLES_DUPLICATED"),
        (["HEAD_CHEF"], "ERR_API_VALIDATION_FAILED"),
    ],
)
async def test_open_packet_role_validation(version_id, uow_factory, roles, code):
    vid = await version_id()
    with pytest.raises(ValidationError) as ei:
        await _open(uow_factory, vid, roles=roles)
    assert ei.value.error_code == code


async def test_open_packet_past_expiry_rejected(version_id, uow_factory):
    vid = await version_id()
    with pytest.raises(ValidationError):
        await _open(uow_factory, vid, expires_at=utcnow() - timedelta(minutes=1))


async def test_open_packet_applies_default_ttl(version_id, cfg, sessionmaker):
    from planledger.services import unit_of_work_factory

    ttl_cfg = cfg.model_copy(update={"SIGNATURE_PACKET_TTL_DAYS": 14})
    vid = await version_id()

    before = utcnow()
    packet = await _open(unit_of_work_factory(sessionmaker, ttl_cfg), vid)

    assert packet.expires_at is not None
    assert before + timedelta(days=14) <= packet.expires_at <= utcnow() + timedelta(days=14)


# ---------------------------------------------------------------------------
# Signing and completion
# ---------------------------------------------------------------------------

async def test_packet_completes_when_all_roles_signed(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    first = await _sign(uow_factory, packet, "CASE_MANAGER", name="Casey Manager")
    assert first.record.status == SignatureStatus.SIGNED
    assert first.record.signer_name == "Casey Manager"
    assert first.record.signed_at is not None
    assert first.packet_complete is False
    assert first.packet.status == SignaturePacketStatus.OPEN

    second = await _sign(uow_factory, packet, "PARENT_GUARDIAN", name="Pat Parent")
    assert second.packet_complete is True
    assert second.packet.status == SignaturePacketStatus.COMPLETE
    assert second.packet.completed_at is not None


async def test_electronic_signature_requires_attestation(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    with pytest.raises(ValidationError) as ei:
        await _sign(uow_factory, packet, "PARENT_GUARDIAN", method=SignatureMethod.ELECTRONIC)
    assert ei.value.error_code == "ERR_SIGN_ATTESTATION_REQUIRED"

    async with uow_factory() as uow:
        reloaded = await uow.signatures.get_packet(packet.id)
    assert _record_for(reloaded, "PARENT_GUARDIAN").status == SignatureStatus.PENDING


async def test_electronic_signature_stores_attestation_and_ip(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    result = await _sign(
        uow_factory,
        packet,
        "PARENT_GUARDIAN",
        method="electronic",
        name="Pat Parent",
        attestation=True,
        ip_address="203.0.113.7",
        signer_user_id="parent-1",
    )

    assert result.record.method == SignatureMethod.ELECTRONIC
    assert result.record.attestation_text == ELECTRONIC_ATTESTATION
    assert result.record.ip_address == "203.0.113.7"
    assert result.record.signer_user_id == "parent-1"


async def test_in_person_signature_keeps_no_attestation(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    result = await _sign(uow_factory, packet, "CASE_MANAGER", attestation=True, ip_address="203.0.113.7")

    assert result.record.attestation_text is None
    assert result.record.ip_address is None


async def test_sign_requires_name(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)
    with pytest.raises(ValidationError):
        await _sign(uow_factory, packet, "CASE_MANAGER", name="  ")


async def test_sign_record_from_other_packet(version_id, uow_factory):
    a = await _open(uow_factory, await version_id())
    b = await _open(uow_factory, await version_id())

    with pytest.raises(NotFoundError) as ei:
        async with uow_factory() as uow:
            await uow.signatures.sign(
                a.id, _record_for(b, "CASE_MANAGER").id, SignatureMethod.IN_PERSON, "X", False
            )
    assert ei.value.error_code == "ERR_SIGN_RECORD_NOT_FOUND"


async def test_sign_twice_rejected(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid, roles=["CASE_MANAGER", "PARENT_GUARDIAN"])
    await _sign(uow_factory, packet, "CASE_MANAGER")

    with pytest.raises(InvalidStateError) as ei:
        await _sign(uow_factory, packet, "CASE_MANAGER")
    assert ei.value.error_code == "ERR_SIGN_RECORD_NOT_PENDING"


async def test_add_record_on_complete_packet_rejected(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid, roles=["CASE_MANAGER"])
    await _sign(uow_factory, packet, "CASE_MANAGER")

    async with uow_factory() as uow:
        reloaded = await uow.signatures.get_packet(packet.id)
    assert reloaded.status == SignaturePacketStatus.COMPLETE

    with pytest.raises(InvalidStateError) as ei:
        async with uow_factory() as uow:
            await uow.signatures.add_record(packet.id, "OTHER", "Late Signer")
    assert ei.value.error_code == "ERR_SIGN_PACKET_NOT_OPEN"


async def test_sign_race_exactly_one_wins(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)
    record_id = _record_for(packet, "CASE_MANAGER").id

    async with uow_factory() as uow:
        first = await uow.repos.records.sign_if_pending(
            record_id, signer_name="A", method=SignatureMethod.IN_PERSON, signed_at=utcnow()
        )
    async with uow_factory() as uow:
        second = await uow.repos.records.sign_if_pending(
            record_id, signer_name="B", method=SignatureMethod.IN_PERSON, signed_at=utcnow()
        )

    assert (first, second) == (True, False)
    async with uow_factory() as uow:
        stored = await uow.signatures.get_packet(packet.id)
    assert _record_for(stored, "CASE_MANAGER").signer_name == "A"


async def test_sign_locks_packet_before_touching_record(version_id, uow_factory, monkeypatch):
    vid = await version_id()
    packet = await _open(uow_factory, vid)
    calls = []
    lock_packet = SignaturePacketRepository.lock_packet
    sign_if_pending = SignatureRecordRepository.sign_if_pending

    async def recording_lock(self, packet_id):
        calls.append(("lock", packet_id))
        return await lock_packet(self, packet_id)

    async def recording_sign(self, record_id, **kw):
        calls.append(("sign", record_id))
        return await sign_if_pending(self, record_id, **kw)

    monkeypatch.setattr(SignaturePacketRepository, "lock_packet", recording_lock)
    monkeypatch.setattr(SignatureRecordRepository, "sign_if_pending", recording_sign)

    await _sign(uow_factory, packet, "CASE_MANAGER")

    assert calls == [("lock", packet.id), ("sign", _record_for(packet, "CASE_MANAGER").id)]


async def test_last_signers_in_separate_sessions_complete_packet(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    results = await asyncio.gather(
        _sign(uow_factory, packet, "CASE_MANAGER"),
        _sign(uow_factory, packet, "PARENT_GUARDIAN"),
    )

    assert sorted(r.packet_complete for r in results) == [False, True]
    async with uow_factory() as uow:
        stored = await uow.signatures.get_packet(packet.id)
    assert stored.status == SignaturePacketStatus.COMPLETE
    assert stored.completed_at is not None


def test_packet_satisfied_needs_a_signed_record_per_role():
    class R:
        def __init__(self, role, status):
            self.role = SignatureRole(role)
            self.status = status

    signed_cm = R("CASE_MANAGER", SignatureStatus.SIGNED)
    declined_parent = R("PARENT_GUARDIAN", SignatureStatus.DECLINED)
    signed_parent = R("PARENT_GUARDIAN", SignatureStatus.SIGNED)
    signed_extra = R("OTHER", SignatureStatus.SIGNED)

    assert not packet_satisfied(ROLES, [signed_cm])
    assert not packet_satisfied(ROLES, [signed_cm, declined_parent])
    assert packet_satisfied(ROLES, [signed_cm, declined_parent, signed_parent])
    assert not packet_satisfied(ROLES, [signed_extra, signed_parent])


# ---------------------------------------------------------------------------
# Declining
# ---------------------------------------------------------------------------

async def test_decline_requires_reason(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    with pytest.raises(ValidationError) as ei:
        async with uow_factory() as uow:
            await uow.signatures.decline(packet.id, _record_for(packet, "PARENT_GUARDIAN").id, " ")
    assert ei.value.error_code == "ERR_SIGN_DECLINE_REQUIRES_REASON"


async def test_declined_role_blocks_completion_until_replacement_signs(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    async with uow_factory() as uow:
        declined = await uow.signatures.decline(
            packet.id, _record_for(packet, "PARENT_GUARDIAN").id, "Disagree with placement"
        )
    assert declined.status == SignatureStatus.DECLINED
    assert declined.decline_reason == "Disagree with placement"
    assert declined.declined_at is not None

    result = await _sign(uow_factory, packet, "CASE_MANAGER")
    assert result.packet_complete is False
    assert result.packet.status == SignaturePacketStatus.OPEN

    async with uow_factory() as uow:
        replacement = await uow.signatures.add_record(packet.id, "PARENT_GUARDIAN", "Second Guardian")
    assert replacement.status == SignatureStatus.PENDING

    async with uow_factory() as uow:
        done = await uow.signatures.sign(
            packet.id, replacement.id, SignatureMethod.PAPER_RETURNED, "Second Guardian", False
        )
    assert done.packet_complete is True
    assert done.packet.status == SignaturePacketStatus.COMPLETE


async def test_cannot_decline_signed_record(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)
    await _sign(uow_factory, packet, "CASE_MANAGER")

    with pytest.raises(InvalidStateError) as ei:
        async with uow_factory() as uow:
            await uow.signatures.decline(packet.id, _record_for(packet, "CASE_MANAGER").id, "changed mind")
    assert ei.value.error_code == "ERR_SIGN_RECORD_NOT_PENDING"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------

async def test_explicit_expire(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    async with uow_factory() as uow:
        expired = await uow.signatures.expire(packet.id)
    assert expired.status == SignaturePacketStatus.EXPIRED

    # expiring again is a no-op
    async with uow_factory() as uow:
        again = await uow.signatures.expire(packet.id)
    assert again.status == SignaturePacketStatus.EXPIRED

    with pytest.raises(InvalidStateError) as ei:
        await _sign(uow_factory, packet, "CASE_MANAGER")
    assert ei.value.error_code == "ERR_SIGN_PACKET_NOT_OPEN"


async def test_complete_packet_cannot_expire(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid, roles=["CASE_MANAGER"])
    await _sign(uow_factory, packet, "CASE_MANAGER")

    with pytest.raises(InvalidStateError):
        async with uow_factory() as uow:
            await uow.signatures.expire(packet.id)


async def _backdate_expiry(sessionmaker, packet_id, minutes=5):
    from planledger.db.models import SignaturePacket

    async with sessionmaker() as session:
        row = await session.get(SignaturePacket, packet_id)
        row.expires_at = utcnow() - timedelta(minutes=minutes)
        await session.commit()


async def test_overdue_packet_rejects_signatures(version_id, uow_factory, sessionmaker):
    vid = await version_id()
    packet = await _open(uow_factory, vid, expires_at=utcnow() + timedelta(hours=1))
    await _backdate_expiry(sessionmaker, packet.id)

    with pytest.raises(InvalidStateError) as ei:
        await _sign(uow_factory, packet, "CASE_MANAGER")
    assert ei.value.error_code == "ERR_SIGN_PACKET_NOT_OPEN"
    assert ei.value.details["status"] == "EXPIRED"


async def test_reading_overdue_packet_expires_it(version_id, uow_factory, sessionmaker):
    vid = await version_id()
    packet = await _open(uow_factory, vid, expires_at=utcnow() + timedelta(hours=1))
    await _backdate_expiry(sessionmaker, packet.id)

    async with uow_factory() as uow:
        seen = await uow.signatures.get_packet(packet.id)
    assert seen.status == SignaturePacketStatus.EXPIRED

    async with uow_factory() as uow:
        stored = await uow.repos.packets.get_packet(packet.id)
    assert stored.status == SignaturePacketStatus.EXPIRED


async def test_sweep_expires_only_overdue_open_packets(version_id, uow_factory, sessionmaker):
    overdue = await _open(uow_factory, await version_id(), expires_at=utcnow() + timedelta(hours=1))
    future = await _open(uow_factory, await version_id(), expires_at=utcnow() + timedelta(days=3))
    no_expiry = await _open(uow_factory, await version_id())
    await _backdate_expiry(sessionmaker, overdue.id)

    sweeper = ExpirySweeper(uow_factory, 0)
    moved = await sweeper.sweep_once()
    assert moved == [overdue.id]

    # idempotent
    assert await sweeper.sweep_once() == []

    async with uow_factory() as uow:
        statuses = {
            p: (await uow.repos.packets.get_packet(p)).status
            for p in (overdue.id, future.id, no_expiry.id)
        }
    assert statuses == {
        overdue.id: SignaturePacketStatus.EXPIRED,
        future.id: SignaturePacketStatus.OPEN,
        no_expiry.id: SignaturePacketStatus.OPEN,
    }


async def test_sweep_with_explicit_clock(version_id, uow_factory):
    packet = await _open(uow_factory, await version_id(), expires_at=utcnow() + timedelta(days=2))

    sweeper = ExpirySweeper(uow_factory, 0)
    assert await sweeper.sweep_once(utcnow()) == []
    assert await sweeper.sweep_once(utcnow() + timedelta(days=3)) == [packet.id]


async def test_sweeper_disabled_with_zero_interval(uow_factory):
    sweeper = ExpirySweeper(uow_factory, 0)
    sweeper.start()
    assert sweeper.running is False
    await sweeper.stop()


async def test_sweeper_background_task_lifecycle(uow_factory):
    sweeper = ExpirySweeper(uow_factory, 3600)
    sweeper.start()
    assert sweeper.running is True
    await sweeper.stop()
    assert sweeper.running is False


async def test_get_packet_for_version(version_id, uow_factory):
    vid = await version_id()
    packet = await _open(uow_factory, vid)

    async with uow_factory() as uow:
        found = await uow.signatures.get_packet_for_version(vid)
    assert found.id == packet.id

    other = await version_id()
    with pytest.raises(NotFoundError) as ei:
        async with uow_factory() as uow:
            await uow.signatures.get_packet_for_version(other)
    assert ei.value.error_code == "ERR_SIGN_PACKET_NOT_FOUND"


async def test_naive_expiry_is_utc(version_id, uow_factory):
    vid = await version_id()
    naive = (datetime.now(timezone.utc) + timedelta(days=1)).replace(tzinfo=None, microsecond=0)

    packet = await _open(uow_factory, vid, expires_at=naive)

    assert packet.expires_at == naive.replace(tzinfo=timezone.utc)
