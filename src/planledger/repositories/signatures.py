"""
Signature packet and record repositories.

State changes are compare-and-set UPDATEs guarded on the current status so
two racing signers or an expiry sweep cannot both win.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from planledger.app_logger import get_logger
from planledger.db.models import (
    SignaturePacket,
    SignaturePacketStatus,
    SignatureRecord,
    SignatureStatus,
)

from .base import BaseRepository

logger = get_logger(__name__)


class SignaturePacketRepository(BaseRepository[SignaturePacket]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SignaturePacket)

    def _with_records(self):
        return (
            select(SignaturePacket)
            .options(selectinload(SignaturePacket.records))
            .execution_options(populate_existing=True)
        )

    async def get_packet(self, packet_id: UUID) -> SignaturePacket | None:
        """Packet with its records, always re-read from the database."""
        result = await self.session.execute(
            self._with_records().where(SignaturePacket.id == packet_id)
        )
        return result.scalar_one_or_none()

    async def lock_packet(self, packet_id: UUID) -> None:
        """
        Row-lock the packet (``SELECT ... FOR UPDATE``) until the transaction ends.

        Concurrent signers of one packet queue here, so each completion check
        sees every earlier committed signature. Dialects without row locks
        (SQLite) already serialize writers.
        """
        await self.session.execute(
            select(SignaturePacket.id).where(SignaturePacket.id == packet_id).with_for_update()
        )

    async def get_for_version(self, plan_version_id: UUID) -> SignaturePacket | None:
        result = await self.session.execute(
            self._with_records().where(SignaturePacket.plan_version_id == plan_version_id)
        )
        return result.scalar_one_or_none()

    async def list_overdue_open_ids(self, now: datetime) -> list[UUID]:
        stmt = select(SignaturePacket.id).where(
            SignaturePacket.status == SignaturePacketStatus.OPEN,
            SignaturePacket.expires_at.is_not(None),
            SignaturePacket.expires_at <= now,
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def transition(
        self,
        packet_id: UUID,
        expected: SignaturePacketStatus,
        new_status: SignaturePacketStatus,
        **values: Any,
    ) -> bool:
        """
        Compare-and-set the packet status.

        Returns:
            True if this call moved the packet from ``expected``
        """
        stmt = (
            update(SignaturePacket)
            .where(SignaturePacket.id == packet_id, SignaturePacket.status == expected)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        moved = result.rowcount == 1
        if moved:
            logger.debug(f"Packet {packet_id}: {expected.value} -> {new_status.value}")
        return moved


class SignatureRecordRepository(BaseRepository[SignatureRecord]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, SignatureRecord)

    async def _update_if_pending(self, record_id: UUID, values: dict[str, Any]) -> bool:
        stmt = (
            update(SignatureRecord)
            .where(
                SignatureRecord.id == record_id,
                SignatureRecord.status == SignatureStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def sign_if_pending(
        self,
        record_id: UUID,
        *,
        signer_name: str,
        method,
        signed_at: datetime,
        signer_user_id: str | None = None,
        signer_email: str | None = None,
        signer_title: str | None = None,
        attestation_text: str | None = None,
        ip_address: str | None = None,
    ) -> bool:
        values: dict[str, Any] = {
            "status": SignatureStatus.SIGNED,
            "signer_name": signer_name,
            "method": method,
            "signed_at": signed_at,
            "attestation_text": attestation_text,
            "ip_address": ip_address,
        }
        # only overwrite identity fields the signer actually supplied
        if signer_user_id is not None:
            values["signer_user_id"] = signer_user_id
        if signer_email is not None:
            values["signer_email"] = signer_email
        if signer_title is not None:
            values["signer_title"] = signer_title
        return await self._update_if_pending(record_id, values)

    async def decline_if_pending(self, record_id: UUID, reason: str | None, at: datetime) -> bool:
        return await self._update_if_pending(
            record_id,
            {"status": SignatureStatus.DECLINED, "declined_at": at, "decline_reason": reason},
        )
