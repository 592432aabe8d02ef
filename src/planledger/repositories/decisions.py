"""
Decision ledger repository. Entries are append-only: there is no delete,
and the only status change is ACTIVE -> VOID.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from planledger.app_logger import get_logger
from planledger.db.models import DecisionLedgerEntry, DecisionStatus, DecisionType

from .base import BaseRepository

logger = get_logger(__name__)


class DecisionRepository(BaseRepository[DecisionLedgerEntry]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, DecisionLedgerEntry)

    async def query(
        self,
        plan_instance_id: UUID,
        decision_type: DecisionType | None = None,
        status: DecisionStatus | None = None,
        section_key: str | None = None,
    ) -> list[DecisionLedgerEntry]:
        """
        Entries for a plan, newest decision first.

        Args:
            plan_instance_id: Plan UUID
            decision_type: Only this decision type
            status: Only ACTIVE or only VOID entries
            section_key: Only entries tagged with this plan section
        """
        stmt = select(DecisionLedgerEntry).where(
            DecisionLedgerEntry.plan_instance_id == plan_instance_id
        )
        if decision_type is not None:
            stmt = stmt.where(DecisionLedgerEntry.decision_type == decision_type)
        if status is not None:
            stmt = stmt.where(DecisionLedgerEntry.status == status)
        if section_key is not None:
            stmt = stmt.where(DecisionLedgerEntry.section_key == section_key)
        stmt = stmt.order_by(
            DecisionLedgerEntry.decided_at.desc(), DecisionLedgerEntry.created_at.desc()
        ).execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        entries = list(result.scalars().all())
        logger.debug(f"Retrieved {len(entries)} decisions for plan {plan_instance_id}")
        return entries

    async def void_if_active(
        self, entry_id: UUID, reason: str, by_user_id: str, at: datetime
    ) -> bool:
        """Compare-and-set ACTIVE -> VOID. False if the entry was not ACTIVE."""
        stmt = (
            update(DecisionLedgerEntry)
            .where(
                DecisionLedgerEntry.id == entry_id,
                DecisionLedgerEntry.status == DecisionStatus.ACTIVE,
            )
            .values(
                status=DecisionStatus.VOID,
                voided_at=at,
                voided_by_user_id=by_user_id,
                void_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
