"""
Plan version repository: numbering, supersession and distribution CAS.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from planledger.app_logger import get_logger
from planledger.db.models import PlanVersion, PlanVersionStatus, SignaturePacket

from .base import BaseRepository

logger = get_logger(__name__)

ACTIVE_STATUSES = (PlanVersionStatus.FINAL, PlanVersionStatus.DISTRIBUTED)


class PlanVersionRepository(BaseRepository[PlanVersion]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PlanVersion)

    async def lock_plan(self, plan_instance_id: UUID) -> bool:
        """
        Take a transaction-scoped lock on the plan's version sequence.

        PostgreSQL only (advisory lock, released at commit/rollback). Other
        dialects rely on the unique (plan, number) constraint.

        Returns:
            True if a database lock was taken
        """
        bind = self.session.bind
        if bind is None or bind.dialect.name != "postgresql":
            return False
        await self.session.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:key, 0))"),
            {"key": f"plan_versions:{plan_instance_id}"},
        )
        return True

    async def max_version_number(self, plan_instance_id: UUID) -> int | None:
        stmt = select(func.max(PlanVersion.version_number)).where(
            PlanVersion.plan_instance_id == plan_instance_id
        )
        result = await self.session.execute(stmt)
        return result.scalar()

    async def list_for_plan(self, plan_instance_id: UUID) -> list[PlanVersion]:
        stmt = (
            select(PlanVersion)
            .where(PlanVersion.plan_instance_id == plan_instance_id)
            .order_by(PlanVersion.version_number.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_detail(self, version_id: UUID) -> PlanVersion | None:
        """Version with its decisions, signature packet (+records) and exports."""
        stmt = (
            select(PlanVersion)
            .where(PlanVersion.id == version_id)
            .options(
                selectinload(PlanVersion.decisions),
                selectinload(PlanVersion.signature_packet).selectinload(SignaturePacket.records),
                selectinload(PlanVersion.exports),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def supersede_active(self, plan_instance_id: UUID) -> int:
        """
        Mark every FINAL/DISTRIBUTED version of the plan SUPERSEDED.

        Returns:
            Number of versions superseded
        """
        stmt = (
            update(PlanVersion)
            .where(
                PlanVersion.plan_instance_id == plan_instance_id,
                PlanVersion.status.in_(ACTIVE_STATUSES),
            )
            .values(status=PlanVersionStatus.SUPERSEDED)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.debug(f"Superseded {result.rowcount} version(s) of plan {plan_instance_id}")
        return result.rowcount

    async def mark_distributed_if_final(
        self, version_id: UUID, by_user_id: str, at: datetime
    ) -> bool:
        """Compare-and-set FINAL -> DISTRIBUTED. False if the row was not FINAL."""
        stmt = (
            update(PlanVersion)
            .where(PlanVersion.id == version_id, PlanVersion.status == PlanVersionStatus.FINAL)
            .values(
                status=PlanVersionStatus.DISTRIBUTED,
                distributed_at=at,
                distributed_by_user_id=by_user_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
