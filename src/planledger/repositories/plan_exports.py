from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planledger.db.models import PlanExport

from .base import BaseRepository


class PlanExportRepository(BaseRepository[PlanExport]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PlanExport)

    async def list_for_version(self, plan_version_id: UUID) -> list[PlanExport]:
        stmt = (
            select(PlanExport)
            .where(PlanExport.plan_version_id == plan_version_id)
            .order_by(PlanExport.exported_at.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
