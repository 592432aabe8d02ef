"""
Readers for the plan and meeting mirror tables. Nothing here writes.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from planledger.db.models import PlanInstance, PlanMeeting

from .base import BaseRepository


class PlanInstanceRepository(BaseRepository[PlanInstance]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PlanInstance)


class PlanMeetingRepository(BaseRepository[PlanMeeting]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PlanMeeting)
