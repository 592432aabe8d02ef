"""
Repository factory for creating repository instances.

All repositories built by one factory share its session, so whatever they
stage lands in the same transaction.
"""

from typing import Dict, Union

from sqlalchemy.ext.asyncio import AsyncSession

from planledger.app_logger import get_logger

from .decisions import DecisionRepository
from .plan_exports import PlanExportRepository
from .plan_versions import PlanVersionRepository
from .plans import PlanInstanceRepository, PlanMeetingRepository
from .signatures import SignaturePacketRepository, SignatureRecordRepository

logger = get_logger(__name__)

# Repository type union for type-safe caching
RepositoryType = Union[
    PlanInstanceRepository,
    PlanMeetingRepository,
    PlanVersionRepository,
    PlanExportRepository,
    DecisionRepository,
    SignaturePacketRepository,
    SignatureRecordRepository,
]


class RepositoryFactory:
    """
    Factory for creating repository instances with a shared database session.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._repositories: Dict[str, RepositoryType] = {}
        logger.debug("Repository factory initialized with new session")

    def _cached(self, key: str, cls: type) -> RepositoryType:
        if key not in self._repositories:
            self._repositories[key] = cls(self.session)
        return self._repositories[key]

    @property
    def plans(self) -> PlanInstanceRepository:
        """Get plan mirror repository instance (cached)."""
        repo = self._cached("plans", PlanInstanceRepository)
        assert isinstance(repo, PlanInstanceRepository)
        return repo

    @property
    def meetings(self) -> PlanMeetingRepository:
        """Get meeting mirror repository instance (cached)."""
        repo = self._cached("meetings", PlanMeetingRepository)
        assert isinstance(repo, PlanMeetingRepository)
        return repo

    @property
    def versions(self) -> PlanVersionRepository:
        """Get plan version repository instance (cached)."""
        repo = self._cached("versions", PlanVersionRepository)
        assert isinstance(repo, PlanVersionRepository)
        return repo

    @property
    def exports(self) -> PlanExportRepository:
        """Get plan export repository instance (cached)."""
        repo = self._cached("exports", PlanExportRepository)
        assert isinstance(repo, PlanExportRepository)
        return repo

    @property
    def decisions(self) -> DecisionRepository:
        """Get decision ledger repository instance (cached)."""
        repo = self._cached("decisions", DecisionRepository)
        assert isinstance(repo, DecisionRepository)
        return repo

    @property
    def packets(self) -> SignaturePacketRepository:
        """Get signature packet repository instance (cached)."""
        repo = self._cached("packets", SignaturePacketRepository)
        assert isinstance(repo, SignaturePacketRepository)
        return repo

    @property
    def records(self) -> SignatureRecordRepository:
        """Get signature record repository instance (cached)."""
        repo = self._cached("records", SignatureRecordRepository)
        assert isinstance(repo, SignatureRecordRepository)
        return repo

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self.session.commit()
        logger.debug("Repository factory session committed")

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self.session.rollback()
        logger.debug("Repository factory session rolled back")

    async def close(self) -> None:
        """Close the session and cleanup resources."""
        await self.session.close()
        self._repositories.clear()
        logger.debug("Repository factory session closed")
