# src/planledger/services/unit_of_work.py
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from planledger.app_logger import get_logger
from planledger.core.config import Settings, settings
from planledger.repositories import RepositoryFactory

from .audit import AuditTrail
from .decision_ledger import DecisionLedger
from .exports import ExportCatalog
from .plan_store import MeetingStore, PlanStore, SqlMeetingStore, SqlPlanStore
from .signature_workflow import SignatureWorkflow
from .version_store import VersionStore

logger = get_logger(__name__)


class UnitOfWork:
    """
    One transaction and the services bound to it.

        async with UnitOfWork(sessionmaker) as uow:
            await uow.decisions.void(...)

    Commits on clean exit, rolls back on any exception. Services only flush;
    nothing is visible to other sessions until the block exits cleanly.
    Audit events are written after the commit succeeds.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cfg: Settings = settings,
        *,
        plan_store_factory: Optional[Callable[[RepositoryFactory], PlanStore]] = None,
        meeting_store_factory: Optional[Callable[[RepositoryFactory], MeetingStore]] = None,
    ) -> None:
        self._session_factory = session_factory
        self.cfg = cfg
        self._plan_store_factory = plan_store_factory or SqlPlanStore
        self._meeting_store_factory = meeting_store_factory or SqlMeetingStore
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.repos = RepositoryFactory(self.session)
        self.audit = AuditTrail()
        self.plans = self._plan_store_factory(self.repos)
        self.meetings = self._meeting_store_factory(self.repos)
        self.versions = VersionStore(self.repos, self.cfg, self.audit)
        self.decisions = DecisionLedger(self.repos, self.cfg, self.plans, self.meetings, self.audit)
        self.signatures = SignatureWorkflow(self.repos, self.cfg, self.audit)
        self.exports = ExportCatalog(self.repos, self.cfg, self.audit)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        assert self.session is not None
        try:
            if exc_type is None:
                await self.repos.commit()
                self.audit.flush()
            else:
                await self.repos.rollback()
                self.audit.discard()
                logger.debug(f"Unit of work rolled back: {exc_type.__name__}")
        except Exception:
            await self.repos.rollback()
            self.audit.discard()
            raise
        finally:
            await self.repos.close()
            self.session = None


def unit_of_work_factory(
    session_factory: async_sessionmaker[AsyncSession], cfg: Settings = settings
) -> Callable[[], UnitOfWork]:
    def _make() -> UnitOfWork:
        return UnitOfWork(session_factory, cfg)

    return _make
