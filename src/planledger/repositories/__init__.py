"""
Repository pattern implementation for the plan ledger tables.

Repositories stage and query; the unit of work owns commit and rollback.
"""

from .base import BaseRepository
from .decisions import DecisionRepository
from .factory import RepositoryFactory
from .plan_exports import PlanExportRepository
from .plan_versions import PlanVersionRepository
from .plans import PlanInstanceRepository, PlanMeetingRepository
from .signatures import SignaturePacketRepository, SignatureRecordRepository

__all__ = [
    "BaseRepository",
    "DecisionRepository",
    "PlanExportRepository",
    "PlanVersionRepository",
    "PlanInstanceRepository",
    "PlanMeetingRepository",
    "SignaturePacketRepository",
    "SignatureRecordRepository",
    "RepositoryFactory",
]
