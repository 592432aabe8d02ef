from .audit import AuditEvent, AuditTrail
from .decision_ledger import DecisionFilters, DecisionLedger
from .expiry import ExpirySweeper
from .exports import ExportCatalog, ExportDownload
from .locks import KeyedLockRegistry
from .plan_finalizer import DecisionInput, FinalizeResult, PlanFinalizer
from .plan_store import MeetingRef, MeetingStore, PlanSnapshot, PlanStore, SqlMeetingStore, SqlPlanStore
from .signature_workflow import (
    ELECTRONIC_ATTESTATION,
    SignerInput,
    SignResult,
    SignatureWorkflow,
    packet_satisfied,
)
from .unit_of_work import UnitOfWork, unit_of_work_factory
from .version_store import VersionStore

__all__ = [
    "AuditEvent",
    "AuditTrail",
    "DecisionFilters",
    "DecisionInput",
    "DecisionLedger",
    "ELECTRONIC_ATTESTATION",
    "ExpirySweeper",
    "ExportCatalog",
    "ExportDownload",
    "FinalizeResult",
    "KeyedLockRegistry",
    "MeetingRef",
    "MeetingStore",
    "PlanFinalizer",
    "PlanSnapshot",
    "PlanStore",
    "SignResult",
    "SignatureWorkflow",
    "SignerInput",
    "SqlMeetingStore",
    "SqlPlanStore",
    "UnitOfWork",
    "VersionStore",
    "packet_satisfied",
    "unit_of_work_factory",
]
