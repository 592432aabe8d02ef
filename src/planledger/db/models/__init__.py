# src/planledger/db/models/__init__.py
from .enums import (
    DECISION_TYPE_LABELS,
    SIGNATURE_ROLE_LABELS,
    DecisionStatus,
    DecisionType,
    ExportFormat,
    PlanVersionStatus,
    SignatureMethod,
    SignaturePacketStatus,
    SignatureRole,
    SignatureStatus,
)
from .plan_instances import PlanInstance, PlanMeeting
from .plan_versions import PlanVersion
from .plan_exports import PlanExport
from .decision_ledger_entries import DecisionLedgerEntry
from .signature_packets import SignaturePacket
from .signature_records import SignatureRecord

__all__ = [
    "DECISION_TYPE_LABELS",
    "SIGNATURE_ROLE_LABELS",
    "DecisionStatus",
    "DecisionType",
    "ExportFormat",
    "PlanVersionStatus",
    "SignatureMethod",
    "SignaturePacketStatus",
    "SignatureRole",
    "SignatureStatus",
    "PlanInstance",
    "PlanMeeting",
    "PlanVersion",
    "PlanExport",
    "DecisionLedgerEntry",
    "SignaturePacket",
    "SignatureRecord",
]
