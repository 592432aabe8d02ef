from .base import APIModel, RequestModel
from .decisions import DecisionCreate, DecisionOut, DecisionTypeOut, DecisionVoid
from .plan_versions import (
    DecisionInputIn,
    FinalizeOut,
    FinalizeRequest,
    PlanExportCreate,
    PlanExportOut,
    PlanVersionDetail,
    PlanVersionOut,
    PlanVersionSummary,
)
from .signatures import (
    DeclineRequest,
    PacketCreate,
    RecordCreate,
    SignatureRecordOut,
    SignatureRoleOut,
    SignatureRolesOut,
    SignaturePacketOut,
    SignerIn,
    SignOut,
    SignRequest,
)

__all__ = [
    "APIModel",
    "RequestModel",
    "DecisionCreate",
    "DecisionOut",
    "DecisionTypeOut",
    "DecisionVoid",
    "DecisionInputIn",
    "FinalizeOut",
    "FinalizeRequest",
    "PlanExportCreate",
    "PlanExportOut",
    "PlanVersionDetail",
    "PlanVersionOut",
    "PlanVersionSummary",
    "DeclineRequest",
    "PacketCreate",
    "RecordCreate",
    "SignatureRecordOut",
    "SignatureRoleOut",
    "SignatureRolesOut",
    "SignaturePacketOut",
    "SignerIn",
    "SignOut",
    "SignRequest",
]
