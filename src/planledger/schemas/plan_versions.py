# src/planledger/schemas/plan_versions.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from planledger.db.models import DecisionType, ExportFormat, PlanVersionStatus, SignatureRole
from planledger.schemas.base import APIModel, RequestModel
from planledger.schemas.decisions import DecisionOut
from planledger.schemas.signatures import SignaturePacketOut, SignerIn


# -----------------------------
# Finalize (POST)
# -----------------------------
class DecisionInputIn(RequestModel):
    decision_type: DecisionType
    summary: str = ""
    rationale: str = ""
    options_considered: Optional[str] = None
    participants: Optional[str] = None
    section_key: Optional[str] = Field(None, max_length=64)
    meeting_id: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None


class FinalizeRequest(RequestModel):
    version_notes: Optional[str] = None
    decisions: List[DecisionInputIn] = Field(default_factory=list)
    create_signature_packet: bool = True
    required_signature_roles: Optional[List[SignatureRole]] = None
    signature_expires_at: Optional[datetime] = None
    signers: Optional[List[SignerIn]] = None


# -----------------------------
# Read (GET)
# -----------------------------
class PlanVersionSummary(APIModel):
    id: uuid.UUID
    plan_instance_id: uuid.UUID
    version_number: int
    status: PlanVersionStatus
    finalized_at: datetime
    finalized_by_user_id: str
    distributed_at: Optional[datetime] = None
    distributed_by_user_id: Optional[str] = None
    version_notes: Optional[str] = None


class PlanVersionOut(PlanVersionSummary):
    snapshot_json: Dict[str, Any]


class PlanExportOut(APIModel):
    id: uuid.UUID
    plan_version_id: uuid.UUID
    format: ExportFormat
    storage_key: str
    file_name: str
    file_size_bytes: Optional[int] = None
    mime_type: str
    exported_at: datetime
    exported_by_user_id: str


class PlanExportCreate(RequestModel):
    format: ExportFormat = ExportFormat.PDF
    storage_key: str
    file_name: str
    file_size_bytes: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = None


class PlanVersionDetail(PlanVersionOut):
    decisions: List[DecisionOut] = Field(default_factory=list)
    signature_packet: Optional[SignaturePacketOut] = None
    exports: List[PlanExportOut] = Field(default_factory=list)


class FinalizeOut(APIModel):
    version: PlanVersionOut
    decisions: List[DecisionOut]
    signature_packet: Optional[SignaturePacketOut] = None
