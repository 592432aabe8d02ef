# src/planledger/schemas/decisions.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import Field

from planledger.db.models import DecisionStatus, DecisionType
from planledger.schemas.base import APIModel, RequestModel


# -----------------------------
# Create (POST)
# -----------------------------
class DecisionCreate(RequestModel):
    decision_type: DecisionType
    summary: str = Field(..., min_length=1)
    rationale: str = Field(..., min_length=1)
    options_considered: Optional[str] = None
    participants: Optional[str] = None
    section_key: Optional[str] = Field(None, max_length=64)
    meeting_id: Optional[uuid.UUID] = None
    plan_version_id: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = Field(None, description="Defaults to now")


class DecisionVoid(RequestModel):
    # blank reasons are rejected by the ledger with a specific code
    void_reason: str = ""


# -----------------------------
# Read (GET)
# -----------------------------
class DecisionOut(APIModel):
    id: uuid.UUID
    plan_instance_id: uuid.UUID
    plan_version_id: Optional[uuid.UUID] = None
    meeting_id: Optional[uuid.UUID] = None
    decision_type: DecisionType
    section_key: Optional[str] = None
    summary: str
    rationale: str
    options_considered: Optional[str] = None
    participants: Optional[str] = None
    decided_at: datetime
    decided_by_user_id: str
    status: DecisionStatus
    voided_at: Optional[datetime] = None
    voided_by_user_id: Optional[str] = None
    void_reason: Optional[str] = None
    created_at: datetime


class DecisionTypeOut(APIModel):
    value: DecisionType
    label: str
    description: str
