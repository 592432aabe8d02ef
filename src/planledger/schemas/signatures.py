# src/planledger/schemas/signatures.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from planledger.db.models import (
    SignatureMethod,
    SignaturePacketStatus,
    SignatureRole,
    SignatureStatus,
)
from planledger.schemas.base import APIModel, RequestModel


class SignerIn(RequestModel):
    role: SignatureRole
    signer_name: str = ""
    signer_email: Optional[str] = Field(None, max_length=320)
    signer_title: Optional[str] = None
    signer_user_id: Optional[str] = Field(None, max_length=255)


class PacketCreate(RequestModel):
    required_roles: Optional[List[SignatureRole]] = None
    expires_at: Optional[datetime] = None
    signers: Optional[List[SignerIn]] = None


class SignRequest(RequestModel):
    signature_record_id: uuid.UUID
    method: SignatureMethod
    signer_name: str = ""
    attestation: bool = False
    signer_email: Optional[str] = Field(None, max_length=320)
    signer_title: Optional[str] = None


class DeclineRequest(RequestModel):
    signature_record_id: uuid.UUID
    decline_reason: str = ""


class RecordCreate(RequestModel):
    role: SignatureRole
    signer_name: str = ""
    signer_email: Optional[str] = Field(None, max_length=320)
    signer_title: Optional[str] = None
    signer_user_id: Optional[str] = Field(None, max_length=255)


class SignatureRecordOut(APIModel):
    id: uuid.UUID
    packet_id: uuid.UUID
    role: SignatureRole
    signer_user_id: Optional[str] = None
    signer_name: str
    signer_email: Optional[str] = None
    signer_title: Optional[str] = None
    method: Optional[SignatureMethod] = None
    status: SignatureStatus
    signed_at: Optional[datetime] = None
    attestation_text: Optional[str] = None
    ip_address: Optional[str] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None


class SignaturePacketOut(APIModel):
    id: uuid.UUID
    plan_version_id: uuid.UUID
    status: SignaturePacketStatus
    required_roles: List[SignatureRole]
    expires_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_by_user_id: str
    created_at: datetime
    records: List[SignatureRecordOut] = Field(default_factory=list)


class SignOut(APIModel):
    signature: SignatureRecordOut
    packet: SignaturePacketOut
    packet_complete: bool


class SignatureRoleOut(APIModel):
    value: SignatureRole
    label: str


class SignatureRolesOut(APIModel):
    roles: List[SignatureRoleOut]
    electronic_attestation: str
