from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planledger.db.base import Base, GUID, JSONB, TimestampMixin, UTCDateTime, UUIDMixin

from .enums import SignaturePacketStatus

if TYPE_CHECKING:
    from .plan_versions import PlanVersion          # typing only
    from .signature_records import SignatureRecord  # typing only


class SignaturePacket(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "signature_packets"
    __table_args__ = {"comment": "Required signatures for one plan version."}

    # one packet per version
    plan_version_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("plan_versions.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    status: Mapped[SignaturePacketStatus] = mapped_column(
        sa.Enum(SignaturePacketStatus, name="signature_packet_status", native_enum=False),
        nullable=False,
        default=SignaturePacketStatus.OPEN,
        index=True,
    )
    # list of SignatureRole values, fixed at creation
    required_roles: Mapped[list[str]] = mapped_column(JSONB(), nullable=False, default=list)
    expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    created_by_user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    plan_version: Mapped["PlanVersion"] = relationship(
        "PlanVersion", back_populates="signature_packet", lazy="raise"
    )
    records: Mapped[List["SignatureRecord"]] = relationship(
        "SignatureRecord",
        back_populates="packet",
        lazy="selectin",
        order_by="SignatureRecord.created_at",
    )
