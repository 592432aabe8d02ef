from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planledger.db.base import Base, GUID, TimestampMixin, UTCDateTime, UUIDMixin

from .enums import SignatureMethod, SignatureRole, SignatureStatus

if TYPE_CHECKING:
    from .signature_packets import SignaturePacket  # typing only


class SignatureRecord(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "signature_records"
    __table_args__ = {"comment": "One signer's status within a signature packet."}

    packet_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("signature_packets.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    role: Mapped[SignatureRole] = mapped_column(
        sa.Enum(SignatureRole, name="signature_role", native_enum=False), nullable=False, index=True
    )
    signer_user_id: Mapped[Optional[str]] = mapped_column(sa.String(255))
    # blank until the signer is known; filled when signing
    signer_name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    signer_email: Mapped[Optional[str]] = mapped_column(sa.String(320))
    signer_title: Mapped[Optional[str]] = mapped_column(sa.Text)

    method: Mapped[Optional[SignatureMethod]] = mapped_column(
        sa.Enum(SignatureMethod, name="signature_method", native_enum=False)
    )
    status: Mapped[SignatureStatus] = mapped_column(
        sa.Enum(SignatureStatus, name="signature_status", native_enum=False),
        nullable=False,
        default=SignatureStatus.PENDING,
        index=True,
    )
    signed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    attestation_text: Mapped[Optional[str]] = mapped_column(sa.Text)
    ip_address: Mapped[Optional[str]] = mapped_column(sa.String(64))
    declined_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    decline_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    packet: Mapped["SignaturePacket"] = relationship("SignaturePacket", back_populates="records", lazy="raise")
