from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, ClassVar, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planledger.db.base import Base, GUID, TimestampMixin, UTCDateTime, UUIDMixin

from .enums import DecisionStatus, DecisionType

if TYPE_CHECKING:
    from .plan_versions import PlanVersion  # typing only


class DecisionLedgerEntry(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "decision_ledger_entries"

    NOTE: ClassVar[str] = (
        "owner=plan_ledger; "
        "description=Append-only record of team decisions. Rows are voided, never deleted."
    )

    __table_args__ = (
        sa.Index("ix_decision_ledger_entries_decided_at", "decided_at"),
        {
            "comment": "Append-only team decision ledger.",
            "info": {"note": NOTE},
        },
    )

    plan_instance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("plan_instances.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    plan_version_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("plan_versions.id", ondelete="RESTRICT"), index=True
    )
    meeting_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), ForeignKey("plan_meetings.id", ondelete="RESTRICT"), index=True
    )

    decision_type: Mapped[DecisionType] = mapped_column(
        sa.Enum(DecisionType, name="decision_type", native_enum=False), nullable=False, index=True
    )
    # ex: "LRE", "SERVICES", "ACCOMMODATIONS", "ESY", "GOALS"
    section_key: Mapped[Optional[str]] = mapped_column(sa.String(64), index=True)
    summary: Mapped[str] = mapped_column(sa.Text, nullable=False)
    rationale: Mapped[str] = mapped_column(sa.Text, nullable=False)
    options_considered: Mapped[Optional[str]] = mapped_column(sa.Text)
    participants: Mapped[Optional[str]] = mapped_column(sa.Text)

    decided_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    decided_by_user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    status: Mapped[DecisionStatus] = mapped_column(
        sa.Enum(DecisionStatus, name="decision_status", native_enum=False),
        nullable=False,
        default=DecisionStatus.ACTIVE,
    )
    voided_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    voided_by_user_id: Mapped[Optional[str]] = mapped_column(sa.String(255))
    void_reason: Mapped[Optional[str]] = mapped_column(sa.Text)

    plan_version: Mapped[Optional["PlanVersion"]] = relationship(
        "PlanVersion", back_populates="decisions", lazy="raise"
    )
