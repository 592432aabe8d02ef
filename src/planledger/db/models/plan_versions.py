from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar, List, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planledger.db.base import Base, GUID, JSONB, TimestampMixin, UTCDateTime, UUIDMixin, utcnow
from planledger.exceptions import InvalidStateError

from .enums import PlanVersionStatus

if TYPE_CHECKING:
    from .decision_ledger_entries import DecisionLedgerEntry  # typing only
    from .plan_exports import PlanExport                      # typing only
    from .signature_packets import SignaturePacket            # typing only


class PlanVersion(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "plan_versions"

    NOTE: ClassVar[str] = (
        "owner=plan_ledger; "
        "description=Immutable, numbered snapshots of a plan taken at finalization. "
        "Only status and distribution columns move after insert."
    )

    __table_args__ = (
        UniqueConstraint("plan_instance_id", "version_number", name="uq_plan_versions_plan_number"),
        sa.Index("ix_plan_versions_finalized_at", "finalized_at"),
        {
            "comment": "Immutable numbered plan snapshots.",
            "info": {"note": NOTE},
        },
    )

    IMMUTABLE_COLUMNS: ClassVar[tuple[str, ...]] = (
        "plan_instance_id",
        "version_number",
        "snapshot_json",
        "finalized_at",
        "finalized_by_user_id",
    )

    plan_instance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("plan_instances.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    status: Mapped[PlanVersionStatus] = mapped_column(
        sa.Enum(PlanVersionStatus, name="plan_version_status", native_enum=False),
        nullable=False,
        default=PlanVersionStatus.FINAL,
    )
    snapshot_json: Mapped[dict[str, Any]] = mapped_column(JSONB(), nullable=False)

    finalized_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    finalized_by_user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    distributed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    distributed_by_user_id: Mapped[Optional[str]] = mapped_column(sa.String(255))
    version_notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    # relationships are only ever loaded explicitly (selectinload) in async code
    decisions: Mapped[List["DecisionLedgerEntry"]] = relationship(
        "DecisionLedgerEntry", back_populates="plan_version", lazy="raise"
    )
    signature_packet: Mapped[Optional["SignaturePacket"]] = relationship(
        "SignaturePacket", back_populates="plan_version", uselist=False, lazy="raise"
    )
    exports: Mapped[List["PlanExport"]] = relationship(
        "PlanExport", back_populates="plan_version", lazy="raise", order_by="PlanExport.exported_at"
    )


@event.listens_for(PlanVersion, "before_update")
def _guard_immutable_columns(mapper, connection, target: PlanVersion) -> None:
    state = sa.inspect(target)
    changed = [name for name in PlanVersion.IMMUTABLE_COLUMNS if state.attrs[name].history.has_changes()]
    if changed:
        raise InvalidStateError(
            "Plan versions are immutable once finalized",
            "ERR_VERSION_IMMUTABLE",
            {"versionId": str(target.id), "columns": changed},
        )
