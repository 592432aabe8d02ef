from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, ClassVar, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from planledger.db.base import Base, GUID, JSONB, TimestampMixin, UTCDateTime, UUIDMixin


class PlanInstance(UUIDMixin, TimestampMixin, Base):
    """Read-only mirror of the authoring Plan Store's plan record."""

    __tablename__ = "plan_instances"

    NOTE: ClassVar[str] = (
        "owner=plan_authoring; "
        "description=Mutable in-progress plan records. The ledger reads these "
        "rows to build snapshots and never writes them."
    )

    __table_args__ = {
        "comment": "Mutable in-progress plan records owned by the authoring store.",
        "info": {"note": NOTE},
    }

    student_id: Mapped[Optional[uuid.UUID]] = mapped_column(GUID())
    plan_type_code: Mapped[str] = mapped_column(sa.String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="DRAFT")
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)

    # student, schema, fieldValues, goals, services, accommodations, ...
    content_json: Mapped[dict[str, Any]] = mapped_column(JSONB(), nullable=False, default=dict)


class PlanMeeting(UUIDMixin, TimestampMixin, Base):
    """Read-only mirror of the Meeting Store's meeting record."""

    __tablename__ = "plan_meetings"
    __table_args__ = {"comment": "Team meetings for a plan, owned by the meeting store."}

    plan_instance_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("plan_instances.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meeting_type: Mapped[Optional[str]] = mapped_column(sa.String(64))
    scheduled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    held_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
