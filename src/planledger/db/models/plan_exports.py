from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planledger.db.base import Base, GUID, UTCDateTime, UUIDMixin, utcnow

from .enums import ExportFormat

if TYPE_CHECKING:
    from .plan_versions import PlanVersion  # typing only


class PlanExport(UUIDMixin, Base):
    __tablename__ = "plan_exports"
    __table_args__ = {"comment": "Rendered artifacts (PDF/DOCX/HTML) of a plan version."}

    plan_version_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("plan_versions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    format: Mapped[ExportFormat] = mapped_column(
        sa.Enum(ExportFormat, name="export_format", native_enum=False),
        nullable=False,
        default=ExportFormat.PDF,
    )
    storage_key: Mapped[str] = mapped_column(sa.Text, nullable=False)
    file_name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(sa.Integer)
    mime_type: Mapped[str] = mapped_column(sa.String(128), nullable=False, default="application/pdf")
    exported_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, index=True)
    exported_by_user_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    plan_version: Mapped["PlanVersion"] = relationship("PlanVersion", back_populates="exports", lazy="raise")
