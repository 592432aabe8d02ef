"""create plan ledger tables

Revision ID: 0001_plan_ledger_tables
Revises:
Create Date: 2026-01-02 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from planledger.db.base import GUID, JSONB, UTCDateTime
from planledger.db.models.enums import (
    DecisionStatus,
    DecisionType,
    ExportFormat,
    PlanVersionStatus,
    SignatureMethod,
    SignaturePacketStatus,
    SignatureRole,
    SignatureStatus,
)

# revision identifiers, used by Alembic.
revision: str = "0001_plan_ledger_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(enum_cls, name: str) -> sa.Enum:
    return sa.Enum(enum_cls, name=name, native_enum=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ---- mirrors of the authoring stores (read-only for the ledger) ----
    op.create_table(
        "plan_instances",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("student_id", GUID()),
        sa.Column("plan_type_code", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default="DRAFT"),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("content_json", JSONB(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_plan_instances"),
        comment="Mutable in-progress plan records owned by the authoring store.",
    )
    op.create_index("ix_plan_instances_plan_type_code", "plan_instances", ["plan_type_code"])

    op.create_table(
        "plan_meetings",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "plan_instance_id",
            GUID(),
            sa.ForeignKey("plan_instances.id", ondelete="CASCADE", name="fk_plan_meetings_plan_instance_id_plan_instances"),
            nullable=False,
        ),
        sa.Column("meeting_type", sa.String(64)),
        sa.Column("scheduled_at", UTCDateTime()),
        sa.Column("held_at", UTCDateTime()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_plan_meetings"),
        comment="Team meetings for a plan, owned by the meeting store.",
    )
    op.create_index("ix_plan_meetings_plan_instance_id", "plan_meetings", ["plan_instance_id"])

    # ---- ledger-owned tables ----
    op.create_table(
        "plan_versions",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "plan_instance_id",
            GUID(),
            sa.ForeignKey("plan_instances.id", ondelete="RESTRICT", name="fk_plan_versions_plan_instance_id_plan_instances"),
            nullable=False,
        ),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("status", _enum(PlanVersionStatus, "plan_version_status"), nullable=False),
        sa.Column("snapshot_json", JSONB(), nullable=False),
        sa.Column("finalized_at", UTCDateTime(), nullable=False),
        sa.Column("finalized_by_user_id", sa.String(255), nullable=False),
        sa.Column("distributed_at", UTCDateTime()),
        sa.Column("distributed_by_user_id", sa.String(255)),
        sa.Column("version_notes", sa.Text()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_plan_versions"),
        sa.UniqueConstraint("plan_instance_id", "version_number", name="uq_plan_versions_plan_number"),
        comment="Immutable numbered plan snapshots.",
    )
    op.create_index("ix_plan_versions_plan_instance_id", "plan_versions", ["plan_instance_id"])
    op.create_index("ix_plan_versions_finalized_at", "plan_versions", ["finalized_at"])

    op.create_table(
        "plan_exports",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "plan_version_id",
            GUID(),
            sa.ForeignKey("plan_versions.id", ondelete="RESTRICT", name="fk_plan_exports_plan_version_id_plan_versions"),
            nullable=False,
        ),
        sa.Column("format", _enum(ExportFormat, "export_format"), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("file_name", sa.Text(), nullable=False),
        sa.Column("file_size_bytes", sa.Integer()),
        sa.Column("mime_type", sa.String(128), nullable=False),
        sa.Column("exported_at", UTCDateTime(), nullable=False),
        sa.Column("exported_by_user_id", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_plan_exports"),
        comment="Rendered artifacts (PDF/DOCX/HTML) of a plan version.",
    )
    op.create_index("ix_plan_exports_plan_version_id", "plan_exports", ["plan_version_id"])
    op.create_index("ix_plan_exports_exported_at", "plan_exports", ["exported_at"])

    op.create_table(
        "decision_ledger_entries",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "plan_instance_id",
            GUID(),
            sa.ForeignKey("plan_instances.id", ondelete="RESTRICT", name="fk_decision_ledger_entries_plan_instance_id_plan_instances"),
            nullable=False,
        ),
        sa.Column(
            "plan_version_id",
            GUID(),
            sa.ForeignKey("plan_versions.id", ondelete="RESTRICT", name="fk_decision_ledger_entries_plan_version_id_plan_versions"),
        ),
        sa.Column(
            "meeting_id",
            GUID(),
            sa.ForeignKey("plan_meetings.id", ondelete="RESTRICT", name="fk_decision_ledger_entries_meeting_id_plan_meetings"),
        ),
        sa.Column("decision_type", _enum(DecisionType, "decision_type"), nullable=False),
        sa.Column("section_key", sa.String(64)),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("options_considered", sa.Text()),
        sa.Column("participants", sa.Text()),
        sa.Column("decided_at", UTCDateTime(), nullable=False),
        sa.Column("decided_by_user_id", sa.String(255), nullable=False),
        sa.Column("status", _enum(DecisionStatus, "decision_status"), nullable=False),
        sa.Column("voided_at", UTCDateTime()),
        sa.Column("voided_by_user_id", sa.String(255)),
        sa.Column("void_reason", sa.Text()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_decision_ledger_entries"),
        comment="Append-only team decision ledger.",
    )
    for col in ("plan_instance_id", "plan_version_id", "meeting_id", "decision_type", "section_key", "decided_at"):
        op.create_index(f"ix_decision_ledger_entries_{col}", "decision_ledger_entries", [col])

    op.create_table(
        "signature_packets",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "plan_version_id",
            GUID(),
            sa.ForeignKey("plan_versions.id", ondelete="RESTRICT", name="fk_signature_packets_plan_version_id_plan_versions"),
            nullable=False,
        ),
        sa.Column("status", _enum(SignaturePacketStatus, "signature_packet_status"), nullable=False),
        sa.Column("required_roles", JSONB(), nullable=False),
        sa.Column("expires_at", UTCDateTime()),
        sa.Column("completed_at", UTCDateTime()),
        sa.Column("created_by_user_id", sa.String(255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_signature_packets"),
        sa.UniqueConstraint("plan_version_id", name="uq_signature_packets_plan_version_id"),
        comment="Required signatures for one plan version.",
    )
    op.create_index("ix_signature_packets_status", "signature_packets", ["status"])

    op.create_table(
        "signature_records",
        sa.Column("id", GUID(), nullable=False),
        sa.Column(
            "packet_id",
            GUID(),
            sa.ForeignKey("signature_packets.id", ondelete="RESTRICT", name="fk_signature_records_packet_id_signature_packets"),
            nullable=False,
        ),
        sa.Column("role", _enum(SignatureRole, "signature_role"), nullable=False),
        sa.Column("signer_user_id", sa.String(255)),
        sa.Column("signer_name", sa.Text(), nullable=False),
        sa.Column("signer_email", sa.String(320)),
        sa.Column("signer_title", sa.Text()),
        sa.Column("method", _enum(SignatureMethod, "signature_method")),
        sa.Column("status", _enum(SignatureStatus, "signature_status"), nullable=False),
        sa.Column("signed_at", UTCDateTime()),
        sa.Column("attestation_text", sa.Text()),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("declined_at", UTCDateTime()),
        sa.Column("decline_reason", sa.Text()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_signature_records"),
        comment="One signer's status within a signature packet.",
    )
    for col in ("packet_id", "role", "status"):
        op.create_index(f"ix_signature_records_{col}", "signature_records", [col])


def downgrade() -> None:
    op.drop_table("signature_records")
    op.drop_table("signature_packets")
    op.drop_table("decision_ledger_entries")
    op.drop_table("plan_exports")
    op.drop_table("plan_versions")
    op.drop_table("plan_meetings")
    op.drop_table("plan_instances")
