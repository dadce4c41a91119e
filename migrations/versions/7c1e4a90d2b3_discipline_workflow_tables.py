"""discipline_workflow_tables

Creates the disciplinary complaint workflow schema:
  - tenants                  — organisation boundary, holds the case counter
  - discipline_committees    — read-only committee directory (center / HQ)
  - complaints               — the case, versioned for optimistic locking
  - complaint_appeals        — post-decision appeals, never deleted
  - complaint_audit_entries  — gapless per-complaint ledger
  - notifications            — in-app notifications for case parties
  - scheduled_jobs           — job registry rows (rebuttal deadline sweep)

Tables created conditionally (IF NOT EXISTS semantics) so databases that
already received them via db.create_all() in development can be stamped.

Revision ID: 7c1e4a90d2b3
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '7c1e4a90d2b3'
down_revision = None
branch_labels = None
depends_on = None


def _tenant_fk():
    return sa.Column(
        "tenant_id", sa.Integer(),
        sa.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Tenant ────────────────────────────────────────────────────────────
    if "tenants" not in existing:
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("slug", sa.String(length=100), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=True),
            sa.Column(
                "settings", sa.JSON(), nullable=True,
                comment="Tenant options; holds complaint_counter for case numbering",
            ),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("slug"),
        )

    # ── Committee directory ───────────────────────────────────────────────
    if "discipline_committees" not in existing:
        op.create_table(
            "discipline_committees",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk(),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column(
                "center_id", sa.Integer(), nullable=True,
                comment="NULL → headquarters-level committee",
            ),
            sa.Column("committee_type", sa.String(length=30), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_discipline_committees_tenant_id",
                        "discipline_committees", ["tenant_id"])
        op.create_index("ix_discipline_committees_tenant_center",
                        "discipline_committees", ["tenant_id", "center_id"])

    # ── Complaint ─────────────────────────────────────────────────────────
    if "complaints" not in existing:
        op.create_table(
            "complaints",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk(),
            sa.Column(
                "complaint_number", sa.String(length=30), nullable=False,
                comment="CMP-0001/26: per-tenant counter + registration year",
            ),
            sa.Column("article", sa.String(length=20), nullable=False),
            sa.Column("offense_code", sa.String(length=50), nullable=False),
            sa.Column("severity_level", sa.Integer(), nullable=True,
                      comment="1–7, Article 30 only"),
            sa.Column("offense_occurrence", sa.Integer(), nullable=False),
            sa.Column("decision_authority", sa.String(length=30), nullable=False),
            sa.Column("accused_employee_id", sa.String(length=64), nullable=False),
            sa.Column("superior_employee_id", sa.String(length=64), nullable=True),
            sa.Column("complainant_type", sa.String(length=20), nullable=False),
            sa.Column("complainant_employee_id", sa.String(length=64), nullable=True),
            sa.Column("complainant_name", sa.String(length=200), nullable=True),
            sa.Column("summary", sa.Text(), nullable=False),
            sa.Column("summary_am", sa.Text(), nullable=True),
            sa.Column("incident_date", sa.Date(), nullable=False),
            sa.Column("incident_location", sa.String(length=300), nullable=True),
            sa.Column("registered_date", sa.Date(), nullable=False),
            sa.Column("registered_by", sa.String(length=150), nullable=False),
            sa.Column("status", sa.String(length=40), nullable=False),
            sa.Column("center_id", sa.Integer(), nullable=True,
                      comment="NULL → headquarters-level case"),
            sa.Column(
                "assigned_committee_id", sa.Integer(),
                sa.ForeignKey("discipline_committees.id", ondelete="SET NULL"),
                nullable=True,
            ),
            sa.Column("committee_assigned_date", sa.Date(), nullable=True),
            sa.Column("notification_date", sa.Date(), nullable=True),
            sa.Column("rebuttal_deadline", sa.Date(), nullable=True),
            sa.Column("has_rebuttal", sa.Boolean(), nullable=True),
            sa.Column("rebuttal_received_date", sa.Date(), nullable=True),
            sa.Column("rebuttal_content", sa.Text(), nullable=True),
            sa.Column("finding", sa.String(length=20), nullable=True),
            sa.Column("finding_date", sa.Date(), nullable=True),
            sa.Column("finding_reason", sa.Text(), nullable=True),
            sa.Column("finding_by", sa.String(length=150), nullable=True),
            sa.Column("hq_forwarded_date", sa.Date(), nullable=True),
            sa.Column("decision_date", sa.Date(), nullable=True),
            sa.Column("decision_by", sa.String(length=150), nullable=True),
            sa.Column("punishment_percentage", sa.Integer(), nullable=True),
            sa.Column("punishment_description", sa.Text(), nullable=True),
            sa.Column("closed_date", sa.Date(), nullable=True),
            sa.Column("closed_by", sa.String(length=150), nullable=True),
            sa.Column("closure_reason", sa.Text(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("tenant_id", "complaint_number",
                                name="uq_complaints_tenant_number"),
        )
        op.create_index("ix_complaints_tenant_id", "complaints", ["tenant_id"])
        op.create_index("ix_complaints_accused_employee_id", "complaints",
                        ["accused_employee_id"])
        op.create_index("ix_complaints_tenant_status", "complaints",
                        ["tenant_id", "status"])
        op.create_index("ix_complaints_status_deadline", "complaints",
                        ["status", "rebuttal_deadline"])

    # ── Appeals ───────────────────────────────────────────────────────────
    if "complaint_appeals" not in existing:
        op.create_table(
            "complaint_appeals",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk(),
            sa.Column(
                "complaint_id", sa.Integer(),
                sa.ForeignKey("complaints.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("reviewer_employee_id", sa.String(length=64), nullable=False),
            sa.Column("submitted_by", sa.String(length=150), nullable=False),
            sa.Column("appeal_date", sa.Date(), nullable=False),
            sa.Column("appeal_reason", sa.Text(), nullable=False),
            sa.Column("decision", sa.String(length=20), nullable=True),
            sa.Column("decision_date", sa.Date(), nullable=True),
            sa.Column("decision_reason", sa.Text(), nullable=True),
            sa.Column("decided_by", sa.String(length=150), nullable=True),
            sa.Column("new_punishment", sa.Text(), nullable=True,
                      comment="Only when decision is MODIFIED"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_complaint_appeals_tenant_id", "complaint_appeals", ["tenant_id"])
        op.create_index("ix_complaint_appeals_complaint_id", "complaint_appeals",
                        ["complaint_id"])
        op.create_index("ix_complaint_appeals_complaint_decision", "complaint_appeals",
                        ["complaint_id", "decision"])

    # ── Audit ledger ──────────────────────────────────────────────────────
    if "complaint_audit_entries" not in existing:
        op.create_table(
            "complaint_audit_entries",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk(),
            sa.Column(
                "complaint_id", sa.Integer(),
                sa.ForeignKey("complaints.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("sequence", sa.Integer(), nullable=False,
                      comment="1..n per complaint, no gaps"),
            sa.Column("actor_id", sa.String(length=150), nullable=False),
            sa.Column("action_type", sa.String(length=40), nullable=False),
            sa.Column("prior_status", sa.String(length=40), nullable=True),
            sa.Column("new_status", sa.String(length=40), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("complaint_id", "sequence",
                                name="uq_complaint_audit_sequence"),
        )
        op.create_index("ix_complaint_audit_entries_tenant_id",
                        "complaint_audit_entries", ["tenant_id"])
        op.create_index("ix_complaint_audit_entries_complaint_id",
                        "complaint_audit_entries", ["complaint_id"])
        op.create_index("idx_complaint_audit_actor", "complaint_audit_entries", ["actor_id"])
        op.create_index("idx_complaint_audit_ts", "complaint_audit_entries", ["timestamp"])

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            _tenant_fk(),
            sa.Column("recipient", sa.String(length=150), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_tenant_id", "notifications", ["tenant_id"])
        op.create_index("ix_notifications_recipient", "notifications", ["recipient"])

    # ── Job registry ──────────────────────────────────────────────────────
    if "scheduled_jobs" not in existing:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )


def downgrade():
    op.drop_table("scheduled_jobs")
    op.drop_table("notifications")
    op.drop_table("complaint_audit_entries")
    op.drop_table("complaint_appeals")
    op.drop_table("complaints")
    op.drop_table("discipline_committees")
    op.drop_table("tenants")
