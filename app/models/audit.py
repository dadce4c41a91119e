"""
Discipline Case Platform
Audit domain model.

Models:
    - ComplaintAuditEntry: immutable, append-only, per-complaint sequenced ledger.
"""

from datetime import UTC, datetime

from app.models import db
from app.models.base import TenantModel


class ComplaintAuditEntry(TenantModel):
    """
    One row per accepted complaint transition.

    ``sequence`` starts at 1 for the registration entry and has no gaps;
    the unique constraint on (complaint_id, sequence) rejects a second
    writer that computed the same next sequence.
    """

    __tablename__ = "complaint_audit_entries"
    __table_args__ = (
        db.UniqueConstraint("complaint_id", "sequence", name="uq_complaint_audit_sequence"),
        db.Index("idx_complaint_audit_actor", "actor_id"),
        db.Index("idx_complaint_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(
        db.Integer,
        db.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = db.Column(db.Integer, nullable=False)

    actor_id = db.Column(db.String(150), nullable=False)
    action_type = db.Column(
        db.String(40), nullable=False,
        comment="register | sendNotification | recordFinding | …",
    )
    prior_status = db.Column(db.String(40), nullable=True,
                             comment="NULL only for the registration entry")
    new_status = db.Column(db.String(40), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    payload = db.Column(db.JSON, default=dict)

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    complaint = db.relationship("Complaint", back_populates="audit_entries")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "complaint_id": self.complaint_id,
            "sequence": self.sequence,
            "actor_id": self.actor_id,
            "action_type": self.action_type,
            "prior_status": self.prior_status,
            "new_status": self.new_status,
            "notes": self.notes,
            "payload": self.payload or {},
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return (f"<ComplaintAuditEntry {self.complaint_id}#{self.sequence}: "
                f"{self.action_type} {self.prior_status}→{self.new_status}>")
