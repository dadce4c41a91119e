"""
Discipline Case Platform
Discipline domain models.

Models:
    - Committee: read-only directory of discipline committees (center or HQ level)
    - Complaint: the disciplinary case, versioned for optimistic locking
    - ComplaintAppeal: post-decision appeal, never deleted

Status values and the transition rules between them live in
``app.services.complaint_state_machine``; this module only stores them.
"""

from datetime import datetime, timezone
from enum import Enum

from app.models import db
from app.models.base import TenantModel


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class ComplaintStatus(str, Enum):
    UNDER_HR_REVIEW = "UNDER_HR_REVIEW"
    WAITING_FOR_REBUTTAL = "WAITING_FOR_REBUTTAL"
    UNDER_HR_ANALYSIS = "UNDER_HR_ANALYSIS"
    AWAITING_SUPERIOR_DECISION = "AWAITING_SUPERIOR_DECISION"
    WITH_DISCIPLINE_COMMITTEE = "WITH_DISCIPLINE_COMMITTEE"
    COMMITTEE_WAITING_REBUTTAL = "COMMITTEE_WAITING_REBUTTAL"
    COMMITTEE_ANALYSIS = "COMMITTEE_ANALYSIS"
    INVESTIGATION_COMPLETE = "INVESTIGATION_COMPLETE"
    AWAITING_HQ_DECISION = "AWAITING_HQ_DECISION"
    DECIDED = "DECIDED"
    DECIDED_BY_HQ = "DECIDED_BY_HQ"
    ON_APPEAL = "ON_APPEAL"
    APPEAL_DECIDED = "APPEAL_DECIDED"
    CLOSED_NO_LIABILITY = "CLOSED_NO_LIABILITY"
    CLOSED_FINAL = "CLOSED_FINAL"


class ComplaintArticle(str, Enum):
    """Regulatory track: Article 30 (minor) or Article 31 (serious)."""
    ARTICLE_30 = "ARTICLE_30"
    ARTICLE_31 = "ARTICLE_31"


class DecisionAuthority(str, Enum):
    DIRECT_SUPERIOR = "DIRECT_SUPERIOR"
    DISCIPLINE_COMMITTEE = "DISCIPLINE_COMMITTEE"


class ComplainantType(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    EXTERNAL = "EXTERNAL"
    ANONYMOUS = "ANONYMOUS"


class Finding(str, Enum):
    LIABLE = "LIABLE"
    NOT_LIABLE = "NOT_LIABLE"


class AppealDecision(str, Enum):
    UPHELD = "UPHELD"
    MODIFIED = "MODIFIED"
    OVERTURNED = "OVERTURNED"


class CommitteeLevel(str, Enum):
    CENTER = "CENTER"
    HQ = "HQ"


# State families used by guards, the action catalog and the deadline sweep.
DECIDED_STATES = frozenset({
    ComplaintStatus.DECIDED,
    ComplaintStatus.DECIDED_BY_HQ,
    ComplaintStatus.APPEAL_DECIDED,
})
REBUTTAL_WAITING_STATES = frozenset({
    ComplaintStatus.WAITING_FOR_REBUTTAL,
    ComplaintStatus.COMMITTEE_WAITING_REBUTTAL,
})
CLOSED_STATES = frozenset({
    ComplaintStatus.CLOSED_NO_LIABILITY,
    ComplaintStatus.CLOSED_FINAL,
})


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# Committee directory
# ═════════════════════════════════════════════════════════════════════════════

class Committee(TenantModel):
    """
    Discipline committee reference.

    ``center_id`` NULL means the committee sits at headquarters.
    Membership and maintenance are handled elsewhere; the workflow
    only reads this table.
    """

    __tablename__ = "discipline_committees"
    __table_args__ = (
        db.Index("ix_discipline_committees_tenant_center", "tenant_id", "center_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    center_id = db.Column(db.Integer, nullable=True,
                          comment="NULL → headquarters-level committee")
    committee_type = db.Column(db.String(30), nullable=False, default="DISCIPLINE")
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    @property
    def level(self) -> CommitteeLevel:
        return CommitteeLevel.HQ if self.center_id is None else CommitteeLevel.CENTER

    @property
    def is_active(self) -> bool:
        return self.status == "ACTIVE"

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "center_id": self.center_id,
            "committee_type": self.committee_type,
            "status": self.status,
            "level": self.level.value,
        }

    def __repr__(self):
        return f"<Committee {self.id}: {self.name} [{self.level.value}]>"


# ═════════════════════════════════════════════════════════════════════════════
# Complaint (case)
# ═════════════════════════════════════════════════════════════════════════════

class Complaint(TenantModel):
    """
    Disciplinary complaint against one employee.

    ``status`` is written only by the complaint state machine; the
    ``version`` column makes a lost update raise StaleDataError at flush.
    """

    __tablename__ = "complaints"
    __table_args__ = (
        db.UniqueConstraint("tenant_id", "complaint_number", name="uq_complaints_tenant_number"),
        db.Index("ix_complaints_tenant_status", "tenant_id", "status"),
        db.Index("ix_complaints_status_deadline", "status", "rebuttal_deadline"),
    )

    id = db.Column(db.Integer, primary_key=True)
    complaint_number = db.Column(db.String(30), nullable=False,
                                 comment="CMP-0001/26: per-tenant counter + registration year")

    # Classification
    article = db.Column(db.String(20), nullable=False)
    offense_code = db.Column(db.String(50), nullable=False)
    severity_level = db.Column(db.Integer, nullable=True, comment="1–7, Article 30 only")
    offense_occurrence = db.Column(db.Integer, nullable=False, default=1)
    decision_authority = db.Column(db.String(30), nullable=False)

    # Parties
    accused_employee_id = db.Column(db.String(64), nullable=False, index=True)
    superior_employee_id = db.Column(db.String(64), nullable=True)
    complainant_type = db.Column(db.String(20), nullable=False)
    complainant_employee_id = db.Column(db.String(64), nullable=True)
    complainant_name = db.Column(db.String(200), nullable=True)

    # Narrative
    summary = db.Column(db.Text, nullable=False)
    summary_am = db.Column(db.Text, nullable=True)
    incident_date = db.Column(db.Date, nullable=False)
    incident_location = db.Column(db.String(300), nullable=True)
    registered_date = db.Column(db.Date, nullable=False)
    registered_by = db.Column(db.String(150), nullable=False)

    # Process
    status = db.Column(db.String(40), nullable=False)
    center_id = db.Column(db.Integer, nullable=True, comment="NULL → headquarters-level case")
    assigned_committee_id = db.Column(
        db.Integer, db.ForeignKey("discipline_committees.id", ondelete="SET NULL"),
        nullable=True,
    )
    committee_assigned_date = db.Column(db.Date, nullable=True)

    notification_date = db.Column(db.Date, nullable=True)
    rebuttal_deadline = db.Column(db.Date, nullable=True)
    has_rebuttal = db.Column(db.Boolean, nullable=True)
    rebuttal_received_date = db.Column(db.Date, nullable=True)
    rebuttal_content = db.Column(db.Text, nullable=True)

    finding = db.Column(db.String(20), nullable=True)
    finding_date = db.Column(db.Date, nullable=True)
    finding_reason = db.Column(db.Text, nullable=True)
    finding_by = db.Column(db.String(150), nullable=True)

    hq_forwarded_date = db.Column(db.Date, nullable=True)

    decision_date = db.Column(db.Date, nullable=True)
    decision_by = db.Column(db.String(150), nullable=True)
    punishment_percentage = db.Column(db.Integer, nullable=True)
    punishment_description = db.Column(db.Text, nullable=True)

    closed_date = db.Column(db.Date, nullable=True)
    closed_by = db.Column(db.String(150), nullable=True)
    closure_reason = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    committee = db.relationship("Committee", lazy="select")
    appeals = db.relationship(
        "ComplaintAppeal", back_populates="complaint",
        order_by="ComplaintAppeal.id", lazy="select",
    )
    audit_entries = db.relationship(
        "ComplaintAuditEntry", back_populates="complaint",
        order_by="ComplaintAuditEntry.sequence", lazy="select",
    )

    @property
    def effective_punishment(self):
        """Punishment in force after the latest decided appeal, if any."""
        decided = [a for a in self.appeals if a.decision]
        if not decided:
            return self.punishment_description
        latest = decided[-1]
        if latest.decision == AppealDecision.MODIFIED.value:
            return latest.new_punishment
        if latest.decision == AppealDecision.OVERTURNED.value:
            return None
        return self.punishment_description

    def to_dict(self, include_appeals=False):
        d = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "complaint_number": self.complaint_number,
            "article": self.article,
            "offense_code": self.offense_code,
            "severity_level": self.severity_level,
            "offense_occurrence": self.offense_occurrence,
            "decision_authority": self.decision_authority,
            "accused_employee_id": self.accused_employee_id,
            "superior_employee_id": self.superior_employee_id,
            "complainant_type": self.complainant_type,
            "complainant_employee_id": self.complainant_employee_id,
            "complainant_name": self.complainant_name,
            "summary": self.summary,
            "summary_am": self.summary_am,
            "incident_date": _iso(self.incident_date),
            "incident_location": self.incident_location,
            "registered_date": _iso(self.registered_date),
            "registered_by": self.registered_by,
            "status": self.status,
            "center_id": self.center_id,
            "assigned_committee_id": self.assigned_committee_id,
            "committee_assigned_date": _iso(self.committee_assigned_date),
            "notification_date": _iso(self.notification_date),
            "rebuttal_deadline": _iso(self.rebuttal_deadline),
            "has_rebuttal": self.has_rebuttal,
            "rebuttal_received_date": _iso(self.rebuttal_received_date),
            "rebuttal_content": self.rebuttal_content,
            "finding": self.finding,
            "finding_date": _iso(self.finding_date),
            "finding_reason": self.finding_reason,
            "finding_by": self.finding_by,
            "hq_forwarded_date": _iso(self.hq_forwarded_date),
            "decision_date": _iso(self.decision_date),
            "decision_by": self.decision_by,
            "punishment_percentage": self.punishment_percentage,
            "punishment_description": self.punishment_description,
            "effective_punishment": self.effective_punishment,
            "closed_date": _iso(self.closed_date),
            "closed_by": self.closed_by,
            "closure_reason": self.closure_reason,
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_appeals:
            d["appeals"] = [a.to_dict() for a in self.appeals]
        return d

    def __repr__(self):
        return f"<Complaint {self.complaint_number} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# Appeal
# ═════════════════════════════════════════════════════════════════════════════

class ComplaintAppeal(TenantModel):
    """
    Appeal against a decided complaint.

    Two states: open (``decision`` NULL) and decided. Rows are never deleted.
    """

    __tablename__ = "complaint_appeals"
    __table_args__ = (
        db.Index("ix_complaint_appeals_complaint_decision", "complaint_id", "decision"),
    )

    id = db.Column(db.Integer, primary_key=True)
    complaint_id = db.Column(
        db.Integer, db.ForeignKey("complaints.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    reviewer_employee_id = db.Column(db.String(64), nullable=False)
    submitted_by = db.Column(db.String(150), nullable=False)
    appeal_date = db.Column(db.Date, nullable=False)
    appeal_reason = db.Column(db.Text, nullable=False)

    decision = db.Column(db.String(20), nullable=True)
    decision_date = db.Column(db.Date, nullable=True)
    decision_reason = db.Column(db.Text, nullable=True)
    decided_by = db.Column(db.String(150), nullable=True)
    new_punishment = db.Column(db.Text, nullable=True, comment="Only when decision is MODIFIED")

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    complaint = db.relationship("Complaint", back_populates="appeals")

    @property
    def is_open(self) -> bool:
        return self.decision is None

    def to_dict(self):
        return {
            "id": self.id,
            "complaint_id": self.complaint_id,
            "reviewer_employee_id": self.reviewer_employee_id,
            "submitted_by": self.submitted_by,
            "appeal_date": _iso(self.appeal_date),
            "appeal_reason": self.appeal_reason,
            "decision": self.decision,
            "decision_date": _iso(self.decision_date),
            "decision_reason": self.decision_reason,
            "decided_by": self.decided_by,
            "new_punishment": self.new_punishment,
            "is_open": self.is_open,
        }

    def __repr__(self):
        return f"<ComplaintAppeal {self.id} complaint={self.complaint_id} [{self.decision or 'OPEN'}]>"
