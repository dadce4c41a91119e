"""
Discipline Case Platform
Notification Service.

Central service for creating and querying in-app notifications, plus the
complaint-workflow hook that tells the people involved when a case moves.
Delivery channels (e-mail, SMS) are out of scope; records are in-app only.
"""

from app.models import db
from app.models.discipline import (
    CLOSED_STATES,
    DECIDED_STATES,
    REBUTTAL_WAITING_STATES,
    ComplaintStatus,
)
from app.models.notification import Notification


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def broadcast(*, tenant_id, recipients, title, message="", category="discipline",
                  severity="info", entity_type="", entity_id=None):
        """
        Send the same notification to several recipients in one commit.

        Empty or duplicate recipients are skipped.

        Returns:
            List of created Notification instances.
        """
        notifications = []
        seen = set()
        for r in recipients:
            if not r or r in seen:
                continue
            seen.add(r)
            notif = Notification(
                tenant_id=tenant_id,
                recipient=r,
                title=title,
                message=message,
                category=category,
                severity=severity,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            db.session.add(notif)
            notifications.append(notif)
        if notifications:
            db.session.commit()
        return notifications

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(tenant_id, recipient, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a recipient, newest first.
        """
        q = Notification.query_for_tenant(tenant_id).filter_by(recipient=recipient)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = q.order_by(Notification.created_at.desc(), Notification.id.desc()) \
            .offset(offset).limit(limit).all()
        return items, total


# ═══════════════════════════════════════════════════════════════════════════
#  Complaint workflow hook
# ═══════════════════════════════════════════════════════════════════════════

_TITLES = {
    ComplaintStatus.WAITING_FOR_REBUTTAL: "You have been notified of complaint {number}",
    ComplaintStatus.COMMITTEE_WAITING_REBUTTAL: "You have been notified of complaint {number}",
    ComplaintStatus.AWAITING_SUPERIOR_DECISION: "Complaint {number} awaits your decision",
    ComplaintStatus.DECIDED: "A decision was recorded on complaint {number}",
    ComplaintStatus.DECIDED_BY_HQ: "Headquarters decided complaint {number}",
    ComplaintStatus.ON_APPEAL: "Appeal on complaint {number} assigned to you",
    ComplaintStatus.APPEAL_DECIDED: "Your appeal on complaint {number} was decided",
    ComplaintStatus.CLOSED_NO_LIABILITY: "Complaint {number} was closed",
    ComplaintStatus.CLOSED_FINAL: "Complaint {number} was closed",
}


def _recipients_for(complaint, status: ComplaintStatus) -> list:
    if status in REBUTTAL_WAITING_STATES or status in DECIDED_STATES or status in CLOSED_STATES:
        return [complaint.accused_employee_id]
    if status is ComplaintStatus.ON_APPEAL:
        open_appeals = [a for a in complaint.appeals if a.decision is None]
        return [a.reviewer_employee_id for a in open_appeals]
    if status is ComplaintStatus.AWAITING_SUPERIOR_DECISION:
        return [complaint.superior_employee_id]
    return []


def notify_transition(complaint, new_status) -> list[Notification]:
    """Create in-app notifications for the parties of a complaint that just moved.

    Returns the created notifications (empty when nobody is concerned).
    """
    status = ComplaintStatus(new_status)
    recipients = _recipients_for(complaint, status)
    if not recipients:
        return []

    message = f"Status is now {status.value}."
    if status in REBUTTAL_WAITING_STATES and complaint.rebuttal_deadline:
        message += f" Submit your rebuttal by {complaint.rebuttal_deadline.isoformat()}."

    return NotificationService.broadcast(
        tenant_id=complaint.tenant_id,
        recipients=recipients,
        title=_TITLES[status].format(number=complaint.complaint_number),
        message=message,
        severity="warning" if status in REBUTTAL_WAITING_STATES else "info",
        entity_type="complaint",
        entity_id=complaint.id,
    )
