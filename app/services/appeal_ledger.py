"""
Appeal Sub-Ledger — appeals attached to a decided complaint.

Each appeal has two states: open (``decision`` is NULL) and decided.
This module owns every appeal field; the complaint state machine only
asks whether an appeal is open. Appeals are never deleted.

Public operations go through ``complaint_service.submit_action`` so the
appeal row, the complaint status change and the audit entry commit in
one transaction under the complaint lock.
"""

from __future__ import annotations

import logging

from app.core.exceptions import GuardFailed, NotFoundError
from app.models import db
from app.models.discipline import ComplaintAppeal
from app.services.action_schemas import ActionType

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def open_appeal_for(complaint) -> ComplaintAppeal | None:
    """The undecided appeal of ``complaint``, if any."""
    return (
        ComplaintAppeal.query
        .filter_by(complaint_id=complaint.id, decision=None)
        .order_by(ComplaintAppeal.id.asc())
        .first()
    )


def list_appeals(complaint) -> list[ComplaintAppeal]:
    """All appeals of ``complaint``, oldest first."""
    return (
        ComplaintAppeal.query
        .filter_by(complaint_id=complaint.id)
        .order_by(ComplaintAppeal.id.asc())
        .all()
    )


def get_appeal(tenant_id: int, appeal_id: int) -> ComplaintAppeal | None:
    return ComplaintAppeal.get_for_tenant(tenant_id, appeal_id)


# ═════════════════════════════════════════════════════════════════════════════
# Mutations: called by complaint_service after validation, before commit
# ═════════════════════════════════════════════════════════════════════════════


def open_appeal(complaint, payload: dict, actor_id: str) -> ComplaintAppeal:
    """Append a new open appeal for ``complaint`` and flush it."""
    appeal = ComplaintAppeal(
        tenant_id=complaint.tenant_id,
        complaint_id=complaint.id,
        reviewer_employee_id=payload["reviewer_employee_id"],
        submitted_by=actor_id,
        appeal_date=payload["appeal_date"],
        appeal_reason=payload["appeal_reason"],
    )
    db.session.add(appeal)
    db.session.flush()
    payload["appeal_id"] = appeal.id
    return appeal


def decide_appeal(appeal: ComplaintAppeal, payload: dict, actor_id: str) -> ComplaintAppeal:
    """Stamp the decision fields on an open appeal."""
    appeal.decision = payload["decision"]
    appeal.decision_reason = payload["decision_reason"]
    appeal.decision_date = payload["decision_date"]
    appeal.decided_by = actor_id
    appeal.new_punishment = payload.get("new_punishment")
    return appeal


# ═════════════════════════════════════════════════════════════════════════════
# Public operations
# ═════════════════════════════════════════════════════════════════════════════


def submit_appeal(
    tenant_id: int,
    complaint_id: int,
    actor_id: str,
    reviewer_employee_id: str,
    reason: str,
    appeal_date,
    notes: str | None = None,
    expected_version: int | None = None,
):
    """Open an appeal on a decided complaint.

    Raises:
        IllegalTransition: complaint is not in a decided state.
        GuardFailed: another appeal is still open.
    """
    from app.services import complaint_service

    return complaint_service.submit_action(
        tenant_id, complaint_id, ActionType.SUBMIT_APPEAL.value, actor_id,
        payload={
            "reviewer_employee_id": reviewer_employee_id,
            "appeal_reason": reason,
            "appeal_date": appeal_date,
        },
        notes=notes,
        expected_version=expected_version,
    )


def record_appeal_decision(
    tenant_id: int,
    complaint_id: int,
    appeal_id: int,
    actor_id: str,
    decision: str,
    reason: str,
    decision_date,
    new_punishment: str | None = None,
    notes: str | None = None,
    expected_version: int | None = None,
):
    """Decide the open appeal of a complaint.

    Raises:
        NotFoundError: appeal unknown in this tenant.
        GuardFailed: appeal already decided, or not this complaint's open appeal.
        InvalidPayload: MODIFIED without a replacement punishment.
    """
    from app.services import complaint_service

    appeal = get_appeal(tenant_id, appeal_id)
    if appeal is None:
        raise NotFoundError(resource="ComplaintAppeal", resource_id=appeal_id, tenant_id=tenant_id)
    if appeal.decision is not None:
        raise GuardFailed(ActionType.RECORD_APPEAL_DECISION.value,
                          f"appeal {appeal_id} is already decided")

    return complaint_service.submit_action(
        tenant_id, complaint_id, ActionType.RECORD_APPEAL_DECISION.value, actor_id,
        payload={
            "appeal_id": appeal_id,
            "decision": decision,
            "decision_reason": reason,
            "decision_date": decision_date,
            "new_punishment": new_punishment,
        },
        notes=notes,
        expected_version=expected_version,
    )
