"""
Complaint Service — unit of work for the disciplinary workflow.

Every accepted transition follows the same path:

    1. SELECT … FOR UPDATE on the complaint (a second writer blocks, then
       re-validates against the fresh row)
    2. optional expected_version check
    3. state machine validation           (reject → rollback, re-raise)
    4. appeal sub-ledger hook             (submitAppeal / recordAppealDecision)
    5. state machine apply + implicit referral
    6. one audit entry per step, flushed in the same transaction
    7. single commit; StaleDataError / IntegrityError → ConcurrentModification,
       any other SQLAlchemyError → PersistenceFailure
    8. post-commit notifications (best effort, never undo the transition)

Also owns registration (case number, initial status, Article 31 committee
auto-assignment) and the rebuttal deadline sweep.

The service layer owns all commits; blueprints never touch the session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConcurrentModification,
    DisciplineError,
    InvalidPayload,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from app.models import db
from app.models.discipline import (
    REBUTTAL_WAITING_STATES,
    ComplainantType,
    Complaint,
    ComplaintArticle,
    Finding,
)
from app.models.tenant import Tenant
from app.services import appeal_ledger, audit_trail
from app.services import complaint_state_machine as sm
from app.services.action_catalog import AvailableAction, available_actions
from app.services.action_schemas import ActionType, parse_action_type
from app.services.classification import decision_authority_for
from app.services.directory import find_discipline_committee, get_committee
from app.services.notification import notify_transition
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


@dataclass
class TransitionResult:
    complaint_id: int
    previous_status: str
    new_status: str
    audit_entry_id: int
    version: int
    audit_entry_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "complaint_id": self.complaint_id,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "audit_entry_id": self.audit_entry_id,
            "audit_entry_ids": self.audit_entry_ids,
            "version": self.version,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Internal helpers
# ═════════════════════════════════════════════════════════════════════════════


def _commit(complaint_id: int | None) -> None:
    """Commit the session, mapping failures to workflow errors after rollback."""
    try:
        db.session.commit()
    except (StaleDataError, IntegrityError) as exc:
        db.session.rollback()
        logger.warning(
            "Concurrent modification on commit: %s", exc,
            extra={"complaint_id": complaint_id},
        )
        raise ConcurrentModification(complaint_id) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to persist complaint transition",
                         extra={"complaint_id": complaint_id})
        raise PersistenceFailure(complaint_id, exc) from exc


def _lock_complaint(tenant_id: int, complaint_id: int) -> Complaint:
    complaint = (
        Complaint.query
        .filter_by(tenant_id=tenant_id, id=complaint_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if complaint is None:
        db.session.rollback()
        raise NotFoundError(resource="Complaint", resource_id=complaint_id, tenant_id=tenant_id)
    return complaint


def _context(tenant_id: int, actor_id: str, complaint) -> sm.TransitionContext:
    return sm.TransitionContext(
        actor_id=actor_id,
        tenant_id=tenant_id,
        rebuttal_window_days=current_app.config.get("REBUTTAL_WINDOW_DAYS", 3),
        committee_lookup=lambda committee_id: get_committee(tenant_id, committee_id),
        open_appeal=appeal_ledger.open_appeal_for(complaint),
        appeal_lookup=lambda appeal_id: appeal_ledger.get_appeal(tenant_id, appeal_id),
    )


def _dispatch_notifications(complaint, steps) -> None:
    if not current_app.config.get("DISCIPLINE_NOTIFICATIONS_ENABLED", True):
        return
    try:
        notify_transition(complaint, steps[-1].new_status)
    except Exception as exc:  # best effort
        db.session.rollback()
        logger.warning(
            "Notification dispatch failed for complaint %s: %s", complaint.id, exc,
            extra={"complaint_id": complaint.id},
        )


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_complaint(tenant_id: int, complaint_id: int) -> Complaint:
    """Return the complaint or raise NotFoundError (also across tenants)."""
    complaint = Complaint.get_for_tenant(tenant_id, complaint_id)
    if complaint is None:
        raise NotFoundError(resource="Complaint", resource_id=complaint_id, tenant_id=tenant_id)
    return complaint


def get_available_actions(tenant_id: int, complaint_id: int) -> list[AvailableAction]:
    return available_actions(get_complaint(tenant_id, complaint_id))


def get_timeline(tenant_id: int, complaint_id: int):
    return audit_trail.get_timeline(get_complaint(tenant_id, complaint_id))


def verify_timeline(tenant_id: int, complaint_id: int) -> list[str]:
    return audit_trail.verify_ledger(get_complaint(tenant_id, complaint_id))


def list_appeals(tenant_id: int, complaint_id: int):
    return appeal_ledger.list_appeals(get_complaint(tenant_id, complaint_id))


# ═════════════════════════════════════════════════════════════════════════════
# Registration
# ═════════════════════════════════════════════════════════════════════════════


def _validate_registration(data: dict) -> dict:
    errors: dict[str, str] = {}
    clean: dict = {}

    def text(name, required=True):
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                errors[name] = "is required"
            return None
        if not isinstance(value, str):
            errors[name] = "must be a string"
            return None
        return value.strip()

    def day(name, required=True):
        try:
            value = parse_date_input(data.get(name))
        except ValueError as exc:
            errors[name] = str(exc)
            return None
        if value is None and required:
            errors[name] = "is required"
        return value

    article = data.get("article")
    if article not in {a.value for a in ComplaintArticle}:
        errors["article"] = "must be ARTICLE_30 or ARTICLE_31"
    clean["article"] = article

    clean["offense_code"] = text("offense_code")
    clean["accused_employee_id"] = text("accused_employee_id")
    clean["superior_employee_id"] = text("superior_employee_id", required=False)
    clean["summary"] = text("summary")
    clean["summary_am"] = text("summary_am", required=False)
    clean["incident_location"] = text("incident_location", required=False)
    clean["incident_date"] = day("incident_date")
    clean["registered_date"] = day("registered_date", required=False) or date.today()

    if clean["incident_date"] and clean["incident_date"] > clean["registered_date"]:
        errors["incident_date"] = "cannot be after the registration date"

    severity = data.get("severity_level")
    if article == ComplaintArticle.ARTICLE_31.value and severity is not None:
        errors["severity_level"] = "only applies to ARTICLE_30"
    clean["severity_level"] = severity

    center_id = data.get("center_id")
    if center_id is not None and (isinstance(center_id, bool) or not isinstance(center_id, int)):
        errors["center_id"] = "must be an integer or null"
    clean["center_id"] = center_id

    complainant_type = data.get("complainant_type")
    if complainant_type not in {c.value for c in ComplainantType}:
        errors["complainant_type"] = "must be EMPLOYEE, EXTERNAL or ANONYMOUS"
    clean["complainant_type"] = complainant_type
    clean["complainant_employee_id"] = text("complainant_employee_id", required=False)
    clean["complainant_name"] = text("complainant_name", required=False)
    if complainant_type == ComplainantType.EMPLOYEE.value and not clean["complainant_employee_id"]:
        errors["complainant_employee_id"] = "is required for EMPLOYEE complainants"
    if complainant_type == ComplainantType.ANONYMOUS.value and (
        clean["complainant_name"] or clean["complainant_employee_id"]
    ):
        errors["complainant_name"] = "must be empty for ANONYMOUS complaints"

    if errors:
        raise ValidationError("Invalid complaint registration", details=errors)
    return clean


def _offense_occurrence(tenant_id: int, accused_employee_id: str, offense_code: str) -> int:
    earlier = (
        Complaint.query_for_tenant(tenant_id)
        .filter_by(accused_employee_id=accused_employee_id,
                   offense_code=offense_code,
                   finding=Finding.LIABLE.value)
        .count()
    )
    return earlier + 1


def register_complaint(tenant_id: int, actor_id: str, data: dict) -> Complaint:
    """Register a new complaint and write audit entry #1.

    ARTICLE_30 starts in UNDER_HR_REVIEW. ARTICLE_31 starts with the
    discipline committee of its center (HQ when center_id is null).

    Raises:
        NotFoundError: tenant unknown or inactive.
        ValidationError: malformed data, or no committee for an ARTICLE_31 case.
    """
    if not actor_id:
        raise ValidationError("actor_id is required", details={"actor_id": "is required"})
    clean = _validate_registration(data or {})
    authority = decision_authority_for(clean["article"], clean["severity_level"])

    tenant = (
        Tenant.query.filter_by(id=tenant_id, is_active=True)
        .with_for_update()
        .first()
    )
    if tenant is None:
        db.session.rollback()
        raise NotFoundError(resource="Tenant", resource_id=tenant_id)

    status = sm.initial_status(clean["article"])
    committee = None
    if clean["article"] == ComplaintArticle.ARTICLE_31.value:
        committee = find_discipline_committee(tenant_id, clean["center_id"])
        if committee is None:
            db.session.rollback()
            scope = "headquarters" if clean["center_id"] is None else f"center {clean['center_id']}"
            raise ValidationError(
                f"No active discipline committee for {scope}",
                details={"center_id": "no active discipline committee"},
            )

    sequence = tenant.next_complaint_sequence()
    complaint = Complaint(
        tenant_id=tenant_id,
        complaint_number=f"CMP-{sequence:04d}/{clean['registered_date'].year % 100:02d}",
        article=clean["article"],
        offense_code=clean["offense_code"],
        severity_level=int(clean["severity_level"]) if clean["severity_level"] is not None else None,
        offense_occurrence=_offense_occurrence(
            tenant_id, clean["accused_employee_id"], clean["offense_code"]),
        decision_authority=authority.value,
        accused_employee_id=clean["accused_employee_id"],
        superior_employee_id=clean["superior_employee_id"],
        complainant_type=clean["complainant_type"],
        complainant_employee_id=clean["complainant_employee_id"],
        complainant_name=clean["complainant_name"],
        summary=clean["summary"],
        summary_am=clean["summary_am"],
        incident_date=clean["incident_date"],
        incident_location=clean["incident_location"],
        registered_date=clean["registered_date"],
        registered_by=actor_id,
        status=status.value,
        center_id=clean["center_id"],
        assigned_committee_id=committee.id if committee else None,
        committee_assigned_date=clean["registered_date"] if committee else None,
    )
    db.session.add(complaint)
    try:
        db.session.flush()
        audit_trail.append_entry(
            complaint, None, status, actor_id, ActionType.REGISTER,
            payload={
                "complaint_number": complaint.complaint_number,
                "article": complaint.article,
                "decision_authority": complaint.decision_authority,
                "assigned_committee_id": complaint.assigned_committee_id,
            },
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to register complaint", extra={"tenant_id": tenant_id})
        raise PersistenceFailure(None, exc) from exc
    _commit(complaint.id)

    logger.info(
        "Complaint registered",
        extra={"tenant_id": tenant_id, "complaint_id": complaint.id,
               "actor_id": actor_id, "new_status": complaint.status},
    )
    return complaint


# ═════════════════════════════════════════════════════════════════════════════
# Transitions
# ═════════════════════════════════════════════════════════════════════════════


def submit_action(
    tenant_id: int,
    complaint_id: int,
    action_type: str,
    actor_id: str,
    payload: dict | None = None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> TransitionResult:
    """Validate and apply one action to a complaint atomically.

    Returns:
        TransitionResult for the committed transition.

    Raises:
        NotFoundError, ValidationError, IllegalTransition, InvalidPayload,
        GuardFailed, ConcurrentModification, PersistenceFailure
    """
    if not actor_id:
        raise ValidationError("actor_id is required", details={"actor_id": "is required"})
    if notes is not None:
        if not isinstance(notes, str):
            raise InvalidPayload(str(action_type), {"notes": "must be a string"})
        notes = notes.strip() or None

    complaint = _lock_complaint(tenant_id, complaint_id)
    log_extra = {"tenant_id": tenant_id, "complaint_id": complaint_id,
                 "actor_id": actor_id, "action_type": str(action_type)}

    if expected_version is not None and complaint.version != expected_version:
        actual = complaint.version
        db.session.rollback()
        logger.info("Stale version rejected (expected %s, found %s)",
                    expected_version, actual, extra=log_extra)
        raise ConcurrentModification(complaint_id, expected_version, actual)

    ctx = _context(tenant_id, actor_id, complaint)
    try:
        clean = sm.validate(complaint, action_type, payload, ctx)
    except DisciplineError as exc:
        db.session.rollback()
        logger.info("Transition rejected: %s", exc, extra=log_extra)
        raise

    action = parse_action_type(action_type)
    previous_status = complaint.status
    try:
        if action is ActionType.SUBMIT_APPEAL:
            appeal_ledger.open_appeal(complaint, clean, actor_id)
        elif action is ActionType.RECORD_APPEAL_DECISION:
            appeal_ledger.decide_appeal(ctx.appeal_lookup(clean["appeal_id"]), clean, actor_id)

        steps = sm.apply(complaint, action, clean, ctx)
        entries = [
            audit_trail.append_entry(
                complaint, step.prior_status, step.new_status, actor_id,
                step.action_type, step.payload, notes if i == 0 else None,
            )
            for i, step in enumerate(steps)
        ]
    except (StaleDataError, IntegrityError) as exc:
        db.session.rollback()
        logger.warning("Concurrent modification during apply: %s", exc, extra=log_extra)
        raise ConcurrentModification(complaint_id) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to apply complaint transition", extra=log_extra)
        raise PersistenceFailure(complaint_id, exc) from exc

    entry_ids = [e.id for e in entries]
    _commit(complaint_id)

    result = TransitionResult(
        complaint_id=complaint_id,
        previous_status=previous_status,
        new_status=complaint.status,
        audit_entry_id=entry_ids[0],
        version=complaint.version,
        audit_entry_ids=entry_ids,
    )
    logger.info("Transition %s: %s → %s", action.value, previous_status, result.new_status,
                extra={**log_extra, "new_status": result.new_status})

    _dispatch_notifications(complaint, steps)
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Rebuttal deadline sweep
# ═════════════════════════════════════════════════════════════════════════════


def find_overdue_rebuttals(as_of: date, tenant_id: int | None = None) -> list[Complaint]:
    """Complaints still waiting for a rebuttal whose deadline is before ``as_of``."""
    q = Complaint.query.filter(
        Complaint.status.in_([s.value for s in REBUTTAL_WAITING_STATES]),
        Complaint.rebuttal_deadline.isnot(None),
        Complaint.rebuttal_deadline < as_of,
    )
    if tenant_id is not None:
        q = q.filter(Complaint.tenant_id == tenant_id)
    return q.order_by(Complaint.rebuttal_deadline.asc(), Complaint.id.asc()).all()


def sweep_rebuttal_deadlines(
    as_of: date,
    actor_id: str | None = None,
    tenant_id: int | None = None,
) -> dict:
    """Submit markRebuttalDeadlinePassed for every overdue complaint.

    A complaint that moved meanwhile is reported under ``errors`` and not
    retried. Running the sweep twice for the same ``as_of`` processes
    nothing the second time.
    """
    actor_id = actor_id or current_app.config.get("DEADLINE_SWEEP_ACTOR", "system:deadline-sweep")
    targets = [(c.tenant_id, c.id, c.complaint_number)
               for c in find_overdue_rebuttals(as_of, tenant_id)]

    results: dict = {"as_of": as_of.isoformat(), "processed": [], "errors": []}
    for t_id, c_id, number in targets:
        try:
            result = submit_action(
                t_id, c_id, ActionType.MARK_REBUTTAL_DEADLINE_PASSED.value, actor_id,
                payload={"as_of": as_of},
                notes="Rebuttal deadline passed without a response",
            )
        except (DisciplineError, NotFoundError) as exc:
            results["errors"].append({
                "complaint_id": c_id,
                "complaint_number": number,
                "error": type(exc).__name__,
                "message": str(exc),
            })
            logger.warning("Deadline sweep skipped complaint %s: %s", c_id, exc,
                           extra={"tenant_id": t_id, "complaint_id": c_id})
            continue
        results["processed"].append({
            "complaint_id": c_id,
            "complaint_number": number,
            "new_status": result.new_status,
        })

    logger.info("Rebuttal deadline sweep as of %s: %d processed, %d errors",
                as_of, len(results["processed"]), len(results["errors"]),
                extra={"actor_id": actor_id})
    return results
