"""Disciplinary complaint workflow blueprint.

REST API for registering complaints and driving them through the
adjudication workflow.

Endpoint groups:
  Registration        POST /api/v1/complaints
  Case read           GET  /api/v1/complaints/<id>
  Actions             GET  /api/v1/complaints/<id>/actions
                      POST /api/v1/complaints/<id>/actions
  Audit timeline      GET  /api/v1/complaints/<id>/timeline
                      GET  /api/v1/complaints/<id>/timeline/verify
  Appeals             GET  /api/v1/complaints/<id>/appeals
  Rebuttal deadlines  GET  /api/v1/complaints/rebuttal-overdue?as_of=YYYY-MM-DD
                      POST /api/v1/complaints/rebuttal-sweep

tenant_id is resolved from query param or JSON body. Every mutation names
its actor explicitly via ``actor_id``; there is no ambient user.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging
from datetime import date

from flask import Blueprint, jsonify, request

import app.services.complaint_service as cs
from app.core.exceptions import (
    ConcurrentModification,
    GuardFailed,
    IllegalTransition,
    InvalidPayload,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from app.services.classification import classify_complaint
from app.utils.errors import E, api_error
from app.utils.helpers import parse_date, parse_date_input

logger = logging.getLogger(__name__)

complaints_bp = Blueprint("complaints", __name__, url_prefix="/api/v1/complaints")


# ── Request helpers ──────────────────────────────────────────────────────────


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _tenant_id() -> int | None:
    """Extract tenant_id from query string or JSON body."""
    tid = request.args.get("tenant_id", type=int)
    if tid:
        return tid
    tid = _body().get("tenant_id")
    if isinstance(tid, bool) or not isinstance(tid, int):
        return None
    return tid


def _tenant_required() -> tuple[int | None, tuple | None]:
    tid = _tenant_id()
    if not tid:
        return None, api_error(E.VALIDATION_REQUIRED, "tenant_id is required")
    return tid, None


# ── Error handlers ───────────────────────────────────────────────────────────


@complaints_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, f"{error.resource} not found")


@complaints_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@complaints_bp.errorhandler(InvalidPayload)
def _handle_invalid_payload(error: InvalidPayload):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@complaints_bp.errorhandler(IllegalTransition)
def _handle_illegal_transition(error: IllegalTransition):
    return api_error(E.ILLEGAL_TRANSITION, str(error))


@complaints_bp.errorhandler(GuardFailed)
def _handle_guard_failed(error: GuardFailed):
    return api_error(E.GUARD_FAILED, str(error))


@complaints_bp.errorhandler(ConcurrentModification)
def _handle_concurrent(error: ConcurrentModification):
    return api_error(E.CONCURRENT_MODIFICATION, str(error))


@complaints_bp.errorhandler(PersistenceFailure)
def _handle_persistence(error: PersistenceFailure):
    return api_error(E.DATABASE, "Database error")


@complaints_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    logger.exception("Unexpected error in complaints_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ═════════════════════════════════════════════════════════════════════════
# Registration & reads
# ═════════════════════════════════════════════════════════════════════════


@complaints_bp.route("", methods=["POST"])
def register_complaint():
    """Register a complaint.

    Body: {
        tenant_id, actor_id, article, offense_code, severity_level?,
        accused_employee_id, superior_employee_id?, complainant_type,
        complainant_employee_id?, complainant_name?, summary, summary_am?,
        incident_date, incident_location?, registered_date?, center_id?
    }
    Returns: complaint dict (201).
    """
    tenant_id, err = _tenant_required()
    if err:
        return err
    data = _body()
    complaint = cs.register_complaint(tenant_id, data.get("actor_id"), data)
    return jsonify(complaint.to_dict()), 201


@complaints_bp.route("/<int:complaint_id>", methods=["GET"])
def get_complaint(complaint_id):
    """Complaint detail with appeals and classification flags."""
    tenant_id, err = _tenant_required()
    if err:
        return err
    complaint = cs.get_complaint(tenant_id, complaint_id)
    data = complaint.to_dict(include_appeals=True)
    data["classification"] = classify_complaint(complaint).to_dict()
    return jsonify(data), 200


# ═════════════════════════════════════════════════════════════════════════
# Actions
# ═════════════════════════════════════════════════════════════════════════


@complaints_bp.route("/<int:complaint_id>/actions", methods=["GET"])
def list_available_actions(complaint_id):
    """Actions the caller may submit next, in display order."""
    tenant_id, err = _tenant_required()
    if err:
        return err
    complaint = cs.get_complaint(tenant_id, complaint_id)
    actions = cs.get_available_actions(tenant_id, complaint_id)
    return jsonify({
        "complaint_id": complaint.id,
        "status": complaint.status,
        "version": complaint.version,
        "actions": [a.to_dict() for a in actions],
    }), 200


@complaints_bp.route("/<int:complaint_id>/actions", methods=["POST"])
def submit_action(complaint_id):
    """Submit one workflow action.

    Body: {tenant_id, action_type, actor_id, payload, notes?, expected_version?}
    Returns: transition result (200).
    """
    tenant_id, err = _tenant_required()
    if err:
        return err
    data = _body()

    action_type = data.get("action_type")
    if not action_type or not isinstance(action_type, str):
        return api_error(E.VALIDATION_REQUIRED, "action_type is required")
    expected_version = data.get("expected_version")
    if expected_version is not None and (
        isinstance(expected_version, bool) or not isinstance(expected_version, int)
    ):
        return api_error(E.VALIDATION_INVALID, "expected_version must be an integer")
    payload = data.get("payload")
    if payload is not None and not isinstance(payload, dict):
        return api_error(E.VALIDATION_INVALID, "payload must be an object")

    result = cs.submit_action(
        tenant_id, complaint_id, action_type, data.get("actor_id"),
        payload=payload,
        notes=data.get("notes"),
        expected_version=expected_version,
    )
    return jsonify(result.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Timeline & appeals
# ═════════════════════════════════════════════════════════════════════════


@complaints_bp.route("/<int:complaint_id>/timeline", methods=["GET"])
def get_timeline(complaint_id):
    tenant_id, err = _tenant_required()
    if err:
        return err
    entries = cs.get_timeline(tenant_id, complaint_id)
    return jsonify({"complaint_id": complaint_id, "entries": [e.to_dict() for e in entries]}), 200


@complaints_bp.route("/<int:complaint_id>/timeline/verify", methods=["GET"])
def verify_timeline(complaint_id):
    """Check ledger continuity; ``valid`` is false when violations exist."""
    tenant_id, err = _tenant_required()
    if err:
        return err
    violations = cs.verify_timeline(tenant_id, complaint_id)
    return jsonify({
        "complaint_id": complaint_id,
        "valid": not violations,
        "violations": violations,
    }), 200


@complaints_bp.route("/<int:complaint_id>/appeals", methods=["GET"])
def list_appeals(complaint_id):
    tenant_id, err = _tenant_required()
    if err:
        return err
    appeals = cs.list_appeals(tenant_id, complaint_id)
    return jsonify({"complaint_id": complaint_id, "appeals": [a.to_dict() for a in appeals]}), 200


# ═════════════════════════════════════════════════════════════════════════
# Rebuttal deadlines
# ═════════════════════════════════════════════════════════════════════════


@complaints_bp.route("/rebuttal-overdue", methods=["GET"])
def list_overdue_rebuttals():
    """Complaints waiting for a rebuttal past their deadline.

    Query params: tenant_id (required), as_of (default today)
    """
    tenant_id, err = _tenant_required()
    if err:
        return err
    raw = request.args.get("as_of")
    as_of = parse_date(raw) if raw else date.today()
    if as_of is None:
        return api_error(E.VALIDATION_INVALID, "as_of must be a date (YYYY-MM-DD)")
    complaints = cs.find_overdue_rebuttals(as_of, tenant_id=tenant_id)
    return jsonify({
        "as_of": as_of.isoformat(),
        "items": [c.to_dict() for c in complaints],
        "total": len(complaints),
    }), 200


@complaints_bp.route("/rebuttal-sweep", methods=["POST"])
def run_rebuttal_sweep():
    """Expire overdue rebuttal windows for the tenant.

    Body: {tenant_id, as_of?, actor_id?}
    Returns: {as_of, processed: [...], errors: [...]}
    """
    tenant_id, err = _tenant_required()
    if err:
        return err
    data = _body()
    try:
        as_of = parse_date_input(data.get("as_of")) or date.today()
    except ValueError as e:
        return api_error(E.VALIDATION_INVALID, str(e))
    results = cs.sweep_rebuttal_deadlines(as_of, actor_id=data.get("actor_id"), tenant_id=tenant_id)
    return jsonify(results), 200
