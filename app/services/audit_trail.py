"""
Audit Trail Recorder — append-only, gapless ledger per complaint.

``append_entry`` is the only writer. It flushes inside the caller's
transaction and never commits: the entry and the status change it
describes become durable together or not at all. Errors propagate.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum

from app.models import db
from app.models.audit import ComplaintAuditEntry

logger = logging.getLogger(__name__)


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _next_sequence(complaint_id: int) -> int:
    last = (
        db.session.query(db.func.max(ComplaintAuditEntry.sequence))
        .filter(ComplaintAuditEntry.complaint_id == complaint_id)
        .scalar()
    )
    return (last or 0) + 1


def append_entry(
    complaint,
    prior_status,
    new_status,
    actor_id: str,
    action_type,
    payload: dict | None = None,
    notes: str | None = None,
) -> ComplaintAuditEntry:
    """Append the next ledger entry for ``complaint`` and flush it.

    A duplicate sequence written by a concurrent writer surfaces as an
    IntegrityError from the flush or the caller's commit.
    """
    entry = ComplaintAuditEntry(
        tenant_id=complaint.tenant_id,
        complaint_id=complaint.id,
        sequence=_next_sequence(complaint.id),
        actor_id=actor_id,
        action_type=_jsonable(action_type),
        prior_status=_jsonable(prior_status),
        new_status=_jsonable(new_status),
        notes=notes,
        payload=_jsonable(payload or {}),
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug(
        "Audit entry appended",
        extra={"complaint_id": complaint.id, "actor_id": actor_id,
               "action_type": entry.action_type, "new_status": entry.new_status},
    )
    return entry


def get_timeline(complaint) -> list[ComplaintAuditEntry]:
    """Entries for ``complaint`` in sequence order."""
    return (
        ComplaintAuditEntry.query
        .filter_by(complaint_id=complaint.id)
        .order_by(ComplaintAuditEntry.sequence.asc())
        .all()
    )


def verify_ledger(complaint) -> list[str]:
    """Check the ledger invariants; return human-readable violations.

    - sequences run 1..n with no gaps
    - only the first entry has no prior status
    - each entry's prior status equals the previous entry's new status
    - the last entry's new status equals the complaint's status
    """
    entries = get_timeline(complaint)
    violations: list[str] = []
    if not entries:
        return [f"complaint {complaint.id} has no audit entries"]

    for expected, entry in enumerate(entries, start=1):
        if entry.sequence != expected:
            violations.append(f"sequence gap: expected {expected}, found {entry.sequence}")
            break

    if entries[0].prior_status is not None:
        violations.append("first entry has a prior status")
    for prev, entry in zip(entries, entries[1:]):
        if entry.prior_status != prev.new_status:
            violations.append(
                f"entry {entry.sequence} prior status {entry.prior_status} "
                f"does not follow {prev.new_status}"
            )

    if entries[-1].new_status != complaint.status:
        violations.append(
            f"complaint status {complaint.status} differs from last entry "
            f"{entries[-1].new_status}"
        )
    return violations
