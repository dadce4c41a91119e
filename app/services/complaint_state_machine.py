"""
Complaint State Machine — transition table, validation and field effects.

The table below is the single source of truth for which action is legal in
which status, what it must satisfy, and where it leads. This module never
touches the session: it reads the complaint, raises on rejection and
mutates the in-memory object on success. Locking, auditing and committing
belong to ``complaint_service``.

Validation order (first failure wins):
    1. action known and legal for the current status   → IllegalTransition
    2. payload matches the action schema                → InvalidPayload
    3. semantic guards (committee level, deadlines, …)  → GuardFailed

Implicit step: a LIABLE finding that cannot go to headquarters is referred
for decision in the same unit of work (INVESTIGATION_COMPLETE →
AWAITING_SUPERIOR_DECISION), recorded as its own ``referForDecision`` step.

Usage:
    ctx = TransitionContext(actor_id="hr-7", tenant_id=1, committee_lookup=...)
    clean = validate(complaint, "recordFinding", payload, ctx)
    steps = apply(complaint, "recordFinding", clean, ctx)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable

from app.core.exceptions import GuardFailed, IllegalTransition
from app.models.discipline import (
    DECIDED_STATES,
    CommitteeLevel,
    ComplaintArticle,
    ComplaintStatus,
    Finding,
)
from app.services.action_schemas import (
    SUBMITTABLE_ACTIONS,
    ActionType,
    parse_action_type,
    validate_payload,
)
from app.services.classification import classify_complaint

S = ComplaintStatus


# ═════════════════════════════════════════════════════════════════════════════
# Data classes
# ═════════════════════════════════════════════════════════════════════════════


@dataclass
class TransitionContext:
    """Per-submission inputs the table needs beyond the complaint itself."""
    actor_id: str
    tenant_id: int
    rebuttal_window_days: int = 3
    committee_lookup: Callable[[int], Any] | None = None
    open_appeal: Any = None
    appeal_lookup: Callable[[int], Any] | None = None


@dataclass(frozen=True)
class TransitionStep:
    """One status change to be written to the audit ledger."""
    action_type: ActionType
    prior_status: ComplaintStatus
    new_status: ComplaintStatus
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Transition:
    action: ActionType
    sources: frozenset
    next_state: Callable[[Any, dict], ComplaintStatus]
    guard: Callable[[Any, dict, TransitionContext], str | None] | None = None
    effect: Callable[[Any, dict, TransitionContext], None] | None = None
    variant: str = "default"


def current_status(complaint) -> ComplaintStatus:
    return ComplaintStatus(complaint.status)


def is_terminal(complaint) -> bool:
    """CLOSED_FINAL always; CLOSED_NO_LIABILITY once closure was stamped."""
    status = current_status(complaint)
    if status is S.CLOSED_FINAL:
        return True
    return status is S.CLOSED_NO_LIABILITY and complaint.closed_date is not None


# ═════════════════════════════════════════════════════════════════════════════
# Guards return a failure reason, or None when satisfied
# ═════════════════════════════════════════════════════════════════════════════


def _lookup_committee(ctx: TransitionContext, committee_id):
    if ctx.committee_lookup is None:
        return None
    return ctx.committee_lookup(committee_id)


def _guard_forward_to_committee(complaint, payload, ctx):
    if not classify_complaint(complaint).is_level_escalated:
        return "complaint is not escalated to discipline committee level"
    committee = _lookup_committee(ctx, payload["committee_id"])
    if committee is None:
        return f"committee {payload['committee_id']} does not exist"
    if not committee.is_active or committee.committee_type != "DISCIPLINE":
        return f"committee {committee.id} is not an active discipline committee"
    if committee.center_id != complaint.center_id:
        return f"committee {committee.id} does not serve the complaint's center"
    return None


def _guard_deadline_passed(complaint, payload, ctx):
    if complaint.rebuttal_deadline is None:
        return "no rebuttal deadline is set"
    if not payload["as_of"] > complaint.rebuttal_deadline:
        return (f"rebuttal deadline {complaint.rebuttal_deadline.isoformat()} "
                f"has not passed as of {payload['as_of'].isoformat()}")
    return None


def _guard_forward_to_hq(complaint, payload, ctx):
    if complaint.article != ComplaintArticle.ARTICLE_31.value:
        return "only ARTICLE_31 complaints can be forwarded to headquarters"
    if not classify_complaint(complaint).can_forward_to_hq:
        return "complaint is not eligible for headquarters escalation"
    committee = _lookup_committee(ctx, payload["hq_committee_id"])
    if committee is None:
        return f"committee {payload['hq_committee_id']} does not exist"
    if not committee.is_active:
        return f"committee {committee.id} is not active"
    if committee.level is not CommitteeLevel.HQ:
        return f"committee {committee.id} is not a headquarters committee"
    return None


def _guard_no_open_appeal(complaint, payload, ctx):
    if ctx.open_appeal is not None:
        return f"appeal {ctx.open_appeal.id} is still open"
    return None


def _guard_appeal_target(complaint, payload, ctx):
    appeal = ctx.appeal_lookup(payload["appeal_id"]) if ctx.appeal_lookup else None
    if appeal is None or appeal.complaint_id != complaint.id:
        return f"appeal {payload['appeal_id']} does not belong to this complaint"
    if appeal.decision is not None:
        return f"appeal {appeal.id} is already decided"
    if ctx.open_appeal is None or ctx.open_appeal.id != appeal.id:
        return f"appeal {appeal.id} is not the open appeal"
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Field effects
# ═════════════════════════════════════════════════════════════════════════════


def _effect_send_notification(complaint, payload, ctx):
    complaint.notification_date = payload["notification_date"]
    complaint.rebuttal_deadline = payload["notification_date"] + timedelta(days=ctx.rebuttal_window_days)
    complaint.has_rebuttal = None


def _effect_forward_to_committee(complaint, payload, ctx):
    complaint.assigned_committee_id = payload["committee_id"]
    complaint.committee_assigned_date = payload["forwarded_date"]


def _effect_record_rebuttal(complaint, payload, ctx):
    complaint.has_rebuttal = True
    complaint.rebuttal_content = payload["rebuttal_content"]
    complaint.rebuttal_received_date = payload["rebuttal_received_date"]


def _effect_deadline_passed(complaint, payload, ctx):
    complaint.has_rebuttal = False


def _effect_record_finding(complaint, payload, ctx):
    complaint.finding = payload["finding"]
    complaint.finding_date = payload["finding_date"]
    complaint.finding_reason = payload["finding_reason"]
    complaint.finding_by = ctx.actor_id


def _effect_forward_to_hq(complaint, payload, ctx):
    complaint.assigned_committee_id = payload["hq_committee_id"]
    complaint.committee_assigned_date = payload["forwarded_date"]
    complaint.hq_forwarded_date = payload["forwarded_date"]


def _effect_record_decision(complaint, payload, ctx):
    complaint.decision_date = payload["decision_date"]
    complaint.decision_by = ctx.actor_id
    complaint.punishment_percentage = payload.get("punishment_percentage")
    complaint.punishment_description = payload["punishment_description"]


def _effect_close(complaint, payload, ctx):
    complaint.closed_date = payload["closed_date"]
    complaint.closed_by = ctx.actor_id
    complaint.closure_reason = payload.get("closure_reason")


# ═════════════════════════════════════════════════════════════════════════════
# Transition table
# ═════════════════════════════════════════════════════════════════════════════


def _by_source(mapping: dict) -> Callable[[Any, dict], ComplaintStatus]:
    return lambda complaint, payload: mapping[current_status(complaint)]


def _const(target: ComplaintStatus) -> Callable[[Any, dict], ComplaintStatus]:
    return lambda complaint, payload: target


def _finding_target(complaint, payload):
    if payload["finding"] == Finding.LIABLE.value:
        return S.INVESTIGATION_COMPLETE
    return S.CLOSED_NO_LIABILITY


def _close_target(complaint, payload):
    if current_status(complaint) is S.CLOSED_NO_LIABILITY:
        return S.CLOSED_NO_LIABILITY
    return S.CLOSED_FINAL


_REBUTTAL_EXIT = {
    S.WAITING_FOR_REBUTTAL: S.UNDER_HR_ANALYSIS,
    S.COMMITTEE_WAITING_REBUTTAL: S.COMMITTEE_ANALYSIS,
}

# Ordered as offered to callers by the action catalog.
TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        ActionType.SEND_NOTIFICATION,
        frozenset({S.UNDER_HR_REVIEW, S.WITH_DISCIPLINE_COMMITTEE}),
        _by_source({
            S.UNDER_HR_REVIEW: S.WAITING_FOR_REBUTTAL,
            S.WITH_DISCIPLINE_COMMITTEE: S.COMMITTEE_WAITING_REBUTTAL,
        }),
        effect=_effect_send_notification,
    ),
    Transition(
        ActionType.FORWARD_TO_COMMITTEE,
        frozenset({S.UNDER_HR_REVIEW, S.WAITING_FOR_REBUTTAL,
                   S.UNDER_HR_ANALYSIS, S.AWAITING_SUPERIOR_DECISION}),
        _const(S.WITH_DISCIPLINE_COMMITTEE),
        guard=_guard_forward_to_committee,
        effect=_effect_forward_to_committee,
    ),
    Transition(
        ActionType.RECORD_REBUTTAL,
        frozenset(_REBUTTAL_EXIT),
        _by_source(_REBUTTAL_EXIT),
        effect=_effect_record_rebuttal,
    ),
    Transition(
        ActionType.MARK_REBUTTAL_DEADLINE_PASSED,
        frozenset(_REBUTTAL_EXIT),
        _by_source(_REBUTTAL_EXIT),
        guard=_guard_deadline_passed,
        effect=_effect_deadline_passed,
        variant="destructive",
    ),
    Transition(
        ActionType.RECORD_FINDING,
        frozenset({S.UNDER_HR_ANALYSIS, S.COMMITTEE_ANALYSIS}),
        _finding_target,
        effect=_effect_record_finding,
    ),
    Transition(
        ActionType.FORWARD_TO_HQ,
        frozenset({S.INVESTIGATION_COMPLETE}),
        _const(S.AWAITING_HQ_DECISION),
        guard=_guard_forward_to_hq,
        effect=_effect_forward_to_hq,
    ),
    Transition(
        ActionType.RECORD_DECISION,
        frozenset({S.AWAITING_SUPERIOR_DECISION}),
        _const(S.DECIDED),
        effect=_effect_record_decision,
    ),
    Transition(
        ActionType.RECORD_HQ_DECISION,
        frozenset({S.AWAITING_HQ_DECISION}),
        _const(S.DECIDED_BY_HQ),
        effect=_effect_record_decision,
    ),
    Transition(
        # ON_APPEAL is a source so a second appeal fails the open-appeal guard.
        ActionType.SUBMIT_APPEAL,
        DECIDED_STATES | {S.ON_APPEAL},
        _const(S.ON_APPEAL),
        guard=_guard_no_open_appeal,
    ),
    Transition(
        ActionType.RECORD_APPEAL_DECISION,
        frozenset({S.ON_APPEAL}),
        _const(S.APPEAL_DECIDED),
        guard=_guard_appeal_target,
    ),
    Transition(
        ActionType.CLOSE_COMPLAINT,
        DECIDED_STATES | {S.CLOSED_NO_LIABILITY},
        _close_target,
        effect=_effect_close,
    ),
)

TRANSITIONS_BY_ACTION: dict[ActionType, Transition] = {t.action: t for t in TRANSITIONS}


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def is_legal(complaint, action) -> bool:
    """True when ``action`` is defined for the complaint's current status."""
    action_type = parse_action_type(action)
    if action_type not in SUBMITTABLE_ACTIONS:
        return False
    if is_terminal(complaint):
        return False
    return current_status(complaint) in TRANSITIONS_BY_ACTION[action_type].sources


def check_guard(complaint, action_type: ActionType, payload: dict, ctx: TransitionContext) -> None:
    """Raise GuardFailed when the action's semantic guard rejects ``payload``."""
    guard = TRANSITIONS_BY_ACTION[action_type].guard
    if guard is None:
        return
    reason = guard(complaint, payload, ctx)
    if reason:
        raise GuardFailed(action_type.value, reason)


def validate(complaint, action, payload: dict | None, ctx: TransitionContext) -> dict:
    """Validate a submission without mutating anything.

    Returns:
        The cleaned payload (dates parsed, text stripped).

    Raises:
        IllegalTransition, InvalidPayload, GuardFailed
    """
    action_type = parse_action_type(action)
    status = complaint.status
    if action_type is None:
        raise IllegalTransition(str(action), status, "unknown action")
    if action_type not in SUBMITTABLE_ACTIONS:
        raise IllegalTransition(action_type.value, status, "action is applied by the system only")
    if is_terminal(complaint):
        raise IllegalTransition(action_type.value, status, "complaint is closed")
    if current_status(complaint) not in TRANSITIONS_BY_ACTION[action_type].sources:
        raise IllegalTransition(action_type.value, status)

    clean = validate_payload(action_type, payload)
    check_guard(complaint, action_type, clean, ctx)
    return clean


def needs_referral(complaint) -> bool:
    """A LIABLE, investigated case that headquarters will not decide."""
    return (
        current_status(complaint) is S.INVESTIGATION_COMPLETE
        and complaint.finding == Finding.LIABLE.value
        and not classify_complaint(complaint).can_forward_to_hq
    )


def apply(complaint, action, payload: dict, ctx: TransitionContext) -> list[TransitionStep]:
    """Mutate the complaint for an already validated submission.

    Returns the ordered steps to audit: the requested transition, followed
    by the implicit referral when it applies.
    """
    action_type = ActionType(action)
    transition = TRANSITIONS_BY_ACTION[action_type]

    prior = current_status(complaint)
    target = transition.next_state(complaint, payload)
    if transition.effect is not None:
        transition.effect(complaint, payload, ctx)
    complaint.status = target.value
    steps = [TransitionStep(action_type, prior, target, payload)]

    if needs_referral(complaint):
        complaint.status = S.AWAITING_SUPERIOR_DECISION.value
        steps.append(TransitionStep(
            ActionType.REFER_FOR_DECISION,
            S.INVESTIGATION_COMPLETE,
            S.AWAITING_SUPERIOR_DECISION,
            {"finding": complaint.finding, "decision_authority": complaint.decision_authority},
        ))
    return steps


def initial_status(article) -> ComplaintStatus:
    """Status a newly registered complaint starts in."""
    if ComplaintArticle(article) is ComplaintArticle.ARTICLE_31:
        return S.WITH_DISCIPLINE_COMMITTEE
    return S.UNDER_HR_REVIEW
