"""
Action payload schemas for the complaint workflow.

Declares, for every submittable action, the fields a caller must send and
how each one is checked. Shared by the state machine (which enforces the
schema on every submission) and the action catalog (which advertises it).

Usage:
    from app.services.action_schemas import ActionType, validate_payload
    clean = validate_payload(ActionType.RECORD_FINDING, request_json)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core.exceptions import InvalidPayload
from app.models.discipline import AppealDecision, Finding
from app.utils.helpers import parse_date_input


class ActionType(str, Enum):
    REGISTER = "register"
    SEND_NOTIFICATION = "sendNotification"
    FORWARD_TO_COMMITTEE = "forwardToCommittee"
    RECORD_REBUTTAL = "recordRebuttal"
    MARK_REBUTTAL_DEADLINE_PASSED = "markRebuttalDeadlinePassed"
    RECORD_FINDING = "recordFinding"
    FORWARD_TO_HQ = "forwardToHq"
    REFER_FOR_DECISION = "referForDecision"
    RECORD_DECISION = "recordDecision"
    RECORD_HQ_DECISION = "recordHqDecision"
    SUBMIT_APPEAL = "submitAppeal"
    RECORD_APPEAL_DECISION = "recordAppealDecision"
    CLOSE_COMPLAINT = "closeComplaint"


# Written by the engine itself, never accepted from a caller.
IMPLICIT_ACTIONS = frozenset({ActionType.REGISTER, ActionType.REFER_FOR_DECISION})


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: str                      # date | text | int | choice
    required: bool = True
    choices: tuple[str, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None

    def to_dict(self) -> dict:
        d = {"name": self.name, "type": self.type, "required": self.required}
        if self.choices:
            d["choices"] = list(self.choices)
        if self.minimum is not None:
            d["minimum"] = self.minimum
        if self.maximum is not None:
            d["maximum"] = self.maximum
        return d


def _choices(enum_cls) -> tuple[str, ...]:
    return tuple(m.value for m in enum_cls)


ACTION_SCHEMAS: dict[ActionType, tuple[FieldSpec, ...]] = {
    ActionType.SEND_NOTIFICATION: (
        FieldSpec("notification_date", "date"),
    ),
    ActionType.FORWARD_TO_COMMITTEE: (
        FieldSpec("committee_id", "int", minimum=1),
        FieldSpec("forwarded_date", "date"),
    ),
    ActionType.RECORD_REBUTTAL: (
        FieldSpec("rebuttal_content", "text"),
        FieldSpec("rebuttal_received_date", "date"),
    ),
    ActionType.MARK_REBUTTAL_DEADLINE_PASSED: (
        FieldSpec("as_of", "date"),
    ),
    ActionType.RECORD_FINDING: (
        FieldSpec("finding", "choice", choices=_choices(Finding)),
        FieldSpec("finding_date", "date"),
        FieldSpec("finding_reason", "text"),
    ),
    ActionType.FORWARD_TO_HQ: (
        FieldSpec("hq_committee_id", "int", minimum=1),
        FieldSpec("forwarded_date", "date"),
    ),
    ActionType.RECORD_DECISION: (
        FieldSpec("decision_date", "date"),
        FieldSpec("punishment_percentage", "int", minimum=0, maximum=100),
        FieldSpec("punishment_description", "text"),
    ),
    ActionType.RECORD_HQ_DECISION: (
        FieldSpec("decision_date", "date"),
        FieldSpec("punishment_description", "text"),
        FieldSpec("punishment_percentage", "int", required=False, minimum=0, maximum=100),
    ),
    ActionType.SUBMIT_APPEAL: (
        FieldSpec("appeal_date", "date"),
        FieldSpec("appeal_reason", "text"),
        FieldSpec("reviewer_employee_id", "text"),
    ),
    ActionType.RECORD_APPEAL_DECISION: (
        FieldSpec("appeal_id", "int", minimum=1),
        FieldSpec("decision", "choice", choices=_choices(AppealDecision)),
        FieldSpec("decision_reason", "text"),
        FieldSpec("decision_date", "date"),
        FieldSpec("new_punishment", "text", required=False),
    ),
    ActionType.CLOSE_COMPLAINT: (
        FieldSpec("closed_date", "date"),
        FieldSpec("closure_reason", "text", required=False),
    ),
}

SUBMITTABLE_ACTIONS = frozenset(ACTION_SCHEMAS)


def parse_action_type(value) -> ActionType | None:
    """Map a raw action name to ActionType, or None when unknown."""
    try:
        return ActionType(value)
    except ValueError:
        return None


# ── Field coercion ───────────────────────────────────────────────────────────


def _coerce(spec: FieldSpec, raw):
    """Return the cleaned value or raise ValueError with a field message."""
    if spec.type == "date":
        return parse_date_input(raw)
    if spec.type == "text":
        if not isinstance(raw, str):
            raise ValueError("must be a string")
        return raw.strip()
    if spec.type == "int":
        if isinstance(raw, bool):
            raise ValueError("must be an integer")
        try:
            number = int(raw)
        except (TypeError, ValueError, OverflowError):
            raise ValueError("must be an integer") from None
        if isinstance(raw, float) and raw != number:
            raise ValueError("must be an integer")
        if spec.minimum is not None and number < spec.minimum:
            raise ValueError(f"must be at least {spec.minimum}")
        if spec.maximum is not None and number > spec.maximum:
            raise ValueError(f"must be at most {spec.maximum}")
        return number
    if spec.type == "choice":
        if raw not in spec.choices:
            raise ValueError(f"must be one of {', '.join(spec.choices)}")
        return raw
    raise ValueError(f"unsupported field type {spec.type}")


def validate_payload(action_type: ActionType, payload: dict | None) -> dict:
    """Check ``payload`` against the action's schema.

    Returns a dict holding exactly the schema's fields, coerced (dates
    parsed, text stripped). Optional fields that were not supplied are None.
    Unknown keys are dropped.

    Raises:
        InvalidPayload: with one entry per offending field.
    """
    payload = payload or {}
    if not isinstance(payload, dict):
        raise InvalidPayload(action_type.value, {"payload": "must be an object"})

    cleaned: dict = {}
    errors: dict[str, str] = {}
    for spec in ACTION_SCHEMAS[action_type]:
        raw = payload.get(spec.name)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            if spec.required:
                errors[spec.name] = "is required"
            cleaned[spec.name] = None
            continue
        try:
            cleaned[spec.name] = _coerce(spec, raw)
        except ValueError as exc:
            errors[spec.name] = str(exc)

    if action_type is ActionType.RECORD_APPEAL_DECISION and "decision" not in errors:
        if cleaned.get("decision") == AppealDecision.MODIFIED.value:
            if not cleaned.get("new_punishment") and "new_punishment" not in errors:
                errors["new_punishment"] = "is required when decision is MODIFIED"
        else:
            # A replacement punishment only exists for MODIFIED decisions.
            errors.pop("new_punishment", None)
            cleaned["new_punishment"] = None

    if errors:
        raise InvalidPayload(action_type.value, errors)
    return cleaned
