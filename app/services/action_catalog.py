"""
Action Catalog — which actions a caller may submit next.

Combines the complaint's current status with its classification flags and
its open appeals to produce an ordered list of offers. The list is
advisory: every submission is re-validated by the state machine.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.services.action_schemas import ACTION_SCHEMAS, ActionType, FieldSpec
from app.services.classification import classify_complaint
from app.services.complaint_state_machine import TRANSITIONS, current_status, is_terminal


@dataclass(frozen=True)
class AvailableAction:
    action_type: ActionType
    required_fields: tuple[FieldSpec, ...]
    variant: str = "default"
    appeal_id: int | None = None

    def to_dict(self) -> dict:
        d = {
            "action_type": self.action_type.value,
            "required_fields": [f.to_dict() for f in self.required_fields],
            "variant": self.variant,
        }
        if self.appeal_id is not None:
            d["appeal_id"] = self.appeal_id
        return d


def available_actions(complaint) -> list[AvailableAction]:
    """Ordered offers for ``complaint`` in its current state."""
    if is_terminal(complaint):
        return []

    status = current_status(complaint)
    flags = classify_complaint(complaint)
    open_appeals = [a for a in complaint.appeals if a.decision is None]

    offers: list[AvailableAction] = []
    for transition in TRANSITIONS:
        if status not in transition.sources:
            continue
        action = transition.action
        fields = ACTION_SCHEMAS[action]

        if action is ActionType.FORWARD_TO_COMMITTEE and not flags.is_level_escalated:
            continue
        if action is ActionType.FORWARD_TO_HQ and not flags.can_forward_to_hq:
            continue
        if action is ActionType.SUBMIT_APPEAL and open_appeals:
            continue
        if action is ActionType.RECORD_APPEAL_DECISION:
            offers.extend(
                AvailableAction(action, fields, transition.variant, appeal_id=a.id)
                for a in open_appeals
            )
            continue
        offers.append(AvailableAction(action, fields, transition.variant))
    return offers
