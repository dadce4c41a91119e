"""
Case Classification — decision authority and escalation flags.

Pure functions over a complaint's classification inputs. Nothing here
touches the database or mutates a complaint; the state machine and the
action catalog consult the result as a guard or an offer filter.

Rules:
    - ARTICLE_31 cases are always decided by a discipline committee.
    - ARTICLE_30 cases follow the severity policy table: levels 1–4 go to
      the direct superior, levels 5–7 to a discipline committee.
    - is_level_escalated: an Article 30 case that needs a committee but has
      none assigned yet. Clears as soon as a committee is assigned.
    - can_forward_to_hq: an Article 31 case with a committee assigned and
      no center, i.e. a headquarters-level case.

Usage:
    from app.services.classification import classify_complaint
    flags = classify_complaint(complaint)
    if flags.is_level_escalated: ...
"""

from __future__ import annotations

from dataclasses import dataclass

from app.core.exceptions import ValidationError
from app.models.discipline import ComplaintArticle, DecisionAuthority


# ═════════════════════════════════════════════════════════════════════════════
# Policy table
# ═════════════════════════════════════════════════════════════════════════════

SEVERITY_MIN = 1
SEVERITY_MAX = 7

# severity level → decision authority for Article 30 offenses
SEVERITY_AUTHORITY: dict[int, DecisionAuthority] = {
    **{level: DecisionAuthority.DIRECT_SUPERIOR for level in range(1, 5)},
    **{level: DecisionAuthority.DISCIPLINE_COMMITTEE for level in range(5, 8)},
}


@dataclass(frozen=True)
class Classification:
    """Advisory classification of a complaint."""
    decision_authority: DecisionAuthority
    can_forward_to_hq: bool
    is_level_escalated: bool

    def to_dict(self) -> dict:
        return {
            "decision_authority": self.decision_authority.value,
            "can_forward_to_hq": self.can_forward_to_hq,
            "is_level_escalated": self.is_level_escalated,
        }


def validate_severity(severity_level) -> int:
    """Return ``severity_level`` as an int in 1–7 or raise ValidationError."""
    if isinstance(severity_level, bool):
        raise ValidationError("severity_level must be an integer",
                              details={"severity_level": "must be an integer 1–7"})
    try:
        level = int(severity_level)
    except (TypeError, ValueError):
        raise ValidationError("severity_level must be an integer",
                              details={"severity_level": "must be an integer 1–7"}) from None
    if not SEVERITY_MIN <= level <= SEVERITY_MAX:
        raise ValidationError(f"severity_level {level} is out of range",
                              details={"severity_level": "must be between 1 and 7"})
    return level


def decision_authority_for(article, severity_level=None) -> DecisionAuthority:
    """Derive the decision authority from article and (Article 30) severity."""
    article = ComplaintArticle(article)
    if article is ComplaintArticle.ARTICLE_31:
        return DecisionAuthority.DISCIPLINE_COMMITTEE
    if severity_level is None:
        raise ValidationError("severity_level is required for ARTICLE_30 complaints",
                              details={"severity_level": "required for ARTICLE_30"})
    return SEVERITY_AUTHORITY[validate_severity(severity_level)]


def classify(
    article,
    committee_assigned: bool,
    center_id: int | None,
    *,
    severity_level: int | None = None,
    decision_authority=None,
) -> Classification:
    """Compute the classification flags.

    ``decision_authority`` may be passed when already stored on the case;
    otherwise it is derived from article and severity.
    """
    article = ComplaintArticle(article)
    if decision_authority is None:
        authority = decision_authority_for(article, severity_level)
    else:
        authority = DecisionAuthority(decision_authority)

    is_level_escalated = (
        article is ComplaintArticle.ARTICLE_30
        and authority is DecisionAuthority.DISCIPLINE_COMMITTEE
        and not committee_assigned
    )
    can_forward_to_hq = (
        article is ComplaintArticle.ARTICLE_31
        and committee_assigned
        and center_id is None
    )
    return Classification(
        decision_authority=authority,
        can_forward_to_hq=can_forward_to_hq,
        is_level_escalated=is_level_escalated,
    )


def classify_complaint(complaint) -> Classification:
    """Classify a stored complaint."""
    return classify(
        complaint.article,
        complaint.assigned_committee_id is not None,
        complaint.center_id,
        severity_level=complaint.severity_level,
        decision_authority=complaint.decision_authority,
    )
