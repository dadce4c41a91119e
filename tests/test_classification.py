"""
Case classification tests.

Pure functions, no HTTP: decision authority from the severity table and the
two escalation flags (is_level_escalated, can_forward_to_hq).
"""

import pytest

from app.core.exceptions import ValidationError
from app.models.discipline import DecisionAuthority
from app.services.classification import (
    SEVERITY_AUTHORITY,
    classify,
    classify_complaint,
    decision_authority_for,
    validate_severity,
)


# ═════════════════════════════════════════════════════════════════════════════
# Decision authority
# ═════════════════════════════════════════════════════════════════════════════


class TestDecisionAuthority:
    @pytest.mark.parametrize("level", [1, 2, 3, 4])
    def test_low_severity_goes_to_direct_superior(self, level):
        assert decision_authority_for("ARTICLE_30", level) is DecisionAuthority.DIRECT_SUPERIOR

    @pytest.mark.parametrize("level", [5, 6, 7])
    def test_high_severity_goes_to_committee(self, level):
        assert decision_authority_for("ARTICLE_30", level) is DecisionAuthority.DISCIPLINE_COMMITTEE

    def test_article_31_always_committee(self):
        assert decision_authority_for("ARTICLE_31") is DecisionAuthority.DISCIPLINE_COMMITTEE

    def test_table_covers_every_level(self):
        assert sorted(SEVERITY_AUTHORITY) == [1, 2, 3, 4, 5, 6, 7]

    def test_article_30_requires_severity(self):
        with pytest.raises(ValidationError) as exc:
            decision_authority_for("ARTICLE_30")
        assert "severity_level" in exc.value.details

    @pytest.mark.parametrize("bad", [0, 8, -1, "high", True, None])
    def test_out_of_range_severity_rejected(self, bad):
        with pytest.raises(ValidationError):
            validate_severity(bad)

    def test_numeric_string_accepted(self):
        assert validate_severity("6") == 6

    def test_unknown_article_rejected(self):
        with pytest.raises(ValueError):
            decision_authority_for("ARTICLE_99", 3)


# ═════════════════════════════════════════════════════════════════════════════
# Flags
# ═════════════════════════════════════════════════════════════════════════════


class TestFlags:
    def test_article_30_committee_case_without_committee_is_escalated(self):
        flags = classify("ARTICLE_30", committee_assigned=False, center_id=5, severity_level=6)
        assert flags.is_level_escalated is True
        assert flags.can_forward_to_hq is False

    def test_escalation_clears_once_committee_assigned(self):
        flags = classify("ARTICLE_30", committee_assigned=True, center_id=5, severity_level=6)
        assert flags.is_level_escalated is False

    def test_superior_case_never_escalated(self):
        flags = classify("ARTICLE_30", committee_assigned=False, center_id=5, severity_level=2)
        assert flags.is_level_escalated is False
        assert flags.decision_authority is DecisionAuthority.DIRECT_SUPERIOR

    def test_hq_article_31_case_can_forward(self):
        flags = classify("ARTICLE_31", committee_assigned=True, center_id=None)
        assert flags.can_forward_to_hq is True
        assert flags.is_level_escalated is False

    def test_center_article_31_case_cannot_forward(self):
        flags = classify("ARTICLE_31", committee_assigned=True, center_id=5)
        assert flags.can_forward_to_hq is False

    def test_article_31_without_committee_cannot_forward(self):
        flags = classify("ARTICLE_31", committee_assigned=False, center_id=None)
        assert flags.can_forward_to_hq is False

    def test_stored_authority_wins_over_severity(self):
        flags = classify("ARTICLE_30", committee_assigned=False, center_id=5,
                         severity_level=2, decision_authority="DISCIPLINE_COMMITTEE")
        assert flags.is_level_escalated is True

    def test_to_dict_shape(self):
        d = classify("ARTICLE_31", committee_assigned=True, center_id=None).to_dict()
        assert d == {
            "decision_authority": "DISCIPLINE_COMMITTEE",
            "can_forward_to_hq": True,
            "is_level_escalated": False,
        }


class TestClassifyComplaint:
    def test_reads_stored_fields(self, complaint_factory, hq_committee):
        c = complaint_factory(article="ARTICLE_31", center_id=None, committee=hq_committee,
                              status="WITH_DISCIPLINE_COMMITTEE")
        flags = classify_complaint(c)
        assert flags.can_forward_to_hq is True

    def test_does_not_mutate(self, complaint_factory):
        c = complaint_factory(severity_level=6)
        before = c.to_dict()
        classify_complaint(c)
        assert c.to_dict() == before
