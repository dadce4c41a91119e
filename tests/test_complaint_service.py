"""
Complaint service tests: registration and the submit-action unit of work.

Covers:
    - registration: numbering, initial status, Article 31 committee auto-assignment,
      field validation, offense occurrence
    - end-to-end paths: direct superior, discipline committee, headquarters
    - rejection leaves the case and its ledger untouched
    - persistence failures roll back the status change and the audit entry together
    - post-commit notifications (best effort)

Uses shared fixtures from conftest.py: default_tenant, session (autouse rollback),
center_committee, hq_committee, complaint_factory, registration_data.
"""

from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

import app.services.complaint_service as cs
from app.core.exceptions import (
    GuardFailed,
    IllegalTransition,
    InvalidPayload,
    NotFoundError,
    PersistenceFailure,
    ValidationError,
)
from app.models import db
from app.models.audit import ComplaintAuditEntry
from app.models.discipline import Complaint
from app.models.notification import Notification
from app.models.tenant import Tenant
from app.services import audit_trail
from app.services.notification import NotificationService

ACTOR = "hr-officer-1"


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════


def _register(tenant_id, data, **overrides):
    return cs.register_complaint(tenant_id, ACTOR, {**data, **overrides})


def _submit(complaint, action, payload=None, actor=ACTOR, **kw):
    return cs.submit_action(complaint.tenant_id, complaint.id, action, actor, payload, **kw)


def _entries(complaint):
    return ComplaintAuditEntry.query.filter_by(complaint_id=complaint.id) \
        .order_by(ComplaintAuditEntry.sequence).all()


def _reload(complaint_id):
    db.session.expire_all()
    return db.session.get(Complaint, complaint_id)


NOTIFY = {"notification_date": "2026-03-05"}
REBUT = {"rebuttal_content": "I was on approved leave", "rebuttal_received_date": "2026-03-07"}
LIABLE = {"finding": "LIABLE", "finding_date": "2026-03-10", "finding_reason": "Admitted"}
NOT_LIABLE = {"finding": "NOT_LIABLE", "finding_date": "2026-03-10",
              "finding_reason": "Leave approved retroactively"}
DECIDE = {"decision_date": "2026-03-20", "punishment_percentage": 10,
          "punishment_description": "Ten percent salary deduction for one month"}


# ═════════════════════════════════════════════════════════════════════════════
# Registration
# ═════════════════════════════════════════════════════════════════════════════


class TestRegistration:
    def test_article_30_starts_under_hr_review(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)

        assert c.status == "UNDER_HR_REVIEW"
        assert c.complaint_number == "CMP-0001/26"
        assert c.decision_authority == "DIRECT_SUPERIOR"
        assert c.registered_by == ACTOR
        assert c.version == 1
        assert c.assigned_committee_id is None

    def test_writes_first_audit_entry(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        entries = _entries(c)

        assert len(entries) == 1
        assert entries[0].sequence == 1
        assert entries[0].action_type == "register"
        assert entries[0].prior_status is None
        assert entries[0].new_status == "UNDER_HR_REVIEW"
        assert entries[0].actor_id == ACTOR
        assert entries[0].payload["complaint_number"] == "CMP-0001/26"

    def test_numbers_are_per_tenant(self, default_tenant, registration_data):
        other = Tenant(name="Other Org", slug="other-org")
        db.session.add(other)
        db.session.commit()

        first = _register(default_tenant.id, registration_data)
        second = _register(default_tenant.id, registration_data)
        foreign = _register(other.id, registration_data)

        assert first.complaint_number == "CMP-0001/26"
        assert second.complaint_number == "CMP-0002/26"
        assert foreign.complaint_number == "CMP-0001/26"

    def test_high_severity_needs_committee(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data, severity_level=6)
        assert c.decision_authority == "DISCIPLINE_COMMITTEE"
        assert c.status == "UNDER_HR_REVIEW"

    def test_article_31_assigns_center_committee(self, default_tenant, registration_data,
                                                 center_committee, hq_committee):
        c = _register(default_tenant.id, registration_data,
                      article="ARTICLE_31", severity_level=None)

        assert c.status == "WITH_DISCIPLINE_COMMITTEE"
        assert c.assigned_committee_id == center_committee.id
        assert c.committee_assigned_date == date(2026, 3, 4)
        assert c.decision_authority == "DISCIPLINE_COMMITTEE"

    def test_article_31_without_center_goes_to_hq(self, default_tenant, registration_data,
                                                  center_committee, hq_committee):
        c = _register(default_tenant.id, registration_data,
                      article="ARTICLE_31", severity_level=None, center_id=None)
        assert c.assigned_committee_id == hq_committee.id

    def test_article_31_without_committee_rejected(self, default_tenant, registration_data):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data,
                      article="ARTICLE_31", severity_level=None)
        assert "center_id" in exc.value.details
        assert Complaint.query.count() == 0
        assert (db.session.get(Tenant, default_tenant.id).settings or {}).get("complaint_counter") is None

    def test_inactive_committee_not_assigned(self, default_tenant, registration_data,
                                             committee_factory):
        committee_factory(status="DISSOLVED")
        with pytest.raises(ValidationError):
            _register(default_tenant.id, registration_data,
                      article="ARTICLE_31", severity_level=None)

    def test_article_31_rejects_severity(self, default_tenant, registration_data, center_committee):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data, article="ARTICLE_31")
        assert "severity_level" in exc.value.details

    def test_article_30_requires_severity(self, default_tenant, registration_data):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data, severity_level=None)
        assert "severity_level" in exc.value.details

    def test_missing_fields_reported_together(self, default_tenant):
        with pytest.raises(ValidationError) as exc:
            cs.register_complaint(default_tenant.id, ACTOR, {"article": "ARTICLE_30"})
        assert {"offense_code", "accused_employee_id", "summary",
                "incident_date", "complainant_type"} <= set(exc.value.details)

    def test_incident_after_registration_rejected(self, default_tenant, registration_data):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data, incident_date="2026-03-09")
        assert "incident_date" in exc.value.details

    def test_employee_complainant_needs_id(self, default_tenant, registration_data):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data, complainant_employee_id=None)
        assert "complainant_employee_id" in exc.value.details

    def test_anonymous_complainant_has_no_name(self, default_tenant, registration_data):
        with pytest.raises(ValidationError) as exc:
            _register(default_tenant.id, registration_data, complainant_type="ANONYMOUS",
                      complainant_employee_id=None, complainant_name="Someone")
        assert "complainant_name" in exc.value.details

    def test_unknown_tenant(self, registration_data):
        with pytest.raises(NotFoundError):
            cs.register_complaint(9999, ACTOR, registration_data)

    def test_actor_required(self, default_tenant, registration_data):
        with pytest.raises(ValidationError):
            cs.register_complaint(default_tenant.id, "", registration_data)

    def test_repeat_offense_counts_prior_liable_cases(self, default_tenant, registration_data,
                                                      complaint_factory):
        complaint_factory(status="DECIDED", finding="LIABLE")
        complaint_factory(status="CLOSED_NO_LIABILITY", finding="NOT_LIABLE")
        c = _register(default_tenant.id, registration_data)
        assert c.offense_occurrence == 2


# ═════════════════════════════════════════════════════════════════════════════
# Transition paths
# ═════════════════════════════════════════════════════════════════════════════


class TestSubmitAction:
    def test_send_notification_opens_rebuttal_window(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        result = _submit(c, "sendNotification", NOTIFY)

        assert result.previous_status == "UNDER_HR_REVIEW"
        assert result.new_status == "WAITING_FOR_REBUTTAL"
        assert result.version == 2
        c = _reload(c.id)
        assert c.rebuttal_deadline == date(2026, 3, 8)
        entry = db.session.get(ComplaintAuditEntry, result.audit_entry_id)
        assert entry.sequence == 2
        assert entry.prior_status == "UNDER_HR_REVIEW"
        assert entry.payload == {"notification_date": "2026-03-05"}

    def test_deadline_passed_then_rebuttal_is_illegal(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "markRebuttalDeadlinePassed", {"as_of": "2026-03-09"})

        with pytest.raises(IllegalTransition):
            _submit(c, "recordRebuttal", REBUT)
        c = _reload(c.id)
        assert c.status == "UNDER_HR_ANALYSIS"
        assert c.has_rebuttal is False
        assert len(_entries(c)) == 3

    def test_rejected_submission_changes_nothing(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        with pytest.raises(InvalidPayload):
            _submit(c, "sendNotification", {"notification_date": "not a date"})

        c = _reload(c.id)
        assert c.status == "UNDER_HR_REVIEW"
        assert c.version == 1
        assert len(_entries(c)) == 1

    def test_same_action_twice_is_not_duplicated(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        with pytest.raises(IllegalTransition):
            _submit(c, "sendNotification", NOTIFY)
        assert len(_entries(_reload(c.id))) == 2

    def test_liable_finding_writes_referral_entry(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "recordRebuttal", REBUT)
        result = _submit(c, "recordFinding", LIABLE, notes="Hearing held 09.03")

        assert result.previous_status == "UNDER_HR_ANALYSIS"
        assert result.new_status == "AWAITING_SUPERIOR_DECISION"
        assert len(result.audit_entry_ids) == 2
        assert result.audit_entry_id == result.audit_entry_ids[0]

        finding, referral = _entries(_reload(c.id))[-2:]
        assert (finding.action_type, finding.new_status) == ("recordFinding", "INVESTIGATION_COMPLETE")
        assert finding.notes == "Hearing held 09.03"
        assert (referral.action_type, referral.prior_status, referral.new_status) == (
            "referForDecision", "INVESTIGATION_COMPLETE", "AWAITING_SUPERIOR_DECISION")
        assert referral.notes is None

    def test_direct_superior_path_to_final_closure(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        for action, payload in [
            ("sendNotification", NOTIFY),
            ("recordRebuttal", REBUT),
            ("recordFinding", LIABLE),
            ("recordDecision", DECIDE),
            ("closeComplaint", {"closed_date": "2026-04-30"}),
        ]:
            _submit(c, action, payload)

        c = _reload(c.id)
        assert c.status == "CLOSED_FINAL"
        assert c.closed_by == ACTOR
        assert c.effective_punishment == DECIDE["punishment_description"]
        assert audit_trail.verify_ledger(c) == []
        assert [e.sequence for e in _entries(c)] == [1, 2, 3, 4, 5, 6, 7]

    def test_not_liable_closes_then_archives(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "recordRebuttal", REBUT)
        assert _submit(c, "recordFinding", NOT_LIABLE).new_status == "CLOSED_NO_LIABILITY"

        result = _submit(c, "closeComplaint", {"closed_date": "2026-04-01"})
        assert result.new_status == "CLOSED_NO_LIABILITY"
        with pytest.raises(IllegalTransition):
            _submit(c, "closeComplaint", {"closed_date": "2026-04-02"})

    def test_committee_path(self, default_tenant, registration_data, center_committee):
        c = _register(default_tenant.id, registration_data, severity_level=6)
        result = _submit(c, "forwardToCommittee",
                         {"committee_id": center_committee.id, "forwarded_date": "2026-03-05"})
        assert result.new_status == "WITH_DISCIPLINE_COMMITTEE"

        assert _submit(c, "sendNotification", NOTIFY).new_status == "COMMITTEE_WAITING_REBUTTAL"
        assert _submit(c, "recordRebuttal", REBUT).new_status == "COMMITTEE_ANALYSIS"
        assert _submit(c, "recordFinding", LIABLE).new_status == "AWAITING_SUPERIOR_DECISION"
        assert audit_trail.verify_ledger(_reload(c.id)) == []

    def test_forward_to_unrelated_center_committee(self, default_tenant, registration_data,
                                                   committee_factory):
        far = committee_factory(center_id=9)
        c = _register(default_tenant.id, registration_data, severity_level=6)
        with pytest.raises(GuardFailed):
            _submit(c, "forwardToCommittee", {"committee_id": far.id, "forwarded_date": "2026-03-05"})

    def test_headquarters_path(self, default_tenant, registration_data, hq_committee):
        c = _register(default_tenant.id, registration_data,
                      article="ARTICLE_31", severity_level=None, center_id=None)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "recordRebuttal", REBUT)
        assert _submit(c, "recordFinding", LIABLE).new_status == "INVESTIGATION_COMPLETE"

        result = _submit(c, "forwardToHq",
                         {"hq_committee_id": hq_committee.id, "forwarded_date": "2026-03-15"})
        assert result.new_status == "AWAITING_HQ_DECISION"
        result = _submit(c, "recordHqDecision", {"decision_date": "2026-03-25",
                                                 "punishment_description": "Demotion"})
        assert result.new_status == "DECIDED_BY_HQ"
        assert _reload(c.id).hq_forwarded_date == date(2026, 3, 15)

    def test_center_case_cannot_go_to_hq(self, complaint_factory, center_committee, hq_committee):
        c = complaint_factory(status="INVESTIGATION_COMPLETE", article="ARTICLE_31",
                              committee=center_committee, finding="LIABLE")
        with pytest.raises(GuardFailed):
            _submit(c, "forwardToHq",
                    {"hq_committee_id": hq_committee.id, "forwarded_date": "2026-03-15"})

    def test_actor_required(self, complaint_factory):
        c = complaint_factory()
        with pytest.raises(ValidationError):
            _submit(c, "sendNotification", NOTIFY, actor=None)

    def test_unknown_complaint(self, default_tenant):
        with pytest.raises(NotFoundError):
            cs.submit_action(default_tenant.id, 424242, "sendNotification", ACTOR, NOTIFY)

    def test_other_tenant_cannot_touch_case(self, complaint_factory):
        other = Tenant(name="Other Org", slug="other-org")
        db.session.add(other)
        db.session.commit()
        c = complaint_factory()
        with pytest.raises(NotFoundError):
            cs.submit_action(other.id, c.id, "sendNotification", ACTOR, NOTIFY)


# ═════════════════════════════════════════════════════════════════════════════
# Atomicity
# ═════════════════════════════════════════════════════════════════════════════


class TestAtomicity:
    def test_audit_write_failure_rolls_back_status(self, default_tenant, registration_data,
                                                   monkeypatch):
        c = _register(default_tenant.id, registration_data)

        def boom(*args, **kwargs):
            raise OperationalError("INSERT INTO complaint_audit_entries", {}, Exception("disk I/O error"))

        monkeypatch.setattr(audit_trail, "append_entry", boom)
        with pytest.raises(PersistenceFailure):
            _submit(c, "sendNotification", NOTIFY)
        monkeypatch.undo()

        c = _reload(c.id)
        assert c.status == "UNDER_HR_REVIEW"
        assert c.notification_date is None
        assert c.version == 1
        assert len(_entries(c)) == 1

    def test_commit_failure_rolls_back_both(self, default_tenant, registration_data, monkeypatch):
        c = _register(default_tenant.id, registration_data)

        def boom():
            raise OperationalError("COMMIT", {}, Exception("connection lost"))

        monkeypatch.setattr(db.session, "commit", boom)
        with pytest.raises(PersistenceFailure):
            _submit(c, "sendNotification", NOTIFY)
        monkeypatch.undo()

        c = _reload(c.id)
        assert c.status == "UNDER_HR_REVIEW"
        assert len(_entries(c)) == 1
        assert audit_trail.verify_ledger(c) == []


# ═════════════════════════════════════════════════════════════════════════════
# Notifications
# ═════════════════════════════════════════════════════════════════════════════


class TestNotifications:
    def test_accused_told_about_rebuttal_window(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)

        items, total = NotificationService.list_for_recipient(default_tenant.id, "EMP-100")
        assert total == 1
        assert items[0].entity_id == c.id
        assert items[0].severity == "warning"
        assert "2026-03-08" in items[0].message

    def test_superior_told_about_referral(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "recordRebuttal", REBUT)
        _submit(c, "recordFinding", LIABLE)

        items, total = NotificationService.list_for_recipient(default_tenant.id, "EMP-200")
        assert total == 1
        assert "awaits your decision" in items[0].title

    def test_no_notification_for_silent_states(self, default_tenant, registration_data):
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        _submit(c, "recordRebuttal", REBUT)
        assert Notification.query.count() == 1

    def test_disabled_by_config(self, app, default_tenant, registration_data, monkeypatch):
        monkeypatch.setitem(app.config, "DISCIPLINE_NOTIFICATIONS_ENABLED", False)
        c = _register(default_tenant.id, registration_data)
        _submit(c, "sendNotification", NOTIFY)
        assert Notification.query.count() == 0

    def test_failure_does_not_undo_transition(self, default_tenant, registration_data,
                                              monkeypatch):
        c = _register(default_tenant.id, registration_data)

        def boom(*args, **kwargs):
            raise RuntimeError("mail relay down")

        monkeypatch.setattr(cs, "notify_transition", boom)
        result = _submit(c, "sendNotification", NOTIFY)

        assert result.new_status == "WAITING_FOR_REBUTTAL"
        assert _reload(c.id).status == "WAITING_FOR_REBUTTAL"
        assert Notification.query.count() == 0
