"""
Concurrent modification tests.

Two callers read the same case version and submit different actions:
only the first is accepted, the second gets ConcurrentModification and,
resubmitted against the fresh state, is re-evaluated from scratch.
Lost updates detected at flush (version column) and duplicate ledger
sequences map to the same error.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

import app.services.complaint_service as cs
from app.core.exceptions import ConcurrentModification, IllegalTransition
from app.models import db
from app.models.audit import ComplaintAuditEntry
from app.models.discipline import Complaint
from app.services import audit_trail

ACTOR_A = "hr-officer-1"
ACTOR_B = "hr-officer-2"

NOTIFY = {"notification_date": "2026-03-05"}
REBUT = {"rebuttal_content": "Was on leave", "rebuttal_received_date": "2026-03-07"}
EXPIRE = {"as_of": "2026-03-09"}


def _ledger_size(complaint_id):
    return ComplaintAuditEntry.query.filter_by(complaint_id=complaint_id).count()


@pytest.fixture()
def waiting_case(default_tenant, registration_data):
    c = cs.register_complaint(default_tenant.id, ACTOR_A, registration_data)
    cs.submit_action(c.tenant_id, c.id, "sendNotification", ACTOR_A, NOTIFY)
    return c


class TestStaleVersion:
    def test_second_writer_rejected(self, waiting_case):
        seen = waiting_case.version

        cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                         ACTOR_A, REBUT, expected_version=seen)
        with pytest.raises(ConcurrentModification) as exc:
            cs.submit_action(waiting_case.tenant_id, waiting_case.id,
                             "markRebuttalDeadlinePassed", ACTOR_B, EXPIRE,
                             expected_version=seen)

        assert exc.value.expected_version == seen
        assert exc.value.actual_version == seen + 1
        assert _ledger_size(waiting_case.id) == 3

    def test_retry_against_fresh_state_is_reevaluated(self, waiting_case):
        seen = waiting_case.version
        cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                         ACTOR_A, REBUT, expected_version=seen)
        with pytest.raises(ConcurrentModification):
            cs.submit_action(waiting_case.tenant_id, waiting_case.id,
                             "markRebuttalDeadlinePassed", ACTOR_B, EXPIRE,
                             expected_version=seen)

        fresh = cs.get_complaint(waiting_case.tenant_id, waiting_case.id)
        with pytest.raises(IllegalTransition):
            cs.submit_action(fresh.tenant_id, fresh.id, "markRebuttalDeadlinePassed",
                             ACTOR_B, EXPIRE, expected_version=fresh.version)

    def test_retry_can_be_accepted(self, waiting_case):
        seen = waiting_case.version
        cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                         ACTOR_A, REBUT, expected_version=seen)
        with pytest.raises(ConcurrentModification):
            cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordFinding", ACTOR_B,
                             {"finding": "NOT_LIABLE", "finding_date": "2026-03-10",
                              "finding_reason": "Leave confirmed"},
                             expected_version=seen)

        fresh = cs.get_complaint(waiting_case.tenant_id, waiting_case.id)
        result = cs.submit_action(fresh.tenant_id, fresh.id, "recordFinding", ACTOR_B,
                                  {"finding": "NOT_LIABLE", "finding_date": "2026-03-10",
                                   "finding_reason": "Leave confirmed"},
                                  expected_version=fresh.version)
        assert result.new_status == "CLOSED_NO_LIABILITY"

    def test_matching_version_accepted(self, waiting_case):
        result = cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                                  ACTOR_A, REBUT, expected_version=waiting_case.version)
        assert result.version == 3


class TestFlushConflicts:
    def test_stale_row_maps_to_concurrent_modification(self, waiting_case, monkeypatch):
        def lost_update(*args, **kwargs):
            raise StaleDataError("UPDATE statement on table 'complaints' expected to update 1 row(s)")

        monkeypatch.setattr(audit_trail, "append_entry", lost_update)
        with pytest.raises(ConcurrentModification):
            cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                             ACTOR_A, REBUT)
        monkeypatch.undo()

        db.session.expire_all()
        c = db.session.get(Complaint, waiting_case.id)
        assert c.status == "WAITING_FOR_REBUTTAL"
        assert _ledger_size(c.id) == 2

    def test_duplicate_sequence_maps_to_concurrent_modification(self, waiting_case, monkeypatch):
        monkeypatch.setattr(audit_trail, "_next_sequence", lambda complaint_id: 2)
        with pytest.raises(ConcurrentModification):
            cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                             ACTOR_A, REBUT)
        monkeypatch.undo()

        db.session.expire_all()
        c = db.session.get(Complaint, waiting_case.id)
        assert c.status == "WAITING_FOR_REBUTTAL"
        assert c.version == 2
        assert _ledger_size(c.id) == 2


class TestLockedRecheck:
    """Without expected_version the second writer is judged against the committed row."""

    def test_snapshot_action_rejected_against_fresh_status(self, waiting_case):
        snapshot = waiting_case.to_dict()
        cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                         ACTOR_A, REBUT)

        with pytest.raises(IllegalTransition) as exc:
            cs.submit_action(snapshot["tenant_id"], snapshot["id"],
                             "markRebuttalDeadlinePassed", ACTOR_B, EXPIRE)

        assert snapshot["status"] == "WAITING_FOR_REBUTTAL"
        assert "UNDER_HR_ANALYSIS" in str(exc.value)
        assert _ledger_size(waiting_case.id) == 3

    def test_snapshot_action_applied_to_fresh_row(self, waiting_case):
        snapshot = waiting_case.to_dict()
        cs.submit_action(waiting_case.tenant_id, waiting_case.id, "recordRebuttal",
                         ACTOR_A, REBUT)

        result = cs.submit_action(snapshot["tenant_id"], snapshot["id"], "recordFinding", ACTOR_B,
                                  {"finding": "NOT_LIABLE", "finding_date": "2026-03-10",
                                   "finding_reason": "Leave confirmed"})

        assert result.previous_status == "UNDER_HR_ANALYSIS"
        assert result.version == snapshot["version"] + 2
        entries = cs.get_timeline(waiting_case.tenant_id, waiting_case.id)
        assert [e.actor_id for e in entries[-2:]] == [ACTOR_A, ACTOR_B]
        assert entries[-1].prior_status == entries[-2].new_status
