"""
Shared pytest fixtures for the Discipline Case Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - default_tenant: Pre-created Tenant entity
    - center_committee / hq_committee: active discipline committees
    - committee_factory / complaint_factory: ORM factories; complaints can
      be placed in any status
"""

from datetime import date

import pytest

from app import create_app
from app.models import db as _db
from app.models.discipline import Committee, Complaint
from app.models.tenant import Tenant
from app.services.classification import decision_authority_for

CENTER_ID = 5


def _ensure_default_tenant():
    """Create a default tenant for tests if it doesn't exist; return its id."""
    t = Tenant.query.filter_by(slug="test-default").first()
    if not t:
        t = Tenant(name="Test Default", slug="test-default")
        _db.session.add(t)
        _db.session.commit()
    return t.id


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        _ensure_default_tenant()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def default_tenant():
    """Return the auto-created default test tenant."""
    return Tenant.query.filter_by(slug="test-default").first()


# ── Committee directory ──────────────────────────────────────────────────


def _make_committee(tenant_id, center_id=CENTER_ID, *, name=None,
                   committee_type="DISCIPLINE", status="ACTIVE"):
    """Create and commit a Committee row."""
    c = Committee(
        tenant_id=tenant_id,
        name=name or ("HQ Discipline Committee" if center_id is None
                      else f"Center {center_id} Discipline Committee"),
        center_id=center_id,
        committee_type=committee_type,
        status=status,
    )
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def center_committee(default_tenant):
    return _make_committee(default_tenant.id, CENTER_ID)


@pytest.fixture()
def hq_committee(default_tenant):
    return _make_committee(default_tenant.id, None)


# ── Complaint factory ────────────────────────────────────────────────────


def _make_complaint(tenant_id, *, status="UNDER_HR_REVIEW", article="ARTICLE_30",
                   severity_level=3, center_id=CENTER_ID, committee=None, **fields):
    """Create and commit a Complaint at an arbitrary status (bypasses the workflow).

    No audit entry is written; use the service to register when the ledger matters.
    """
    if article == "ARTICLE_31":
        severity_level = None
    count = Complaint.query.filter_by(tenant_id=tenant_id).count()
    values = dict(
        tenant_id=tenant_id,
        complaint_number=f"CMP-T{count + 1:03d}/26",
        article=article,
        offense_code="OFF-101",
        severity_level=severity_level,
        offense_occurrence=1,
        decision_authority=decision_authority_for(article, severity_level).value,
        accused_employee_id="EMP-100",
        superior_employee_id="EMP-200",
        complainant_type="EXTERNAL",
        complainant_name="A. Citizen",
        summary="Repeated unexcused absence",
        incident_date=date(2026, 3, 2),
        registered_date=date(2026, 3, 4),
        registered_by="hr-officer-1",
        status=status,
        center_id=center_id,
        assigned_committee_id=committee.id if committee else None,
    )
    values.update(fields)
    complaint = Complaint(**values)
    _db.session.add(complaint)
    _db.session.commit()
    return complaint


@pytest.fixture()
def committee_factory(default_tenant):
    """Return a callable creating committees in the default tenant."""
    def _make(center_id=CENTER_ID, **kw):
        return _make_committee(default_tenant.id, center_id, **kw)
    return _make


@pytest.fixture()
def complaint_factory(default_tenant):
    """Return a callable creating complaints in the default tenant."""
    def _make(**kw):
        return _make_complaint(default_tenant.id, **kw)
    return _make


@pytest.fixture()
def registration_data(default_tenant):
    """Valid Article 30 registration body (severity 3 → direct superior)."""
    return {
        "tenant_id": default_tenant.id,
        "actor_id": "hr-officer-1",
        "article": "ARTICLE_30",
        "offense_code": "OFF-101",
        "severity_level": 3,
        "accused_employee_id": "EMP-100",
        "superior_employee_id": "EMP-200",
        "complainant_type": "EMPLOYEE",
        "complainant_employee_id": "EMP-300",
        "summary": "Repeated unexcused absence",
        "incident_date": "2026-03-02",
        "registered_date": "2026-03-04",
        "center_id": CENTER_ID,
    }
