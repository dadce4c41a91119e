"""
Committee directory — read-only lookups used by registration and guards.

Committee maintenance happens outside this application; these helpers
only answer "which committee" questions.
"""

from __future__ import annotations

from app.models.discipline import Committee


def get_committee(tenant_id: int, committee_id: int) -> Committee | None:
    """Return the committee within the tenant, or None."""
    if committee_id is None:
        return None
    return Committee.get_for_tenant(tenant_id, committee_id)


def find_discipline_committee(tenant_id: int, center_id: int | None) -> Committee | None:
    """Return the active discipline committee serving ``center_id``.

    ``center_id`` None selects the headquarters committee. When several
    match, the oldest (lowest id) wins.
    """
    q = Committee.query_for_tenant(tenant_id).filter_by(
        committee_type="DISCIPLINE", status="ACTIVE",
    )
    if center_id is None:
        q = q.filter(Committee.center_id.is_(None))
    else:
        q = q.filter(Committee.center_id == center_id)
    return q.order_by(Committee.id.asc()).first()
