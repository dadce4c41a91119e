"""
Discipline Case Platform
Scheduled Jobs.

Concrete job implementations, run by name through SchedulerService.

Jobs:
    - rebuttal_deadline_sweep: expires rebuttal windows whose deadline passed
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from app.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


@register_job("rebuttal_deadline_sweep")
def rebuttal_deadline_sweep(app) -> dict[str, Any]:
    """Move complaints whose rebuttal deadline passed out of the waiting states."""
    from app.services.complaint_service import sweep_rebuttal_deadlines

    results = sweep_rebuttal_deadlines(
        date.today(), actor_id=app.config.get("DEADLINE_SWEEP_ACTOR"),
    )
    logger.info("rebuttal_deadline_sweep: %d processed, %d errors",
                len(results["processed"]), len(results["errors"]))
    return results
