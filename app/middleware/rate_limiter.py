"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies the limits per route group.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# blueprint name → limit string
BLUEPRINT_LIMITS = {
    "complaints": "60/minute",
}


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints (per remote IP).

        - Complaint workflow:  60/minute

    Rate limiting is disabled in testing mode or with RATELIMIT_ENABLED=false.
    """
    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name, limit in BLUEPRINT_LIMITS.items():
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(limit)(bp)

    app.logger.info("Rate limiter configured: %s",
                    ", ".join(f"{k}={v}" for k, v in BLUEPRINT_LIMITS.items()))
