"""
Rate limiting configuration.

The Limiter instance is created in portal/__init__.py with no default
limits; this module applies limits to the unauthenticated entry points,
which are the ones open to credential stuffing and request spam.

Usage:
    from portal.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# endpoint → limit
ENDPOINT_LIMITS = {
    "auth_bp.login": "10/minute",
    "auth_bp.register": "5/minute",
    "access_request_bp.create_access_request": "5/minute",
}


def init_rate_limits(app, limiter):
    """
    Apply per-endpoint limits (per remote IP) and exempt health checks.

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for endpoint, limit in ENDPOINT_LIMITS.items():
        view = app.view_functions.get(endpoint)
        if view is None:
            logger.warning("Rate limit target %s not registered", endpoint)
            continue
        app.view_functions[endpoint] = limiter.limit(limit)(view)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: %s",
        ", ".join(f"{e}={lim}" for e, lim in ENDPOINT_LIMITS.items()),
    )
