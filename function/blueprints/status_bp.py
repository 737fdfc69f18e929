# ============================================================================
# STATUS BLUEPRINT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Read-only system status
# PURPOSE: Expose image readiness and upstream connectivity
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Status Blueprint

- GET /api/status - Overall readiness (ready | building | degraded)

Unauthenticated and read-only. Never cached by intermediaries. Errors
return a generic body; exception text stays in the logs.
"""

import json
import logging

import azure.functions as func

from core.errors import SpotRunnerError
from function.dependencies import get_status_service

logger = logging.getLogger(__name__)
status_bp = func.Blueprint()

NO_CACHE = "no-cache, no-store, must-revalidate"


def _json_response(data: dict, status_code: int = 200) -> func.HttpResponse:
    """Create JSON HTTP response."""
    return func.HttpResponse(
        json.dumps(data, default=str, indent=2),
        status_code=status_code,
        headers={"Content-Type": "application/json", "Cache-Control": NO_CACHE},
    )


@status_bp.route(route="status", methods=["GET"])
def system_status(req: func.HttpRequest) -> func.HttpResponse:
    """
    System status.

    GET /api/status
    """
    try:
        response = get_status_service().get_status()
    except SpotRunnerError as e:
        logger.exception(f"Error fetching status: {e}")
        return _json_response(
            {"status": "error", "message": "Failed to retrieve status"},
            status_code=500,
        )

    return _json_response(response.model_dump(mode="json", by_alias=True))


__all__ = ["status_bp"]
