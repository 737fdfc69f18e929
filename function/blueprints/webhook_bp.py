# ============================================================================
# WEBHOOK BLUEPRINT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Job intake endpoint
# PURPOSE: Receive workflow_job deliveries and hand them to the intake service
# CREATED: 10 OCT 2026
# ============================================================================
"""
Webhook Blueprint

- POST /api/webhook - GitHub `workflow_job` deliveries

The raw body is passed through untouched; the signature is computed over
those exact bytes. Status codes:

    200  provisioned, or nothing to do (ignored event, no route, duplicate)
    401  signature missing or wrong
    503  configuration missing or invalid (nothing was written)
    500  provisioning failed (record marked failed) or storage error
"""

import json
import logging

import azure.functions as func

from core.errors import SpotRunnerError
from function.dependencies import get_intake_service
from function.models.responses import ErrorResponse

logger = logging.getLogger(__name__)
webhook_bp = func.Blueprint()


def _json_response(data: dict, status_code: int = 200) -> func.HttpResponse:
    """Create JSON HTTP response."""
    return func.HttpResponse(
        json.dumps(data, default=str),
        status_code=status_code,
        headers={"Content-Type": "application/json"},
    )


@webhook_bp.route(route="webhook", methods=["POST"])
def webhook(req: func.HttpRequest) -> func.HttpResponse:
    """
    Job intake.

    POST /api/webhook
    Headers: X-Hub-Signature-256, X-GitHub-Event
    """
    try:
        result = get_intake_service().handle(req.get_body(), dict(req.headers))
    except SpotRunnerError as e:
        logger.exception(f"Webhook handler error: {e}")
        return _json_response(
            ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
            status_code=500,
        )

    return _json_response(result.body, status_code=result.status_code)


__all__ = ["webhook_bp"]
