# ============================================================================
# IMAGE EVENTS BLUEPRINT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Build pipeline event intake
# PURPOSE: Accept Image Builder state change events forwarded by the pipeline
# CREATED: 10 OCT 2026
# ============================================================================
"""
Image Events Blueprint

- POST /api/image-events - EventBridge "EC2 Image Builder Image State Change"

Authenticated by a shared key in the `x-api-key` header, compared in
constant time against IMAGE_EVENTS_API_KEY.

    503  IMAGE_EVENTS_API_KEY not configured
    401  key missing or wrong
    400  body is not an image state change event
    200  applied (or ignored, see body.action)
"""

import hmac
import json
import logging

import azure.functions as func
from pydantic import ValidationError

from core.errors import SpotRunnerError
from core.models import ImageBuildEvent
from function.config import get_config
from function.dependencies import get_build_event_consumer
from function.models.responses import ErrorResponse

logger = logging.getLogger(__name__)
image_events_bp = func.Blueprint()

API_KEY_HEADER = "x-api-key"


def _json_response(data: dict, status_code: int = 200) -> func.HttpResponse:
    """Create JSON HTTP response."""
    return func.HttpResponse(
        json.dumps(data, default=str),
        status_code=status_code,
        headers={"Content-Type": "application/json"},
    )


def _error(status_code: int, error: str, message: str = None) -> func.HttpResponse:
    return _json_response(
        ErrorResponse(error=error, message=message).model_dump(exclude_none=True),
        status_code=status_code,
    )


def api_key_valid(expected: str, presented: str) -> bool:
    if not presented:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), presented.encode("utf-8"))


@image_events_bp.route(route="image-events", methods=["POST"])
def image_events(req: func.HttpRequest) -> func.HttpResponse:
    """
    Apply one image build state change.

    POST /api/image-events
    Headers: x-api-key
    """
    config = get_config()
    if not config.has_image_events_key:
        logger.error("IMAGE_EVENTS_API_KEY not configured")
        return _error(503, "Service not configured", "Image events key not configured")

    if not api_key_valid(config.image_events_api_key, req.headers.get(API_KEY_HEADER, "")):
        logger.warning("Rejected image event with bad API key")
        return _error(401, "Unauthorized")

    try:
        event = ImageBuildEvent.model_validate(req.get_json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Unparseable image event: {e}")
        return _error(400, "Invalid event")

    try:
        outcome = get_build_event_consumer().apply(event)
    except SpotRunnerError as e:
        logger.exception(f"Image event handling failed: {e}")
        return _error(500, "Internal server error")

    return _json_response(outcome.to_dict())


__all__ = ["image_events_bp"]
