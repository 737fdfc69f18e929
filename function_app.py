# ============================================================================
# SPOT RUNNER CONTROL PLANE - Azure Function App
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Entry point
# PURPOSE: Job intake, reconciliation, image events and status
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Spot Runner Control Plane Function App

Azure Functions V2 entry point providing:
- Job intake from GitHub workflow_job webhooks
- Scheduled reconciliation of runner lifecycle records and instances
- Image build state change events
- Read-only system status

Endpoints:
- /api/livez        - Liveness probe (always available)
- /api/readyz       - Readiness probe (checks startup validation)
- /api/webhook      - Job intake
- /api/status       - System status
- /api/image-events - Build pipeline events
- timer: reconcile  - every RECONCILE_SCHEDULE
"""

import azure.functions as func
import json
import logging

from __version__ import __version__
from core.logging import configure_logging

# ============================================================================
# CREATE APP FIRST (before any imports that might fail)
# ============================================================================

app = func.FunctionApp(http_auth_level=func.AuthLevel.ANONYMOUS)

configure_logging()
logger = logging.getLogger(__name__)
logger.info("=" * 60)
logger.info(f"Spot Runner Control Plane {__version__} Starting")
logger.info("=" * 60)

SERVICE_NAME = "spot-runner-control-plane"

# ============================================================================
# EARLY PROBES (Before validation - always available)
# ============================================================================
# These endpoints must be available even if startup validation fails.


@app.route(route="livez", methods=["GET"])
def liveness_probe(req: func.HttpRequest) -> func.HttpResponse:
    """
    Liveness probe - always returns 200 if function is running.

    GET /api/livez
    """
    from function.models.responses import LivenessResponse

    body = LivenessResponse(service=SERVICE_NAME, version=__version__)
    return func.HttpResponse(
        body.model_dump_json(),
        status_code=200,
        headers={"Content-Type": "application/json"},
    )


@app.route(route="readyz", methods=["GET"])
def readiness_probe(req: func.HttpRequest) -> func.HttpResponse:
    """
    Readiness probe - returns 200 if startup validation passed.

    GET /api/readyz

    Returns 503 if startup validation failed.
    """
    from function.startup import STARTUP_STATE

    if STARTUP_STATE.all_passed:
        return func.HttpResponse(
            json.dumps({"ready": True, "service": SERVICE_NAME}),
            status_code=200,
            headers={"Content-Type": "application/json"},
        )

    return func.HttpResponse(
        json.dumps({
            "ready": False,
            "service": SERVICE_NAME,
            "failed_checks": STARTUP_STATE.failed_check_names(),
            "details": STARTUP_STATE.to_dict(),
        }),
        status_code=503,
        headers={"Content-Type": "application/json"},
    )


# ============================================================================
# STARTUP VALIDATION
# ============================================================================
# If validation fails, only /livez and /readyz are available.

logger.info("Running startup validation...")

from function.startup import validate_startup, STARTUP_STATE

_startup_result = validate_startup()

if not STARTUP_STATE.all_passed:
    logger.error("=" * 60)
    logger.error("STARTUP VALIDATION FAILED")
    logger.error("=" * 60)
    logger.error("Only /api/livez and /api/readyz endpoints available")
    for check in STARTUP_STATE.failed_checks():
        logger.error(f"  FAILED: {check.name} - {check.error_message}")
    logger.error("=" * 60)
else:
    logger.info("Startup validation PASSED")


# ============================================================================
# BLUEPRINT REGISTRATION (Conditional on startup success)
# ============================================================================

if STARTUP_STATE.all_passed:
    logger.info("Registering blueprints...")

    # Webhook blueprint (job intake)
    from function.blueprints.webhook_bp import webhook_bp
    app.register_functions(webhook_bp)
    logger.info("  Registered: webhook_bp (job intake)")

    # Status blueprint (system status)
    from function.blueprints.status_bp import status_bp
    app.register_functions(status_bp)
    logger.info("  Registered: status_bp (system status)")

    # Reconcile blueprint (timer)
    from function.blueprints.reconcile_bp import reconcile_bp
    app.register_functions(reconcile_bp)
    logger.info("  Registered: reconcile_bp (scheduled cleanup)")

    # Image events blueprint (build pipeline)
    from function.blueprints.image_events_bp import image_events_bp
    app.register_functions(image_events_bp)
    logger.info("  Registered: image_events_bp (image build events)")

    logger.info("=" * 60)
    logger.info("Spot Runner Control Plane Ready")
    logger.info("=" * 60)
else:
    logger.warning("=" * 60)
    logger.warning("SKIPPING blueprint registration - startup validation failed")
    logger.warning("=" * 60)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["app"]
