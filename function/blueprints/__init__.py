# ============================================================================
# FUNCTION APP BLUEPRINTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - HTTP and timer blueprints
# PURPOSE: Azure Functions V2 blueprints
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Function App Blueprints

Azure Functions V2 blueprints. Each blueprint is conditionally registered
based on startup validation.
"""

from function.blueprints.webhook_bp import webhook_bp
from function.blueprints.status_bp import status_bp
from function.blueprints.reconcile_bp import reconcile_bp
from function.blueprints.image_events_bp import image_events_bp

__all__ = [
    "webhook_bp",
    "status_bp",
    "reconcile_bp",
    "image_events_bp",
]
