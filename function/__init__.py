# ============================================================================
# FUNCTION APP MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Azure Function App components
# PURPOSE: Webhook intake, build events, reconcile timer and status
# CREATED: 04 OCT 2026
# ============================================================================
"""
Function App Module

Contains all components specific to the Azure Function App deployment:
- Blueprints (HTTP and timer triggers)
- Models (response schemas)
- Config (environment settings)
- Dependencies (per-worker service wiring)
- Startup validation
"""

__all__ = []
