# ============================================================================
# FUNCTION APP MODELS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Pydantic models for API
# PURPOSE: Response models for function app endpoints
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Function App Models

Pydantic V2 models for API responses. Request bodies (webhook and build
events) are upstream formats and live in core/models.
"""

from function.models.responses import (
    ProfileStatus,
    ConfigurationStatus,
    StatusResponse,
    ErrorResponse,
    LivenessResponse,
)

__all__ = [
    "ProfileStatus",
    "ConfigurationStatus",
    "StatusResponse",
    "ErrorResponse",
    "LivenessResponse",
]
