# ============================================================================
# API RESPONSE MODELS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Response schemas
# PURPOSE: Pydantic V2 models for HTTP responses
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
API Response Models

Pydantic V2 models for API responses. Field names are snake_case in
Python and camelCase on the wire; dump with by_alias=True.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileStatus(_CamelModel):
    """One profile's image readiness."""

    name: str
    status: str = Field(..., description="building | ready | failed")
    image_id: Optional[str] = None
    updated_at: datetime


class ConfigurationStatus(_CamelModel):
    private_key_configured: bool
    github_connectivity: Dict[str, Any] = Field(
        ...,
        description="{status: connected|auth_error|unreachable|unexpected_error, message?, appSlug? when connected}",
    )


class StatusResponse(_CamelModel):
    """GET /api/status"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "status": "ready",
                "configuration": {
                    "privateKeyConfigured": True,
                    "githubConnectivity": {"status": "connected", "appSlug": "spot-runner"},
                },
                "profiles": [
                    {
                        "name": "linux-x64",
                        "status": "ready",
                        "imageId": "ami-0123456789abcdef0",
                        "updatedAt": "2026-10-10T08:00:00+00:00",
                    }
                ],
                "message": "All profiles ready",
            }
        },
    )

    status: str = Field(..., description="ready | building | degraded")
    configuration: ConfigurationStatus
    profiles: List[ProfileStatus] = Field(default_factory=list)
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type or short description")
    message: Optional[str] = Field(default=None, description="Operator-facing detail")


class LivenessResponse(BaseModel):
    alive: bool = True
    service: str
    version: str


__all__ = [
    "ProfileStatus",
    "ConfigurationStatus",
    "StatusResponse",
    "ErrorResponse",
    "LivenessResponse",
]
