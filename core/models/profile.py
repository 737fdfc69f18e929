# ============================================================================
# CLAUDE CONTEXT - MACHINE PROFILE MODEL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core model - Persisted machine profile document
# PURPOSE: Validate profile JSON before it drives a capacity request
# LAST_REVIEWED: 09 OCT 2026
# EXPORTS: MachineProfile, IMAGE_PENDING
# DEPENDENCIES: pydantic
# ============================================================================
"""
Machine Profile Model

Profiles are stored as JSON documents (camelCase keys) keyed by name. The
store hands back raw documents; validation happens here when a route
resolves to a profile, so one malformed profile cannot break the others.

    {
        "name": "linux-x64",
        "architecture": "x64",
        "instanceTypes": ["m7i.large", "m6i.large"],
        "imageId": "ami-0abc...",
        "diskSizeGb": 50,
        "spotStrategy": "spotPreferred",
        "timeout": 3600,
        "labels": ["linux", "x64"]
    }

imageId "pending" (or absent) means the first build has not finished.
"""

from typing import ClassVar, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.contracts import SpotStrategy

IMAGE_PENDING = "pending"
PLACEHOLDER_PREFIX = "PLACEHOLDER"


class MachineProfile(BaseModel):
    """
    Launch parameters for one class of runner.

    Maps to: spotrunner.machine_profiles.config (jsonb)
    """

    __sql_table__: ClassVar[str] = "machine_profiles"

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1, max_length=128)
    architecture: Literal["x64", "arm64"] = "x64"
    instance_types: List[str] = Field(..., alias="instanceTypes", min_length=1)
    image_id: Optional[str] = Field(default=None, alias="imageId")
    disk_size_gb: int = Field(..., alias="diskSizeGb", gt=0)
    spot_strategy: SpotStrategy = Field(..., alias="spotStrategy")
    timeout: int = Field(..., gt=0, description="Job timeout in seconds")
    labels: List[str] = Field(default_factory=list)

    @field_validator("instance_types")
    @classmethod
    def _non_empty_types(cls, v: List[str]) -> List[str]:
        if any(not t or not t.strip() for t in v):
            raise ValueError("instanceTypes entries must be non-empty strings")
        return v

    @field_validator("image_id")
    @classmethod
    def _usable_image_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.strip():
            raise ValueError("imageId must be non-empty when present")
        if v.startswith(PLACEHOLDER_PREFIX):
            raise ValueError("imageId is a placeholder value")
        return v

    @property
    def image_ready(self) -> bool:
        return bool(self.image_id) and self.image_id != IMAGE_PENDING

    def to_document(self) -> dict:
        """camelCase JSON document as stored."""
        return self.model_dump(by_alias=True, mode="json")
