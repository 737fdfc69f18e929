# ============================================================================
# CLAUDE CONTEXT - IMAGE STATE MODEL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core model - Per-profile machine image readiness
# PURPOSE: Record the newest known build outcome for each profile
# LAST_REVIEWED: 09 OCT 2026
# EXPORTS: ImageState, image_record_key
# DEPENDENCIES: pydantic
# ============================================================================
"""
Image State Model

Keyed by "IMAGE#<profile_name>". Writes are timestamp gated: a write only
lands if no record exists or its updated_at is strictly newer than the
stored one.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.contracts import ImageStatus
from core.models.runner_state import truncate_error

IMAGE_KEY_PREFIX = "IMAGE#"


def image_record_key(profile_name: str) -> str:
    return f"{IMAGE_KEY_PREFIX}{profile_name}"


class ImageState(BaseModel):
    """
    Image readiness record.

    Maps to: spotrunner.image_states table
    """

    __sql_table__: ClassVar[str] = "image_states"
    __sql_primary_key__: ClassVar[List[str]] = ["record_key"]

    model_config = {"frozen": False}

    profile_name: str = Field(..., min_length=1, max_length=128)
    image_id: Optional[str] = Field(default=None, max_length=64)
    status: ImageStatus
    updated_at: datetime
    build_id: Optional[str] = Field(default=None, description="Build version ARN")
    error_message: Optional[str] = None

    @field_validator("error_message", mode="before")
    @classmethod
    def _truncate(cls, v):
        return truncate_error(v)

    @property
    def record_key(self) -> str:
        return image_record_key(self.profile_name)

    @property
    def is_ready(self) -> bool:
        return self.status == ImageStatus.READY and bool(self.image_id)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ImageState":
        data = dict(row)
        data.pop("record_key", None)
        return cls.model_validate(data)
