# ============================================================================
# IMAGE BUILD EVENT MODEL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Model - Build pipeline state change event
# PURPOSE: Typed view of an EC2 Image Builder "Image State Change" event
# CREATED: 09 OCT 2026
# ============================================================================
"""
Image build event.

EventBridge shape, forwarded as-is to /api/image-events:

    {
      "detail-type": "EC2 Image Builder Image State Change",
      "time": "2026-10-09T12:00:00Z",
      "detail": {
        "image-build-version-arn": "arn:aws:imagebuilder:...:image/spot-runner-linux-x64-2026-10-09/1.0.0/1",
        "state": {"status": "AVAILABLE", "reason": null},
        "output-resources": {"amis": [{"region": "us-east-1", "image": "ami-0abc"}]}
      }
    }
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BuildState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: str
    reason: Optional[str] = None


class OutputImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    region: Optional[str] = None
    image: Optional[str] = None


class OutputResources(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amis: List[OutputImage] = Field(default_factory=list)


class BuildEventDetail(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    build_arn: str = Field(..., alias="image-build-version-arn")
    state: BuildState
    output_resources: OutputResources = Field(default_factory=OutputResources, alias="output-resources")


class ImageBuildEvent(BaseModel):
    """Image Builder state change, as delivered by EventBridge."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    detail_type: Optional[str] = Field(default=None, alias="detail-type")
    time: Optional[datetime] = None
    detail: BuildEventDetail

    @property
    def status(self) -> str:
        return self.detail.state.status

    @property
    def amis(self) -> List[dict]:
        return [ami.model_dump() for ami in self.detail.output_resources.amis]
