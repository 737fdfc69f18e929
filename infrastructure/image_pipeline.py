# ============================================================================
# IMAGE PIPELINE CLIENT (EC2 IMAGE BUILDER)
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Infrastructure - Build pipeline queries
# PURPOSE: Find a profile's pipeline, its newest build and the output image
# CREATED: 07 OCT 2026
# ============================================================================
"""
Image Pipeline Client

Thin boto3 wrapper around EC2 Image Builder. One pipeline per
profile, named "spot-runner-<profile>". Only start_build (used by the
profile registration script) changes anything. Build version ARNs look like

    arn:aws:imagebuilder:<region>:<acct>:image/spot-runner-<profile>-<date>/1.0.0/3
"""

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)

BUILD_AVAILABLE = "AVAILABLE"
BUILD_FAILED_STATES = ("FAILED", "CANCELLED")

_IMAGE_NAME = re.compile(r"image/([^/]+)/")
_DATED_SUFFIX = re.compile(r"^spot-runner-(.+?)-\d{4}-\d{2}-\d{2}")
_NUMERIC_SUFFIX = re.compile(r"^spot-runner-(.+?)-\d+")
_PREFIX = "spot-runner-"


@dataclass(frozen=True)
class BuildSummary:
    arn: str
    status: str
    date_created: str
    reason: Optional[str] = None
    image_id: Optional[str] = None


def select_image_id(amis: List[Dict[str, Any]], region: Optional[str]) -> Optional[str]:
    """Image id from an output-resources list, preferring the given region."""
    if not amis:
        return None
    preferred = next((a for a in amis if region and a.get("region") == region), None)
    chosen = preferred or amis[0]
    return chosen.get("image")


def profile_from_build_arn(arn: str) -> Optional[str]:
    """
    Profile name from a build version ARN.

    Tries, in order: dated image name, numeric suffix, bare prefix, and
    finally the image name itself.
    """
    match = _IMAGE_NAME.search(arn or "")
    if not match:
        return None
    image_name = match.group(1)

    for pattern in (_DATED_SUFFIX, _NUMERIC_SUFFIX):
        found = pattern.match(image_name)
        if found:
            return found.group(1)

    if image_name.startswith(_PREFIX):
        return image_name[len(_PREFIX):]

    logger.warning(f"Could not parse profile name from image: {image_name}")
    return image_name


class ImagePipelineClient:
    """EC2 Image Builder queries used by the image reconciler."""

    def __init__(self, region: Optional[str] = None, imagebuilder_client=None):
        self.region = region
        self._client = imagebuilder_client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "imagebuilder",
                region_name=self.region,
                config=Config(retries={"max_attempts": 3, "mode": "standard"}),
            )
        return self._client

    def find_pipeline_arn(self, pipeline_name: str) -> Optional[str]:
        paginator = self.client.get_paginator("list_image_pipelines")
        pages = paginator.paginate(filters=[{"name": "name", "values": [pipeline_name]}])
        for page in pages:
            for pipeline in page.get("imagePipelineList", []):
                if pipeline.get("name") == pipeline_name:
                    return pipeline["arn"]
        return None

    def latest_build(self, pipeline_arn: str) -> Optional[BuildSummary]:
        """Newest build of a pipeline by creation time."""
        paginator = self.client.get_paginator("list_image_pipeline_images")
        newest: Optional[Dict[str, Any]] = None
        for page in paginator.paginate(imagePipelineArn=pipeline_arn):
            for image in page.get("imageSummaryList", []):
                if newest is None or image.get("dateCreated", "") > newest.get("dateCreated", ""):
                    newest = image
        if newest is None:
            return None

        state = newest.get("state", {})
        amis = newest.get("outputResources", {}).get("amis", [])
        return BuildSummary(
            arn=newest["arn"],
            status=state.get("status", ""),
            date_created=newest.get("dateCreated", ""),
            reason=state.get("reason"),
            image_id=select_image_id(amis, self.region),
        )

    def get_image_id(self, build_arn: str) -> Optional[str]:
        resp = self.client.get_image(imageBuildVersionArn=build_arn)
        amis = resp.get("image", {}).get("outputResources", {}).get("amis", [])
        return select_image_id(amis, self.region)

    def start_build(self, pipeline_arn: str) -> str:
        """Start a pipeline execution. Returns the build version ARN."""
        resp = self.client.start_image_pipeline_execution(
            imagePipelineArn=pipeline_arn,
            clientToken=str(uuid.uuid4()),
        )
        return resp.get("imageBuildVersionArn", "")


__all__ = [
    "ImagePipelineClient",
    "BuildSummary",
    "BUILD_AVAILABLE",
    "BUILD_FAILED_STATES",
    "select_image_id",
    "profile_from_build_arn",
]
