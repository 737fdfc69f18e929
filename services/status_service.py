# ============================================================================
# STATUS AGGREGATOR
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Read-only system status
# PURPOSE: Roll image readiness and upstream connectivity into one status
# CREATED: 10 OCT 2026
# ============================================================================
"""
Status Aggregator

    ready     every profile ready with an image id, upstream connected
    building  at least one building, none failed, none without an image
              (building ones excepted), upstream connected
    degraded  anything else, including no profiles at all

Upstream connectivity (GitHub App identity check) is memoized for the
process lifetime. The image reconciler runs at most once per process, on
the first status request, before image states are read.

The response carries profile names, image ids and timestamps only. No
credentials, job ids or repository names.
"""

import math
from typing import List, Optional

from core.cache import RunOnce, TtlCache
from core.contracts import ConnectivityStatus, ImageStatus, SystemStatus
from core.errors import SpotRunnerError
from core.logging import ComponentType, get_logger
from core.models import ImageState
from function.config import FunctionConfig
from function.models.responses import ConfigurationStatus, ProfileStatus, StatusResponse
from infrastructure.github_app import ConnectivityResult, GitHubAppClient
from repositories import ImageStateRepository
from services.image_reconciler import ImageReconciler

logger = get_logger(__name__, ComponentType.STATUS)

CONNECTIVITY_KEY = "github_connectivity"

_CONNECTIVITY_MESSAGES = {
    ConnectivityStatus.AUTH_ERROR: "GitHub App authentication failed",
    ConnectivityStatus.UNREACHABLE: "GitHub API unreachable",
    ConnectivityStatus.UNEXPECTED_ERROR: "GitHub API check failed",
}


def _plural(count: int, noun: str = "profile") -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def aggregate_status(images: List[ImageState], connected: bool) -> SystemStatus:
    if not connected or not images:
        return SystemStatus.DEGRADED

    if all(i.status == ImageStatus.READY and i.image_id for i in images):
        return SystemStatus.READY

    has_building = any(i.status == ImageStatus.BUILDING for i in images)
    has_failed = any(i.status == ImageStatus.FAILED for i in images)
    has_no_image = any(i.image_id is None and i.status != ImageStatus.BUILDING for i in images)

    if has_building and not has_failed and not has_no_image:
        return SystemStatus.BUILDING
    return SystemStatus.DEGRADED


def generate_message(
    images: List[ImageState],
    status: SystemStatus,
    key_configured: bool,
    connectivity: ConnectivityResult,
) -> str:
    parts: List[str] = []

    if not key_configured:
        parts.append("GitHub App private key not configured")
    elif not connectivity.is_connected:
        parts.append(_CONNECTIVITY_MESSAGES.get(connectivity.status, "GitHub API check failed"))

    if not images:
        parts.append("No profiles configured")
        return ", ".join(parts)

    if status == SystemStatus.READY:
        return "All profiles ready" if len(images) == 1 else f"All {len(images)} profiles ready"

    ready = sum(1 for i in images if i.status == ImageStatus.READY and i.image_id)
    building = sum(1 for i in images if i.status == ImageStatus.BUILDING)
    failed = sum(1 for i in images if i.status == ImageStatus.FAILED)
    # Building and failed ones are already counted above
    no_image = sum(
        1 for i in images
        if i.image_id is None and i.status not in (ImageStatus.BUILDING, ImageStatus.FAILED)
    )

    counts = []
    if building:
        counts.append(f"{_plural(building)} building")
    if failed:
        counts.append(f"{_plural(failed)} failed")
    if no_image:
        counts.append(f"{_plural(no_image)} without image")
    if ready and (counts or parts):
        counts.insert(0, f"{_plural(ready)} ready")

    return ", ".join(parts + counts)


class StatusService:
    """Builds the /api/status document."""

    def __init__(
        self,
        config: FunctionConfig,
        image_states: ImageStateRepository,
        github: GitHubAppClient,
        image_reconciler: Optional[ImageReconciler] = None,
        connectivity_cache: Optional[TtlCache] = None,
        reconcile_once: Optional[RunOnce] = None,
    ):
        self.config = config
        self.image_states = image_states
        self.github = github
        self.image_reconciler = image_reconciler
        self._connectivity = connectivity_cache or TtlCache()
        self._reconcile_once = reconcile_once or RunOnce()

    def connectivity(self) -> ConnectivityResult:
        if not self.config.has_app_credentials:
            return ConnectivityResult.auth_error("GitHub App private key not configured")
        return self._connectivity.get_or_refresh(
            CONNECTIVITY_KEY,
            ttl=math.inf,
            loader=self.github.check_connectivity,
        )

    def _reconcile_images_once(self) -> None:
        if self.image_reconciler is None:
            return
        try:
            report = self._reconcile_once.run(self.image_reconciler.run)
        except SpotRunnerError as e:
            logger.warning(f"Image reconcile on status request failed: {e}")
            return
        if report is not None and (report.marked_ready or report.marked_failed):
            logger.info(f"Image reconcile updated ready={report.marked_ready} failed={report.marked_failed}")

    def get_status(self) -> StatusResponse:
        self._reconcile_images_once()

        images = sorted(self.image_states.list_all(), key=lambda i: i.profile_name)
        key_configured = self.config.has_app_credentials
        connectivity = self.connectivity()

        status = aggregate_status(images, connectivity.is_connected)
        return StatusResponse(
            status=status.value,
            configuration=ConfigurationStatus(
                private_key_configured=key_configured,
                github_connectivity=connectivity.to_dict(),
            ),
            profiles=[
                ProfileStatus(
                    name=i.profile_name,
                    status=i.status.value,
                    image_id=i.image_id,
                    updated_at=i.updated_at,
                )
                for i in images
            ],
            message=generate_message(images, status, key_configured, connectivity),
        )


__all__ = ["StatusService", "aggregate_status", "generate_message"]
