# ============================================================================
# BUILD EVENT CONSUMER
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Image build completion
# PURPOSE: Apply build pipeline state changes to image state and profiles
# CREATED: 09 OCT 2026
# ============================================================================
"""
Build Event Consumer

    AVAILABLE           -> image state ready; profile imageId updated only
                           if the image state write was accepted
    FAILED / CANCELLED  -> image state failed, previous image id kept;
                           profile untouched so jobs keep the last good image
    anything else       -> ignored

The event's own `time` is the write timestamp, so a delayed delivery of an
older event loses to whatever was written after it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from core.contracts import ImageStatus
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import ImageBuildEvent, ImageState
from infrastructure.image_pipeline import (
    BUILD_AVAILABLE,
    BUILD_FAILED_STATES,
    profile_from_build_arn,
    select_image_id,
)
from repositories import ImageStateRepository, ProfileRepository

logger = get_logger(__name__, ComponentType.IMAGE_EVENTS)


@dataclass
class BuildEventOutcome:
    """What applying one event did."""
    action: str
    profile_name: Optional[str] = None
    image_id: Optional[str] = None
    accepted: bool = False

    def to_dict(self) -> dict:
        return {
            "action": self.action,
            "profile": self.profile_name,
            "imageId": self.image_id,
            "accepted": self.accepted,
        }


class BuildEventConsumer:
    """Applies Image Builder state change events."""

    def __init__(
        self,
        image_states: ImageStateRepository,
        profiles: ProfileRepository,
        region: Optional[str] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.image_states = image_states
        self.profiles = profiles
        self.region = region
        self._now = now or (lambda: datetime.now(timezone.utc))

    def apply(self, event: ImageBuildEvent) -> BuildEventOutcome:
        build_arn = event.detail.build_arn
        status = event.status

        profile_name = profile_from_build_arn(build_arn)
        if not profile_name:
            logger.error(f"Could not extract profile name from ARN: {build_arn}")
            return BuildEventOutcome(action="unparseable_arn")

        written_at = event.time or self._now()
        if written_at.tzinfo is None:
            written_at = written_at.replace(tzinfo=timezone.utc)

        with log_context(profile_name=profile_name, operation="image_event"):
            logger.info(f"Processing {status} event for profile {profile_name}")

            if status == BUILD_AVAILABLE:
                return self._apply_available(event, profile_name, written_at)
            if status in BUILD_FAILED_STATES:
                return self._apply_failed(event, profile_name, written_at)

            logger.info(f"Ignoring build status {status}")
            return BuildEventOutcome(action="ignored", profile_name=profile_name)

    def _apply_available(self, event: ImageBuildEvent, profile_name: str, written_at: datetime) -> BuildEventOutcome:
        image_id = select_image_id(event.amis, self.region)
        if not image_id:
            logger.error("No image id found in event output resources")
            return BuildEventOutcome(action="no_image", profile_name=profile_name)

        accepted = self.image_states.upsert(ImageState(
            profile_name=profile_name,
            image_id=image_id,
            status=ImageStatus.READY,
            updated_at=written_at,
            build_id=event.detail.build_arn,
        ))
        if not accepted:
            logger.info("Skipping profile update, image state not updated (stale event)")
            return BuildEventOutcome(action="stale", profile_name=profile_name, image_id=image_id)

        self.profiles.update_image_id(profile_name, image_id)
        log_checkpoint("image_ready", {"image_id": image_id})
        return BuildEventOutcome(action="ready", profile_name=profile_name, image_id=image_id, accepted=True)

    def _apply_failed(self, event: ImageBuildEvent, profile_name: str, written_at: datetime) -> BuildEventOutcome:
        current = self.image_states.get(profile_name)
        previous_image = current.image_id if current else None

        accepted = self.image_states.upsert(ImageState(
            profile_name=profile_name,
            image_id=previous_image,
            status=ImageStatus.FAILED,
            updated_at=written_at,
            build_id=event.detail.build_arn,
            error_message=event.detail.state.reason or f"Build {event.status.lower()}",
        ))
        logger.warning(f"Image build {event.status.lower()} for {profile_name}, keeping image {previous_image}")
        return BuildEventOutcome(
            action="failed" if accepted else "stale",
            profile_name=profile_name,
            image_id=previous_image,
            accepted=accepted,
        )


__all__ = ["BuildEventConsumer", "BuildEventOutcome"]
