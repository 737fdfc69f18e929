# ============================================================================
# IMAGE RECONCILER
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Stale image build detection
# PURPOSE: Resolve `building` image records the event path never updated
# CREATED: 09 OCT 2026
# ============================================================================
"""
Image Reconciler

Build completion normally arrives through the build event consumer. When
an event is lost, an image record stays `building` forever and the status
surface reports the system as building. This pass asks the build pipeline
directly for every record that has been building longer than
IMAGE_STALE_MINUTES:

    pipeline missing           -> warn, leave record alone
    newest build AVAILABLE     -> ready + image id, profile imageId updated
    newest build FAILED /
      CANCELLED                -> failed, previous image id kept
    anything else              -> leave record alone

Each write is guarded on the updated_at that was read, so a build event
that lands between the read and the write wins and this pass's write is
dropped.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_defaults
from core.contracts import ImageStatus
from core.errors import SpotRunnerError
from core.logging import ComponentType, get_logger, log_context
from core.models import ImageReconcileReport, ImageState
from infrastructure.image_pipeline import BUILD_AVAILABLE, BUILD_FAILED_STATES, ImagePipelineClient
from repositories import ImageStateRepository, ProfileRepository

logger = get_logger(__name__, ComponentType.IMAGE_RECONCILER)


class ImageReconciler:
    """Polls the build pipeline for image records stuck in `building`."""

    def __init__(
        self,
        image_states: ImageStateRepository,
        profiles: ProfileRepository,
        pipelines: ImagePipelineClient,
        stale_minutes: Optional[int] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.image_states = image_states
        self.profiles = profiles
        self.pipelines = pipelines
        self.stale_minutes = stale_minutes or get_defaults().timeouts.image_stale_minutes
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._runner = get_defaults().runner

    def run(self) -> ImageReconcileReport:
        report = ImageReconcileReport()
        cutoff = self._now() - timedelta(minutes=self.stale_minutes)

        for record in self.image_states.list_all():
            if record.status != ImageStatus.BUILDING or record.updated_at >= cutoff:
                continue

            report.checked += 1
            with log_context(profile_name=record.profile_name, operation="image_reconcile"):
                try:
                    self._reconcile_one(record, report)
                except (ClientError, BotoCoreError, SpotRunnerError) as e:
                    logger.error(f"Image reconcile failed for {record.profile_name}: {e}")
                    report.errors[record.profile_name] = str(e)

        if report.checked:
            logger.info(
                f"Image reconcile: checked={report.checked} ready={report.marked_ready} "
                f"failed={report.marked_failed} missing={report.missing_pipeline}"
            )
        return report

    def _reconcile_one(self, record: ImageState, report: ImageReconcileReport) -> None:
        name = record.profile_name
        pipeline_name = self._runner.pipeline_name(name)

        pipeline_arn = self.pipelines.find_pipeline_arn(pipeline_name)
        if not pipeline_arn:
            logger.warning(f"No build pipeline {pipeline_name} for stale image record {name}")
            report.missing_pipeline.append(name)
            return

        build = self.pipelines.latest_build(pipeline_arn)
        if build is None:
            logger.info(f"Pipeline {pipeline_name} has no builds yet")
            report.unchanged.append(name)
            return

        if build.status == BUILD_AVAILABLE:
            image_id = build.image_id or self.pipelines.get_image_id(build.arn)
            if not image_id:
                report.errors[name] = f"Build {build.arn} is AVAILABLE but has no image"
                return
            accepted = self.image_states.upsert(
                ImageState(
                    profile_name=name,
                    image_id=image_id,
                    status=ImageStatus.READY,
                    updated_at=self._now(),
                    build_id=build.arn,
                ),
                expected_updated_at=record.updated_at,
            )
            if not accepted:
                report.unchanged.append(name)
                return
            self.profiles.update_image_id(name, image_id)
            logger.info(f"Profile {name} image ready: {image_id}")
            report.marked_ready.append(name)

        elif build.status in BUILD_FAILED_STATES:
            accepted = self.image_states.upsert(
                ImageState(
                    profile_name=name,
                    image_id=record.image_id,
                    status=ImageStatus.FAILED,
                    updated_at=self._now(),
                    build_id=build.arn,
                    error_message=build.reason or f"Build {build.status.lower()}",
                ),
                expected_updated_at=record.updated_at,
            )
            if not accepted:
                report.unchanged.append(name)
                return
            logger.warning(f"Profile {name} image build {build.status}: {build.reason}")
            report.marked_failed.append(name)

        else:
            logger.info(f"Profile {name} build still {build.status}")
            report.unchanged.append(name)


__all__ = ["ImageReconciler"]
