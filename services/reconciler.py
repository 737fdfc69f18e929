# ============================================================================
# RECONCILER
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Scheduled lifecycle cleanup
# PURPOSE: Time out stuck records, terminate orphaned instances
# CREATED: 09 OCT 2026
# ============================================================================
"""
Reconciler

Runs on a timer (every 5 minutes). Three passes, then a maintenance sweep:

    1. pending / provisioning older than PROVISIONING_TIMEOUT_MINUTES
       -> terminate instance (if any), record -> timeout
    2. running older than JOB_TIMEOUT_MINUTES
       -> terminate instance, record -> timeout
    3. live instances tagged spot-runner:job-id whose record is missing or
       names a different instance -> terminate
    4. delete records past expires_at

An instance that is already gone counts as terminated. A failure on one
record or instance is recorded in the report and the batch continues.

Running twice back to back is a no-op the second time: timed-out records
leave the stale queries and terminated instances leave the live filter.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_defaults
from core.contracts import RunnerStatus
from core.errors import InvalidTransitionError, SpotRunnerError
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import ReconcileItem, ReconcileReport, RunnerState
from infrastructure.compute import ComputeClient
from repositories import RunnerStateRepository

logger = get_logger(__name__, ComponentType.RECONCILER)

STALE_BATCH_LIMIT = 50

# Per-item failures that are recorded instead of aborting the run
ITEM_ERRORS = (ClientError, BotoCoreError, SpotRunnerError)

# Records that may legitimately have no instance yet
IN_FLIGHT = (RunnerStatus.PENDING, RunnerStatus.PROVISIONING)


class Reconciler:
    """Brings lifecycle records and live instances back into agreement."""

    def __init__(
        self,
        runner_states: RunnerStateRepository,
        compute: ComputeClient,
        provisioning_timeout_minutes: Optional[int] = None,
        job_timeout_minutes: Optional[int] = None,
        batch_limit: int = STALE_BATCH_LIMIT,
        now: Optional[Callable[[], datetime]] = None,
    ):
        timeouts = get_defaults().timeouts
        self.runner_states = runner_states
        self.compute = compute
        self.provisioning_timeout_minutes = (
            provisioning_timeout_minutes or timeouts.provisioning_timeout_minutes
        )
        self.job_timeout_minutes = job_timeout_minutes or timeouts.job_timeout_minutes
        self.batch_limit = batch_limit
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._tag_key = f"{get_defaults().runner.tag_prefix}:job-id"

    def run(self) -> ReconcileReport:
        """One full reconciliation run."""
        now = self._now()
        report = ReconcileReport()

        with log_context(operation="reconcile"):
            logger.info("Starting cleanup run")

            for status in IN_FLIGHT:
                report.stale_provisioning.extend(self._cleanup_stale(
                    status, self.provisioning_timeout_minutes, now, "provisioning_timeout",
                ))
            report.stale_running.extend(self._cleanup_stale(
                RunnerStatus.RUNNING, self.job_timeout_minutes, now, "job_timeout",
            ))
            report.orphans.extend(self._cleanup_orphans())

            try:
                report.expired_deleted = self.runner_states.delete_expired(now)
            except SpotRunnerError as e:
                logger.warning(f"Expired record sweep failed: {e}")

            log_checkpoint("reconcile_completed", report.summary())
            logger.info(f"Cleanup run complete: {report.summary()}")

        return report

    # ------------------------------------------------------------------
    # STALE RECORDS
    # ------------------------------------------------------------------

    def _cleanup_stale(
        self,
        status: RunnerStatus,
        timeout_minutes: int,
        now: datetime,
        reason: str,
    ) -> List[ReconcileItem]:
        cutoff = now - timedelta(minutes=timeout_minutes)
        logger.info(f"Checking for {status.value} runners older than {cutoff.isoformat()}")

        try:
            stale = self.runner_states.list_stale(status, cutoff, self.batch_limit)
        except SpotRunnerError as e:
            logger.error(f"Could not list stale {status.value} runners: {e}")
            return [ReconcileItem(action=f"list_{status.value}", error=str(e))]

        logger.info(f"Found {len(stale)} stale {status.value} runners")
        return [self._timeout_record(record, timeout_minutes, reason, now) for record in stale]

    def _timeout_record(
        self,
        record: RunnerState,
        timeout_minutes: int,
        reason: str,
        now: datetime,
    ) -> ReconcileItem:
        item = ReconcileItem(job_id=record.job_id, instance_id=record.instance_id, action=reason)

        with log_context(job_id=record.job_id, instance_id=record.instance_id):
            logger.info(
                f"Cleaning up stale runner: job={record.job_id} "
                f"instance={record.instance_id} reason={reason}"
            )
            try:
                if not record.status.can_transition_to(RunnerStatus.TIMEOUT):
                    raise InvalidTransitionError(record.job_id, record.status, RunnerStatus.TIMEOUT)
                if record.instance_id:
                    self.compute.terminate_instance(record.instance_id)
                self.runner_states.update(
                    record.job_id,
                    status=RunnerStatus.TIMEOUT,
                    error_message=f"Cleanup: {reason} after {timeout_minutes} minutes",
                    now=now,
                )
            except ITEM_ERRORS as e:
                logger.error(f"Failed to clean up runner {record.job_id}: {e}")
                item.error = str(e)

        return item

    # ------------------------------------------------------------------
    # ORPHANS
    # ------------------------------------------------------------------

    def _cleanup_orphans(self) -> List[ReconcileItem]:
        logger.info("Checking for orphaned instances")
        try:
            instances = self.compute.list_tagged_instances(self._tag_key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error listing tagged instances: {e}")
            return [ReconcileItem(action="list_instances", error=str(e))]

        records: Dict[str, Optional[RunnerState]] = {}
        items: List[ReconcileItem] = []

        for instance in instances:
            try:
                if instance.job_id not in records:
                    records[instance.job_id] = self.runner_states.get(instance.job_id)
                reason = self._orphan_reason(instance.instance_id, records[instance.job_id])
            except SpotRunnerError as e:
                items.append(ReconcileItem(
                    job_id=instance.job_id, instance_id=instance.instance_id,
                    action="orphan_check", error=str(e),
                ))
                continue

            if reason is None:
                continue

            logger.info(f"Terminating orphaned instance {instance.instance_id} (job: {instance.job_id}, {reason})")
            item = ReconcileItem(job_id=instance.job_id, instance_id=instance.instance_id, action=reason)
            try:
                self.compute.terminate_instance(instance.instance_id)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to terminate orphan {instance.instance_id}: {e}")
                item.error = str(e)
            items.append(item)

        logger.info(f"Cleaned up {sum(1 for i in items if not i.error)} orphaned instances")
        return items

    @staticmethod
    def _orphan_reason(instance_id: str, record: Optional[RunnerState]) -> Optional[str]:
        """Why an instance is an orphan, or None if its record owns it."""
        if record is None:
            return "orphan_no_record"
        if record.instance_id == instance_id:
            return None
        if record.instance_id is None and record.status in IN_FLIGHT:
            # Launch returned but the running transition has not landed yet
            return None
        return "orphan_instance_mismatch"


__all__ = ["Reconciler", "STALE_BATCH_LIMIT"]
