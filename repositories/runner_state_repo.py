# ============================================================================
# RUNNER STATE REPOSITORY
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Job lifecycle record storage
# PURPOSE: Claim, read, mutate and sweep runner_states rows
# CREATED: 05 OCT 2026
# ============================================================================
"""
Runner State Repository

Storage for job lifecycle records.

The claim is `INSERT ... ON CONFLICT (job_id) DO NOTHING`: of any number
of concurrent deliveries for one job, exactly one sees rowcount 1. Updates
are last-write-wins merges that always refresh updated_at. Transition
rules are not checked here.

All SQL uses psycopg sql.SQL composition for injection safety.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from psycopg import sql

from core.contracts import RunnerStatus
from core.models import RunnerState, truncate_error
from repositories.base import PostgresRepository

logger = logging.getLogger(__name__)

TABLE = RunnerState.__sql_table__


class RunnerStateRepository(PostgresRepository):
    """Repository for RunnerState records."""

    def create_if_absent(self, state: RunnerState) -> bool:
        """
        Claim a job.

        Returns:
            True if this call created the record, False if it already existed
        """
        with self._error_context("runner claim", state.job_id):
            rowcount = self.execute_write(
                sql.SQL("""
                INSERT INTO {} (
                    job_id, instance_id, status, repo_full_name, workflow_name,
                    labels, profile_name, created_at, updated_at, expires_at,
                    error_message
                ) VALUES (
                    %(job_id)s, %(instance_id)s, %(status)s, %(repo_full_name)s,
                    %(workflow_name)s, %(labels)s, %(profile_name)s,
                    %(created_at)s, %(updated_at)s, %(expires_at)s, %(error_message)s
                )
                ON CONFLICT (job_id) DO NOTHING
                """).format(self._table(TABLE)),
                {
                    "job_id": state.job_id,
                    "instance_id": state.instance_id,
                    "status": state.status.value,
                    "repo_full_name": state.repo_full_name,
                    "workflow_name": state.workflow_name,
                    "labels": list(state.labels),
                    "profile_name": state.profile_name,
                    "created_at": state.created_at,
                    "updated_at": state.updated_at,
                    "expires_at": state.expires_at,
                    "error_message": state.error_message,
                },
            )

        if rowcount == 1:
            logger.info(f"Claimed job {state.job_id}")
            return True
        logger.info(f"Job {state.job_id} already claimed")
        return False

    def get(self, job_id: str) -> Optional[RunnerState]:
        with self._error_context("runner get", job_id):
            row = self.execute_one(
                sql.SQL("SELECT * FROM {} WHERE job_id = %s").format(self._table(TABLE)),
                (job_id,),
            )
        return RunnerState.from_row(row) if row else None

    def update(
        self,
        job_id: str,
        status: Optional[RunnerStatus] = None,
        instance_id: Optional[str] = None,
        error_message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Merge fields into an existing record. Omitted fields keep their value.

        Returns:
            False if no record exists for job_id
        """
        with self._error_context("runner update", job_id):
            rowcount = self.execute_write(
                sql.SQL("""
                UPDATE {} SET
                    status = COALESCE(%(status)s, status),
                    instance_id = COALESCE(%(instance_id)s, instance_id),
                    error_message = COALESCE(%(error_message)s, error_message),
                    updated_at = %(updated_at)s
                WHERE job_id = %(job_id)s
                """).format(self._table(TABLE)),
                {
                    "job_id": job_id,
                    "status": status.value if status else None,
                    "instance_id": instance_id,
                    "error_message": truncate_error(error_message),
                    "updated_at": now or datetime.now(timezone.utc),
                },
            )
        if rowcount == 0:
            logger.warning(f"Update for unknown job {job_id} ignored")
        return rowcount > 0

    def list_stale(self, status: RunnerStatus, before: datetime, limit: int = 100) -> List[RunnerState]:
        """Records in `status` created strictly before `before`, oldest first."""
        with self._error_context("runner list_stale", status.value):
            rows = self.execute_many(
                sql.SQL("""
                SELECT * FROM {}
                WHERE status = %s AND created_at < %s
                ORDER BY created_at
                LIMIT %s
                """).format(self._table(TABLE)),
                (status.value, before, limit),
            )
        return [RunnerState.from_row(row) for row in rows]

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Remove records whose expires_at has passed. Returns rows deleted."""
        cutoff = int((now or datetime.now(timezone.utc)).timestamp())
        with self._error_context("runner delete_expired"):
            return self.execute_write(
                sql.SQL("DELETE FROM {} WHERE expires_at < %s").format(self._table(TABLE)),
                (cutoff,),
            )


__all__ = ["RunnerStateRepository"]
