# ============================================================================
# CLAUDE CONTEXT - RUNNER STATE MODEL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core model - Job lifecycle record
# PURPOSE: Track one queued job from claim to instance reclamation
# LAST_REVIEWED: 09 OCT 2026
# EXPORTS: RunnerState
# DEPENDENCIES: pydantic
# ============================================================================
"""
Runner State Model

One record per upstream job id. The record is created at most once (the
claim) and then mutated last-write-wins by the intake handler and the
reconciler. Transition validity is checked by those callers against
RunnerStatus.can_transition_to; the store does not look at it.

Records expire `TTL_DAYS` after creation (expires_at, epoch seconds) and
are swept by the reconciler's maintenance pass.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator

from core.contracts import RunnerStatus

ERROR_MESSAGE_MAX = 2000
DESCRIPTIVE_FIELD_MAX = 255


def truncate_error(message: Optional[str]) -> Optional[str]:
    if message is None:
        return None
    return message[:ERROR_MESSAGE_MAX]


class RunnerState(BaseModel):
    """
    Job lifecycle record.

    Maps to: spotrunner.runner_states table
    """

    __sql_table__: ClassVar[str] = "runner_states"
    __sql_primary_key__: ClassVar[List[str]] = ["job_id"]

    model_config = {"frozen": False}

    job_id: str = Field(..., min_length=1, max_length=64)
    instance_id: Optional[str] = Field(default=None, max_length=64)
    status: RunnerStatus = Field(default=RunnerStatus.PENDING)

    repo_full_name: str = Field(default="", max_length=DESCRIPTIVE_FIELD_MAX)
    workflow_name: str = Field(default="", max_length=DESCRIPTIVE_FIELD_MAX)
    labels: List[str] = Field(default_factory=list)
    profile_name: Optional[str] = Field(default=None, max_length=128)

    created_at: datetime
    updated_at: datetime
    expires_at: int = Field(..., description="Epoch seconds after which the record may be deleted")

    error_message: Optional[str] = Field(default=None, description="Truncated error details")

    @field_validator("error_message", mode="before")
    @classmethod
    def _truncate(cls, v):
        return truncate_error(v)

    @field_validator("repo_full_name", "workflow_name", mode="before")
    @classmethod
    def _truncate_descriptive(cls, v):
        # Upstream names are unbounded; the columns are VARCHAR(255)
        return (v or "")[:DESCRIPTIVE_FIELD_MAX]

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @classmethod
    def new_pending(
        cls,
        job_id: str,
        repo_full_name: str,
        workflow_name: str,
        labels: List[str],
        profile_name: Optional[str],
        now: Optional[datetime] = None,
        ttl_days: int = 7,
    ) -> "RunnerState":
        """Build the record written by the claim."""
        now = now or datetime.now(timezone.utc)
        return cls(
            job_id=job_id,
            status=RunnerStatus.PENDING,
            repo_full_name=repo_full_name,
            workflow_name=workflow_name,
            labels=list(labels),
            profile_name=profile_name,
            created_at=now,
            updated_at=now,
            expires_at=int((now + timedelta(days=ttl_days)).timestamp()),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "RunnerState":
        return cls.model_validate(dict(row))

    def age_minutes(self, now: datetime) -> int:
        return int((now - self.created_at).total_seconds() // 60)
