# ============================================================================
# CLAUDE CONTEXT - WEBHOOK PAYLOAD MODEL
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core model - Inbound job notification
# PURPOSE: Typed view of the workflow_job webhook fields we act on
# LAST_REVIEWED: 09 OCT 2026
# EXPORTS: WorkflowJobEvent, WorkflowJob, Repository, Installation
# DEPENDENCIES: pydantic
# ============================================================================
"""
Webhook Payload Model

Only the handful of fields intake needs are modelled; everything else in
the payload is ignored.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

WORKFLOW_JOB_EVENT = "workflow_job"
QUEUED_ACTION = "queued"


class WorkflowJob(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    run_id: Optional[int] = None
    name: Optional[str] = None
    workflow_name: Optional[str] = None
    labels: List[str] = Field(default_factory=list)


class Repository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    full_name: str


class Installation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int


class WorkflowJobEvent(BaseModel):
    """A `workflow_job` delivery."""

    model_config = ConfigDict(extra="ignore")

    action: str
    workflow_job: WorkflowJob
    repository: Repository
    installation: Optional[Installation] = None

    @property
    def job_id(self) -> str:
        return str(self.workflow_job.id)

    @property
    def is_queued(self) -> bool:
        return self.action == QUEUED_ACTION

    @property
    def installation_id(self) -> Optional[int]:
        return self.installation.id if self.installation else None
