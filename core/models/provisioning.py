# ============================================================================
# CLAUDE CONTEXT - PROVISIONING MODELS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core model - Routing and capacity request values
# PURPOSE: Values passed between router, provisioner and reconcilers
# LAST_REVIEWED: 10 OCT 2026
# EXPORTS: RouteResult, ProvisionRequest, ProvisionResult,
#          ReconcileReport, ImageReconcileReport
# DEPENDENCIES: pydantic
# ============================================================================
"""
Provisioning Models

RouteResult      - what the label router extracted from a job's labels
ProvisionRequest - everything the provisioner needs for one capacity request
ProvisionResult  - the instance that came back
*Report          - outcome summaries of the scheduled reconcilers
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.models.profile import MachineProfile


class RouteResult(BaseModel):
    """Parsed `spotrunner/<profile>[/<k>=<v>,...]` label."""

    profile_name: str
    options: Dict[str, str] = Field(default_factory=dict)
    cpu: Optional[int] = Field(default=None, gt=0)
    ram: Optional[int] = Field(default=None, gt=0, description="Minimum memory in GB")
    label: str = Field(..., description="The label that matched")


class ProvisionRequest(BaseModel):
    job_id: str
    repo_full_name: str
    workflow_name: str
    labels: List[str]
    profile: MachineProfile
    jit_config: str = Field(..., repr=False, description="Base64 runner credential")
    cpu: Optional[int] = None
    ram: Optional[int] = None


class ProvisionResult(BaseModel):
    instance_id: str
    instance_type: str
    is_spot: bool


# ============================================================================
# RECONCILIATION REPORTS
# ============================================================================

class ReconcileItem(BaseModel):
    """One record or instance the reconciler acted on."""
    job_id: Optional[str] = None
    instance_id: Optional[str] = None
    action: str
    error: Optional[str] = None


class ReconcileReport(BaseModel):
    stale_provisioning: List[ReconcileItem] = Field(default_factory=list)
    stale_running: List[ReconcileItem] = Field(default_factory=list)
    orphans: List[ReconcileItem] = Field(default_factory=list)
    expired_deleted: int = 0

    @property
    def error_count(self) -> int:
        items = self.stale_provisioning + self.stale_running + self.orphans
        return sum(1 for item in items if item.error)

    def summary(self) -> Dict[str, int]:
        return {
            "stale_provisioning": len(self.stale_provisioning),
            "stale_running": len(self.stale_running),
            "orphans": len(self.orphans),
            "expired_deleted": self.expired_deleted,
            "errors": self.error_count,
        }


class ImageReconcileReport(BaseModel):
    checked: int = 0
    marked_ready: List[str] = Field(default_factory=list)
    marked_failed: List[str] = Field(default_factory=list)
    missing_pipeline: List[str] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
    errors: Dict[str, str] = Field(default_factory=dict)
