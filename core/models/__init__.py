# ============================================================================
# CLAUDE CONTEXT - MODELS MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

All Pydantic models for the spot runner control plane. Persisted models
carry their table name in a __sql_table__ ClassVar, which the repositories
and the schema initializer read.
"""

from core.models.runner_state import RunnerState, truncate_error
from core.models.image_state import ImageState, image_record_key
from core.models.profile import MachineProfile, IMAGE_PENDING
from core.models.webhook import WorkflowJobEvent, WorkflowJob, Repository, Installation
from core.models.image_event import ImageBuildEvent
from core.models.provisioning import (
    RouteResult,
    ProvisionRequest,
    ProvisionResult,
    ReconcileItem,
    ReconcileReport,
    ImageReconcileReport,
)

__all__ = [
    # Lifecycle
    "RunnerState",
    "truncate_error",
    # Images
    "ImageState",
    "image_record_key",
    # Profiles
    "MachineProfile",
    "IMAGE_PENDING",
    # Webhook
    "WorkflowJobEvent",
    "WorkflowJob",
    "Repository",
    "Installation",
    # Build events
    "ImageBuildEvent",
    # Provisioning
    "RouteResult",
    "ProvisionRequest",
    "ProvisionResult",
    "ReconcileItem",
    "ReconcileReport",
    "ImageReconcileReport",
]
