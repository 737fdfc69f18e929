# ============================================================================
# CLAUDE CONTEXT - CORE MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================

from core.contracts import (
    RunnerStatus,
    ImageStatus,
    SpotStrategy,
    ConnectivityStatus,
    SystemStatus,
)
from core.errors import SpotRunnerError
from core.models import (
    RunnerState,
    ImageState,
    MachineProfile,
    WorkflowJobEvent,
    RouteResult,
    ProvisionResult,
)

__all__ = [
    # Enums
    "RunnerStatus",
    "ImageStatus",
    "SpotStrategy",
    "ConnectivityStatus",
    "SystemStatus",
    # Errors
    "SpotRunnerError",
    # Models
    "RunnerState",
    "ImageState",
    "MachineProfile",
    "WorkflowJobEvent",
    "RouteResult",
    "ProvisionResult",
]
