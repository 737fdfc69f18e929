# ============================================================================
# CLAUDE CONTEXT - BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Foundation - Core enums and transition rules
# PURPOSE: Status enums shared by stores, services and the HTTP surface
# LAST_REVIEWED: 09 OCT 2026
# EXPORTS: RunnerStatus, ImageStatus, SpotStrategy, ConnectivityStatus, SystemStatus
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the spot runner control plane.

These enums cross every boundary:
- SQL (PostgreSQL text columns)
- HTTP (webhook and status responses)
- Python (internal processing)

The runner lifecycle transition table lives here so that the components
issuing transitions (intake, reconciler) can validate them. The stores
themselves stay transition-agnostic.
"""

from enum import Enum
from typing import Dict, FrozenSet


# ============================================================================
# RUNNER LIFECYCLE
# ============================================================================

class RunnerStatus(str, Enum):
    """
    Runner (job lifecycle record) states.

    State transitions:
        PENDING -> PROVISIONING -> RUNNING -> COMPLETED
                                           -> FAILED
                                           -> TIMEOUT
                                           -> INTERRUPTED
        PENDING, PROVISIONING -> FAILED | TIMEOUT
    """
    PENDING = "pending"              # Job claimed, nothing requested yet
    PROVISIONING = "provisioning"    # Capacity request in flight
    RUNNING = "running"              # Instance launched for the job
    COMPLETED = "completed"          # Job finished, instance gone
    FAILED = "failed"                # Provisioning failed
    TIMEOUT = "timeout"              # Reconciler gave up on it
    INTERRUPTED = "interrupted"      # Spot capacity reclaimed

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in _TERMINAL_RUNNER_STATES

    def can_transition_to(self, new_status: "RunnerStatus") -> bool:
        """
        Validate a lifecycle transition.

        Re-asserting the current status is always allowed.
        """
        if self == new_status:
            return True
        return new_status in _RUNNER_TRANSITIONS.get(self, frozenset())


_TERMINAL_RUNNER_STATES = frozenset({
    RunnerStatus.COMPLETED,
    RunnerStatus.FAILED,
    RunnerStatus.TIMEOUT,
    RunnerStatus.INTERRUPTED,
})

_RUNNER_TRANSITIONS: Dict[RunnerStatus, FrozenSet[RunnerStatus]] = {
    RunnerStatus.PENDING: frozenset({
        RunnerStatus.PROVISIONING, RunnerStatus.FAILED, RunnerStatus.TIMEOUT,
    }),
    RunnerStatus.PROVISIONING: frozenset({
        RunnerStatus.RUNNING, RunnerStatus.FAILED, RunnerStatus.TIMEOUT,
    }),
    RunnerStatus.RUNNING: frozenset({
        RunnerStatus.COMPLETED, RunnerStatus.FAILED,
        RunnerStatus.TIMEOUT, RunnerStatus.INTERRUPTED,
    }),
    RunnerStatus.COMPLETED: frozenset(),
    RunnerStatus.FAILED: frozenset(),
    RunnerStatus.TIMEOUT: frozenset(),
    RunnerStatus.INTERRUPTED: frozenset(),
}


# ============================================================================
# IMAGE STATE
# ============================================================================

class ImageStatus(str, Enum):
    """Machine image readiness for a profile."""
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"


# ============================================================================
# PROFILE POLICY
# ============================================================================

class SpotStrategy(str, Enum):
    """
    Preemption policy for a machine profile.

    SPOT_ONLY        -> spot fleet, no fallback
    SPOT_PREFERRED   -> spot fleet, on-demand fallback
    ON_DEMAND_ONLY   -> direct on-demand launch
    """
    SPOT_ONLY = "spotOnly"
    SPOT_PREFERRED = "spotPreferred"
    ON_DEMAND_ONLY = "onDemandOnly"

    @property
    def uses_fleet(self) -> bool:
        return self != SpotStrategy.ON_DEMAND_ONLY

    @property
    def allows_fallback(self) -> bool:
        return self == SpotStrategy.SPOT_PREFERRED


# ============================================================================
# STATUS SURFACE
# ============================================================================

class ConnectivityStatus(str, Enum):
    """Outcome categories of the upstream (GitHub) connectivity check."""
    CONNECTED = "connected"
    AUTH_ERROR = "auth_error"
    UNREACHABLE = "unreachable"
    UNEXPECTED_ERROR = "unexpected_error"


class SystemStatus(str, Enum):
    """Overall system status reported by the status endpoint."""
    READY = "ready"
    BUILDING = "building"
    DEGRADED = "degraded"


__all__ = [
    "RunnerStatus",
    "ImageStatus",
    "SpotStrategy",
    "ConnectivityStatus",
    "SystemStatus",
]
