# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Default configuration values
# PURPOSE: Centralized deadlines, runner pins and naming conventions
# CREATED: 03 OCT 2026
# ============================================================================
"""
Configuration Defaults

Deadlines and pinned values shared by the control plane and the boot agent.
These can be overridden via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TimeoutDefaults:
    """
    Deadlines for lifecycle records and cached credentials.

    All durations are in the unit named by the field.
    """
    # Reconciler thresholds
    provisioning_timeout_minutes: int = 10
    job_timeout_minutes: int = 60
    image_stale_minutes: int = 30

    # Boot agent
    default_job_timeout_seconds: int = 3600
    preemption_grace_seconds: int = 90
    watchdog_grace_seconds: int = 30

    # Credentials
    token_refresh_buffer_seconds: int = 300  # 5 min before expiry
    app_jwt_lifetime_seconds: int = 600
    app_jwt_backdate_seconds: int = 60

    # Record retention
    record_ttl_days: int = 7

    @classmethod
    def from_env(cls) -> "TimeoutDefaults":
        """Create from environment variables."""
        return cls(
            provisioning_timeout_minutes=int(os.getenv("PROVISIONING_TIMEOUT_MINUTES", 10)),
            job_timeout_minutes=int(os.getenv("JOB_TIMEOUT_MINUTES", 60)),
            image_stale_minutes=int(os.getenv("IMAGE_STALE_MINUTES", 30)),
            record_ttl_days=int(os.getenv("TTL_DAYS", 7)),
        )


@dataclass(frozen=True)
class RunnerDefaults:
    """
    Pinned runner agent release and naming conventions.

    The checksums are the published SHA-256 digests of the runner tarball
    for the pinned version; the boot agent refuses to run anything else.
    """
    runner_version: str = "2.331.0"
    checksum_x64: str = "5fcc01bd546ba5c3f1291c2803658ebd3cedb3836489eda3be357d41bfcf28a7"
    checksum_arm64: str = "f5863a211241436186723159a111f352f25d5d22711639761ea24c98caef1a9a"

    # Naming
    tag_prefix: str = "spot-runner"
    pipeline_prefix: str = "spot-runner-"
    runner_name_prefix: str = "spot-runner-"
    label_prefix: str = "spotrunner/"
    default_profile: str = "default"

    # Runner registration
    runner_group_id: int = 1
    work_folder: str = "_work"

    @property
    def checksums(self) -> dict:
        return {"x64": self.checksum_x64, "arm64": self.checksum_arm64}

    def pipeline_name(self, profile_name: str) -> str:
        return f"{self.pipeline_prefix}{profile_name}"

    @classmethod
    def from_env(cls) -> "RunnerDefaults":
        """Create from environment variables."""
        return cls(
            runner_version=os.getenv("RUNNER_VERSION", "2.331.0"),
            checksum_x64=os.getenv(
                "RUNNER_CHECKSUM_X64",
                "5fcc01bd546ba5c3f1291c2803658ebd3cedb3836489eda3be357d41bfcf28a7",
            ),
            checksum_arm64=os.getenv(
                "RUNNER_CHECKSUM_ARM64",
                "f5863a211241436186723159a111f352f25d5d22711639761ea24c98caef1a9a",
            ),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    timeouts: TimeoutDefaults = field(default_factory=TimeoutDefaults)
    runner: RunnerDefaults = field(default_factory=RunnerDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            timeouts=TimeoutDefaults.from_env(),
            runner=RunnerDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TimeoutDefaults",
    "RunnerDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
