# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Foundation - Exception hierarchy
# PURPOSE: One exception class per failure category the HTTP layer maps
# CREATED: 03 OCT 2026
# ============================================================================
"""
Error Taxonomy

Every exception raised on purpose by the control plane derives from
SpotRunnerError. The webhook blueprint maps categories to status codes:

    SignatureError                  -> 401
    ConfigurationError (+ subclasses) -> 503
    NoConfigurationError            -> 200 (routing miss, not a failure)
    CapacityError / UpstreamApiError -> 500 (record marked failed)
    RepositoryError                 -> 500 (store unavailable)

Conditional-write losses are never exceptions; stores return False.
"""

from typing import Any, Optional


class SpotRunnerError(Exception):
    """Base exception for the control plane."""


# ============================================================================
# AUTHENTICATION
# ============================================================================

class SignatureError(SpotRunnerError):
    """Webhook signature missing or does not match the body."""


# ============================================================================
# ROUTING / CONFIGURATION
# ============================================================================

class NoConfigurationError(SpotRunnerError):
    """A spotrunner label matched but neither the profile nor 'default' exists."""

    def __init__(self, profile_name: str):
        self.profile_name = profile_name
        super().__init__(f"No configuration found for profile '{profile_name}' or 'default'")


class ConfigurationError(SpotRunnerError):
    """Service-level misconfiguration. Surfaced as 503, never retried."""


class ProfileValidationError(ConfigurationError):
    """A stored machine profile failed validation."""

    def __init__(self, profile_name: str, problems: Any):
        self.profile_name = profile_name
        self.problems = problems
        super().__init__(f"Invalid configuration for profile '{profile_name}': {problems}")


class CredentialNotConfiguredError(ConfigurationError):
    """Upstream credential material (app id, private key, secret) is missing."""


# ============================================================================
# PROVISIONING
# ============================================================================

class CapacityError(SpotRunnerError):
    """No capacity could be acquired under the profile's spot strategy."""


class UpstreamApiError(SpotRunnerError):
    """The upstream job-queue API returned an error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


# ============================================================================
# STATE MACHINE
# ============================================================================

class InvalidTransitionError(SpotRunnerError):
    """A component attempted a lifecycle transition the table forbids."""

    def __init__(self, job_id: str, current: Any, requested: Any):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Job {job_id}: cannot transition from {getattr(current, 'value', current)} "
            f"to {getattr(requested, 'value', requested)}"
        )


# ============================================================================
# STORAGE
# ============================================================================

class RepositoryError(SpotRunnerError):
    """Storage operation failed (connection, SQL, decode)."""

    def __init__(self, message: str, operation: Optional[str] = None, entity_id: Optional[str] = None):
        self.operation = operation
        self.entity_id = entity_id
        super().__init__(message)


__all__ = [
    "SpotRunnerError",
    "SignatureError",
    "NoConfigurationError",
    "ConfigurationError",
    "ProfileValidationError",
    "CredentialNotConfiguredError",
    "CapacityError",
    "UpstreamApiError",
    "InvalidTransitionError",
    "RepositoryError",
]
