# ============================================================================
# STARTUP VALIDATION
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Startup validation
# PURPOSE: Validate environment before registering blueprints
# CREATED: 04 FEB 2026
# LAST_REVIEWED: 10 OCT 2026
# ============================================================================
"""
Startup Validation

Validates environment and dependencies before registering blueprints:
fail fast, log clearly, degrade gracefully.

If validation fails, only /livez and /readyz endpoints are available.

GitHub App credentials and compute settings are deliberately not checked
here. Without them the webhook answers 503 per delivery and the status
endpoint reports degraded, which is more useful to an operator than a
function app with no routes.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from function.config import get_config

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a startup validation check."""

    name: str
    passed: bool
    error_type: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class StartupState:
    """Track all startup validation checks."""

    env_vars: ValidationResult = field(
        default_factory=lambda: ValidationResult("env_vars", False, "NotRun", "Validation not yet run")
    )
    database: ValidationResult = field(
        default_factory=lambda: ValidationResult("database", False, "NotRun", "Validation not yet run")
    )

    def _checks(self) -> List[ValidationResult]:
        return [self.env_vars, self.database]

    @property
    def all_passed(self) -> bool:
        """Check if all validations passed."""
        return all(c.passed for c in self._checks())

    def failed_checks(self) -> List[ValidationResult]:
        """Get list of failed validation checks."""
        return [c for c in self._checks() if not c.passed]

    def failed_check_names(self) -> List[str]:
        """Get names of failed checks."""
        return [c.name for c in self.failed_checks()]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "all_passed": self.all_passed,
            "checks": {
                c.name: {
                    "passed": c.passed,
                    "error": c.error_message if not c.passed else None,
                }
                for c in self._checks()
            },
        }


# Global singleton
STARTUP_STATE = StartupState()


def validate_startup() -> bool:
    """
    Run all startup validation checks.

    Returns True if all checks pass.
    Updates global STARTUP_STATE with results.
    """
    logger.info("Starting validation checks...")

    # 1. Environment Variables
    STARTUP_STATE.env_vars = _validate_env_vars()
    if STARTUP_STATE.env_vars.passed:
        logger.info("  [PASS] Environment variables")
    else:
        logger.error(f"  [FAIL] Environment variables: {STARTUP_STATE.env_vars.error_message}")

    # 2. Database Connectivity (only if env vars passed)
    if STARTUP_STATE.env_vars.passed:
        STARTUP_STATE.database = _validate_database()
        if STARTUP_STATE.database.passed:
            logger.info("  [PASS] Database connectivity")
        else:
            logger.error(f"  [FAIL] Database connectivity: {STARTUP_STATE.database.error_message}")
    else:
        STARTUP_STATE.database = ValidationResult(
            name="database",
            passed=False,
            error_type="Skipped",
            error_message="Skipped due to env_vars failure",
        )

    # Not gating, but worth a line in the startup log
    config = get_config()
    if not config.has_app_credentials:
        logger.warning("  [WARN] GitHub App credentials not configured; webhooks will return 503")
    if not config.has_compute_config:
        logger.warning("  [WARN] LAUNCH_TEMPLATE_ID / SUBNET_IDS not set; webhooks will return 503")

    # Summary
    if STARTUP_STATE.all_passed:
        logger.info("All validation checks PASSED")
    else:
        logger.error(f"Validation FAILED: {STARTUP_STATE.failed_check_names()}")

    return STARTUP_STATE.all_passed


def _validate_env_vars() -> ValidationResult:
    """Validate required environment variables."""
    config = get_config()

    if not config.has_database_config:
        return ValidationResult(
            name="env_vars",
            passed=False,
            error_type="MissingEnvVar",
            error_message="SPOT_DB_URL or SPOT_DB_HOST required",
        )

    return ValidationResult(name="env_vars", passed=True)


def _validate_database() -> ValidationResult:
    """Validate database connectivity."""
    try:
        from repositories.base import PostgresRepository

        result = PostgresRepository().execute_scalar("SELECT 1")

        if result == 1:
            return ValidationResult(name="database", passed=True)
        return ValidationResult(
            name="database",
            passed=False,
            error_type="UnexpectedResult",
            error_message=f"Expected 1, got {result}",
        )
    except Exception as e:
        return ValidationResult(
            name="database",
            passed=False,
            error_type=type(e).__name__,
            error_message=str(e),
        )


__all__ = ["STARTUP_STATE", "validate_startup", "ValidationResult", "StartupState"]
