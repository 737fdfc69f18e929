# ============================================================================
# FUNCTION APP CONFIGURATION
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function App - Configuration management
# PURPOSE: Environment-based configuration for the control plane
# CREATED: 04 OCT 2026
# ============================================================================
"""
Function App Configuration

Loads configuration from environment variables (Function App settings)
with sensible defaults. Secrets arrive the same way, typically as Key
Vault references resolved by the platform. A secret whose value still
starts with "PLACEHOLDER:" was never filled in and counts as missing.

Database auth uses the infrastructure/auth module:
- USE_MANAGED_IDENTITY=true -> UMI token via infrastructure/auth
- Otherwise -> SPOT_DB_PASSWORD or SPOT_DB_URL
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from __version__ import __version__
from core.config import get_defaults

logger = logging.getLogger(__name__)

PLACEHOLDER_SECRET_PREFIX = "PLACEHOLDER:"
GITHUB_COM = "https://github.com"


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def is_secret_configured(value: Optional[str]) -> bool:
    """True when a secret has a real value (not empty, not a placeholder)."""
    return bool(value) and not value.startswith(PLACEHOLDER_SECRET_PREFIX)


@dataclass
class FunctionConfig:
    """Configuration for the function app."""

    # Database
    database_url: Optional[str] = None
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    postgres_db: str = "postgres"
    db_schema: str = "spotrunner"

    # GitHub App (upstream job queue)
    github_app_id: Optional[str] = None
    github_app_private_key: Optional[str] = field(default=None, repr=False)
    github_webhook_secret: Optional[str] = field(default=None, repr=False)
    github_server_url: str = GITHUB_COM

    # AWS compute + image pipeline
    aws_region: str = "us-east-1"
    launch_template_id: str = ""
    subnet_ids: List[str] = field(default_factory=list)
    security_group_ids: List[str] = field(default_factory=list)

    # Image build events
    image_events_api_key: Optional[str] = field(default=None, repr=False)

    # Lifecycle
    ttl_days: int = 7
    provisioning_timeout_minutes: int = 10
    job_timeout_minutes: int = 60
    image_stale_minutes: int = 30
    reconcile_schedule: str = "0 */5 * * * *"

    # App Info
    version: str = __version__
    service_name: str = "spot-runner-control-plane"

    @classmethod
    def from_env(cls) -> "FunctionConfig":
        """Load configuration from environment variables."""
        timeouts = get_defaults().timeouts
        private_key = os.environ.get("GITHUB_APP_PRIVATE_KEY")
        if private_key:
            # App settings flatten newlines in PEM blocks
            private_key = private_key.replace("\\n", "\n")

        return cls(
            # Database
            database_url=os.environ.get("SPOT_DB_URL"),
            postgres_host=os.environ.get("SPOT_DB_HOST", "localhost"),
            postgres_port=os.environ.get("SPOT_DB_PORT", "5432"),
            postgres_db=os.environ.get("SPOT_DB_NAME", "postgres"),
            db_schema=os.environ.get("SPOT_DB_SCHEMA", "spotrunner"),
            # GitHub App
            github_app_id=os.environ.get("GITHUB_APP_ID"),
            github_app_private_key=private_key,
            github_webhook_secret=os.environ.get("GITHUB_WEBHOOK_SECRET"),
            github_server_url=os.environ.get("GITHUB_SERVER_URL", GITHUB_COM).rstrip("/"),
            # AWS
            aws_region=os.environ.get("AWS_REGION", "us-east-1"),
            launch_template_id=os.environ.get("LAUNCH_TEMPLATE_ID", ""),
            subnet_ids=_split_csv(os.environ.get("SUBNET_IDS")),
            security_group_ids=_split_csv(os.environ.get("SECURITY_GROUP_IDS")),
            # Image events
            image_events_api_key=os.environ.get("IMAGE_EVENTS_API_KEY"),
            # Lifecycle
            ttl_days=timeouts.record_ttl_days,
            provisioning_timeout_minutes=timeouts.provisioning_timeout_minutes,
            job_timeout_minutes=timeouts.job_timeout_minutes,
            image_stale_minutes=timeouts.image_stale_minutes,
            reconcile_schedule=os.environ.get("RECONCILE_SCHEDULE", "0 */5 * * * *"),
            # App Info
            version=os.environ.get("APP_VERSION", __version__),
            service_name=os.environ.get("SERVICE_NAME", "spot-runner-control-plane"),
        )

    def get_connection_string(self) -> str:
        """
        Get database connection string.

        Delegates to infrastructure/auth for managed identity support.
        """
        # 1. Explicit URL overrides everything
        if self.database_url:
            return self.database_url

        # 2. Managed identity
        use_mi = os.environ.get("USE_MANAGED_IDENTITY", "false").lower() == "true"
        if use_mi:
            from infrastructure.auth import get_postgres_connection_string
            logger.info("Using Managed Identity for PostgreSQL")
            return get_postgres_connection_string()

        # 3. Password auth fallback (local dev only)
        user = os.environ.get("SPOT_DB_USER", "postgres")
        password = os.environ.get("SPOT_DB_PASSWORD", "")

        return (
            f"host={self.postgres_host} "
            f"port={self.postgres_port} "
            f"dbname={self.postgres_db} "
            f"user={user} "
            f"password={password} "
            f"sslmode=require"
        )

    @property
    def github_api_url(self) -> str:
        """REST base: api.github.com for github.com, <server>/api/v3 for GHES."""
        if self.github_server_url == GITHUB_COM:
            return "https://api.github.com"
        return f"{self.github_server_url}/api/v3"

    @property
    def has_database_config(self) -> bool:
        """Check if database is configured."""
        return bool(self.database_url or self.postgres_host != "localhost")

    @property
    def has_webhook_secret(self) -> bool:
        return is_secret_configured(self.github_webhook_secret)

    @property
    def has_app_credentials(self) -> bool:
        """App id and private key both present and not placeholders."""
        return bool(self.github_app_id) and is_secret_configured(self.github_app_private_key)

    @property
    def has_compute_config(self) -> bool:
        return bool(self.launch_template_id and self.subnet_ids)

    @property
    def has_image_events_key(self) -> bool:
        return is_secret_configured(self.image_events_api_key)


# Global config singleton
_config: Optional[FunctionConfig] = None


def get_config() -> FunctionConfig:
    """Get the global configuration singleton."""
    global _config
    if _config is None:
        _config = FunctionConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached configuration (for testing)."""
    global _config
    _config = None


__all__ = ["FunctionConfig", "get_config", "reset_config", "is_secret_configured"]
