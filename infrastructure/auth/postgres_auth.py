# ============================================================================
# POSTGRESQL OAUTH AUTHENTICATION
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# PURPOSE: Managed Identity authentication for Azure PostgreSQL
# CREATED: 04 OCT 2026
# ============================================================================
"""
PostgreSQL OAuth authentication for the spot runner control plane.

Acquires OAuth tokens for Azure Database for PostgreSQL using Managed
Identity. Tokens live in a TtlCache and are refreshed when within
5 minutes of expiry.

Authentication Flow:
-------------------
1. A repository opens a connection -> get_postgres_connection_string()
2. ManagedIdentityCredential acquires a token for the PostgreSQL scope
3. Token cached until 5 minutes before its expiry
4. Connection string returned with the current token as password

Environment Variables:
---------------------
USE_MANAGED_IDENTITY=true
AZURE_CLIENT_ID=<guid>               # User-assigned MI client ID
SPOT_DB_IDENTITY_NAME=<identity>     # PostgreSQL user name
SPOT_DB_HOST=<server>.postgres.database.azure.com
SPOT_DB_NAME=<database>
SPOT_DB_PORT=5432

For password auth (local development):
SPOT_DB_USER=<user>
SPOT_DB_PASSWORD=<password>      (or SPOT_DB_URL)
USE_MANAGED_IDENTITY=false
"""

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from core.cache import TtlCache

logger = logging.getLogger(__name__)

# OAuth scope for Azure Database for PostgreSQL
POSTGRES_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"

# Refresh tokens when less than 5 minutes until expiry
TOKEN_REFRESH_BUFFER_SECS = 300

_TOKEN_KEY = "postgres"


@dataclass(frozen=True)
class PostgresToken:
    token: str
    expires_at: datetime

    def seconds_remaining(self) -> float:
        return (self.expires_at - datetime.now(timezone.utc)).total_seconds()


_token_cache = TtlCache()


def _get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default)


def _use_managed_identity() -> bool:
    return _get_env("USE_MANAGED_IDENTITY", "false").lower() == "true"


def _acquire_token() -> PostgresToken:
    from azure.identity import ManagedIdentityCredential, DefaultAzureCredential
    from azure.core.exceptions import ClientAuthenticationError

    identity_name = _get_env("SPOT_DB_IDENTITY_NAME", "")
    logger.info(
        f"Acquiring PostgreSQL OAuth token for {identity_name or '<default identity>'} "
        f"on {_get_env('SPOT_DB_HOST', 'localhost')}/{_get_env('SPOT_DB_NAME', 'postgres')}"
    )

    client_id = _get_env("AZURE_CLIENT_ID")
    if client_id:
        credential = ManagedIdentityCredential(client_id=client_id)
    else:
        credential = DefaultAzureCredential()

    try:
        response = credential.get_token(POSTGRES_SCOPE)
    except ClientAuthenticationError as e:
        logger.error(
            f"FAILED TO GET POSTGRESQL OAUTH TOKEN: {e}. "
            f"Verify the identity is assigned to the Function App and that "
            f"database user '{identity_name}' exists (pgaadauth_list_principals())."
        )
        raise

    expires_at = datetime.fromtimestamp(response.expires_on, tz=timezone.utc)
    logger.info(f"PostgreSQL token acquired, expires: {expires_at.isoformat()}")
    return PostgresToken(token=response.token, expires_at=expires_at)


def get_postgres_token() -> Optional[str]:
    """
    Get PostgreSQL OAuth token using Managed Identity.

    Returns:
        Bearer token, or None when managed identity is disabled.
    """
    if not _use_managed_identity():
        logger.debug("Managed identity disabled, using password auth")
        return None

    cached = _token_cache.get_or_refresh(
        _TOKEN_KEY,
        ttl=lambda tok: tok.seconds_remaining() - TOKEN_REFRESH_BUFFER_SECS,
        loader=_acquire_token,
    )
    return cached.token


def get_postgres_connection_string() -> str:
    """
    Build PostgreSQL connection string with OAuth token or password.

    Raises:
        ValueError: If no authentication method is configured.
    """
    host = _get_env("SPOT_DB_HOST", "localhost")
    port = _get_env("SPOT_DB_PORT", "5432")
    database = _get_env("SPOT_DB_NAME", "postgres")

    if not _use_managed_identity():
        user = _get_env("SPOT_DB_USER", "postgres")
        password = _get_env("SPOT_DB_PASSWORD", "")

        if not password:
            database_url = _get_env("SPOT_DB_URL")
            if database_url:
                return database_url

            raise ValueError(
                "No PostgreSQL authentication configured. "
                "Set USE_MANAGED_IDENTITY=true or provide SPOT_DB_PASSWORD or SPOT_DB_URL"
            )

        return f"host={host} port={port} dbname={database} user={user} password={password} sslmode=require"

    token = get_postgres_token()
    if not token:
        raise ValueError("Failed to acquire PostgreSQL OAuth token")

    identity_name = _get_env("SPOT_DB_IDENTITY_NAME", "")
    return f"host={host} port={port} dbname={database} user={identity_name} password={token} sslmode=require"


def get_postgres_token_status() -> dict:
    """PostgreSQL token status for the readiness probe."""
    if not _use_managed_identity():
        return {"auth_type": "password", "token_cached": False}

    cached = _token_cache.get(_TOKEN_KEY)
    return {
        "auth_type": "managed_identity",
        "token_cached": cached is not None,
        "expires_at": cached.expires_at.isoformat() if cached else None,
    }
