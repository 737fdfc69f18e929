# ============================================================================
# AUTHENTICATION MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# PURPOSE: Azure authentication for PostgreSQL
# CREATED: 04 OCT 2026
# ============================================================================
"""
Authentication module.

Provides Azure Managed Identity authentication for the spotrunner
PostgreSQL schema.

Usage:
    from infrastructure.auth import get_postgres_connection_string

    conn_str = get_postgres_connection_string()
"""

from infrastructure.auth.postgres_auth import (
    get_postgres_connection_string,
    get_postgres_token,
    get_postgres_token_status,
)

__all__ = [
    'get_postgres_connection_string',
    'get_postgres_token',
    'get_postgres_token_status',
]
