# ============================================================================
# BASE REPOSITORY
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Database access base class
# PURPOSE: Connection-per-call PostgreSQL access for function invocations
# CREATED: 05 OCT 2026
# ============================================================================
"""
Base Repository

Lightweight synchronous PostgreSQL repository for function invocations.
Uses psycopg3 with dict_row factory (NEVER tuple indexing).

Design Principles:
- Connection per call (no pooling across stateless invocations)
- dict_row factory ALWAYS (never tuple indexing)
- Every statement is a single atomic operation; no multi-statement
  transactions, no advisory locks
- Driver errors surface as RepositoryError with operation context
- Conditional-write losses are reported as rowcount 0, not raised
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from core.errors import RepositoryError

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]
Params = Union[tuple, Dict[str, Any]]


class PostgresRepository:
    """
    Base repository for control plane state.

    Pattern:
    - Connection per call
    - dict_row factory always (access columns by name, never index)
    - Statements composed with psycopg.sql (schema/table identifiers)
    """

    def __init__(self, conn_string: Optional[str] = None, schema: Optional[str] = None):
        """
        Initialize repository.

        Args:
            conn_string: Connection string (default: from FunctionConfig)
            schema: Database schema name (default: from FunctionConfig)
        """
        if conn_string is None or schema is None:
            from function.config import get_config
            config = get_config()
            conn_string = conn_string or config.get_connection_string()
            schema = schema or config.db_schema
        self.schema = schema
        self._conn_string = conn_string

    def _table(self, name: str) -> sql.Identifier:
        return sql.Identifier(self.schema, name)

    def _get_connection(self) -> psycopg.Connection:
        """Get a database connection with dict_row factory."""
        return psycopg.connect(self._conn_string, row_factory=dict_row)

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Wrap driver failures in RepositoryError with operation context.

        Example:
            with self._error_context("runner claim", job_id):
                rowcount = self.execute_write(query, params)
        """
        try:
            yield
        except RepositoryError:
            raise
        except psycopg.Error as e:
            error_msg = f"{operation} failed"
            if entity_id:
                error_msg += f" for {entity_id}"
            error_msg += f": {e}"
            logger.error(error_msg)
            raise RepositoryError(error_msg, operation=operation, entity_id=entity_id) from e

    def execute_scalar(self, query: Query, params: Params = ()) -> Any:
        """Execute query and return the first column of the first row, or None."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
                if row:
                    return list(row.values())[0]
                return None

    def execute_one(self, query: Query, params: Params = ()) -> Optional[Dict[str, Any]]:
        """Execute query and return single row as dict, or None."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchone()

    def execute_many(self, query: Query, params: Params = ()) -> List[Dict[str, Any]]:
        """Execute query and return all rows as list of dicts."""
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()

    def execute_write(self, query: Query, params: Params = ()) -> int:
        """
        Execute INSERT/UPDATE/DELETE and commit.

        Returns:
            Number of rows affected (0 means a conditional clause rejected it)
        """
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                rowcount = cur.rowcount
            conn.commit()
            return rowcount


__all__ = ["PostgresRepository", "RepositoryError"]
