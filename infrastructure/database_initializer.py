# ============================================================================
# DATABASE INITIALIZER - INFRASTRUCTURE AS CODE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Infrastructure - Database initialization
# PURPOSE: Bootstrap the spotrunner schema, tables and indexes
# CREATED: 06 OCT 2026
# ============================================================================
"""
DatabaseInitializer - Infrastructure as Code for the control plane.

Standardized workflow for initializing the spotrunner schema:
1. Connection test
2. Schema creation (spotrunner)
3. Table creation (runner_states, image_states, machine_profiles)
4. Index creation (status + created_at for the reconciler, expires_at
   for the retention sweep)
5. Verification

Every statement is idempotent (IF NOT EXISTS), so the initializer is safe
to run on every deployment.

Usage:
    from infrastructure import DatabaseInitializer

    initializer = DatabaseInitializer()
    result = initializer.initialize_all()

    # Dry run (show SQL without executing)
    result = initializer.initialize_all(dry_run=True)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import psycopg
from psycopg import sql

from core.models import ImageState, MachineProfile, RunnerState
from repositories.base import PostgresRepository

logger = logging.getLogger(__name__)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class StepResult:
    """Result of a single initialization step."""
    name: str
    status: str  # 'success', 'failed', 'skipped'
    message: str = ""
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializationResult:
    """Complete result of database initialization."""
    schema: str
    timestamp: str
    success: bool
    steps: List[StepResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "timestamp": self.timestamp,
            "success": self.success,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status,
                    "message": s.message,
                    "error": s.error,
                    "details": s.details,
                }
                for s in self.steps
            ],
            "errors": self.errors,
            "warnings": self.warnings,
            "summary": {
                "total_steps": len(self.steps),
                "successful": len([s for s in self.steps if s.status == "success"]),
                "failed": len([s for s in self.steps if s.status == "failed"]),
                "skipped": len([s for s in self.steps if s.status == "skipped"]),
            },
        }


# ============================================================================
# DDL
# ============================================================================

def build_ddl_statements(schema: str) -> List[sql.Composed]:
    """DDL for the spotrunner schema, in dependency order."""
    runner_table = sql.Identifier(schema, RunnerState.__sql_table__)
    image_table = sql.Identifier(schema, ImageState.__sql_table__)
    profile_table = sql.Identifier(schema, MachineProfile.__sql_table__)

    return [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(sql.Identifier(schema)),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                job_id          VARCHAR(64) PRIMARY KEY,
                instance_id     VARCHAR(64),
                status          VARCHAR(32) NOT NULL,
                repo_full_name  VARCHAR(255) NOT NULL DEFAULT '',
                workflow_name   VARCHAR(255) NOT NULL DEFAULT '',
                labels          TEXT[] NOT NULL DEFAULT '{{}}',
                profile_name    VARCHAR(128),
                created_at      TIMESTAMPTZ NOT NULL,
                updated_at      TIMESTAMPTZ NOT NULL,
                expires_at      BIGINT NOT NULL,
                error_message   VARCHAR(2000)
            )
        """).format(runner_table),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS idx_runner_states_status_created ON {} (status, created_at)"
        ).format(runner_table),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS idx_runner_states_expires ON {} (expires_at)"
        ).format(runner_table),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                record_key      VARCHAR(160) PRIMARY KEY,
                profile_name    VARCHAR(128) NOT NULL,
                image_id        VARCHAR(64),
                status          VARCHAR(32) NOT NULL,
                updated_at      TIMESTAMPTZ NOT NULL,
                build_id        TEXT,
                error_message   VARCHAR(2000)
            )
        """).format(image_table),
        sql.SQL(
            "CREATE INDEX IF NOT EXISTS idx_image_states_status ON {} (status)"
        ).format(image_table),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {} (
                name            VARCHAR(128) PRIMARY KEY,
                config          JSONB NOT NULL,
                updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
            )
        """).format(profile_table),
    ]


# ============================================================================
# DATABASE INITIALIZER
# ============================================================================

class DatabaseInitializer:
    """
    Database initialization orchestrator.

    All operations are idempotent (safe to run multiple times).
    """

    EXPECTED_TABLES = [
        RunnerState.__sql_table__,
        ImageState.__sql_table__,
        MachineProfile.__sql_table__,
    ]

    def __init__(self, repo: Optional[PostgresRepository] = None):
        self.repo = repo or PostgresRepository()
        self.schema = self.repo.schema

    def initialize_all(self, dry_run: bool = False) -> InitializationResult:
        """
        Initialize the schema.

        Args:
            dry_run: If True, log SQL but don't execute
        """
        result = InitializationResult(
            schema=self.schema,
            timestamp=datetime.now(timezone.utc).isoformat(),
            success=False,
        )

        logger.info("=" * 70)
        logger.info("SPOT RUNNER - DATABASE INITIALIZATION")
        logger.info(f"   Schema: {self.schema}")
        logger.info(f"   Mode: {'DRY RUN' if dry_run else 'EXECUTE'}")
        logger.info("=" * 70)

        step = self._test_connection()
        result.steps.append(step)
        if step.status == "failed":
            result.errors.append(f"Connection failed: {step.error}")
            return result

        step = self._deploy_schema(dry_run=dry_run)
        result.steps.append(step)
        if step.status == "failed":
            result.errors.append(f"Schema deployment failed: {step.error}")

        if not dry_run:
            step = self._verify_tables()
            result.steps.append(step)
            if step.status == "failed":
                result.warnings.append(f"Verification issue: {step.error}")

        critical_failures = [
            s for s in result.steps
            if s.status == "failed" and s.name != "verify_tables"
        ]
        result.success = len(critical_failures) == 0

        summary = result.to_dict()["summary"]
        logger.info("=" * 70)
        logger.info(f"INITIALIZATION {'COMPLETE' if result.success else 'FAILED'}")
        logger.info(f"   Steps: {summary['successful']} succeeded, {summary['failed']} failed")
        if result.errors:
            logger.warning(f"   Errors: {result.errors}")
        logger.info("=" * 70)

        return result

    def _test_connection(self) -> StepResult:
        step = StepResult(name="test_connection", status="pending")
        try:
            row = self.repo.execute_one("SELECT version() AS version, current_database() AS db")
            step.status = "success"
            step.message = f"Connected to {row['db']}"
            step.details = {"version": row["version"][:50], "database": row["db"]}
        except psycopg.Error as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Connection failed: {e}"
        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def _deploy_schema(self, dry_run: bool = False) -> StepResult:
        step = StepResult(name="deploy_schema", status="pending")
        statements = build_ddl_statements(self.schema)

        if dry_run:
            for i, stmt in enumerate(statements, 1):
                logger.info(f"   [{i}] {stmt!r}"[:120])
            step.status = "success"
            step.message = f"[DRY RUN] Would execute {len(statements)} statements"
            step.details = {"statements_count": len(statements)}
            return step

        try:
            for stmt in statements:
                self.repo.execute_write(stmt)
            step.status = "success"
            step.message = f"Deployed {len(statements)} statements"
            step.details = {"statements_executed": len(statements), "schema": self.schema}
        except psycopg.Error as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Schema deployment failed: {e}"
            logger.error(step.message)

        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def _verify_tables(self) -> StepResult:
        step = StepResult(name="verify_tables", status="pending")
        try:
            existing = self.get_existing_tables()
            missing = [t for t in self.EXPECTED_TABLES if t not in existing]
            if missing:
                step.status = "failed"
                step.error = f"Missing tables: {missing}"
                step.message = f"Verification failed: {len(missing)} tables missing"
            else:
                step.status = "success"
                step.message = f"All {len(self.EXPECTED_TABLES)} expected tables exist"
            step.details = {"expected": self.EXPECTED_TABLES, "existing": existing, "missing": missing}
        except psycopg.Error as e:
            step.status = "failed"
            step.error = str(e)
            step.message = f"Verification failed: {e}"
        logger.info(f"   Result: {step.status} - {step.message}")
        return step

    def get_existing_tables(self) -> List[str]:
        rows = self.repo.execute_many(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = %s ORDER BY table_name",
            (self.schema,),
        )
        return [row["table_name"] for row in rows]


def initialize_database(dry_run: bool = False) -> InitializationResult:
    """Convenience function for deployment scripts."""
    return DatabaseInitializer().initialize_all(dry_run=dry_run)


__all__ = [
    "DatabaseInitializer",
    "InitializationResult",
    "StepResult",
    "build_ddl_statements",
    "initialize_database",
]
