# ============================================================================
# IMAGE STATE REPOSITORY
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Machine image readiness storage
# PURPOSE: Timestamp-gated upserts of per-profile image state
# CREATED: 05 OCT 2026
# ============================================================================
"""
Image State Repository

One row per profile, keyed "IMAGE#<profile>". Every write is a single
INSERT ... ON CONFLICT DO UPDATE whose WHERE clause only lets the update
through when the incoming updated_at is strictly newer than the stored
one, so a late or replayed event can never overwrite newer state.

Callers that read before writing (the image reconciler) pass
expected_updated_at, which additionally requires the stored row to still
carry the timestamp they read.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from psycopg import sql

from core.contracts import ImageStatus
from core.models import ImageState, image_record_key
from repositories.base import PostgresRepository

logger = logging.getLogger(__name__)

TABLE = ImageState.__sql_table__


class ImageStateRepository(PostgresRepository):
    """Repository for ImageState records."""

    def get(self, profile_name: str) -> Optional[ImageState]:
        with self._error_context("image get", profile_name):
            row = self.execute_one(
                sql.SQL("SELECT * FROM {} WHERE record_key = %s").format(self._table(TABLE)),
                (image_record_key(profile_name),),
            )
        return ImageState.from_row(row) if row else None

    def upsert(self, state: ImageState, expected_updated_at: Optional[datetime] = None) -> bool:
        """
        Write state if it is newer than what is stored.

        Args:
            state: Incoming record (its updated_at is the write timestamp)
            expected_updated_at: If set, the stored row must still have this
                updated_at for the write to land

        Returns:
            True if the write was accepted, False if a newer (or moved)
            record won
        """
        guard = sql.SQL("")
        if expected_updated_at is not None:
            guard = sql.SQL(" AND {}.updated_at = %(expected_updated_at)s").format(sql.Identifier(TABLE))

        query = sql.SQL("""
            INSERT INTO {table} AS {alias} (
                record_key, profile_name, image_id, status, updated_at,
                build_id, error_message
            ) VALUES (
                %(record_key)s, %(profile_name)s, %(image_id)s, %(status)s,
                %(updated_at)s, %(build_id)s, %(error_message)s
            )
            ON CONFLICT (record_key) DO UPDATE SET
                image_id = EXCLUDED.image_id,
                status = EXCLUDED.status,
                updated_at = EXCLUDED.updated_at,
                build_id = EXCLUDED.build_id,
                error_message = EXCLUDED.error_message
            WHERE {alias}.updated_at < EXCLUDED.updated_at{guard}
        """).format(
            table=self._table(TABLE),
            alias=sql.Identifier(TABLE),
            guard=guard,
        )

        with self._error_context("image upsert", state.profile_name):
            rowcount = self.execute_write(
                query,
                {
                    "record_key": state.record_key,
                    "profile_name": state.profile_name,
                    "image_id": state.image_id,
                    "status": state.status.value,
                    "updated_at": state.updated_at,
                    "build_id": state.build_id,
                    "error_message": state.error_message,
                    "expected_updated_at": expected_updated_at,
                },
            )

        if rowcount == 1:
            logger.info(f"Image state for {state.profile_name} -> {state.status.value}")
            return True
        logger.info(
            f"Image state write for {state.profile_name} rejected "
            f"(stored record is newer or moved since read)"
        )
        return False

    def list_all(self) -> List[ImageState]:
        with self._error_context("image list_all"):
            rows = self.execute_many(
                sql.SQL("SELECT * FROM {} ORDER BY profile_name").format(self._table(TABLE)),
            )
        return [ImageState.from_row(row) for row in rows]

    def initialize(self, profile_name: str, now: Optional[datetime] = None) -> bool:
        """Create a `building` record for a new profile unless one exists."""
        now = now or datetime.now(timezone.utc)
        with self._error_context("image initialize", profile_name):
            rowcount = self.execute_write(
                sql.SQL("""
                INSERT INTO {} (record_key, profile_name, image_id, status, updated_at)
                VALUES (%s, %s, NULL, %s, %s)
                ON CONFLICT (record_key) DO NOTHING
                """).format(self._table(TABLE)),
                (image_record_key(profile_name), profile_name, ImageStatus.BUILDING.value, now),
            )
        return rowcount == 1


__all__ = ["ImageStateRepository"]
