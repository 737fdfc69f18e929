# ============================================================================
# PROFILE REPOSITORY
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Persisted machine profile storage
# PURPOSE: Read profile documents, write imageId atomically
# CREATED: 05 OCT 2026
# ============================================================================
"""
Profile Repository

Profiles are JSON documents in machine_profiles.config. Reads return the
raw document (validation belongs to the router). The only runtime write
is update_image_id, which sets one key with jsonb_set in a single
statement and never rewrites the rest of the document.
"""

import logging
from typing import Any, Dict, List, Optional

from psycopg import sql
from psycopg.types.json import Jsonb

from core.models import MachineProfile
from repositories.base import PostgresRepository

logger = logging.getLogger(__name__)

TABLE = MachineProfile.__sql_table__


class ProfileRepository(PostgresRepository):
    """Repository for machine profile documents."""

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        """Raw profile document, with `name` filled in from the key."""
        with self._error_context("profile get", name):
            row = self.execute_one(
                sql.SQL("SELECT name, config FROM {} WHERE name = %s").format(self._table(TABLE)),
                (name,),
            )
        if not row:
            return None
        document = dict(row["config"] or {})
        document.setdefault("name", row["name"])
        return document

    def put(self, name: str, document: Dict[str, Any]) -> None:
        """Create or replace a profile (deployment tooling only)."""
        with self._error_context("profile put", name):
            self.execute_write(
                sql.SQL("""
                INSERT INTO {} (name, config, updated_at)
                VALUES (%s, %s, now())
                ON CONFLICT (name) DO UPDATE SET
                    config = EXCLUDED.config,
                    updated_at = EXCLUDED.updated_at
                """).format(self._table(TABLE)),
                (name, Jsonb(document)),
            )
        logger.info(f"Stored profile {name}")

    def update_image_id(self, name: str, image_id: str) -> bool:
        """
        Set config.imageId for a profile.

        Returns:
            False if the profile does not exist
        """
        with self._error_context("profile update_image_id", name):
            rowcount = self.execute_write(
                sql.SQL("""
                UPDATE {} SET
                    config = jsonb_set(config, '{{imageId}}', to_jsonb(%s::text)),
                    updated_at = now()
                WHERE name = %s
                """).format(self._table(TABLE)),
                (image_id, name),
            )
        if rowcount == 0:
            logger.warning(f"Image update for unknown profile {name} ignored")
            return False
        logger.info(f"Profile {name} now uses image {image_id}")
        return True

    def list_names(self) -> List[str]:
        with self._error_context("profile list_names"):
            rows = self.execute_many(
                sql.SQL("SELECT name FROM {} ORDER BY name").format(self._table(TABLE)),
            )
        return [row["name"] for row in rows]


__all__ = ["ProfileRepository"]
