# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Database access layer
# PURPOSE: Conditional-write stores for control plane state
# CREATED: 05 OCT 2026
# ============================================================================
"""
Repositories Module

Provides database access for runner lifecycle records, image state and
machine profiles. Uses synchronous psycopg3 with a connection per call.

Usage:
    from repositories import RunnerStateRepository

    repo = RunnerStateRepository()
    claimed = repo.create_if_absent(state)
"""

from .base import PostgresRepository, RepositoryError
from .runner_state_repo import RunnerStateRepository
from .image_state_repo import ImageStateRepository
from .profile_repo import ProfileRepository

__all__ = [
    "PostgresRepository",
    "RepositoryError",
    "RunnerStateRepository",
    "ImageStateRepository",
    "ProfileRepository",
]
