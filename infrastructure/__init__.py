# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Infrastructure - External systems
# PURPOSE: Database bootstrap, GitHub App, EC2 and Image Builder clients
# CREATED: 06 OCT 2026
# ============================================================================
"""
Infrastructure module.

Provides:
- DatabaseInitializer: Bootstrap the spotrunner schema
- GitHubAppClient: App JWT, installation tokens, JIT runner configs
- ComputeClient: EC2 fleet/launch/terminate/discovery
- ImagePipelineClient: EC2 Image Builder queries

Usage:
    from infrastructure import DatabaseInitializer

    result = DatabaseInitializer().initialize_all()
"""

from infrastructure.database_initializer import (
    DatabaseInitializer,
    InitializationResult,
    StepResult,
    initialize_database,
)
from infrastructure.github_app import GitHubAppClient, ConnectivityResult
from infrastructure.compute import ComputeClient
from infrastructure.image_pipeline import ImagePipelineClient

__all__ = [
    "DatabaseInitializer",
    "InitializationResult",
    "StepResult",
    "initialize_database",
    "GitHubAppClient",
    "ConnectivityResult",
    "ComputeClient",
    "ImagePipelineClient",
]
