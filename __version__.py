# ============================================================================
# VERSION - SPOT RUNNER CONTROL PLANE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# ============================================================================
"""
Version information for the spot runner control plane.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
# Criteria for 0.4 - image reconciliation from the status endpoint
__version__ = "0.4.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-12"

EPOCH = 1
CODENAME = "Spot Runner"
