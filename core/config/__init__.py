# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 03 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized defaults for the spot runner control plane.
"""

from core.config.defaults import (
    TimeoutDefaults,
    RunnerDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "TimeoutDefaults",
    "RunnerDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
