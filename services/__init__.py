# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Business logic layer
# PURPOSE: Routing, provisioning, intake, reconciliation and status
# CREATED: 08 OCT 2026
# ============================================================================
"""
Services Module

Business logic for the spot runner control plane. Services coordinate
between the stores (repositories/) and the external clients
(infrastructure/). None of them holds state between invocations other
than what is injected.

Usage:
    from services import IntakeService

    result = intake.handle(body, headers)
"""

from .routing import LabelRouter, ResolvedRoute, parse_label, normalize_labels
from .provisioner import Provisioner
from .intake_service import IntakeService, IntakeResult
from .reconciler import Reconciler
from .image_reconciler import ImageReconciler
from .image_events import BuildEventConsumer, BuildEventOutcome
from .status_service import StatusService

__all__ = [
    "LabelRouter",
    "ResolvedRoute",
    "parse_label",
    "normalize_labels",
    "Provisioner",
    "IntakeService",
    "IntakeResult",
    "Reconciler",
    "ImageReconciler",
    "BuildEventConsumer",
    "BuildEventOutcome",
    "StatusService",
]
