# ============================================================================
# RECONCILE BLUEPRINT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Scheduled cleanup
# PURPOSE: Timer trigger running the lifecycle reconciler
# CREATED: 10 OCT 2026
# ============================================================================
"""
Reconcile Blueprint

Timer trigger, RECONCILE_SCHEDULE (NCRONTAB, default every 5 minutes).
A run that overlaps a slow previous run is harmless: every write is
idempotent (timeout is terminal, terminating a gone instance is a no-op).
"""

import logging

import azure.functions as func

from core.logging import log_context
from function.config import get_config
from function.dependencies import get_reconciler

logger = logging.getLogger(__name__)
reconcile_bp = func.Blueprint()


@reconcile_bp.timer_trigger(
    schedule=get_config().reconcile_schedule,
    arg_name="timer",
    run_on_startup=False,
    use_monitor=True,
)
def reconcile(timer: func.TimerRequest) -> None:
    """Scheduled lifecycle reconciliation."""
    if timer.past_due:
        logger.warning("Reconcile timer is past due")

    with log_context(component="reconciler"):
        report = get_reconciler().run()

    if report.error_count:
        logger.warning(f"Reconcile finished with {report.error_count} item errors")


__all__ = ["reconcile_bp"]
