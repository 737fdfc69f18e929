# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across every function invocation
# CREATED: 03 OCT 2026
# ============================================================================
"""
Structured Logging

Function App output lands in Application Insights, where one job is
followed across several invocations (webhook, reconcile timer, status).
Every record therefore carries the job, profile and instance it concerns,
taken from the innermost `log_context`.

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger(__name__, ComponentType.INTAKE)

    with log_context(job_id="12345", profile_name="linux-x64"):
        logger.info("Claimed job")

LOG_FORMAT=json switches the root handler to one JSON object per line.
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union


class ComponentType(str, Enum):
    """Which part of the control plane emitted a record."""
    INTAKE = "intake"
    PROVISIONER = "provisioner"
    RECONCILER = "reconciler"
    IMAGE_RECONCILER = "image_reconciler"
    IMAGE_EVENTS = "image_events"
    STATUS = "status"


# ============================================================================
# CONTEXT
# ============================================================================

@dataclass(frozen=True)
class LogContext:
    job_id: Optional[str] = None
    profile_name: Optional[str] = None
    instance_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


_EMPTY = LogContext()
_local = threading.local()


def _stack() -> list:
    if not hasattr(_local, "stack"):
        _local.stack = []
    return _local.stack


def get_current_context() -> LogContext:
    stack = _stack()
    return stack[-1] if stack else _EMPTY


@contextmanager
def log_context(**kwargs):
    """
    Push context fields for the duration of the block.

    Unset fields are inherited from the enclosing context. Unknown field
    names raise TypeError.
    """
    context = replace(get_current_context(), **kwargs)
    stack = _stack()
    stack.append(context)
    try:
        yield context
    finally:
        stack.pop()


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# FORMATTERS
# ============================================================================

class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_current_context().to_dict()
        if context:
            log_data["context"] = context

        data = getattr(record, "extra", None)
        if data:
            log_data["data"] = data

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = f"{record.filename}:{record.lineno}"
        return json.dumps(log_data, default=str)


_HUMAN_LABELS = (("job_id", "job"), ("profile_name", "profile"), ("instance_id", "instance"))


class HumanFormatter(logging.Formatter):
    """Single-line format for local runs (`func start`)."""

    def format(self, record: logging.LogRecord) -> str:
        context = get_current_context()
        tags = [f"{label}={getattr(context, name)}" for name, label in _HUMAN_LABELS if getattr(context, name)]
        prefix = f" [{', '.join(tags)}]" if tags else ""

        line = (
            f"{datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} {record.levelname:<8} "
            f"{record.name}{prefix}: {record.getMessage()}"
        )
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


# ============================================================================
# LOGGERS
# ============================================================================

class ContextLogger(logging.LoggerAdapter):
    """Attaches the current context and component to every record as `record.extra`."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        if self.extra.get("component"):
            extra.setdefault("component", self.extra["component"])
        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(name: str, component: Optional[ComponentType] = None) -> ContextLogger:
    return ContextLogger(
        logging.getLogger(name),
        {"component": component.value if component is not None else None},
    )


def configure_logging(level: Union[str, int] = "INFO", json_output: bool = False) -> None:
    """
    Replace the root handlers with one stdout handler.

    Called once by function_app.py at import time.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # SDK request logging at INFO would drown the job records
    for noisy in ("botocore", "boto3", "urllib3", "httpx", "azure.core.pipeline.policies.http_logging_policy"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ============================================================================
# CHECKPOINTS
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named milestone (job_claimed, runner_provisioned, runner_failed,
    reconcile_completed) with the job, profile and instance in scope.
    """
    payload: Dict[str, Any] = {"checkpoint": name, "timestamp": _utc_timestamp()}
    context = get_current_context()
    for key in ("job_id", "profile_name", "instance_id"):
        value = getattr(context, key)
        if value:
            payload[key] = value
    if data:
        payload["data"] = data

    (logger or logging.getLogger("checkpoint")).info(f"CHECKPOINT: {name}", extra={"extra": payload})
