# ============================================================================
# BOOT AGENT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Core - Instance boot payload
# PURPOSE: Render the runner bootstrap script into EC2 user data
# CREATED: 07 OCT 2026
# ============================================================================
"""
Boot Agent

The shell script in bootstrap.sh.j2 runs on every runner instance. It:
- installs the pinned runner release unless the image already has it,
  refusing (and terminating) on a checksum mismatch
- watches for a spot interruption notice and stops the runner gracefully,
  then forcibly after the grace period
- enforces the profile timeout with a watchdog that terminates the instance
- terminates the instance whenever the script exits

The control plane only renders it. StrictUndefined makes a missing
variable a render error instead of an empty string in a shell script.

Usage:
    from boot_agent import render_user_data

    user_data = render_user_data(job_id="123", jit_config=cfg, timeout_seconds=3600)
"""

import base64
import re
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from core.config import get_defaults

TEMPLATE_NAME = "bootstrap.sh.j2"

# Base64 alphabet only; the value is embedded in single quotes
_JIT_CONFIG_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")
_JOB_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

_env = Environment(
    loader=FileSystemLoader(str(Path(__file__).parent)),
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def render_boot_script(job_id: str, jit_config: str, timeout_seconds: int) -> str:
    """Render the bootstrap script for one job."""
    if not _JIT_CONFIG_PATTERN.match(jit_config or ""):
        raise ValueError("JIT config must be base64 encoded")
    if not _JOB_ID_PATTERN.match(job_id or ""):
        raise ValueError(f"Unsafe job id for boot script: {job_id!r}")
    if timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be positive")

    defaults = get_defaults()
    return _env.get_template(TEMPLATE_NAME).render(
        job_id=job_id,
        jit_config=jit_config,
        timeout_seconds=int(timeout_seconds),
        runner_version=defaults.runner.runner_version,
        checksums=defaults.runner.checksums,
        preemption_grace_seconds=defaults.timeouts.preemption_grace_seconds,
        watchdog_grace_seconds=defaults.timeouts.watchdog_grace_seconds,
    )


def render_user_data(job_id: str, jit_config: str, timeout_seconds: int) -> str:
    """Bootstrap script, base64 encoded for the UserData field."""
    script = render_boot_script(job_id, jit_config, timeout_seconds)
    return base64.b64encode(script.encode("utf-8")).decode("ascii")


__all__ = ["render_boot_script", "render_user_data", "TEMPLATE_NAME"]
