# ============================================================================
# JOB INTAKE SERVICE
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Webhook to runner
# PURPOSE: Verify, filter, route, claim and provision one queued job
# CREATED: 09 OCT 2026
# ============================================================================
"""
Job Intake Service

Handles one `workflow_job` delivery end to end:

    verify signature -> filter event/action -> route labels -> image ready?
    -> credentials configured? -> probe -> claim -> JIT config
    -> provisioning -> provision -> running

Every early exit before the claim is side-effect free. Once the claim
succeeds, any failure moves the record to failed and answers 500, so the
upstream delivery shows as failed and the record explains why.

The service is transport-agnostic: it takes the raw body bytes and the
headers and returns an IntakeResult (status code + JSON body). The
blueprint only adapts that to an HttpResponse.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from core.config import get_defaults
from core.contracts import RunnerStatus
from core.errors import (
    ConfigurationError,
    InvalidTransitionError,
    NoConfigurationError,
    SignatureError,
)
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from core.models import IMAGE_PENDING, ProvisionRequest, RunnerState, WorkflowJobEvent
from core.models.webhook import WORKFLOW_JOB_EVENT
from function.config import FunctionConfig
from infrastructure.github_app import GitHubAppClient
from repositories import RunnerStateRepository
from services.provisioner import Provisioner
from services.routing import LabelRouter

logger = get_logger(__name__, ComponentType.INTAKE)

SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"
SIGNATURE_PREFIX = "sha256="


@dataclass
class IntakeResult:
    """HTTP-shaped outcome of one delivery."""
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **extra: Any) -> "IntakeResult":
        return cls(200, {"message": message, **extra})

    @classmethod
    def error(cls, status_code: int, error: str, message: Optional[str] = None) -> "IntakeResult":
        body = {"error": error}
        if message:
            body["message"] = message
        return cls(status_code, body)


def compute_signature(secret: str, body: bytes) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, body: bytes, header: Optional[str]) -> None:
    """
    Check `X-Hub-Signature-256` against the raw body.

    Raises:
        SignatureError: header missing, malformed or not matching
    """
    if not header or not header.startswith(SIGNATURE_PREFIX):
        raise SignatureError("Missing or malformed signature header")
    expected = compute_signature(secret, body)
    if not hmac.compare_digest(expected.encode("ascii"), header.strip().encode("ascii", "replace")):
        raise SignatureError("Signature mismatch")


def _lower_keys(headers: Mapping[str, str]) -> Dict[str, str]:
    return {str(k).lower(): v for k, v in headers.items()}


class IntakeService:
    """Turns queued workflow jobs into provisioned runners."""

    def __init__(
        self,
        config: FunctionConfig,
        router: LabelRouter,
        runner_states: RunnerStateRepository,
        github: GitHubAppClient,
        provisioner: Provisioner,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            config: Function configuration (secrets, compute settings, TTL)
            router: Label router backed by the profile store
            runner_states: Lifecycle store
            github: GitHub App client for JIT runner configs
            provisioner: Capacity acquisition
            now: Clock override for tests
        """
        self.config = config
        self.router = router
        self.runner_states = runner_states
        self.github = github
        self.provisioner = provisioner
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._runner_defaults = get_defaults().runner

    def handle(self, body: bytes, headers: Mapping[str, str]) -> IntakeResult:
        """Process one webhook delivery."""
        headers = _lower_keys(headers)

        if not self.config.has_webhook_secret:
            logger.error("Webhook secret not configured")
            return IntakeResult.error(503, "Service not configured", "Webhook secret not configured")

        try:
            verify_signature(self.config.github_webhook_secret, body, headers.get(SIGNATURE_HEADER))
        except SignatureError as e:
            logger.warning(f"Rejected delivery: {e}")
            return IntakeResult.error(401, "Invalid signature")

        event_type = headers.get(EVENT_HEADER)
        if event_type != WORKFLOW_JOB_EVENT:
            logger.info(f"Ignoring event type: {event_type}")
            return IntakeResult.ok("Event ignored")

        try:
            event = WorkflowJobEvent.model_validate(json.loads(body or b"{}"))
        except ValueError as e:
            # pydantic ValidationError and JSONDecodeError are both ValueErrors
            logger.warning(f"Unparseable workflow_job payload: {e}")
            return IntakeResult.error(400, "Invalid payload")

        if not event.is_queued:
            logger.info(f"Ignoring action: {event.action}")
            return IntakeResult.ok("Action ignored")

        with log_context(job_id=event.job_id, operation="intake"):
            return self._handle_queued(event)

    def _handle_queued(self, event: WorkflowJobEvent) -> IntakeResult:
        job = event.workflow_job
        job_id = event.job_id
        repo_full_name = event.repository.full_name
        workflow_name = job.workflow_name or ""

        logger.info(f"Processing job {job_id} for {repo_full_name}")

        try:
            resolved = self.router.resolve(job.labels)
        except NoConfigurationError as e:
            logger.info(str(e))
            return IntakeResult.ok("No matching runner config")
        except ConfigurationError as e:
            logger.error(f"Profile configuration invalid: {e}")
            return IntakeResult.error(503, "Service not configured", str(e))

        if resolved is None:
            logger.info(f"No matching config for labels: {', '.join(job.labels)}")
            return IntakeResult.ok("No matching runner config")

        profile = resolved.profile
        if not profile.image_id or profile.image_id == IMAGE_PENDING:
            logger.info(f"Image not ready for profile {profile.name} (imageId={profile.image_id})")
            return IntakeResult.ok("Runner image not yet available")

        if not self.config.has_app_credentials:
            logger.error("GitHub App credentials not configured")
            return IntakeResult.error(
                503, "Service not configured",
                "GitHub App private key not configured. Upload the private key and set GITHUB_APP_ID.",
            )
        if not self.config.has_compute_config:
            logger.error("Compute not configured (LAUNCH_TEMPLATE_ID / SUBNET_IDS)")
            return IntakeResult.error(503, "Service not configured", "Compute settings not configured")

        existing = self.runner_states.get(job_id)
        if existing is not None:
            logger.info(f"Job {job_id} already being handled (status: {existing.status.value})")
            return IntakeResult.ok("Job already being handled")

        state = RunnerState.new_pending(
            job_id=job_id,
            repo_full_name=repo_full_name,
            workflow_name=workflow_name,
            labels=job.labels,
            profile_name=profile.name,
            now=self._now(),
            ttl_days=self.config.ttl_days,
        )
        if not self.runner_states.create_if_absent(state):
            logger.info(f"Job {job_id} already claimed by another handler")
            return IntakeResult.ok("Job already claimed")

        with log_context(profile_name=profile.name):
            log_checkpoint("job_claimed", {"repo": repo_full_name})
            return self._provision_claimed(event, resolved, state)

    def _provision_claimed(self, event, resolved, state: RunnerState) -> IntakeResult:
        job_id = state.job_id
        current = state.status
        try:
            installation_id = event.installation_id
            if not installation_id:
                raise ValueError("Missing installation ID in webhook payload")

            jit_config = self.github.generate_jit_config(
                installation_id=installation_id,
                repo_full_name=state.repo_full_name,
                labels=list(resolved.profile.labels),
                runner_name=f"{self._runner_defaults.runner_name_prefix}{job_id}",
            )

            current = self._transition(job_id, current, RunnerStatus.PROVISIONING)

            result = self.provisioner.provision(ProvisionRequest(
                job_id=job_id,
                repo_full_name=state.repo_full_name,
                workflow_name=state.workflow_name,
                labels=state.labels,
                profile=resolved.profile,
                jit_config=jit_config,
                cpu=resolved.route.cpu,
                ram=resolved.route.ram,
            ))

            with log_context(instance_id=result.instance_id):
                self._transition(job_id, current, RunnerStatus.RUNNING, instance_id=result.instance_id)
                log_checkpoint("runner_provisioned", {
                    "instance_type": result.instance_type,
                    "is_spot": result.is_spot,
                })

            logger.info(
                f"Provisioned {'spot' if result.is_spot else 'on-demand'} instance "
                f"{result.instance_id} ({result.instance_type})"
            )
            return IntakeResult.ok(
                "Runner provisioned",
                instanceId=result.instance_id,
                instanceType=result.instance_type,
                isSpot=result.is_spot,
            )

        except Exception as e:
            logger.exception(f"Failed to provision runner for job {job_id}: {e}")
            self._transition(job_id, current, RunnerStatus.FAILED, error_message=str(e) or type(e).__name__)
            log_checkpoint("runner_failed", {"error_type": type(e).__name__})
            return IntakeResult.error(500, "Failed to provision runner")

    def _transition(
        self,
        job_id: str,
        current: RunnerStatus,
        target: RunnerStatus,
        instance_id: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> RunnerStatus:
        if not current.can_transition_to(target):
            raise InvalidTransitionError(job_id, current, target)
        self.runner_states.update(
            job_id,
            status=target,
            instance_id=instance_id,
            error_message=error_message,
            now=self._now(),
        )
        return target


__all__ = ["IntakeService", "IntakeResult", "verify_signature", "compute_signature"]
