# ============================================================================
# SERVICE WIRING
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Function - Process-lifetime service construction
# PURPOSE: Build services from FunctionConfig once per warm worker
# CREATED: 10 OCT 2026
# ============================================================================
"""
Service Wiring

Blueprints get their services from here. Clients that hold caches (GitHub
App installation tokens, connectivity result, run-once image reconcile)
are created once per worker process so the caches survive between
invocations. Repositories are cheap and open a connection per call, so
they are shared too.

reset_dependencies() drops everything (tests, config reloads).
"""

from typing import Optional

from core.cache import RunOnce, SystemClock, TtlCache
from function.config import get_config
from infrastructure.compute import ComputeClient
from infrastructure.github_app import GitHubAppClient
from infrastructure.image_pipeline import ImagePipelineClient
from repositories import ImageStateRepository, ProfileRepository, RunnerStateRepository
from services import (
    BuildEventConsumer,
    ImageReconciler,
    IntakeService,
    LabelRouter,
    Provisioner,
    Reconciler,
    StatusService,
)

_clock = SystemClock()
_token_cache: Optional[TtlCache] = None
_connectivity_cache: Optional[TtlCache] = None
_image_reconcile_once: Optional[RunOnce] = None

_github: Optional[GitHubAppClient] = None
_compute: Optional[ComputeClient] = None
_pipelines: Optional[ImagePipelineClient] = None


def _caches():
    global _token_cache, _connectivity_cache, _image_reconcile_once
    if _token_cache is None:
        _token_cache = TtlCache(clock=_clock)
        _connectivity_cache = TtlCache(clock=_clock)
        _image_reconcile_once = RunOnce()
    return _token_cache, _connectivity_cache, _image_reconcile_once


def get_github_client() -> GitHubAppClient:
    global _github
    if _github is None:
        config = get_config()
        token_cache, _, _ = _caches()
        _github = GitHubAppClient(
            app_id=config.github_app_id,
            private_key=config.github_app_private_key,
            api_url=config.github_api_url,
            token_cache=token_cache,
            clock=_clock,
        )
    return _github


def get_compute_client() -> ComputeClient:
    global _compute
    if _compute is None:
        config = get_config()
        _compute = ComputeClient(
            region=config.aws_region,
            launch_template_id=config.launch_template_id,
            security_group_ids=config.security_group_ids,
        )
    return _compute


def get_pipeline_client() -> ImagePipelineClient:
    global _pipelines
    if _pipelines is None:
        _pipelines = ImagePipelineClient(region=get_config().aws_region)
    return _pipelines


def get_intake_service() -> IntakeService:
    config = get_config()
    return IntakeService(
        config=config,
        router=LabelRouter(ProfileRepository()),
        runner_states=RunnerStateRepository(),
        github=get_github_client(),
        provisioner=Provisioner(get_compute_client(), config.subnet_ids),
    )


def get_reconciler() -> Reconciler:
    config = get_config()
    return Reconciler(
        runner_states=RunnerStateRepository(),
        compute=get_compute_client(),
        provisioning_timeout_minutes=config.provisioning_timeout_minutes,
        job_timeout_minutes=config.job_timeout_minutes,
    )


def get_image_reconciler() -> ImageReconciler:
    return ImageReconciler(
        image_states=ImageStateRepository(),
        profiles=ProfileRepository(),
        pipelines=get_pipeline_client(),
        stale_minutes=get_config().image_stale_minutes,
    )


def get_status_service() -> StatusService:
    _, connectivity_cache, reconcile_once = _caches()
    return StatusService(
        config=get_config(),
        image_states=ImageStateRepository(),
        github=get_github_client(),
        image_reconciler=get_image_reconciler(),
        connectivity_cache=connectivity_cache,
        reconcile_once=reconcile_once,
    )


def get_build_event_consumer() -> BuildEventConsumer:
    return BuildEventConsumer(
        image_states=ImageStateRepository(),
        profiles=ProfileRepository(),
        region=get_config().aws_region,
    )


def reset_dependencies() -> None:
    """Drop clients and caches (for testing)."""
    global _token_cache, _connectivity_cache, _image_reconcile_once
    global _github, _compute, _pipelines
    _token_cache = _connectivity_cache = _image_reconcile_once = None
    _github = _compute = _pipelines = None


__all__ = [
    "get_github_client",
    "get_compute_client",
    "get_pipeline_client",
    "get_intake_service",
    "get_reconciler",
    "get_image_reconciler",
    "get_status_service",
    "get_build_event_consumer",
    "reset_dependencies",
]
