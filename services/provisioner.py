# ============================================================================
# PROVISIONER
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Capacity acquisition policy
# PURPOSE: Turn a validated profile + credential into exactly one instance
# CREATED: 08 OCT 2026
# ============================================================================
"""
Provisioner

Policy, per profile spotStrategy:

    onDemandOnly   -> one direct launch, first shape, first subnet
    spotPreferred  -> one instant spot fleet request; on empty result or
                      error, one direct on-demand launch
    spotOnly       -> one instant spot fleet request; on empty result or
                      error, CapacityError

The fleet request spreads over every (shape x subnet) pair, each pinned to
the profile's image, with capacity-optimized allocation. Tags go into the
creation request itself so an instance is never untagged, which the
reconciler's orphan pass relies on.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from boot_agent import render_user_data
from core.config import get_defaults
from core.contracts import SpotStrategy
from core.errors import CapacityError
from core.logging import ComponentType, get_logger, log_checkpoint
from core.models import ProvisionRequest, ProvisionResult
from infrastructure.compute import ComputeClient, LaunchedInstance

logger = get_logger(__name__, ComponentType.PROVISIONER)

TAG_VALUE_MAX = 256


def _tag_value(value: str) -> str:
    return (value or "")[:TAG_VALUE_MAX]


def build_tags(request: ProvisionRequest, now: Optional[datetime] = None) -> Dict[str, str]:
    """Instance tags identifying the job the instance belongs to."""
    prefix = get_defaults().runner.tag_prefix
    now = now or datetime.now(timezone.utc)
    return {
        "Name": _tag_value(f"{prefix}-{request.job_id}"),
        f"{prefix}:job-id": request.job_id,
        f"{prefix}:repo": _tag_value(request.repo_full_name),
        f"{prefix}:workflow": _tag_value(request.workflow_name),
        f"{prefix}:labels": _tag_value(",".join(request.labels)),
        f"{prefix}:profile": _tag_value(request.profile.name),
        f"{prefix}:provisioned-at": now.isoformat(),
    }


class Provisioner:
    """Requests capacity for one job according to its profile's policy."""

    def __init__(self, compute: ComputeClient, subnet_ids: List[str]):
        self._compute = compute
        self._subnet_ids = list(subnet_ids)
        self._tag_prefix = get_defaults().runner.tag_prefix

    def select_instance_types(self, request: ProvisionRequest) -> List[str]:
        """
        Profile shapes meeting the cpu/ram minimums, in profile order.

        Falls back to every configured shape when the minimums cannot be
        met or the shape lookup fails.
        """
        configured = list(request.profile.instance_types)
        if request.cpu is None and request.ram is None:
            return configured

        try:
            shapes = self._compute.describe_shapes(configured)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Shape lookup failed, using all configured types: {e}")
            return configured

        selected = [
            name for name in configured
            if name in shapes
            and (request.cpu is None or shapes[name].vcpus >= request.cpu)
            and (request.ram is None or shapes[name].memory_gb >= request.ram)
        ]
        if not selected:
            logger.warning(
                f"No configured type meets cpu={request.cpu} ram={request.ram}; "
                f"using all of {configured}"
            )
            return configured
        return selected

    def build_overrides(self, instance_types: List[str], image_id: str) -> List[Dict[str, str]]:
        return [
            {"InstanceType": instance_type, "SubnetId": subnet_id, "ImageId": image_id}
            for instance_type in instance_types
            for subnet_id in self._subnet_ids
        ]

    def provision(self, request: ProvisionRequest) -> ProvisionResult:
        """
        Acquire one instance for the job.

        Raises:
            CapacityError: spotOnly and the fleet produced nothing
            ClientError / BotoCoreError: the on-demand launch itself failed
        """
        profile = request.profile
        instance_types = self.select_instance_types(request)
        tags = build_tags(request)
        user_data = render_user_data(request.job_id, request.jit_config, profile.timeout)

        if profile.spot_strategy == SpotStrategy.ON_DEMAND_ONLY:
            return self._on_demand(request, instance_types[0], user_data, tags)

        try:
            launched = self._spot_fleet(request, instance_types, user_data, tags)
        except (BotoCoreError, ClientError) as e:
            if not profile.spot_strategy.allows_fallback:
                raise CapacityError(f"Spot fleet request failed for job {request.job_id}: {e}") from e
            logger.warning(f"Spot fleet error for job {request.job_id}, falling back to on-demand: {e}")
            return self._on_demand(request, instance_types[0], user_data, tags)

        if launched is not None:
            log_checkpoint("spot_capacity_acquired", {"instance_type": launched.instance_type})
            return ProvisionResult(
                instance_id=launched.instance_id,
                instance_type=launched.instance_type or instance_types[0],
                is_spot=True,
            )

        if not profile.spot_strategy.allows_fallback:
            raise CapacityError(f"No spot capacity for job {request.job_id} ({', '.join(instance_types)})")

        logger.info(f"No spot capacity for job {request.job_id}, falling back to on-demand")
        return self._on_demand(request, instance_types[0], user_data, tags)

    def _spot_fleet(
        self,
        request: ProvisionRequest,
        instance_types: List[str],
        user_data: str,
        tags: Dict[str, str],
    ) -> Optional[LaunchedInstance]:
        overrides = self.build_overrides(instance_types, request.profile.image_id)
        fleet_tags = {**tags, f"{self._tag_prefix}:spot-strategy": "spot"}

        version = self._compute.create_job_template_version(request.job_id, user_data)
        try:
            launched, errors = self._compute.create_spot_fleet(version, overrides, fleet_tags)
        finally:
            self._compute.delete_template_version(version)

        if errors:
            codes = sorted({e.get("ErrorCode", "unknown") for e in errors})
            logger.info(f"Fleet errors for job {request.job_id}: {codes}")
        return launched

    def _on_demand(
        self,
        request: ProvisionRequest,
        instance_type: str,
        user_data: str,
        tags: Dict[str, str],
    ) -> ProvisionResult:
        launched = self._compute.run_on_demand(
            image_id=request.profile.image_id,
            instance_type=instance_type,
            subnet_id=self._subnet_ids[0],
            user_data_b64=user_data,
            tags={**tags, f"{self._tag_prefix}:spot-strategy": "on-demand"},
        )
        log_checkpoint("on_demand_capacity_acquired", {"instance_type": launched.instance_type})
        return ProvisionResult(
            instance_id=launched.instance_id,
            instance_type=launched.instance_type or instance_type,
            is_spot=False,
        )


__all__ = ["Provisioner", "build_tags"]
