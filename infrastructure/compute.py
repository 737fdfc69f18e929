# ============================================================================
# COMPUTE CLIENT (EC2)
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Infrastructure - Capacity requests and instance lifecycle
# PURPOSE: Thin boto3 wrapper for fleet, launch, terminate and discovery
# CREATED: 07 OCT 2026
# ============================================================================
"""
Compute Client

Wraps the EC2 calls the control plane makes. Policy (which call, when to
fall back) lives in services/provisioner.py; this module only shapes
requests and responses.

Boot payloads: RunInstances accepts UserData directly. An instant fleet
does not, so for fleet requests a per-job launch template version is
created from $Latest with the job's UserData, used by the fleet, and
deleted afterwards.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from core.errors import CapacityError

logger = logging.getLogger(__name__)

INSTANCE_NOT_FOUND = "InvalidInstanceID.NotFound"
LIVE_STATES = ["pending", "running"]


@dataclass(frozen=True)
class LaunchedInstance:
    instance_id: str
    instance_type: str


@dataclass(frozen=True)
class TaggedInstance:
    instance_id: str
    job_id: str
    state: str
    launch_time: Optional[datetime] = None


@dataclass(frozen=True)
class InstanceShape:
    instance_type: str
    vcpus: int
    memory_gb: float


def tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    return [{"Key": k, "Value": v} for k, v in tags.items()]


def error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "ClientError")


class ComputeClient:
    """EC2 operations used by the provisioner and the reconciler."""

    def __init__(
        self,
        region: Optional[str] = None,
        launch_template_id: str = "",
        security_group_ids: Optional[List[str]] = None,
        ec2_client=None,
    ):
        self.region = region
        self.launch_template_id = launch_template_id
        self.security_group_ids = list(security_group_ids or [])
        self._ec2 = ec2_client

    @property
    def ec2(self):
        if self._ec2 is None:
            self._ec2 = boto3.client(
                "ec2",
                region_name=self.region,
                config=Config(retries={"max_attempts": 3, "mode": "standard"}),
            )
        return self._ec2

    # ------------------------------------------------------------------
    # LAUNCH
    # ------------------------------------------------------------------

    def create_job_template_version(self, job_id: str, user_data_b64: str) -> str:
        """New launch template version carrying the job's boot payload."""
        data: Dict[str, object] = {"UserData": user_data_b64}
        if self.security_group_ids:
            data["SecurityGroupIds"] = self.security_group_ids
        resp = self.ec2.create_launch_template_version(
            LaunchTemplateId=self.launch_template_id,
            SourceVersion="$Latest",
            VersionDescription=f"spot-runner job {job_id}",
            LaunchTemplateData=data,
        )
        return str(resp["LaunchTemplateVersion"]["VersionNumber"])

    def delete_template_version(self, version: str) -> None:
        try:
            self.ec2.delete_launch_template_versions(
                LaunchTemplateId=self.launch_template_id,
                Versions=[version],
            )
        except ClientError as exc:
            # Left-over versions only count against the template version quota
            logger.warning(f"Could not delete launch template version {version}: {error_code(exc)}")

    def create_spot_fleet(
        self,
        template_version: str,
        overrides: List[Dict[str, str]],
        tags: Dict[str, str],
    ) -> Tuple[Optional[LaunchedInstance], List[Dict]]:
        """
        One instant fleet request for one spot unit.

        Returns:
            (instance or None, fleet error entries)
        """
        resp = self.ec2.create_fleet(
            Type="instant",
            TargetCapacitySpecification={
                "TotalTargetCapacity": 1,
                "DefaultTargetCapacityType": "spot",
                "OnDemandTargetCapacity": 0,
                "SpotTargetCapacity": 1,
            },
            SpotOptions={
                "AllocationStrategy": "capacity-optimized",
                "InstanceInterruptionBehavior": "terminate",
            },
            LaunchTemplateConfigs=[
                {
                    "LaunchTemplateSpecification": {
                        "LaunchTemplateId": self.launch_template_id,
                        "Version": template_version,
                    },
                    "Overrides": overrides,
                }
            ],
            TagSpecifications=[{"ResourceType": "instance", "Tags": tag_list(tags)}],
        )

        errors = resp.get("Errors") or []
        for entry in resp.get("Instances") or []:
            instance_ids = entry.get("InstanceIds") or []
            if instance_ids:
                return LaunchedInstance(instance_ids[0], entry.get("InstanceType", "")), errors
        return None, errors

    def run_on_demand(
        self,
        image_id: str,
        instance_type: str,
        subnet_id: str,
        user_data_b64: str,
        tags: Dict[str, str],
    ) -> LaunchedInstance:
        params = {
            "LaunchTemplate": {"LaunchTemplateId": self.launch_template_id, "Version": "$Latest"},
            "ImageId": image_id,
            "InstanceType": instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "SubnetId": subnet_id,
            "UserData": user_data_b64,
            "TagSpecifications": [{"ResourceType": "instance", "Tags": tag_list(tags)}],
        }
        if self.security_group_ids:
            params["SecurityGroupIds"] = self.security_group_ids

        resp = self.ec2.run_instances(**params)
        instances = resp.get("Instances") or []
        if not instances or not instances[0].get("InstanceId"):
            raise CapacityError("RunInstances returned no instance")
        return LaunchedInstance(instances[0]["InstanceId"], instances[0].get("InstanceType", instance_type))

    # ------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------

    def terminate_instance(self, instance_id: str) -> bool:
        """
        Terminate an instance.

        Returns:
            True if terminated now, False if it was already gone
        """
        try:
            self.ec2.terminate_instances(InstanceIds=[instance_id])
        except ClientError as exc:
            if error_code(exc) == INSTANCE_NOT_FOUND:
                logger.info(f"Instance {instance_id} already terminated")
                return False
            raise
        logger.info(f"Terminated instance {instance_id}")
        return True

    def list_tagged_instances(self, tag_key: str) -> List[TaggedInstance]:
        """Live (pending/running) instances carrying tag_key."""
        paginator = self.ec2.get_paginator("describe_instances")
        pages = paginator.paginate(
            Filters=[
                {"Name": "tag-key", "Values": [tag_key]},
                {"Name": "instance-state-name", "Values": LIVE_STATES},
            ],
        )

        found: List[TaggedInstance] = []
        for page in pages:
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    tags = {t["Key"]: t["Value"] for t in instance.get("Tags", [])}
                    job_id = tags.get(tag_key)
                    if not instance.get("InstanceId") or not job_id:
                        continue
                    found.append(TaggedInstance(
                        instance_id=instance["InstanceId"],
                        job_id=job_id,
                        state=instance.get("State", {}).get("Name", ""),
                        launch_time=instance.get("LaunchTime"),
                    ))
        return found

    def describe_shapes(self, instance_types: Iterable[str]) -> Dict[str, InstanceShape]:
        types = list(instance_types)
        if not types:
            return {}
        resp = self.ec2.describe_instance_types(InstanceTypes=types)
        shapes = {}
        for info in resp.get("InstanceTypes", []):
            name = info["InstanceType"]
            shapes[name] = InstanceShape(
                instance_type=name,
                vcpus=int(info.get("VCpuInfo", {}).get("DefaultVCpus", 0)),
                memory_gb=info.get("MemoryInfo", {}).get("SizeInMiB", 0) / 1024,
            )
        return shapes


__all__ = [
    "ComputeClient",
    "LaunchedInstance",
    "TaggedInstance",
    "InstanceShape",
    "INSTANCE_NOT_FOUND",
    "tag_list",
    "error_code",
]
