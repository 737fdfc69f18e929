# ============================================================================
# LABEL ROUTER
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Service - Job label to machine profile resolution
# PURPOSE: Parse spotrunner/<profile>[/<k>=<v>,...] labels and load profiles
# CREATED: 08 OCT 2026
# ============================================================================
"""
Label Router

A job opts in with a label of the form

    spotrunner/<profile>[/<key>=<value>,<key>=<value>]

e.g. "spotrunner/linux-x64" or "spotrunner/linux-x64/cpu=2,ram=8".

Matching is case-insensitive and the first matching label wins. Labels may
arrive comma-joined ("self-hosted,spotrunner/linux-x64"), so each label is
split on commas first.

Three outcomes are kept distinct:
    None                      -> no route, the job is not ours
    NoConfigurationError      -> ours, but neither the profile nor "default" exists
    ProfileValidationError    -> the stored profile is malformed
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError

from core.config import get_defaults
from core.errors import NoConfigurationError, ProfileValidationError
from core.models import MachineProfile, RouteResult

logger = logging.getLogger(__name__)


class ProfileSource(Protocol):
    def get(self, name: str) -> Optional[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class ResolvedRoute:
    route: RouteResult
    profile: MachineProfile


def expand_labels(labels: Iterable[str]) -> List[str]:
    """Split comma-joined labels and trim each part."""
    expanded = []
    for label in labels:
        for part in (label or "").split(","):
            part = part.strip()
            if part:
                expanded.append(part)
    return expanded


def _positive_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.strip().isdigit():
        return None
    parsed = int(value.strip())
    return parsed if parsed > 0 else None


def parse_label(labels: Iterable[str]) -> Optional[RouteResult]:
    """First spotrunner label in `labels`, parsed. None when there is none."""
    prefix = get_defaults().runner.label_prefix

    for label in expand_labels(labels):
        normalized = label.lower()
        if not normalized.startswith(prefix):
            continue

        parts = normalized[len(prefix):].split("/")
        if not parts[0]:
            continue

        options: Dict[str, str] = {}
        if len(parts) > 1 and parts[1]:
            for opt in parts[1].split(","):
                key, sep, value = opt.partition("=")
                if sep and key.strip() and value.strip():
                    options[key.strip()] = value.strip()

        return RouteResult(
            profile_name=parts[0],
            options=options,
            cpu=_positive_int(options.get("cpu")),
            ram=_positive_int(options.get("ram")),
            label=label,
        )

    return None


def normalize_labels(labels: Iterable[str]) -> List[str]:
    """Lower-case, trim, drop "self-hosted", sort."""
    return sorted(
        label for label in (raw.lower().strip() for raw in labels)
        if label != "self-hosted"
    )


def validate_profile(name: str, document: Dict[str, Any]) -> MachineProfile:
    """Validate a stored profile document or raise ProfileValidationError."""
    try:
        return MachineProfile.model_validate({"name": name, **document})
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ProfileValidationError(name, problems) from e


class LabelRouter:
    """Resolves job labels to a validated machine profile."""

    def __init__(self, profiles: ProfileSource):
        self._profiles = profiles
        self._default_name = get_defaults().runner.default_profile

    def resolve(self, labels: Iterable[str]) -> Optional[ResolvedRoute]:
        """
        Route a job's labels.

        Returns:
            ResolvedRoute, or None when no spotrunner label is present

        Raises:
            NoConfigurationError: profile and "default" both missing
            ProfileValidationError: the resolved profile is malformed
        """
        labels = list(labels)
        route = parse_label(labels)
        if route is None:
            logger.info(f"No spotrunner label in {labels}")
            return None

        name = route.profile_name
        document = self._profiles.get(name)
        if document is None:
            logger.info(f"Profile {name} not found, trying {self._default_name}")
            name = self._default_name
            document = self._profiles.get(name)
        if document is None:
            raise NoConfigurationError(route.profile_name)

        profile = validate_profile(name, {k: v for k, v in document.items() if k != "name"})
        return ResolvedRoute(route=route, profile=profile)


__all__ = [
    "LabelRouter",
    "ResolvedRoute",
    "parse_label",
    "expand_labels",
    "normalize_labels",
    "validate_profile",
]
