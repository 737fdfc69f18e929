# ============================================================================
# LABEL ROUTER TESTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Tests - Label parsing and profile resolution
# PURPOSE: Verify spotrunner label grammar and the default-profile fallback
# CREATED: 11 OCT 2026
# ============================================================================
"""
Label Router Tests

Pure parsing tests plus LabelRouter against an in-memory profile store.

Run with:
    pytest tests/test_routing.py -v
"""

import pytest
from unittest.mock import MagicMock

from core.contracts import SpotStrategy
from core.errors import NoConfigurationError, ProfileValidationError
from services.routing import (
    LabelRouter,
    expand_labels,
    normalize_labels,
    parse_label,
    validate_profile,
)

from fakes import FakeProfiles, profile_document


# ============================================================================
# PARSING
# ============================================================================

class TestParseLabel:

    def test_plain_profile(self):
        route = parse_label(["self-hosted", "spotrunner/linux-x64"])
        assert route.profile_name == "linux-x64"
        assert route.options == {}
        assert route.cpu is None
        assert route.ram is None
        assert route.label == "spotrunner/linux-x64"

    def test_options_and_case_insensitive(self):
        route = parse_label(["SpotRunner/Linux-X64/cpu=4,ram=16"])
        assert route.profile_name == "linux-x64"
        assert route.options == {"cpu": "4", "ram": "16"}
        assert route.cpu == 4
        assert route.ram == 16

    def test_comma_joined_labels(self):
        route = parse_label(["self-hosted,spotrunner/linux-arm64"])
        assert route.profile_name == "linux-arm64"

    def test_first_match_wins(self):
        route = parse_label(["spotrunner/first", "spotrunner/second"])
        assert route.profile_name == "first"

    def test_no_spotrunner_label(self):
        assert parse_label(["self-hosted", "linux"]) is None
        assert parse_label([]) is None

    def test_empty_profile_is_skipped(self):
        assert parse_label(["spotrunner/"]) is None
        route = parse_label(["spotrunner/", "spotrunner/gpu"])
        assert route.profile_name == "gpu"

    @pytest.mark.parametrize("value", ["abc", "0", "-2", "1.5", ""])
    def test_invalid_cpu_is_ignored(self, value):
        route = parse_label([f"spotrunner/linux-x64/cpu={value}"])
        assert route.profile_name == "linux-x64"
        assert route.cpu is None

    def test_malformed_options_dropped(self):
        route = parse_label(["spotrunner/linux-x64/noequals,=x,ram=8"])
        assert route.options == {"ram": "8"}
        assert route.ram == 8


class TestLabelHelpers:

    def test_expand_labels_trims(self):
        assert expand_labels([" a , b", "", "c"]) == ["a", "b", "c"]

    def test_normalize_labels(self):
        assert normalize_labels(["Self-Hosted", " X64 ", "Linux"]) == ["linux", "x64"]


# ============================================================================
# PROFILE VALIDATION
# ============================================================================

class TestValidateProfile:

    def test_valid_document(self):
        profile = validate_profile("linux-x64", profile_document())
        assert profile.name == "linux-x64"
        assert profile.spot_strategy == SpotStrategy.SPOT_PREFERRED
        assert profile.instance_types == ["m7i.large", "m6i.large"]
        assert profile.image_ready is True

    def test_pending_image_is_valid_but_not_ready(self):
        profile = validate_profile("linux-x64", profile_document(imageId="pending"))
        assert profile.image_ready is False

    def test_placeholder_image_rejected(self):
        with pytest.raises(ProfileValidationError) as exc:
            validate_profile("linux-x64", profile_document(imageId="PLACEHOLDER-ami"))
        assert exc.value.profile_name == "linux-x64"

    def test_empty_instance_types_rejected(self):
        with pytest.raises(ProfileValidationError):
            validate_profile("linux-x64", profile_document(instanceTypes=[]))

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ProfileValidationError) as exc:
            validate_profile("linux-x64", profile_document(spotStrategy="sometimes"))
        assert any("spotStrategy" in p for p in exc.value.problems)

    def test_non_positive_disk_rejected(self):
        with pytest.raises(ProfileValidationError):
            validate_profile("linux-x64", profile_document(diskSizeGb=0))


# ============================================================================
# ROUTER
# ============================================================================

class TestLabelRouter:

    def test_resolves_named_profile(self):
        router = LabelRouter(FakeProfiles({"linux-x64": profile_document()}))
        resolved = router.resolve(["spotrunner/linux-x64/cpu=2"])
        assert resolved.profile.name == "linux-x64"
        assert resolved.route.cpu == 2

    def test_falls_back_to_default(self):
        router = LabelRouter(FakeProfiles({"default": profile_document(spotStrategy="onDemandOnly")}))
        resolved = router.resolve(["spotrunner/unknown"])
        assert resolved.profile.name == "default"
        assert resolved.route.profile_name == "unknown"
        assert resolved.profile.spot_strategy == SpotStrategy.ON_DEMAND_ONLY

    def test_no_profile_and_no_default(self):
        router = LabelRouter(FakeProfiles({}))
        with pytest.raises(NoConfigurationError) as exc:
            router.resolve(["spotrunner/unknown"])
        assert exc.value.profile_name == "unknown"

    def test_invalid_profile_is_distinct_from_missing(self):
        router = LabelRouter(FakeProfiles({"linux-x64": profile_document(timeout=-1)}))
        with pytest.raises(ProfileValidationError):
            router.resolve(["spotrunner/linux-x64"])

    def test_no_label_never_reads_store(self):
        profiles = MagicMock()
        router = LabelRouter(profiles)
        assert router.resolve(["self-hosted", "linux"]) is None
        profiles.get.assert_not_called()
