# ============================================================================
# BOOT AGENT TESTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Tests - Bootstrap script rendering
# PURPOSE: Verify the rendered script carries the job's values and guards
# CREATED: 11 OCT 2026
# ============================================================================
"""
Boot Agent Tests

Run with:
    pytest tests/test_boot_agent.py -v
"""

import base64

import pytest

from boot_agent import render_boot_script, render_user_data
from core.config import get_defaults

JIT = "eyJydW5uZXIiOiJ0ZXN0In0="


class TestRenderBootScript:

    def test_contains_job_values(self):
        script = render_boot_script("4242", JIT, 1800)
        assert "# spot-runner boot agent (job 4242)" in script
        assert f"echo '{JIT}' > .jitconfig" in script
        assert "sleep 1800" in script
        assert './run.sh --jitconfig "$(cat .jitconfig)"' in script

    def test_pins_runner_release(self):
        runner = get_defaults().runner
        script = render_boot_script("4242", JIT, 1800)
        assert f'RUNNER_VERSION="{runner.runner_version}"' in script
        assert runner.checksum_x64 in script
        assert runner.checksum_arm64 in script

    def test_self_terminates_on_exit(self):
        script = render_boot_script("4242", JIT, 1800)
        assert "trap self_terminate EXIT" in script
        assert "spot/instance-action" in script

    @pytest.mark.parametrize("jit", ["", "abc'; rm -rf /", "has space"])
    def test_rejects_unsafe_jit_config(self, jit):
        with pytest.raises(ValueError):
            render_boot_script("4242", jit, 1800)

    @pytest.mark.parametrize("job_id", ["", "42 42", "$(reboot)"])
    def test_rejects_unsafe_job_id(self, job_id):
        with pytest.raises(ValueError):
            render_boot_script(job_id, JIT, 1800)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            render_boot_script("4242", JIT, 0)

    def test_user_data_is_base64_of_script(self):
        encoded = render_user_data("4242", JIT, 1800)
        assert base64.b64decode(encoded).decode("utf-8") == render_boot_script("4242", JIT, 1800)
