"""Shared fixtures: process-level singletons are reset around every test."""

import pytest

from core.config import reset_defaults
from function.config import reset_config


@pytest.fixture(autouse=True)
def _reset_singletons():
    reset_defaults()
    reset_config()
    yield
    reset_defaults()
    reset_config()
