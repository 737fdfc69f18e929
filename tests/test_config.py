# ============================================================================
# CONFIGURATION TESTS
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# STATUS: Tests - Environment loading and schema bootstrap
# PURPOSE: Verify FunctionConfig parsing and DatabaseInitializer steps
# CREATED: 11 OCT 2026
# ============================================================================
"""
Configuration Tests

Run with:
    pytest tests/test_config.py -v
"""

from unittest.mock import MagicMock

import psycopg

from core.config import get_defaults
from function.config import FunctionConfig, is_secret_configured
from infrastructure.database_initializer import DatabaseInitializer, build_ddl_statements


# ============================================================================
# FUNCTION CONFIG
# ============================================================================

class TestFunctionConfig:

    def test_defaults(self, monkeypatch):
        for name in ("SPOT_DB_URL", "SUBNET_IDS", "GITHUB_SERVER_URL", "RECONCILE_SCHEDULE"):
            monkeypatch.delenv(name, raising=False)
        config = FunctionConfig.from_env()
        assert config.db_schema == "spotrunner"
        assert config.subnet_ids == []
        assert config.github_api_url == "https://api.github.com"
        assert config.reconcile_schedule == "0 */5 * * * *"
        assert config.has_compute_config is False

    def test_lists_and_secrets(self, monkeypatch):
        monkeypatch.setenv("SUBNET_IDS", "subnet-a, subnet-b,,")
        monkeypatch.setenv("LAUNCH_TEMPLATE_ID", "lt-1")
        monkeypatch.setenv("GITHUB_APP_ID", "42")
        monkeypatch.setenv("GITHUB_APP_PRIVATE_KEY", "-----BEGIN KEY-----\\nabc\\n-----END KEY-----")
        config = FunctionConfig.from_env()
        assert config.subnet_ids == ["subnet-a", "subnet-b"]
        assert config.has_compute_config is True
        assert "\nabc\n" in config.github_app_private_key
        assert config.has_app_credentials is True

    def test_enterprise_server_api_url(self, monkeypatch):
        monkeypatch.setenv("GITHUB_SERVER_URL", "https://ghe.example.com/")
        assert FunctionConfig.from_env().github_api_url == "https://ghe.example.com/api/v3"

    def test_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("PROVISIONING_TIMEOUT_MINUTES", "15")
        monkeypatch.setenv("IMAGE_STALE_MINUTES", "45")
        config = FunctionConfig.from_env()
        assert config.provisioning_timeout_minutes == 15
        assert config.image_stale_minutes == 45
        assert get_defaults().timeouts.job_timeout_minutes == 60

    def test_secret_placeholders(self):
        assert is_secret_configured("real") is True
        assert is_secret_configured("PLACEHOLDER:fill-me") is False
        assert is_secret_configured("") is False
        assert is_secret_configured(None) is False

    def test_secrets_not_in_repr(self):
        config = FunctionConfig(github_webhook_secret="hunter2", github_app_private_key="pem-material-xyz")
        assert "hunter2" not in repr(config)
        assert "pem-material-xyz" not in repr(config)


# ============================================================================
# DATABASE INITIALIZER
# ============================================================================

def _make_repo(tables=("runner_states", "image_states", "machine_profiles")):
    repo = MagicMock()
    repo.schema = "spotrunner"
    repo.execute_one.return_value = {"version": "PostgreSQL 16.4", "db": "spot"}
    repo.execute_many.return_value = [{"table_name": t} for t in tables]
    return repo


class TestDatabaseInitializer:

    def test_ddl_is_idempotent(self):
        statements = build_ddl_statements("spotrunner")
        assert len(statements) == 7
        assert all("IF NOT EXISTS" in repr(s) for s in statements)

    def test_initialize_all(self):
        repo = _make_repo()
        result = DatabaseInitializer(repo=repo).initialize_all()
        assert result.success is True
        assert repo.execute_write.call_count == 7
        assert [s.name for s in result.steps] == ["test_connection", "deploy_schema", "verify_tables"]

    def test_dry_run_writes_nothing(self):
        repo = _make_repo()
        result = DatabaseInitializer(repo=repo).initialize_all(dry_run=True)
        assert result.success is True
        repo.execute_write.assert_not_called()

    def test_connection_failure_stops(self):
        repo = _make_repo()
        repo.execute_one.side_effect = psycopg.OperationalError("refused")
        result = DatabaseInitializer(repo=repo).initialize_all()
        assert result.success is False
        assert len(result.steps) == 1
        repo.execute_write.assert_not_called()

    def test_missing_table_is_warning(self):
        repo = _make_repo(tables=("runner_states",))
        result = DatabaseInitializer(repo=repo).initialize_all()
        assert result.success is True
        assert result.warnings
        assert result.to_dict()["summary"]["failed"] == 1
