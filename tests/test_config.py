"""Tests for configuration loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sqlsandbox.core.config import (
    CONFIG_PATH_ENV,
    MAX_QUERY_LENGTH,
    ExecutorConfig,
    LogFormat,
    SandboxConfig,
    SecurityConfig,
    ServerConfig,
    get_config,
)

YAML = """
environment: staging
log_format: console
server:
  port: 9090
mysql:
  host: db.internal
  user: sandbox
  password: from-yaml
executor:
  query_timeout_seconds: 10
  db_prefix: lab_
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(YAML)
    return path


class TestDefaults:
    def test_defaults(self):
        config = SandboxConfig()
        assert config.server.host == "0.0.0.0"
        assert config.server.port == 8080
        assert config.mysql.host == "localhost"
        assert config.mysql.port == 3306
        assert config.mysql.user == "root"
        assert config.mysql.max_open_conns == 25
        assert config.mysql.max_idle_conns == 10
        assert config.mysql.conn_max_lifetime_seconds == 300
        assert config.executor.query_timeout_seconds == 30
        assert config.executor.db_prefix == "student_db_"
        assert config.executor.max_query_length == MAX_QUERY_LENGTH
        assert config.security.rate_limit == "10/second"
        assert not config.is_production()

    def test_password_not_rendered(self):
        config = SandboxConfig(mysql={"password": "hunter2"})
        assert "hunter2" not in repr(config)
        assert config.mysql.password.get_secret_value() == "hunter2"


class TestYaml:
    def test_from_yaml(self, config_file):
        config = SandboxConfig.from_yaml(config_file)
        assert config.environment == "staging"
        assert config.log_format is LogFormat.CONSOLE
        assert config.server.port == 9090
        assert config.mysql.host == "db.internal"
        assert config.mysql.port == 3306
        assert config.executor.db_prefix == "lab_"

    def test_environment_overrides_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("SQLSANDBOX_MYSQL__HOST", "env-host")
        monkeypatch.setenv("SQLSANDBOX_EXECUTOR__QUERY_TIMEOUT_SECONDS", "3")
        config = SandboxConfig.from_yaml(config_file)
        assert config.mysql.host == "env-host"
        assert config.executor.query_timeout_seconds == 3
        # Untouched YAML values survive
        assert config.mysql.user == "sandbox"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SandboxConfig.from_yaml(tmp_path / "nope.yml")

    def test_get_config_uses_env_path(self, config_file, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(config_file))
        assert get_config().server.port == 9090
        assert get_config() is get_config()


class TestValidation:
    @pytest.mark.parametrize("prefix", ["bad-prefix", "x; DROP", "a" * 33])
    def test_db_prefix(self, prefix):
        with pytest.raises(ValidationError):
            ExecutorConfig(db_prefix=prefix)

    def test_port_range(self):
        with pytest.raises(ValidationError):
            ServerConfig(port=70000)

    def test_invalid_blocked_pattern(self):
        with pytest.raises(ValidationError):
            SecurityConfig(extra_blocked_patterns=["(unclosed"])

    def test_timeout_positive(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(query_timeout_seconds=0)
