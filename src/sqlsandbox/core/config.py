"""
SQL Sandbox Configuration Management

Centralized configuration using Pydantic Settings with support for:
- Environment variables (override everything else)
- YAML configuration files
- Default values
- Validation
"""

from __future__ import annotations

import os
import re
from enum import Enum
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Hard cap on submitted query text (1 MiB)
MAX_QUERY_LENGTH = 1024 * 1024

CONFIG_PATH_ENV = "SQLSANDBOX_CONFIG_PATH"

_DB_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]*$")


class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = Field("0.0.0.0", description="Server bind host")
    port: int = Field(8080, description="HTTP port")
    shutdown_timeout_seconds: float = Field(
        5.0, description="Grace period for in-flight requests on shutdown", ge=0
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


class MySQLConfig(BaseModel):
    """Connection settings for the shared MySQL server."""

    host: str = Field("localhost", description="MySQL host")
    port: int = Field(3306, description="MySQL port")
    user: str = Field("root", description="MySQL user")
    password: SecretStr = Field(SecretStr(""), description="MySQL password")
    connect_timeout_seconds: int = Field(5, description="Connect timeout", ge=1, le=300)
    max_open_conns: int = Field(25, description="Maximum open connections", ge=1, le=1000)
    max_idle_conns: int = Field(10, description="Maximum idle connections", ge=0, le=1000)
    conn_max_lifetime_seconds: float = Field(
        300.0, description="Retire connections older than this", gt=0
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v


class ExecutorConfig(BaseModel):
    """Query execution settings."""

    query_timeout_seconds: float = Field(
        30.0, description="Deadline for sandbox creation plus execution", gt=0, le=3600
    )
    db_prefix: str = Field("student_db_", description="Prefix for sandbox database names")
    max_query_length: int = Field(
        MAX_QUERY_LENGTH, description="Maximum query length in bytes (UTF-8)", ge=1
    )

    @field_validator("db_prefix")
    @classmethod
    def validate_db_prefix(cls, v: str) -> str:
        # Sandbox names are interpolated into DDL, so keep them to a safe alphabet
        if not _DB_PREFIX_RE.match(v):
            raise ValueError("db_prefix may only contain letters, digits and underscores")
        if len(v) > 32:
            raise ValueError("db_prefix must be at most 32 characters")
        return v


class SecurityConfig(BaseModel):
    """Security configuration."""

    rate_limit: str = Field(
        "10/second", description="Per-client limit for the execute endpoint (slowapi syntax)"
    )
    rate_limit_enabled: bool = Field(True, description="Enable rate limiting")
    trust_forwarded_for: bool = Field(
        False, description="Key rate limits on X-Forwarded-For (behind a trusted proxy)"
    )
    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: ["*"], description="Allowed CORS origins"
    )
    extra_blocked_patterns: list[str] = Field(
        default_factory=list,
        description="Additional regexes rejected as dangerous commands",
    )

    @field_validator("extra_blocked_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid blocked pattern {pattern!r}: {e}") from e
        return v


class SandboxConfig(BaseSettings):
    """
    Main service configuration.

    Configuration is loaded from (highest precedence first):
    1. Environment variables (SQLSANDBOX_ prefix, ``__`` for nesting)
    2. .env file
    3. YAML config file (if specified)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLSANDBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field("development", description="Environment: development, staging, production")
    log_level: LogLevel = Field(LogLevel.INFO, description="Log level")
    log_format: LogFormat = Field(LogFormat.JSON, description="Log format")
    debug: bool = Field(False, description="Enable debug mode")

    server: ServerConfig = Field(default_factory=ServerConfig)
    mysql: MySQLConfig = Field(default_factory=MySQLConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "SandboxConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}

        return cls(**yaml_config)

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"


@lru_cache
def get_config() -> SandboxConfig:
    """
    Get cached configuration instance.

    Loads configuration from:
    1. SQLSANDBOX_CONFIG_PATH environment variable (YAML file)
    2. Default locations: ./config/config.yml, ./config/sqlsandbox.yaml,
       /etc/sqlsandbox/config.yaml
    3. Environment variables
    """
    config_path = os.environ.get(CONFIG_PATH_ENV)

    if config_path:
        return SandboxConfig.from_yaml(config_path)

    default_paths = [
        Path("./config/config.yml"),
        Path("./config/sqlsandbox.yaml"),
        Path("/etc/sqlsandbox/config.yaml"),
    ]

    for path in default_paths:
        if path.exists():
            return SandboxConfig.from_yaml(path)

    return SandboxConfig()


def reset_config() -> None:
    """Reset cached configuration (useful for testing)."""
    get_config.cache_clear()
