"""
Structured Logging Configuration

Uses structlog for structured, JSON-formatted logging suitable for
production environments and log aggregation systems.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from sqlsandbox.core.config import LogFormat, LogLevel, SandboxConfig, get_config

SERVICE_NAME = "sqlsandbox"

_SENSITIVE_KEYS = {
    "password", "secret", "token", "credential", "auth", "api_key", "private_key",
}


def _service_context(config: SandboxConfig) -> Processor:
    """Build a processor stamping static service context on every entry."""
    environment = config.environment

    def _add_service_context(
        logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", environment)
        return event_dict

    return _add_service_context


def _filter_sensitive_data(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values whose key looks like a credential."""
    def _mask_value(key: str, value: Any) -> Any:
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in _SENSITIVE_KEYS):
            return "***MASKED***"
        return value

    return {k: _mask_value(k, v) for k, v in event_dict.items()}


def _truncate_large_values(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Truncate large values to prevent log bloat."""
    max_length = 1000

    def _truncate(value: Any) -> Any:
        if isinstance(value, str) and len(value) > max_length:
            return value[:max_length] + f"... [truncated, total length: {len(value)}]"
        if isinstance(value, (list, tuple)) and len(value) > 50:
            return list(value[:50]) + [f"... [{len(value) - 50} more items]"]
        return value

    return {k: _truncate(v) for k, v in event_dict.items()}


def query_preview(query: str, limit: int = 100) -> str:
    """Single-line, truncated rendition of a query for log entries."""
    preview = query[:limit] + "..." if len(query) > limit else query
    return " ".join(preview.split())


def setup_logging(
    config: SandboxConfig | None = None,
    log_level: LogLevel | str | None = None,
    log_format: LogFormat | str | None = None,
) -> None:
    """
    Configure structured logging for the service.

    Args:
        config: Service configuration (defaults to the cached config)
        log_level: Log level override
        log_format: ``json`` or ``console`` override
    """
    config = config or get_config()

    if log_level is None:
        log_level = config.log_level
    if isinstance(log_level, str):
        log_level = LogLevel(log_level.upper())

    if log_format is None:
        log_format = config.log_format
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    level = getattr(logging, log_level.value)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )
    logging.getLogger().setLevel(level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _service_context(config),
        _filter_sensitive_data,
        _truncate_large_values,
    ]

    if log_format == LogFormat.JSON:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=config.debug),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """
    Bind context variables to all subsequent log entries.

    Useful for adding request-specific context like request_id.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all context variables."""
    structlog.contextvars.clear_contextvars()


def log_execution_start(request_id: str, query: str, **extra: Any) -> None:
    """Log execution start."""
    logger = get_logger("execution")
    logger.info(
        "execution_started",
        request_id=request_id,
        query_length=len(query),
        **extra,
    )


def log_execution_complete(
    request_id: str,
    query: str,
    duration_ms: float,
    success: bool,
    **extra: Any,
) -> None:
    """Log execution completion."""
    logger = get_logger("execution")
    log_method = logger.info if success else logger.warning
    log_method(
        "execution_completed",
        request_id=request_id,
        duration_ms=duration_ms,
        success=success,
        query_preview=query_preview(query),
        **extra,
    )


def log_security_event(
    event_type: str,
    request_id: str | None = None,
    **extra: Any,
) -> None:
    """Log security-related event."""
    logger = get_logger("security")
    logger.warning(
        "security_event",
        event_type=event_type,
        request_id=request_id,
        **extra,
    )
