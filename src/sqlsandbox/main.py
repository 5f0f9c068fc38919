"""
SQL Sandbox Application Entry Point

Starts the REST server and shuts it down gracefully on SIGINT/SIGTERM.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Sequence

import uvicorn

from sqlsandbox import __version__
from sqlsandbox.core.config import CONFIG_PATH_ENV, SandboxConfig, get_config, reset_config
from sqlsandbox.core.exceptions import ConfigurationError
from sqlsandbox.core.logging import get_logger, setup_logging
from sqlsandbox.services.rest_api import create_rest_app

logger = get_logger(__name__)


class SandboxApplication:
    """
    Main application.

    Owns the uvicorn server; uvicorn installs the signal handlers and
    stops accepting connections, then waits up to the configured grace
    period for in-flight requests before the app lifespan closes the pool.
    """

    def __init__(self, config: SandboxConfig | None = None) -> None:
        self.config = config or get_config()
        self._server: uvicorn.Server | None = None

    async def start(self) -> None:
        """Start the HTTP server and block until it exits."""
        setup_logging(self.config)
        logger.info(
            "sqlsandbox_starting",
            environment=self.config.environment,
            version=__version__,
            host=self.config.server.host,
            port=self.config.server.port,
            mysql=f"{self.config.mysql.host}:{self.config.mysql.port}",
        )

        app = create_rest_app(self.config)
        server_config = uvicorn.Config(
            app=app,
            host=self.config.server.host,
            port=self.config.server.port,
            log_level="warning",
            access_log=False,
            timeout_graceful_shutdown=int(self.config.server.shutdown_timeout_seconds) or None,
        )
        self._server = uvicorn.Server(server_config)

        await self._server.serve()
        logger.info("sqlsandbox_stopped")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sqlsandbox",
        description="Execute SQL submissions in disposable MySQL databases.",
    )
    parser.add_argument(
        "--config",
        help=f"Path to a YAML config file (also read from ${CONFIG_PATH_ENV})",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def load_config(config_path: str | None) -> SandboxConfig:
    """Resolve configuration, honouring an explicit ``--config`` path."""
    if config_path:
        if not Path(config_path).exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        os.environ[CONFIG_PATH_ENV] = config_path
        reset_config()
    return get_config()


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigurationError, ValueError) as e:
        # pydantic's ValidationError is a ValueError
        setup_logging()
        logger.error("configuration_error", error=str(e))
        sys.exit(2)

    app = SandboxApplication(config)

    try:
        asyncio.run(app.start())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logger.error("sqlsandbox_error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
