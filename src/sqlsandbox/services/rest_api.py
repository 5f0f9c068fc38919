"""
REST API for the SQL sandbox.

Endpoints:
- POST /api/v1/execute -- run a submission in a disposable database
- GET  /api/v1/health  -- liveness plus database reachability
- GET  /health         -- same as above, at the root
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from slowapi import Limiter

from sqlsandbox import __version__
from sqlsandbox.connectors.base import BaseConnector
from sqlsandbox.connectors.mysql import MySQLConnector
from sqlsandbox.core.config import SandboxConfig, get_config
from sqlsandbox.core.exceptions import DatabaseConnectionError
from sqlsandbox.core.logging import get_logger, setup_logging
from sqlsandbox.execution.base import ExecuteResponse, ExecutionContext, ExecutionStatus
from sqlsandbox.execution.sql_executor import SQLExecutor
from sqlsandbox.services.middleware import create_limiter, install_middleware

logger = get_logger(__name__)

HEALTH_CHECK_TIMEOUT_SECONDS = 5.0

_HTTP_STATUS = {
    ExecutionStatus.SUCCESS: status.HTTP_200_OK,
    ExecutionStatus.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ExecutionStatus.REJECTED: status.HTTP_403_FORBIDDEN,
    ExecutionStatus.CREATE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    # Statement failures and timeouts are results, not transport errors
    ExecutionStatus.ERROR: status.HTTP_200_OK,
    ExecutionStatus.TIMEOUT: status.HTTP_200_OK,
    ExecutionStatus.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# Request/Response Models
# =============================================================================


class ExecuteRequest(BaseModel):
    """SQL execution request. ``query`` may hold several ``;``-separated statements."""
    query: str = Field(..., description="SQL to execute")


class ExecuteResponseModel(BaseModel):
    """Response body of the execute endpoint (for the OpenAPI schema)."""
    success: bool
    output: str = ""
    execution_time_ms: int = 0
    error: str = ""


# =============================================================================
# Application Factory
# =============================================================================


def create_rest_app(
    config: SandboxConfig | None = None,
    connector: BaseConnector[Any] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        config: Service configuration (defaults to the cached config)
        connector: Database connector (defaults to MySQL from config)
    """
    config = config or get_config()
    connector = connector or MySQLConnector(config.mysql)
    limiter = create_limiter(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # Startup
        setup_logging(config)
        logger.info("rest_api_starting", port=config.server.port, version=__version__)

        await connector.initialize_pool(
            max_size=config.mysql.max_open_conns,
            max_idle=config.mysql.max_idle_conns,
            max_lifetime=config.mysql.conn_max_lifetime_seconds,
            acquire_timeout=config.executor.query_timeout_seconds,
        )
        try:
            await asyncio.wait_for(connector.ping(), timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        except (DatabaseConnectionError, asyncio.TimeoutError) as e:
            logger.error("database_unreachable", address=connector.address, error=str(e))
            if config.is_production():
                await connector.close_pool()
                raise

        app.state.sql_executor = SQLExecutor(connector, config)

        yield

        # Shutdown
        logger.info("rest_api_stopping")
        await app.state.sql_executor.close()

    app = FastAPI(
        title="SQL Sandbox API",
        description="Runs untrusted SQL in disposable per-request databases",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )

    install_middleware(app, config, limiter)

    # Exception handlers
    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}"
            for err in exc.errors()
        )
        response = ExecuteResponse.failed(
            ExecutionStatus.INVALID_REQUEST,
            f"Invalid request format: {messages}",
        )
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=response.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    register_routes(app, config, limiter)

    return app


def register_routes(app: FastAPI, config: SandboxConfig, limiter: Limiter) -> None:
    """Register API routes."""

    # ==========================================================================
    # Health
    # ==========================================================================

    async def health_check() -> JSONResponse:
        """Report whether the database server is reachable."""
        executor: SQLExecutor = app.state.sql_executor
        try:
            await asyncio.wait_for(
                executor.connector.ping(),
                timeout=HEALTH_CHECK_TIMEOUT_SECONDS,
            )
        except (DatabaseConnectionError, asyncio.TimeoutError) as e:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "message": "MySQL connection failed",
                    "error": str(e) or type(e).__name__,
                },
            )

        return JSONResponse(
            content={
                "status": "healthy",
                "message": "Server is running",
                "time": datetime.now(timezone.utc).isoformat(),
            }
        )

    app.add_api_route("/api/v1/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])

    # ==========================================================================
    # Execution
    # ==========================================================================

    @app.post(
        "/api/v1/execute",
        response_model=ExecuteResponseModel,
        tags=["Execution"],
    )
    @limiter.limit(config.security.rate_limit)
    async def execute_query(request: Request, body: ExecuteRequest) -> JSONResponse:
        """Execute SQL in a fresh sandbox database."""
        context = ExecutionContext(
            request_id=getattr(request.state, "request_id", None) or ExecutionContext().request_id,
            client_id=request.client.host if request.client else None,
        )

        result = await app.state.sql_executor.execute(context, query=body.query)

        return JSONResponse(
            status_code=_HTTP_STATUS[result.status],
            content=result.to_dict(),
        )
