#!/usr/bin/env python3
"""
kubechat - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Builds the gateway through its factory
3. Serves the HTTP API

All business logic is in the modules, following black box principles.
"""

import logging
import logging.config as log_config
import math
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional, Tuple

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kubechat.config.provider import EnvConfigProvider
from kubechat.logging_config import get_logging_config
from kubechat.modules.api import (
    CommandResponse,
    ErrorCode,
    ErrorResponse,
    ExecuteCommandRequest,
    HealthResponse,
    NodeCounts,
)
from kubechat.modules.command import CommandRequest

# Import modules through their black box interfaces
from kubechat.modules.config import get_config
from kubechat.modules.executor import ExecutionErrorKind
from kubechat.modules.gateway import CommandOutcome, FailureKind, GatewayFactory, Services

# Get configuration
config = get_config()

# Configure logging with health check suppression
log_config.dictConfig(get_logging_config(config.get("log_level")))
logger = logging.getLogger(__name__)

FAILURE_STATUS = {
    FailureKind.SYNTAX: (400, ErrorCode.INVALID_SYNTAX),
    FailureKind.SECURITY: (403, ErrorCode.KUBECTL_VALIDATION),
    FailureKind.AUTHORIZATION: (403, ErrorCode.RBAC_DENIED),
}

EXECUTION_STATUS = {
    ExecutionErrorKind.UNSUPPORTED: 400,
    ExecutionErrorKind.MISSING_ARGUMENT: 400,
    ExecutionErrorKind.BAD_ARGUMENT: 400,
    ExecutionErrorKind.CLUSTER_ERROR: 502,
    ExecutionErrorKind.TIMEOUT: 504,
    ExecutionErrorKind.INTERNAL: 500,
}

DEFAULT_ERROR_CODES = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.UNAUTHORIZED,
    429: ErrorCode.RATE_LIMIT,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def outcome_status(outcome: CommandOutcome) -> Tuple[int, Optional[ErrorCode]]:
    """Map a pipeline outcome to its HTTP status and error code."""
    if outcome.success:
        return 200, None
    if outcome.failure == FailureKind.EXECUTION:
        return EXECUTION_STATUS.get(outcome.execution_kind, 500), ErrorCode.EXECUTION
    return FAILURE_STATUS[outcome.failure]


def request_id_of(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def error_response(
    request: Request,
    status_code: int,
    code: ErrorCode,
    error: str,
    details=None,
) -> JSONResponse:
    body = ErrorResponse(error=error, code=code, details=details, request_id=request_id_of(request))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# Dependency injection helpers


def get_services(request: Request) -> Services:
    services = request.app.state.services
    if services is None:
        raise HTTPException(503, "Service not initialized")
    return services


async def require_identity(
    request: Request,
    x_api_key: Optional[str] = Header(None, description="API key for authentication"),
) -> str:
    """Resolve the caller identity from the API key or client address."""
    services = get_services(request)
    client_address = request.client.host if request.client else "unknown"

    identity = await services.auth.resolve_identity(x_api_key, client_address)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"error": "Invalid or missing API key", "code": ErrorCode.UNAUTHORIZED},
        )
    return identity


async def enforce_rate_limit(request: Request, identity: str = Depends(require_identity)) -> str:
    """Admit the caller through the sliding-window rate limiter."""
    services = get_services(request)
    if not services.rate_limiter.admit(identity):
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Rate limit exceeded, retry later",
                "code": ErrorCode.RATE_LIMIT,
                "details": {
                    "limit": services.rate_limiter.limit,
                    "window_seconds": services.rate_limiter.window_seconds,
                },
            },
        )
    return identity


async def request_timeout(
    x_request_timeout: Optional[float] = Header(
        None, description="Seconds allowed for authorization and execution"
    ),
) -> Optional[float]:
    if x_request_timeout is not None and (
        not math.isfinite(x_request_timeout) or x_request_timeout <= 0
    ):
        raise HTTPException(
            status_code=400,
            detail={"error": "X-Request-Timeout must be a positive number of seconds", "code": ErrorCode.INVALID_INPUT},
        )
    return x_request_timeout


# Command Endpoints

router = APIRouter()


async def run_command(
    request: Request,
    payload: ExecuteCommandRequest,
    identity: str,
    timeout: Optional[float],
    dry_run: bool,
) -> JSONResponse:
    services = get_services(request)

    if len(payload.command) > services.max_command_length:
        raise HTTPException(
            status_code=400,
            detail={
                "error": f"Command exceeds maximum length of {services.max_command_length} characters",
                "code": ErrorCode.COMMAND_TOO_LONG,
            },
        )

    outcome = await services.gateway.submit(
        CommandRequest(text=payload.command, identity=identity, dry_run=dry_run),
        timeout=timeout if timeout is not None else services.command_timeout,
    )
    status_code, code = outcome_status(outcome)

    response = CommandResponse(
        success=outcome.success,
        output=outcome.output,
        error=outcome.message or None,
        code=code,
        details=outcome.reason,
        cluster=outcome.cluster,
        executed_at=outcome.executed_at,
        dry_run=outcome.dry_run,
        request_id=request_id_of(request),
    )
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@router.post("/api/v1/execute", response_model=CommandResponse)
async def execute_command(
    request: Request,
    payload: ExecuteCommandRequest,
    identity: str = Depends(enforce_rate_limit),
    timeout: Optional[float] = Depends(request_timeout),
):
    """
    Validate a kubectl command and, unless dry_run is set, run it.

    Returns:
        200: Command executed (or validated, for dry-run)
        400: Invalid input, syntax error or bad arguments
        401: Unauthorized
        403: Rejected by security policy or RBAC
        429: Rate limited
        5xx: Cluster failure or timeout
    """
    return await run_command(request, payload, identity, timeout, dry_run=payload.dry_run)


@router.post("/api/v1/dry-run", response_model=CommandResponse)
async def dry_run_command(
    request: Request,
    payload: ExecuteCommandRequest,
    identity: str = Depends(enforce_rate_limit),
    timeout: Optional[float] = Depends(request_timeout),
):
    """Validate a kubectl command without touching the cluster."""
    return await run_command(request, payload, identity, timeout, dry_run=True)


# Health/Monitoring Endpoints


@router.get("/api/v1/cluster-health", response_model=HealthResponse)
async def cluster_health(request: Request, identity: str = Depends(enforce_rate_limit)):
    """Return the cached cluster health snapshot."""
    snapshot = await get_services(request).health_cache.get()
    return HealthResponse(
        cluster=snapshot.cluster,
        healthy=snapshot.healthy,
        nodes=NodeCounts(total=snapshot.nodes_total, ready=snapshot.nodes_ready),
        system_components=snapshot.system_components,
        pods_total=snapshot.pods_total,
        timestamp=snapshot.timestamp,
    )


@router.get("/healthz")
async def healthz():
    """
    Minimal health check endpoint for Kubernetes readiness/liveness probes.

    This endpoint is unauthenticated and returns a simple OK response.
    """
    return {"status": "ok"}


# Error handlers


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors in the standard error envelope."""
    if isinstance(exc.detail, dict):
        error = exc.detail.get("error", "Request failed")
        code = exc.detail.get("code") or DEFAULT_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL)
        details = exc.detail.get("details")
    else:
        error = str(exc.detail)
        code = DEFAULT_ERROR_CODES.get(
            exc.status_code,
            ErrorCode.INVALID_INPUT if exc.status_code < 500 else ErrorCode.INTERNAL,
        )
        details = None
    return error_response(request, exc.status_code, code, error, details)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Handle malformed request bodies and headers."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.info(f"Rejected invalid request to {request.url.path}: {details}")
    return error_response(request, 400, ErrorCode.INVALID_INPUT, "Invalid request", details)


async def validation_error_handler(request: Request, exc: ValueError):
    """Handle validation errors."""
    logger.error(f"Validation error: {exc}")
    return error_response(request, 400, ErrorCode.INVALID_INPUT, str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - initialize and cleanup resources.
    """
    logger.info("Starting kubechat API...")

    if app.state.services is None:
        app.state.services = GatewayFactory.build(get_config(), EnvConfigProvider())
    services: Services = app.state.services
    services.start()

    logger.info(f"kubechat API started for cluster {services.cluster.name}")

    yield

    # Shutdown
    logger.info("Shutting down kubechat API...")
    await services.aclose()
    logger.info("kubechat API shutdown complete")


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        services: Prebuilt services; built from the environment at startup if omitted
    """
    app = FastAPI(
        title="kubechat API",
        description="kubechat - Guarded kubectl execution for conversational operators",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    api_config = services.api_config if services else EnvConfigProvider().get_api_config()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=api_config.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Tag each request with an id and log its outcome."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.monotonic()

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        if request.url.path != "/healthz":
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({elapsed_ms:.1f}ms) request_id={request_id}"
            )
        return response

    app.include_router(router)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValueError, validation_error_handler)
    return app


# Create FastAPI application
app = create_app()


if __name__ == "__main__":
    # Use dict config for logging, not file path
    uvicorn.run(
        "kubechat.main:app",
        host=config.get("host"),
        port=config.get("port"),
        log_level=config.get("log_level").lower(),
        reload=config.get("debug"),
        log_config=get_logging_config(config.get("log_level")),
    )
