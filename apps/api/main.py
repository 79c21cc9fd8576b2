# FastAPI entrypoint for the policy gateway: app factory, lifespan, error handlers and the process supervisor boundary

import sys
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from auth.security_middleware import AuditLoggingMiddleware, ReadinessGateMiddleware
from auth.token_manager import TokenManager
from core.errors import (ConfigurationError, FatalError, GatewayError,
                         InvalidArgument, NotFound,)
from core.observability import setup_logging
from core.settings import GatewaySettings, load_settings
from core.state import ServiceState
from policy.engine import DecisionEngine, build_engine
from policy.policy_routes import router as policy_router
from policy.service import PolicyService

EngineFactory = Callable[[GatewaySettings], Awaitable[DecisionEngine]]


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ==================== LIFESPAN ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the token manager and decision engine; any failure here is fatal."""
    settings: GatewaySettings = app.state.settings
    engine_factory: EngineFactory = app.state.engine_factory
    app.state.service_state = ServiceState.STARTING

    try:
        if not settings.token_secret:
            raise ConfigurationError("SERVICE_TOKEN_SECRET is not configured.")
        if not settings.trusted_account_id:
            raise ConfigurationError("TRUSTED_ACCOUNT_ID is not configured.")
        app.state.token_manager = TokenManager.from_settings(settings)

        logger.info("Initializing decision engine...")
        engine = await engine_factory(settings)
    except Exception as e:
        app.state.service_state = ServiceState.FAILED
        logger.opt(exception=e).critical(f"Gateway startup failed: {e}")
        raise FatalError(f"Gateway startup failed: {e}") from e

    app.state.engine = engine
    app.state.policy_service = PolicyService(engine)
    app.state.service_state = ServiceState.READY
    logger.info(f"✓ Policy gateway ready (trusted account: {settings.trusted_account_id})")

    try:
        yield
    finally:
        logger.info("Shutting down decision engine...")
        await engine.close()


# ==================== EXCEPTION HANDLERS ====================

async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {type(exc).__name__}: {exc.message}")
    return _error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error_response(404, NotFound.default_message)
    return _error_response(exc.status_code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    reason = errors[0].get("msg", "Invalid request.") if errors else "Invalid request."
    return _error_response(InvalidArgument.status_code, reason)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(500, "Internal server error.")


# ==================== APP FACTORY ====================

def create_app(
    settings: Optional[GatewaySettings] = None,
    engine_factory: Optional[EngineFactory] = None,
) -> FastAPI:
    """Create a gateway app. Tests pass their own settings and engine factory."""
    app = FastAPI(
        title="Policy Gateway",
        description="Service-authenticated gateway for policy tuple management and enforcement",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or load_settings()
    app.state.engine_factory = engine_factory or build_engine
    app.state.service_state = ServiceState.STARTING

    # Added last runs first: audit wraps the readiness gate
    app.add_middleware(ReadinessGateMiddleware)
    app.add_middleware(AuditLoggingMiddleware)

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health_check():
        """Liveness probe; never authenticated."""
        return {"status": "ok"}

    app.include_router(policy_router)
    return app


app = create_app()


# ==================== PROCESS ENTRYPOINT ====================

def main() -> None:
    """Run the gateway; exit non-zero on any failure so a supervisor restarts it."""
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file)
    logger.info(f"Starting policy gateway on {settings.host}:{settings.port}")
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    except Exception as e:
        logger.opt(exception=e).critical("Policy gateway terminated by an unhandled error")
        sys.exit(1)


if __name__ == "__main__":
    main()
