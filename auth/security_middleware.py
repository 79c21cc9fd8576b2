"""
Gateway middleware:
- Readiness gate (engine must be ready before any authenticated route runs)
- Audit logging of every request/response pair
"""

import time

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from core.errors import ServiceUnavailable
from core.state import ServiceState

# Routes served regardless of service state and without a token
PUBLIC_PATHS = ("/health",)


class ReadinessGateMiddleware(BaseHTTPMiddleware):
    """Reject traffic with 503 until the decision engine is ready."""

    async def dispatch(self, request: Request, call_next):
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        state = getattr(request.app.state, "service_state", ServiceState.STARTING)
        if state is not ServiceState.READY:
            logger.warning(f"Rejecting {request.method} {request.url.path}: service state is {state.value}")
            error = ServiceUnavailable()
            return JSONResponse(status_code=error.status_code, content={"error": error.message})

        return await call_next(request)


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with caller account, client IP, status and duration."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._log(request, 500, start, error=type(e).__name__)
            raise

        self._log(request, response.status_code, start)
        return response

    @staticmethod
    def _log(request: Request, status_code: int, start: float, error: str = None) -> None:
        client_ip = request.client.host if request.client else "unknown"
        identity = getattr(request.state, "identity", None)
        account = identity.account_id if identity is not None else None
        duration_ms = (time.perf_counter() - start) * 1000
        line = (
            f"{request.method} {request.url.path} -> {status_code} | "
            f"Account: {account} | IP: {client_ip} | {duration_ms:.1f}ms"
        )
        if error:
            logger.error(f"{line} | Unhandled: {error}")
        else:
            logger.info(line)
