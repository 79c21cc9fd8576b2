"""
FastAPI dependencies for service-token authentication.
"""

from typing import Optional

from fastapi import Header, Request

from auth.token_manager import ServiceIdentity, TokenManager
from core.errors import ServiceUnavailable, Unauthenticated

BEARER_PREFIX = "bearer "


def get_token_manager(request: Request) -> TokenManager:
    token_manager = getattr(request.app.state, "token_manager", None)
    if token_manager is None:
        raise ServiceUnavailable()
    return token_manager


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an `Authorization: Bearer <token>` header value."""
    if not authorization:
        return None
    if not authorization.lower().startswith(BEARER_PREFIX):
        raise Unauthenticated("Authorization header must use the Bearer scheme.")
    return authorization[len(BEARER_PREFIX):].strip() or None


async def require_service_token(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> ServiceIdentity:
    """
    Dependency: verify the service token and attach the caller identity to
    `request.state.identity`.
    """
    token_manager = get_token_manager(request)
    identity = token_manager.verify(extract_bearer_token(authorization))
    request.state.identity = identity
    return identity
