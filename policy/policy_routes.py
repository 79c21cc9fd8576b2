"""
Policy gateway API endpoints.

Exposed endpoints (all require a service token):
- GET    /policies        - List every policy
- POST   /policy          - Add one policy
- POST   /policies        - Add a batch of policies
- DELETE /policy          - Remove one policy
- DELETE /policies        - Remove a batch of policies
- GET    /policy          - Get policies matching a filter (query string)
- DELETE /filtered_policy - Remove policies matching a filter (body)
- POST   /enforce         - Allow/deny decision for one request tuple

Each handler runs: authenticate -> validate -> (translate) -> engine -> respond.
"""

import json
from typing import Any

from fastapi import APIRouter, Depends, Request

from auth.dependencies import require_service_token
from auth.token_manager import ServiceIdentity
from core.errors import InvalidArgument, ServiceUnavailable
from policy.schemas import validate_batch, validate_filter, validate_tuple
from policy.service import PolicyService

router = APIRouter(tags=["policies"])


def get_policy_service(request: Request) -> PolicyService:
    service = getattr(request.app.state, "policy_service", None)
    if service is None:
        raise ServiceUnavailable()
    return service


async def read_json(request: Request) -> Any:
    """Parse the request body; an absent or malformed body is an invalid argument."""
    body = await request.body()
    if not body:
        raise InvalidArgument("Request body is required.")
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidArgument("Request body must be valid JSON.")


# ==================== LIST ====================

@router.get("/policies")
async def list_policies(
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policies = await service.get_all_policies(identity)
    return {"policies": [p.model_dump() for p in policies]}


# ==================== ADD ====================

@router.post("/policy")
async def add_policy(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policy = validate_tuple(await read_json(request))
    added = await service.add_policy(policy, identity)
    return {"added": added}


@router.post("/policies")
async def add_policies(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policies = validate_batch(await read_json(request))
    added = await service.add_policies(policies, identity)
    return {"added": added}


# ==================== REMOVE ====================

@router.delete("/policy")
async def remove_policy(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policy = validate_tuple(await read_json(request))
    removed = await service.remove_policy(policy, identity)
    return {"removed": removed}


@router.delete("/policies")
async def remove_policies(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policies = validate_batch(await read_json(request))
    removed = await service.remove_policies(policies, identity)
    return {"removed": removed}


# ==================== FILTERS ====================

@router.get("/policy")
async def get_filtered_policy(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    """
    Example:
        GET /policy?fieldIndex=1&obj=doc1
    """
    filter_request = validate_filter(dict(request.query_params))
    policies = await service.get_filtered_policy(filter_request, identity)
    return {"policies": [p.model_dump() for p in policies]}


@router.delete("/filtered_policy")
async def remove_filtered_policy(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    """
    Example request:
        {"fieldIndex": 0, "sub": "alice"}
    """
    filter_request = validate_filter(await read_json(request))
    removed = await service.remove_filtered_policy(filter_request, identity)
    return {"removed": removed}


# ==================== ENFORCE ====================

@router.post("/enforce")
async def enforce(
    request: Request,
    identity: ServiceIdentity = Depends(require_service_token),
    service: PolicyService = Depends(get_policy_service),
):
    policy = validate_tuple(await read_json(request))
    allowed = await service.enforce(policy, identity)
    return {"allowed": allowed}
