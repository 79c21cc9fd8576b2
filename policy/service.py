"""
Business logic for the policy gateway.

The service layer sits between the API routes and the decision engine.
It handles:
- Translating filter requests into named-field filters
- Calling the engine and mapping its failures to gateway errors
- Logging every outcome with the caller identity

Payloads arriving here are already validated.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from loguru import logger

from auth.token_manager import ServiceIdentity
from core.errors import DependencyFailure, InvalidArgument, Unauthorized
from core.observability import timed
from policy.engine import DecisionEngine, EngineAccessDenied
from policy.filters import PolicyFilter, translate
from policy.schemas import FilterRequest, PolicyTuple

T = TypeVar("T")


def _account(identity: Optional[ServiceIdentity]) -> Optional[str]:
    return identity.account_id if identity is not None else None


def build_filter(request: FilterRequest) -> PolicyFilter:
    """Translate a validated filter request; a filter that resolves no slot is invalid."""
    values = request.filter_values()
    policy_filter = translate(request.field_index, values)
    if policy_filter.is_empty():
        raise InvalidArgument(
            f"fieldIndex {request.field_index} leaves no sub/obj/act field to filter on"
        )
    dropped = len(values) - len(policy_filter.set_fields())
    if dropped:
        logger.debug(f"[FILTER] Dropped {dropped} value(s) past the last tuple field (fieldIndex={request.field_index})")
    return policy_filter


class PolicyService:
    """
    Wraps every decision engine call made by the gateway.

    Engine failures never leak to callers: EngineAccessDenied becomes
    Unauthorized, anything else becomes DependencyFailure, and the original
    error is logged with the operation and its payload.
    """

    def __init__(self, engine: DecisionEngine):
        self.engine = engine

    async def _call(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        identity: Optional[ServiceIdentity],
        context: Dict[str, Any],
    ) -> T:
        try:
            with timed(f"engine.{operation.replace(' ', '_')}"):
                return await call()
        except EngineAccessDenied as e:
            logger.warning(f"[ENGINE] {operation} denied for account {_account(identity)}: {e}")
            raise Unauthorized("Decision engine rejected the caller.")
        except Exception as e:
            logger.opt(exception=e).error(
                f"[ENGINE] {operation} failed | Account: {_account(identity)} | Context: {context}"
            )
            raise DependencyFailure(operation) from e

    # ==================== SINGLE POLICIES ====================

    async def add_policy(self, policy: PolicyTuple, identity: Optional[ServiceIdentity] = None) -> bool:
        added = await self._call(
            "add policy", lambda: self.engine.add_policy(policy), identity, policy.model_dump()
        )
        logger.info(f"[ADD_POLICY] {policy.as_list()} added={added} | Account: {_account(identity)}")
        return added

    async def remove_policy(self, policy: PolicyTuple, identity: Optional[ServiceIdentity] = None) -> bool:
        removed = await self._call(
            "remove policy", lambda: self.engine.remove_policy(policy), identity, policy.model_dump()
        )
        logger.info(f"[REMOVE_POLICY] {policy.as_list()} removed={removed} | Account: {_account(identity)}")
        return removed

    async def enforce(self, request: PolicyTuple, identity: Optional[ServiceIdentity] = None) -> bool:
        allowed = await self._call(
            "enforce policy", lambda: self.engine.enforce(request), identity, request.model_dump()
        )
        logger.info(f"[ENFORCE] {request.as_list()} allowed={allowed} | Account: {_account(identity)}")
        return allowed

    # ==================== BATCHES ====================

    async def add_policies(
        self, policies: Sequence[PolicyTuple], identity: Optional[ServiceIdentity] = None
    ) -> int:
        added = await self._call(
            "add policies",
            lambda: self.engine.add_policies(policies),
            identity,
            {"count": len(policies)},
        )
        logger.info(f"[ADD_POLICIES] {added}/{len(policies)} added | Account: {_account(identity)}")
        return added

    async def remove_policies(
        self, policies: Sequence[PolicyTuple], identity: Optional[ServiceIdentity] = None
    ) -> int:
        """
        Remove each policy independently. A failing element is logged and
        skipped; the result is the number of policies actually removed.

        Raises:
            Unauthorized: the engine rejected the caller
            DependencyFailure: every element failed
        """
        removed = 0
        failed = 0
        for index, policy in enumerate(policies):
            try:
                if await self.engine.remove_policy(policy):
                    removed += 1
            except EngineAccessDenied as e:
                logger.warning(f"[REMOVE_POLICIES] denied for account {_account(identity)}: {e}")
                raise Unauthorized("Decision engine rejected the caller.")
            except Exception as e:
                failed += 1
                logger.opt(exception=e).error(
                    f"[REMOVE_POLICIES] Element {index} {policy.as_list()} failed | Account: {_account(identity)}"
                )
        if policies and failed == len(policies):
            logger.error(f"[REMOVE_POLICIES] All {failed} elements failed | Account: {_account(identity)}")
            raise DependencyFailure("remove policies")
        logger.info(
            f"[REMOVE_POLICIES] {removed}/{len(policies)} removed, {failed} failed | Account: {_account(identity)}"
        )
        return removed

    # ==================== FILTERS ====================

    async def get_filtered_policy(
        self, request: FilterRequest, identity: Optional[ServiceIdentity] = None
    ) -> List[PolicyTuple]:
        policy_filter = build_filter(request)
        policies = await self._call(
            "get filtered policy",
            lambda: self.engine.get_filtered_policy(policy_filter),
            identity,
            policy_filter.as_dict(),
        )
        logger.info(
            f"[GET_FILTERED] {policy_filter.as_dict()} matched {len(policies)} | Account: {_account(identity)}"
        )
        return policies

    async def remove_filtered_policy(
        self, request: FilterRequest, identity: Optional[ServiceIdentity] = None
    ) -> int:
        policy_filter = build_filter(request)
        removed = await self._call(
            "remove filtered policy",
            lambda: self.engine.remove_filtered_policy(policy_filter),
            identity,
            policy_filter.as_dict(),
        )
        logger.info(
            f"[REMOVE_FILTERED] {policy_filter.as_dict()} removed {removed} | Account: {_account(identity)}"
        )
        return removed

    async def get_all_policies(self, identity: Optional[ServiceIdentity] = None) -> List[PolicyTuple]:
        policies = await self._call("list policies", self.engine.get_all_policies, identity, {})
        logger.info(f"[LIST_POLICIES] {len(policies)} policies | Account: {_account(identity)}")
        return policies
