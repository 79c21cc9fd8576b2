"""
Decision engine contract and the Casbin-backed implementation.

The gateway never evaluates rules or stores policies itself. It talks to a
DecisionEngine through the narrow async interface below; the engine owns
rule storage, deduplication and the allow/deny decision, and must make each
individual call atomic against concurrent callers.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence

import casbin
from casbin.persist.adapter import Adapter
from loguru import logger

from core.settings import GatewaySettings
from policy.filters import PolicyFilter
from policy.schemas import PolicyTuple

# Plain ACL: a request is allowed when an identical (sub, obj, act) rule exists
ACL_MODEL_TEXT = """
[request_definition]
r = sub, obj, act

[policy_definition]
p = sub, obj, act

[policy_effect]
e = some(where (p.eft == allow))

[matchers]
m = r.sub == p.sub && r.obj == p.obj && r.act == p.act
"""

POLICY_SECTION = "p"


class DecisionEngineError(Exception):
    """The engine could not complete a call."""


class EngineAccessDenied(DecisionEngineError):
    """The engine refused the call for the current caller."""


class DecisionEngine(ABC):
    """Abstract base class for decision engines."""

    @abstractmethod
    async def add_policy(self, policy: PolicyTuple) -> bool:
        """Add a rule. Returns False if it already existed."""
        pass

    @abstractmethod
    async def add_policies(self, policies: Sequence[PolicyTuple]) -> int:
        """Add rules. Returns how many were newly inserted."""
        pass

    @abstractmethod
    async def remove_policy(self, policy: PolicyTuple) -> bool:
        """Remove a rule. Returns False if no such rule existed."""
        pass

    @abstractmethod
    async def remove_policies(self, policies: Sequence[PolicyTuple]) -> int:
        pass

    @abstractmethod
    async def get_filtered_policy(self, policy_filter: PolicyFilter) -> List[PolicyTuple]:
        pass

    @abstractmethod
    async def remove_filtered_policy(self, policy_filter: PolicyFilter) -> int:
        """Remove every rule matching the filter. Returns how many were removed."""
        pass

    @abstractmethod
    async def enforce(self, request: PolicyTuple) -> bool:
        pass

    @abstractmethod
    async def get_all_policies(self) -> List[PolicyTuple]:
        pass

    async def close(self) -> None:
        """Release engine resources."""
        return None


class InMemoryAdapter(Adapter):
    """Casbin adapter with no backing store; policies live only in the model."""

    def load_policy(self, model):
        return None


def _to_tuple(rule: Sequence[str]) -> PolicyTuple:
    sub, obj, act = rule[:3]
    return PolicyTuple(sub=sub, obj=obj, act=act)


def _require_slots(policy_filter: PolicyFilter) -> None:
    if policy_filter.is_empty():
        raise ValueError("filter sets no tuple field")


class CasbinDecisionEngine(DecisionEngine):
    """
    DecisionEngine backed by a casbin Enforcer.

    The enforcer is synchronous and not thread-safe. Each call runs in a
    worker thread while holding one asyncio lock, so calls never interleave
    and the event loop is not blocked by SQL adapters.
    """

    def __init__(self, enforcer: casbin.Enforcer):
        self.enforcer = enforcer
        self._lock = asyncio.Lock()

    @classmethod
    def in_memory(cls, model_text: str = ACL_MODEL_TEXT) -> "CasbinDecisionEngine":
        return cls(_create_enforcer(model_text, None))

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        async with self._lock:
            return await asyncio.to_thread(fn, *args)

    # ==================== MUTATIONS ====================

    async def add_policy(self, policy: PolicyTuple) -> bool:
        return bool(await self._call(self.enforcer.add_policy, *policy.as_list()))

    async def add_policies(self, policies: Sequence[PolicyTuple]) -> int:
        def _add_each() -> int:
            # casbin's add_policies is all-or-nothing; count insertions instead
            return sum(1 for p in policies if self.enforcer.add_policy(*p.as_list()))

        return await self._call(_add_each)

    async def remove_policy(self, policy: PolicyTuple) -> bool:
        return bool(await self._call(self.enforcer.remove_policy, *policy.as_list()))

    async def remove_policies(self, policies: Sequence[PolicyTuple]) -> int:
        def _remove_each() -> int:
            return sum(1 for p in policies if self.enforcer.remove_policy(*p.as_list()))

        return await self._call(_remove_each)

    async def remove_filtered_policy(self, policy_filter: PolicyFilter) -> int:
        _require_slots(policy_filter)

        def _remove_matching() -> int:
            matching = [rule for rule in self.enforcer.get_policy() if policy_filter.matches(rule)]
            return sum(1 for rule in matching if self.enforcer.remove_policy(*rule))

        return await self._call(_remove_matching)

    # ==================== QUERIES ====================

    async def get_filtered_policy(self, policy_filter: PolicyFilter) -> List[PolicyTuple]:
        _require_slots(policy_filter)
        rules = await self._call(self.enforcer.get_policy)
        return [_to_tuple(rule) for rule in rules if policy_filter.matches(rule)]

    async def enforce(self, request: PolicyTuple) -> bool:
        return bool(await self._call(self.enforcer.enforce, *request.as_list()))

    async def get_all_policies(self) -> List[PolicyTuple]:
        rules = await self._call(self.enforcer.get_policy)
        return [_to_tuple(rule) for rule in rules]


def _load_model_text(settings: GatewaySettings) -> str:
    if not settings.casbin_model_path:
        return ACL_MODEL_TEXT
    with open(settings.casbin_model_path, "r") as f:
        return f.read()


def _create_enforcer(model_text: str, database_url: Optional[str]) -> casbin.Enforcer:
    model = casbin.Enforcer.new_model(text=model_text)
    if not database_url:
        enforcer = casbin.Enforcer(model, InMemoryAdapter())
        enforcer.enable_auto_save(False)
        return enforcer

    import casbin_sqlalchemy_adapter

    adapter = casbin_sqlalchemy_adapter.Adapter(database_url)
    enforcer = casbin.Enforcer(model, adapter)
    enforcer.enable_auto_save(True)
    return enforcer


async def build_engine(settings: GatewaySettings) -> DecisionEngine:
    """Create the decision engine described by the settings and load its policies."""
    model_text = _load_model_text(settings)
    storage = "sql" if settings.policy_database_url else "memory"
    logger.info(f"Initializing casbin decision engine (storage={storage})")
    enforcer = await asyncio.to_thread(_create_enforcer, model_text, settings.policy_database_url)
    engine = CasbinDecisionEngine(enforcer)
    policies = await engine.get_all_policies()
    logger.info(f"✓ Decision engine initialized with {len(policies)} policies")
    return engine
