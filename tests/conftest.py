"""
Pytest config.

Puts the repo root on sys.path so the top-level packages import without an
install, and provides a gateway app wired to an in-memory casbin engine.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

from fastapi.testclient import TestClient  # noqa: E402

from apps.api.main import create_app  # noqa: E402
from auth.token_manager import TokenManager  # noqa: E402
from core.settings import GatewaySettings  # noqa: E402
from policy.engine import CasbinDecisionEngine, DecisionEngine  # noqa: E402
from policy.filters import PolicyFilter  # noqa: E402
from policy.schemas import PolicyTuple  # noqa: E402

TEST_SECRET = "test-secret-key-for-testing-purposes-only-0123456789"
TRUSTED_ACCOUNT = "policy-admin-service"


class RecordingEngine(DecisionEngine):
    """Delegates to a real engine and records every call made to it."""

    def __init__(self, inner: Optional[DecisionEngine] = None):
        self.inner = inner or CasbinDecisionEngine.in_memory()
        self.calls: List[Tuple[str, tuple]] = []

    async def add_policy(self, policy: PolicyTuple) -> bool:
        self.calls.append(("add_policy", (policy,)))
        return await self.inner.add_policy(policy)

    async def add_policies(self, policies: Sequence[PolicyTuple]) -> int:
        self.calls.append(("add_policies", (list(policies),)))
        return await self.inner.add_policies(policies)

    async def remove_policy(self, policy: PolicyTuple) -> bool:
        self.calls.append(("remove_policy", (policy,)))
        return await self.inner.remove_policy(policy)

    async def remove_policies(self, policies: Sequence[PolicyTuple]) -> int:
        self.calls.append(("remove_policies", (list(policies),)))
        return await self.inner.remove_policies(policies)

    async def get_filtered_policy(self, policy_filter: PolicyFilter) -> List[PolicyTuple]:
        self.calls.append(("get_filtered_policy", (policy_filter,)))
        return await self.inner.get_filtered_policy(policy_filter)

    async def remove_filtered_policy(self, policy_filter: PolicyFilter) -> int:
        self.calls.append(("remove_filtered_policy", (policy_filter,)))
        return await self.inner.remove_filtered_policy(policy_filter)

    async def enforce(self, request: PolicyTuple) -> bool:
        self.calls.append(("enforce", (request,)))
        return await self.inner.enforce(request)

    async def get_all_policies(self) -> List[PolicyTuple]:
        self.calls.append(("get_all_policies", ()))
        return await self.inner.get_all_policies()


class FailingEngine(RecordingEngine):
    """Every call fails the way an unreachable engine would."""

    def __init__(self, error: Exception = None):
        super().__init__()
        self.error = error or ConnectionError("decision engine unreachable")

    async def add_policy(self, policy):
        self.calls.append(("add_policy", (policy,)))
        raise self.error

    async def add_policies(self, policies):
        self.calls.append(("add_policies", (list(policies),)))
        raise self.error

    async def remove_policy(self, policy):
        self.calls.append(("remove_policy", (policy,)))
        raise self.error

    async def get_filtered_policy(self, policy_filter):
        self.calls.append(("get_filtered_policy", (policy_filter,)))
        raise self.error

    async def remove_filtered_policy(self, policy_filter):
        self.calls.append(("remove_filtered_policy", (policy_filter,)))
        raise self.error

    async def enforce(self, request):
        self.calls.append(("enforce", (request,)))
        raise self.error

    async def get_all_policies(self):
        self.calls.append(("get_all_policies", ()))
        raise self.error


def engine_factory_for(engine: DecisionEngine):
    async def _factory(_settings: GatewaySettings) -> DecisionEngine:
        return engine

    return _factory


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(token_secret=TEST_SECRET, trusted_account_id=TRUSTED_ACCOUNT)


@pytest.fixture
def token_manager(settings: GatewaySettings) -> TokenManager:
    return TokenManager.from_settings(settings)


@pytest.fixture
def auth_headers(token_manager: TokenManager) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token_manager.issue(TRUSTED_ACCOUNT)}"}


@pytest.fixture
def engine() -> RecordingEngine:
    return RecordingEngine()


@pytest.fixture
def client(settings: GatewaySettings, engine: RecordingEngine):
    app = create_app(settings=settings, engine_factory=engine_factory_for(engine))
    with TestClient(app) as c:
        yield c
