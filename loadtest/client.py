"""
Async HTTP client for the policy gateway.

Every call carries a freshly issued service token, the way a real upstream
service would call the gateway.
"""

from typing import Any, Dict, List

import httpx

from auth.token_manager import TokenManager
from policy.filters import TupleField
from policy.schemas import PolicyTuple


class GatewayClient:
    """Thin wrapper over a shared httpx.AsyncClient. Non-2xx responses raise httpx.HTTPStatusError."""

    def __init__(self, http: httpx.AsyncClient, token_manager: TokenManager, account_id: str):
        self.http = http
        self.token_manager = token_manager
        self.account_id = account_id

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token_manager.issue(self.account_id)}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        response = await self.http.request(method, path, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response.json()

    async def add_policy(self, policy: PolicyTuple) -> bool:
        data = await self._request("POST", "/policy", json=policy.model_dump())
        return data["added"]

    async def remove_policy(self, policy: PolicyTuple) -> bool:
        data = await self._request("DELETE", "/policy", json=policy.model_dump())
        return data["removed"]

    async def enforce(self, policy: PolicyTuple) -> bool:
        data = await self._request("POST", "/enforce", json=policy.model_dump())
        return data["allowed"]

    async def get_filtered_policy(self, field: TupleField, value: str) -> List[PolicyTuple]:
        """Filter on a single field, sending fieldIndex and only that field's value."""
        params = {"fieldIndex": int(field), field.field_name: value}
        data = await self._request("GET", "/policy", params=params)
        return [PolicyTuple.model_validate(p) for p in data["policies"]]
