"""
Pydantic schemas and validators for policy payloads.

Three payload shapes reach the gateway:
1. Tuple  - one (sub, obj, act) triple, all three non-empty strings
2. Batch  - non-empty ordered list of tuples, validated as a whole
3. Filter - fieldIndex plus at least one of sub/obj/act

Validation is all-or-nothing: a payload is either fully accepted or the
request is rejected with InvalidArgument before the decision engine is
called. The reason names the first failing constraint.
"""

from typing import Any, List, Optional

from pydantic import (BaseModel, ConfigDict, Field, StrictStr, ValidationError,
                      model_validator,)

from core.errors import InvalidArgument
from policy.filters import FIELD_NAMES

# ============ Schemas ============


class PolicyTuple(BaseModel):
    """
    One access-control rule or enforcement query.

    Example:
        {"sub": "alice", "obj": "doc1", "act": "read"}
    """
    model_config = ConfigDict(frozen=True)

    sub: StrictStr = Field(..., min_length=1, description="Subject")
    obj: StrictStr = Field(..., min_length=1, description="Object")
    act: StrictStr = Field(..., min_length=1, description="Action")

    def as_list(self) -> List[str]:
        return [self.sub, self.obj, self.act]


class PolicyBatch(BaseModel):
    """
    Ordered, non-empty list of policy tuples.

    Example:
        {"policies": [{"sub": "alice", "obj": "doc1", "act": "read"}]}
    """
    policies: List[PolicyTuple] = Field(..., min_length=1)


class FilterRequest(BaseModel):
    """
    Partial tuple filter.

    `fieldIndex` is the tuple slot the first value applies to. The values
    are the named fields present in the payload, in sub/obj/act order.

    Example:
        {"fieldIndex": 1, "obj": "doc1"}
    """
    model_config = ConfigDict(populate_by_name=True)

    field_index: int = Field(0, ge=0, alias="fieldIndex")
    sub: Optional[StrictStr] = None
    obj: Optional[StrictStr] = None
    act: Optional[StrictStr] = None

    @model_validator(mode="after")
    def require_one_field(self):
        if not self.filter_values():
            raise ValueError("at least one of sub, obj, act is required")
        return self

    def filter_values(self) -> List[str]:
        """Present field values in canonical order; empty strings count as present."""
        values = []
        for name in FIELD_NAMES:
            value = getattr(self, name)
            if value is not None:
                values.append(value)
        return values


# ============ Validators ============


def _describe(error: ValidationError) -> str:
    """Human-readable reason for the first failing constraint."""
    first = error.errors()[0]
    location = ""
    for part in first.get("loc", ()):
        if isinstance(part, int):
            location += f"[{part}]"
        else:
            location += f".{part}" if location else str(part)
    message = first.get("msg", "invalid value")
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def _require_object(payload: Any, shape: str) -> dict:
    if not isinstance(payload, dict):
        raise InvalidArgument(f"{shape} payload must be a JSON object.")
    return payload


def validate_tuple(payload: Any) -> PolicyTuple:
    """Validate a single policy tuple."""
    try:
        return PolicyTuple.model_validate(_require_object(payload, "Policy"))
    except ValidationError as e:
        raise InvalidArgument(_describe(e))


def validate_batch(payload: Any) -> List[PolicyTuple]:
    """
    Validate a batch of policy tuples.

    Accepts `{"policies": [...]}` or a bare list. If any element fails the
    whole batch is rejected, naming the first offending element.
    """
    if isinstance(payload, list):
        payload = {"policies": payload}
    try:
        batch = PolicyBatch.model_validate(_require_object(payload, "Batch"))
    except ValidationError as e:
        raise InvalidArgument(_describe(e))
    return batch.policies


def validate_filter(payload: Any) -> FilterRequest:
    """Validate a filter request from a query string or a JSON body."""
    try:
        return FilterRequest.model_validate(_require_object(payload, "Filter"))
    except ValidationError as e:
        raise InvalidArgument(_describe(e))
