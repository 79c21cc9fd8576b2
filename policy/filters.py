"""
Positional translation of partial-tuple filters.

A filter names a starting slot (`field_index`) and an ordered list of
values: value i applies to slot field_index + i. Values that would land past
the last slot are dropped rather than rejected, so a caller that sends more
values than there are remaining slots still gets a usable filter.

The read ("get filtered policy", values in the query string) and the delete
("remove filtered policy", values in the body) both go through translate()
so they agree on what a filter means.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple


class TupleField(IntEnum):
    SUB = 0
    OBJ = 1
    ACT = 2

    @property
    def field_name(self) -> str:
        return self.name.lower()


FIELD_NAMES: Tuple[str, ...] = tuple(field.field_name for field in TupleField)


@dataclass(frozen=True)
class PolicyFilter:
    """Named-field filter; unset slots match anything."""

    sub: Optional[str] = None
    obj: Optional[str] = None
    act: Optional[str] = None

    def get(self, field: TupleField) -> Optional[str]:
        return getattr(self, field.field_name)

    def set_fields(self) -> List[TupleField]:
        return [field for field in TupleField if self.get(field) is not None]

    def is_empty(self) -> bool:
        return not self.set_fields()

    def as_dict(self) -> Dict[str, str]:
        return {field.field_name: self.get(field) for field in self.set_fields()}

    def matches(self, rule: Sequence[str]) -> bool:
        """
        True when every set slot equals the rule's value in that slot.

        An empty string is a value like any other and only matches "".

        Example:
            PolicyFilter(sub="alice", act="read").matches(["alice", "doc1", "read"]) is True
        """
        return all(
            field < len(rule) and rule[field] == self.get(field)
            for field in self.set_fields()
        )


def translate(field_index: int, values: Sequence[str]) -> PolicyFilter:
    """
    Map `values` onto tuple slots starting at `field_index`.

    translate(0, ["alice", "doc1", "read"]) sets all three slots;
    translate(2, ["read", "extra"]) sets only act and drops "extra".
    """
    named: Dict[str, str] = {}
    for offset, value in enumerate(values):
        slot = field_index + offset
        if 0 <= slot < len(TupleField):
            named[TupleField(slot).field_name] = value
    return PolicyFilter(**named)
