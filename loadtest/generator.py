"""Random policy tuples for the load harness.

Subjects are Faker usernames and objects are Faker product-like names, so
concurrent clients mostly touch disjoint tuples. Actions come from a small
fixed set and collide often.
"""

import random
from typing import Optional, Tuple

from faker import Faker

from policy.schemas import PolicyTuple

ACTIONS: Tuple[str, ...] = ("read", "write", "delete", "update")


class PolicyGenerator:
    """
    Generate random policy tuples. Pass a seed for a reproducible sequence.

    Faker supplies the identity and product values; `rng` drives the
    harness's own choices (operation, filter field, action).
    """

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random(seed)
        self._faker = Faker()
        if seed is not None:
            self._faker.seed_instance(seed)

    @property
    def rng(self) -> random.Random:
        return self._rng

    def username(self) -> str:
        return self._faker.user_name()

    def product(self) -> str:
        return f"{self._faker.color_name().lower()}-{self._faker.word()}"

    def action(self) -> str:
        return self._rng.choice(ACTIONS)

    def random_policy(self) -> PolicyTuple:
        return PolicyTuple(sub=self.username(), obj=self.product(), act=self.action())
