"""Per-run generation state: seeded random sources and the used-UUID registry."""

from __future__ import annotations

import random
import threading
from typing import Optional
from uuid import UUID

import numpy as np
from faker import Faker

from dbseed.errors import GenerationError


class GenerationContext:
    """Everything random that one generation run shares.

    One instance per ``DataGenerator.generate()`` call, so UUID uniqueness is
    scoped to the run and two runs with the same seed are reproducible.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.py_rng = random.Random(seed)
        self.faker = Faker()
        if seed is not None:
            self.faker.seed_instance(seed)
        self.used_uuids: set[UUID] = set()
        self._uuid_lock = threading.Lock()

    def claim_uuid(self, value: UUID) -> bool:
        """Record a UUID as used. False if it was already taken."""
        with self._uuid_lock:
            if value in self.used_uuids:
                return False
            self.used_uuids.add(value)
            return True

    def new_uuid(self, limit: int) -> UUID:
        """Draw a random version-4 UUID not used before in this run."""
        with self._uuid_lock:
            if len(self.used_uuids) >= limit:
                raise GenerationError(f"UUID generation limit of {limit} reached")
            while True:
                candidate = UUID(int=self.py_rng.getrandbits(128), version=4)
                if candidate not in self.used_uuids:
                    self.used_uuids.add(candidate)
                    return candidate
