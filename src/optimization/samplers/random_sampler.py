"""Independent random sampling with reproducible results via seed."""

from __future__ import annotations

from threading import Lock
from typing import Any

import numpy as np

from .base import BaseSampler, Distribution


class RandomSampler(BaseSampler):
    """Sample each parameter independently from one shared, seeded generator."""

    def __init__(self, *, seed: int | None = None) -> None:
        super().__init__(seed=seed)
        self._lock = Lock()
        self._rng = np.random.default_rng(seed)

    def reset(self) -> None:
        with self._lock:
            self._rng = np.random.default_rng(self.seed)

    def sample(self, distribution: Distribution) -> Any:
        # numpy generators are not thread-safe.
        with self._lock:
            return distribution.sample(self._rng)
