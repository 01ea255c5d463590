"""Base class for samplers that draw parameter values for trials."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Protocol


class Distribution(Protocol):
    """Minimal interface a sampler needs from a distribution."""

    name: str

    def sample(self, rng: Any) -> Any:
        """Draw one value using the supplied random generator."""


class BaseSampler(ABC):
    """
    Abstract source of parameter values.

    A single sampler instance is shared by every trial of a study, so
    implementations must be safe to call from many threads at once.
    """

    def __init__(self, *, seed: int | None = None) -> None:
        self.seed = seed

    @abstractmethod
    def sample(self, distribution: Distribution) -> Any:
        """Draw one value from ``distribution``."""

    def reset(self) -> None:
        """Restore the sampler to its initial state."""
