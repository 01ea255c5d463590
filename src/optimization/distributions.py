"""Parameter distributions trials can sample from."""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Real
from typing import Any, ClassVar

import numpy as np


@dataclass(frozen=True)
class UniformDistribution:
    """
    Uniform distribution over the half-open interval ``[low, high)``.

    When both bounds are ``int`` the distribution is discrete and yields
    integers; otherwise it yields floats.

    Raises:
        TypeError: if a bound is not a real number.
        ValueError: if ``high`` does not exceed ``low``.
    """

    low: int | float
    high: int | float

    name: ClassVar[str] = "uniform"

    def __post_init__(self) -> None:
        for label, bound in (("low", self.low), ("high", self.high)):
            if isinstance(bound, bool) or not isinstance(bound, Real):
                raise TypeError(f"Uniform {label} bound must be a real number, got {type(bound).__name__}")
            if not np.isfinite(bound):
                raise ValueError(f"Uniform {label} bound must be finite, got {bound!r}")
        if not self.high > self.low:
            raise ValueError(f"Uniform distribution requires low < high, got [{self.low!r}, {self.high!r})")

    @property
    def is_integer(self) -> bool:
        return _is_int(self.low) and _is_int(self.high)

    def contains(self, value: Any) -> bool:
        """Return True when ``value`` lies in ``[low, high)`` and has the distribution's kind."""
        if isinstance(value, bool) or not isinstance(value, Real):
            return False
        if self.is_integer and not _is_int(value):
            return False
        return self.low <= value < self.high

    def sample(self, rng: np.random.Generator) -> int | float:
        if self.is_integer:
            return int(rng.integers(int(self.low), int(self.high)))
        low, high = float(self.low), float(self.high)
        value = float(rng.uniform(low, high))
        # Generator.uniform can round up to ``high`` for some bounds.
        if value >= high:
            value = float(np.nextafter(high, low))
        return value

    def to_config(self) -> dict[str, Any]:
        return {"distribution": self.name, "low": self.low, "high": self.high}


def _is_int(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)
