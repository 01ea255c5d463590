"""Study configuration loaded from YAML/JSON style mappings."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

_DIRECTIONS = ("maximize", "minimize")


@dataclass(frozen=True)
class StudyConfig:
    """Immutable run settings for a study."""

    direction: str = "maximize"
    max_workers: int | None = None
    seed: int | None = None
    max_run_time_seconds: float | None = None
    max_failures: int | None = None
    lock_stripes: int = 64
    log_path: Path | None = None

    def __post_init__(self) -> None:
        if self.direction not in _DIRECTIONS:
            raise ValueError(f"direction must be one of {', '.join(_DIRECTIONS)}, got {self.direction!r}")
        _check_positive_int("max_workers", self.max_workers)
        _check_positive_int("max_failures", self.max_failures)
        _check_positive_int("lock_stripes", self.lock_stripes)
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise TypeError(f"seed must be an integer, got {type(self.seed).__name__}")
        if self.max_run_time_seconds is not None:
            if isinstance(self.max_run_time_seconds, bool) or not isinstance(self.max_run_time_seconds, (int, float)):
                raise TypeError("max_run_time_seconds must be a number")
            if self.max_run_time_seconds <= 0:
                raise ValueError("max_run_time_seconds must be positive")
        if self.log_path is not None and not isinstance(self.log_path, Path):
            object.__setattr__(self, "log_path", Path(self.log_path))

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "StudyConfig":
        """
        Load settings from a mapping.

        Accepts either a flat mapping of options or one nested under a
        ``study`` key.

        Raises:
            ValueError: on unknown options or out-of-range values.
            TypeError: on values of the wrong type.
        """
        if not config:
            return cls()
        section = config.get("study", config)
        if not isinstance(section, Mapping):
            raise TypeError("study configuration must be a mapping")

        known = {item.name for item in fields(cls)}
        unknown = sorted(set(section) - known)
        if unknown:
            raise ValueError(f"Unknown study option(s): {', '.join(unknown)}")
        return cls(**dict(section))

    def to_config(self) -> dict[str, Any]:
        """Serialise non-default settings back into a configuration mapping."""
        defaults = StudyConfig()
        study: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value == getattr(defaults, item.name):
                continue
            study[item.name] = str(value) if isinstance(value, Path) else value
        return {"study": study}


def _check_positive_int(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be positive")
