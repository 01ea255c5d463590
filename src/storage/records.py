"""Trial records, their states and the JSON encoding they are stored in."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

import json
import math

from hyperstudy.exceptions import AlreadyCompleteError, DecodeError

RECORD_FORMAT = 1

_PARAM_TYPES: dict[str, type] = {"bool": bool, "int": int, "float": float, "str": str}


class TrialState(str, Enum):
    """Lifecycle state of a trial record."""

    RUNNING = "running"
    COMPLETE = "complete"
    FAIL = "fail"

    def is_finished(self) -> bool:
        return self is not TrialState.RUNNING


@dataclass(frozen=True)
class ParamData:
    """A sampled parameter value and the name of the distribution it came from."""

    value: Any
    distribution: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _to_builtin(self.value))
        _param_type_name(self.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "type": _param_type_name(self.value),
            "distribution": self.distribution,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ParamData":
        try:
            raw_value = payload["value"]
            type_name = payload["type"]
            distribution = payload["distribution"]
        except (KeyError, TypeError) as exc:
            raise DecodeError(f"Malformed parameter entry: {payload!r}") from exc

        expected = _PARAM_TYPES.get(type_name)
        if expected is None:
            raise DecodeError(f"Unknown parameter type tag: {type_name!r}")
        if expected is float and isinstance(raw_value, int) and not isinstance(raw_value, bool):
            raw_value = float(raw_value)
        if type(raw_value) is not expected:
            raise DecodeError(
                f"Parameter value {raw_value!r} does not match its type tag {type_name!r}"
            )
        return cls(value=raw_value, distribution=str(distribution))


@dataclass(frozen=True)
class TrialRecord:
    """
    Snapshot of one trial as held by storage.

    Records are immutable; every transition produces a new record. Only a
    RUNNING record accepts new parameters, and it finishes exactly once, either
    as COMPLETE (with a value) or as FAIL (with an error message).
    """

    study_id: UUID
    trial_id: int
    state: TrialState = TrialState.RUNNING
    params: Mapping[str, ParamData] = field(default_factory=dict)
    value: Any = None
    error: str | None = None
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    finished_at: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", dict(self.params))

    @property
    def number(self) -> int:
        return self.trial_id

    @property
    def is_complete(self) -> bool:
        return self.state is TrialState.COMPLETE

    @property
    def is_finished(self) -> bool:
        return self.state.is_finished()

    def param_values(self) -> dict[str, Any]:
        """Return a plain ``name -> value`` mapping of the sampled parameters."""
        return {name: param.value for name, param in self.params.items()}

    # Transitions -----------------------------------------------------------

    def with_param(self, name: str, param: ParamData) -> "TrialRecord":
        self._ensure_running()
        params = dict(self.params)
        params[name] = param
        return replace(self, params=params)

    def complete(self, value: Any) -> "TrialRecord":
        self._ensure_running()
        return replace(
            self,
            state=TrialState.COMPLETE,
            value=_to_builtin(value),
            finished_at=datetime.now(UTC).isoformat(),
        )

    def fail(self, error: str) -> "TrialRecord":
        self._ensure_running()
        return replace(
            self,
            state=TrialState.FAIL,
            error=error,
            finished_at=datetime.now(UTC).isoformat(),
        )

    def _ensure_running(self) -> None:
        if self.state.is_finished():
            raise AlreadyCompleteError(self.study_id, self.trial_id, self.state.value)

    # Encoding --------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Convert the record into a JSON serialisable dictionary."""
        return {
            "format": RECORD_FORMAT,
            "state": self.state.value,
            "study_id": str(self.study_id),
            "trial_id": self.trial_id,
            "params": {name: param.to_dict() for name, param in self.params.items()},
            "value": self.value,
            "error": self.error,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, value_type: type | None = None) -> "TrialRecord":
        """
        Instantiate a record from its serialised representation.

        Args:
            payload: Mapping produced by :meth:`to_dict`.
            value_type: Expected type of a complete trial's value. ``int`` values are
                widened when ``float`` is expected; anything else that does not match
                is rejected.

        Raises:
            DecodeError: When fields are missing, the state is unknown, or a value
                does not match its declared type.
        """
        if not isinstance(payload, Mapping):
            raise DecodeError(f"Trial record must be a mapping, got {type(payload).__name__}")
        if payload.get("format") != RECORD_FORMAT:
            raise DecodeError(f"Unsupported trial record format: {payload.get('format')!r}")
        try:
            state = TrialState(payload["state"])
            study_id = UUID(str(payload["study_id"]))
            trial_id = payload["trial_id"]
            raw_params = payload["params"]
        except (KeyError, ValueError) as exc:
            raise DecodeError(f"Malformed trial record: {exc}") from exc
        if type(trial_id) is not int:
            raise DecodeError(f"Trial id must be an integer, got {trial_id!r}")
        if not isinstance(raw_params, Mapping):
            raise DecodeError("Trial record params must be a mapping")

        value = payload.get("value")
        if state is TrialState.COMPLETE and value_type is not None:
            value = _check_value_type(value, value_type)

        return cls(
            study_id=study_id,
            trial_id=trial_id,
            state=state,
            params={str(name): ParamData.from_dict(item) for name, item in raw_params.items()},
            value=value,
            error=payload.get("error"),
            created_at=payload.get("created_at") or datetime.now(UTC).isoformat(),
            finished_at=payload.get("finished_at"),
        )

    def encode(self) -> str:
        try:
            return json.dumps(self.to_dict(), sort_keys=True)
        except TypeError as exc:
            raise TypeError(
                f"Trial {self.trial_id} holds a value that cannot be stored: {exc}"
            ) from exc

    @classmethod
    def decode(cls, encoded: str, *, value_type: type | None = None) -> "TrialRecord":
        try:
            payload = json.loads(encoded)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"Stored trial record is not valid JSON: {exc}") from exc
        return cls.from_dict(payload, value_type=value_type)


def check_value_type(value: Any, value_type: type | None) -> Any:
    """Validate a trial value before it is written; mirrors the decode-side check."""
    if value_type is None:
        return _to_builtin(value)
    try:
        return _check_value_type(_to_builtin(value), value_type)
    except DecodeError as exc:
        raise TypeError(str(exc)) from None


def is_comparable_value(value: Any) -> bool:
    """Return False for values that do not order against themselves (NaN)."""
    if isinstance(value, float) and math.isnan(value):
        return False
    return value is not None


def _check_value_type(value: Any, value_type: type) -> Any:
    if value_type is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, bool) and value_type is not bool:
        raise DecodeError(f"Trial value {value!r} is not of type {value_type.__name__}")
    if not isinstance(value, value_type):
        raise DecodeError(
            f"Trial value {value!r} is not of type {value_type.__name__}"
        )
    return value


def _param_type_name(value: Any) -> str:
    # bool is checked first; it is a subclass of int.
    for name in ("bool", "int", "float", "str"):
        if type(value) is _PARAM_TYPES[name]:
            return name
    raise TypeError(
        f"Unsupported parameter type {type(value).__name__}; expected one of {', '.join(_PARAM_TYPES)}"
    )


def _to_builtin(value: Any) -> Any:
    """Unwrap numpy scalars into the matching Python builtin."""
    item = getattr(value, "item", None)
    if callable(item) and getattr(value, "shape", None) == ():
        return item()
    return value
