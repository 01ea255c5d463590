"""Per-execution trial context handed to objective functions."""

from __future__ import annotations

from threading import Event
from typing import Any
from uuid import UUID

from hyperstudy.exceptions import TrialCancelledError
from hyperstudy.storage import Storage

from .distributions import UniformDistribution
from .samplers.base import BaseSampler


class CancellationToken:
    """Cooperative cancellation flag shared by the trials of one optimisation run."""

    def __init__(self) -> None:
        self._event = Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        # First reason wins.
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TrialCancelledError(self._reason or "cancelled")


class Trial:
    """
    Objective-facing handle on one ``(study_id, trial_id)`` pair.

    A trial keeps no state of its own: sampled parameters go straight to
    storage, so any number of Trial objects for the same key see the same
    record and need no synchronisation between them.
    """

    def __init__(
        self,
        study_id: UUID,
        trial_id: int,
        storage: Storage,
        sampler: BaseSampler,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.study_id = study_id
        self.trial_id = trial_id
        self.storage = storage
        self.sampler = sampler
        self.cancel_token = cancel_token or CancellationToken()

    @property
    def number(self) -> int:
        return self.trial_id

    @property
    def params(self) -> dict[str, Any]:
        """Parameters recorded for this trial so far."""
        record = self.storage.get_trial(self.study_id, self.trial_id)
        return {} if record is None else record.param_values()

    def sample_uniform(self, name: str, low: int | float, high: int | float) -> int | float:
        """
        Draw a value uniformly from ``[low, high)`` and record it under ``name``.

        Integer bounds yield an ``int``. The value is stored before it is
        returned; if the write fails the error propagates and the value is
        never handed to the caller.

        Raises:
            TrialCancelledError: if the run was cancelled.
            AlreadyCompleteError: if this trial is already finished.
        """
        self.cancel_token.raise_if_cancelled()
        distribution = UniformDistribution(low, high)
        value = self.sampler.sample(distribution)
        self.storage.set_trial_param(self.study_id, self.trial_id, name, value, distribution.name)
        return value

    def should_stop(self) -> bool:
        """Return True once the run has been cancelled; objectives may poll this."""
        return self.cancel_token.cancelled

    def __repr__(self) -> str:
        return f"Trial(study_id={self.study_id}, trial_id={self.trial_id})"
