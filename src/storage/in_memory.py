"""Thread-safe in-memory trial storage."""

from __future__ import annotations

from threading import Lock
from typing import Any, Callable, Dict
from uuid import UUID

import logging

from hyperstudy.exceptions import DuplicateTrialError, TrialNotFoundError

from .base import Storage, V
from .records import ParamData, TrialRecord, check_value_type

logger = logging.getLogger(__name__)

Transition = Callable[[TrialRecord | None], TrialRecord]


class InMemoryStorage(Storage[V]):
    """
    Thread-safe in-memory store for trial records.

    Records are kept as encoded JSON strings in a ``study_id -> trial_id -> str``
    map. Writers to one key serialise on a lock picked from a fixed stripe table,
    so trials on different keys rarely contend. Each stored string is replaced
    whole, which is what lets readers take snapshots without locking.

    Args:
        value_type: Expected type of trial values; ``None`` accepts any
            JSON-encodable value.
        lock_stripes: Size of the per-key lock table.
        records: Existing ``study_id -> trial_id -> encoded record`` map to
            serve, e.g. to read one record set under another ``value_type``.
            Writes go to this map in place.
    """

    def __init__(
        self,
        *,
        value_type: type | None = None,
        lock_stripes: int = 64,
        records: Dict[UUID, Dict[int, str]] | None = None,
    ) -> None:
        if lock_stripes <= 0:
            raise ValueError("lock_stripes must be positive")
        self.value_type = value_type
        self._records: Dict[UUID, Dict[int, str]] = {} if records is None else records
        self._next_ids: Dict[UUID, int] = {}
        self._registry_lock = Lock()
        self._locks = tuple(Lock() for _ in range(lock_stripes))

    def __len__(self) -> int:
        with self._registry_lock:
            studies = list(self._records.values())
        return sum(len(trials) for trials in studies)

    def create_trial(self, study_id: UUID, trial_id: int) -> TrialRecord:
        def transition(current: TrialRecord | None) -> TrialRecord:
            if current is not None:
                raise DuplicateTrialError(f"Trial {trial_id} of study {study_id} already exists")
            return TrialRecord(study_id=study_id, trial_id=trial_id)

        return self._transition(study_id, trial_id, transition)

    def create_new_trial(self, study_id: UUID) -> TrialRecord:
        while True:
            trial_id = self._allocate_trial_id(study_id)
            try:
                return self.create_trial(study_id, trial_id)
            except DuplicateTrialError:
                # Taken by a direct create_trial or another storage sharing the map.
                continue

    def get_trial(self, study_id: UUID, trial_id: int) -> TrialRecord | None:
        trials = self._study_records(study_id)
        if trials is None:
            return None
        encoded = trials.get(trial_id)
        if encoded is None:
            return None
        return TrialRecord.decode(encoded, value_type=self.value_type)

    def get_trials(self, study_id: UUID) -> list[TrialRecord]:
        trials = self._study_records(study_id)
        if trials is None:
            return []
        snapshot = trials.copy()
        return [
            TrialRecord.decode(snapshot[trial_id], value_type=self.value_type)
            for trial_id in sorted(snapshot)
        ]

    def set_trial_value(self, study_id: UUID, trial_id: int, value: V) -> TrialRecord:
        checked = check_value_type(value, self.value_type)

        def transition(current: TrialRecord | None) -> TrialRecord:
            if current is None:
                raise TrialNotFoundError(study_id, trial_id)
            return current.complete(checked)

        return self._transition(study_id, trial_id, transition)

    def set_trial_param(
        self,
        study_id: UUID,
        trial_id: int,
        name: str,
        value: Any,
        distribution: str,
    ) -> TrialRecord:
        param = ParamData(value=value, distribution=distribution)

        def transition(current: TrialRecord | None) -> TrialRecord:
            record = current or TrialRecord(study_id=study_id, trial_id=trial_id)
            return record.with_param(name, param)

        return self._transition(study_id, trial_id, transition)

    def set_trial_failed(self, study_id: UUID, trial_id: int, error: str) -> TrialRecord:
        def transition(current: TrialRecord | None) -> TrialRecord:
            record = current or TrialRecord(study_id=study_id, trial_id=trial_id)
            return record.fail(error)

        return self._transition(study_id, trial_id, transition)

    # Internals -------------------------------------------------------------

    def _transition(self, study_id: UUID, trial_id: int, transition: Transition) -> TrialRecord:
        """Run read, transform and write for one key inside that key's critical section."""
        trials = self._study_records(study_id, create=True)
        with self._lock_for(study_id, trial_id):
            encoded = trials.get(trial_id)
            current = None if encoded is None else TrialRecord.decode(encoded, value_type=self.value_type)
            updated = transition(current)
            trials[trial_id] = updated.encode()
        logger.debug("Study %s trial %d -> %s", study_id, trial_id, updated.state.value)
        return updated

    def _allocate_trial_id(self, study_id: UUID) -> int:
        with self._registry_lock:
            next_id = self._next_ids.get(study_id)
            if next_id is None:
                existing = (self._records.get(study_id) or {}).copy()
                next_id = max(existing, default=-1) + 1
            self._next_ids[study_id] = next_id + 1
        return next_id

    def _lock_for(self, study_id: UUID, trial_id: int) -> Lock:
        return self._locks[hash((study_id, trial_id)) % len(self._locks)]

    def _study_records(self, study_id: UUID, *, create: bool = False) -> Dict[int, str] | None:
        trials = self._records.get(study_id)
        if trials is not None or not create:
            return trials
        with self._registry_lock:
            return self._records.setdefault(study_id, {})
