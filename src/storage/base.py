"""Storage contract shared by every trial record backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar
from uuid import UUID

from .records import TrialRecord

V = TypeVar("V")


class Storage(ABC, Generic[V]):
    """
    Keyed record store mapping ``(study_id, trial_id)`` to one trial record.

    Every write is a single atomic read-modify-write on its key: no other
    operation on the same ``(study_id, trial_id)`` may run between the read of
    the current record and the write of its replacement. Operations on
    different keys carry no ordering guarantee.

    Implementations are typed by the value they store (``value_type``); reads
    that find a value of another type raise :class:`~hyperstudy.exceptions.DecodeError`.
    """

    value_type: type | None = None

    @abstractmethod
    def create_trial(self, study_id: UUID, trial_id: int) -> TrialRecord:
        """
        Write an empty RUNNING record.

        Raises:
            DuplicateTrialError: if a record already exists for the key.
        """

    @abstractmethod
    def create_new_trial(self, study_id: UUID) -> TrialRecord:
        """
        Allocate the study's next free trial number and write an empty RUNNING record for it.

        Numbers are unique within a study across every caller sharing this
        storage, so studies attached to the same ``study_id`` never reuse one.
        """

    @abstractmethod
    def get_trial(self, study_id: UUID, trial_id: int) -> TrialRecord | None:
        """
        Return the current record, or ``None`` when absent.

        Raises:
            DecodeError: if the stored encoding cannot be read as a trial record.
        """

    @abstractmethod
    def get_trials(self, study_id: UUID) -> list[TrialRecord]:
        """Return every record of the study, each read whole, ordered by trial id."""

    @abstractmethod
    def set_trial_value(self, study_id: UUID, trial_id: int, value: V) -> TrialRecord:
        """
        Finish a RUNNING trial as COMPLETE, keeping its params.

        Raises:
            TrialNotFoundError: if the trial was never started.
            AlreadyCompleteError: if the trial is already finished.
            TypeError: if the value cannot be stored.
        """

    @abstractmethod
    def set_trial_param(
        self,
        study_id: UUID,
        trial_id: int,
        name: str,
        value: Any,
        distribution: str,
    ) -> TrialRecord:
        """
        Read-or-create a RUNNING record and merge ``name -> (value, distribution)`` into it.

        A parameter already stored under ``name`` is overwritten.

        Raises:
            AlreadyCompleteError: if the trial is already finished.
        """

    @abstractmethod
    def set_trial_failed(self, study_id: UUID, trial_id: int, error: str) -> TrialRecord:
        """
        Finish a RUNNING (or not yet created) trial as FAIL with an error message.

        Raises:
            AlreadyCompleteError: if the trial is already finished.
        """
