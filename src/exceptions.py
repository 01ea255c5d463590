"""
Study engine exception hierarchy.

StudyError (base, Exception)
├── AlreadyCompleteError(StudyError)           ← write to a finished trial
├── TrialNotFoundError(StudyError, KeyError)   ← value write on a never-started trial
├── DuplicateTrialError(StudyError)            ← trial created twice
├── DecodeError(StudyError, ValueError)        ← stored record does not match expected type
├── TrialCancelledError(StudyError)            ← sampling after the run was cancelled
└── ObjectiveFailure(StudyError)               ← user objective raised

TrialNotFoundError and DecodeError also inherit from the builtin they refine so
that ``except KeyError`` / ``except ValueError`` callers keep working.
"""

from __future__ import annotations

from uuid import UUID


class StudyError(Exception):
    """Base exception for all study engine errors."""


class AlreadyCompleteError(StudyError):
    """A parameter, value or failure was written to a trial that is already finished."""

    def __init__(self, study_id: UUID, trial_id: int, state: str) -> None:
        super().__init__(f"Trial {trial_id} of study {study_id} is already finished (state={state})")
        self.study_id = study_id
        self.trial_id = trial_id
        self.state = state


class TrialNotFoundError(StudyError, KeyError):
    """A value was written to a trial that was never started."""

    def __init__(self, study_id: UUID, trial_id: int) -> None:
        super().__init__(f"Trial {trial_id} of study {study_id} does not exist")
        self.study_id = study_id
        self.trial_id = trial_id

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0])


class DuplicateTrialError(StudyError):
    """A trial record was created for a key that already holds one."""


class DecodeError(StudyError, ValueError):
    """A stored record could not be decoded into the expected shape or value type."""


class TrialCancelledError(StudyError):
    """The trial's run was cancelled before the operation could proceed."""


class ObjectiveFailure(StudyError):
    """The objective function raised while evaluating one trial."""

    def __init__(self, trial_id: int, cause: BaseException) -> None:
        super().__init__(f"Objective failed for trial {trial_id}: {type(cause).__name__}: {cause}")
        self.trial_id = trial_id
        self.cause = cause
