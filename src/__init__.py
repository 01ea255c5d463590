"""Hyperparameter-optimization study engine: concurrent trials over a shared trial store."""

import logging

from .exceptions import (
    AlreadyCompleteError,
    DecodeError,
    DuplicateTrialError,
    ObjectiveFailure,
    StudyError,
    TrialCancelledError,
    TrialNotFoundError,
)
from .storage import InMemoryStorage, ParamData, Storage, TrialRecord, TrialState
from .optimization import (
    BaseSampler,
    CancellationToken,
    RandomSampler,
    Study,
    StudyConfig,
    StudyDirection,
    StudyReporter,
    Trial,
    UniformDistribution,
    create_study,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AlreadyCompleteError",
    "DecodeError",
    "DuplicateTrialError",
    "ObjectiveFailure",
    "StudyError",
    "TrialCancelledError",
    "TrialNotFoundError",
    "InMemoryStorage",
    "ParamData",
    "Storage",
    "TrialRecord",
    "TrialState",
    "BaseSampler",
    "CancellationToken",
    "RandomSampler",
    "Study",
    "StudyConfig",
    "StudyDirection",
    "StudyReporter",
    "Trial",
    "UniformDistribution",
    "create_study",
]
