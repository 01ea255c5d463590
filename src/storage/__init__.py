"""Trial record storage: the contract and its in-memory backend."""

from .base import Storage
from .in_memory import InMemoryStorage
from .records import ParamData, TrialRecord, TrialState

__all__ = [
    "Storage",
    "InMemoryStorage",
    "ParamData",
    "TrialRecord",
    "TrialState",
]
