"""Study orchestration, trial contexts, samplers and reporting."""

from .config import StudyConfig
from .distributions import UniformDistribution
from .reporting import StudyReporter
from .samplers.base import BaseSampler
from .samplers.random_sampler import RandomSampler
from .study import Study, StudyDirection, create_study
from .trial import CancellationToken, Trial

__all__ = [
    "StudyConfig",
    "UniformDistribution",
    "StudyReporter",
    "BaseSampler",
    "RandomSampler",
    "Study",
    "StudyDirection",
    "create_study",
    "CancellationToken",
    "Trial",
]
