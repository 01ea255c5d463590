"""Samplers drawing parameter values for trials."""

from .base import BaseSampler
from .random_sampler import RandomSampler

__all__ = ["BaseSampler", "RandomSampler"]
