"""Shared fixtures for the study engine tests."""

from uuid import uuid4

import pytest

from hyperstudy import InMemoryStorage, RandomSampler, Study, StudyConfig


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def float_storage():
    return InMemoryStorage(value_type=float)


@pytest.fixture
def study_id():
    return uuid4()


@pytest.fixture
def study(storage):
    return Study(storage=storage, sampler=RandomSampler(seed=7), config=StudyConfig(max_workers=4))
