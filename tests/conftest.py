"""Shared fixtures for the calculator tests."""
import random

import pytest

from utils.math_result import MathResult


@pytest.fixture
def rng():
    """A seeded generator so dice results are reproducible."""
    return random.Random(1234)


@pytest.fixture
def result(rng):
    """An empty MathResult with default limits and a seeded generator."""
    return MathResult(rng=rng)
