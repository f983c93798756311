"""Shared fixtures for the AgriSmart test suite."""
import random

import pytest

from agrismart.services.crop_prediction_service import CropPredictionService
from agrismart.services.fertilizer_planner import FertilizerPlanner
from agrismart.services.location_catalog import LocationCatalog
from agrismart.services.optimization_advisor import OptimizationAdvisor
from agrismart.services.yield_estimator import YieldEstimator


class StubRandom:
    """
    Deterministic stand-in for random.Random.

    uniform(a, b) always returns the point at `fraction` of the way from a
    to b: 0.0 -> a, 0.5 -> midpoint, 1.0 -> b.
    """

    def __init__(self, fraction: float = 0.5):
        self.fraction = fraction

    def uniform(self, a, b):
        return a + (b - a) * self.fraction


@pytest.fixture
def make_rng():
    """Factory for StubRandom pinned at a given fraction."""
    return StubRandom


@pytest.fixture
def mid_rng():
    return StubRandom(0.5)


@pytest.fixture
def seeded_rng():
    return random.Random(42)


@pytest.fixture
def estimator(mid_rng):
    """Estimator whose jitter is fixed at 1.0."""
    return YieldEstimator(rng=mid_rng)


@pytest.fixture
def planner():
    return FertilizerPlanner()


@pytest.fixture
def advisor():
    return OptimizationAdvisor()


@pytest.fixture
def catalog():
    return LocationCatalog()


@pytest.fixture
def prediction_service(estimator, planner, advisor, catalog):
    return CropPredictionService(estimator=estimator, planner=planner, advisor=advisor, catalog=catalog)
