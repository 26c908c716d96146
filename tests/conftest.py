import pytest

from formcoach.exercise_analysis.base_analyzer import PoseEvaluator
from formcoach.exercise_analysis.config_utils import load_reference_catalog

from helpers import FakeChannel, FakeClock


@pytest.fixture(scope="session")
def catalog():
    return load_reference_catalog()


@pytest.fixture
def evaluator(catalog):
    return PoseEvaluator(catalog)


@pytest.fixture
def plank_side(catalog):
    return catalog.get("plank", "side")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    return FakeChannel()
