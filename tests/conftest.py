import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from src.epirecipes.model import SIRParams


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def params():
    return SIRParams(beta=0.05, c=10.0, gamma=0.25)


@pytest.fixture
def small_u0():
    return (90, 10, 0, 0)
