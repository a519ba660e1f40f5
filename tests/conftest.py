import numpy as np
import pytest

from state import initialize_state
from strategy import DEFAULT_STRATEGY, Policy


@pytest.fixture
def state():
    """Business-case snapshot: short on cash, in debt, no raw material."""
    return initialize_state('business_case')


@pytest.fixture
def rich_state():
    return initialize_state('historical')


@pytest.fixture
def policy():
    return Policy.from_strategy(DEFAULT_STRATEGY)


@pytest.fixture
def rng():
    return np.random.default_rng(7)
