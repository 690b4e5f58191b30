"""Shared fixtures for maq tests."""

import numpy as np
import pytest

from maq.config import MaqConfig, set_config


@pytest.fixture(autouse=True)
def default_config():
    """Every test starts from the default configuration."""
    set_config(MaqConfig())
    yield
    set_config(MaqConfig())


@pytest.fixture
def random_problem():
    """200 units, 3 options, mixed-sign values and heterogeneous costs."""
    rng = np.random.default_rng(2024)
    n, k = 200, 3
    reward = rng.normal(loc=[0.5, 1.0, 1.5], scale=1.0, size=(n, k))
    cost = rng.uniform(0.5, 2.0, size=(n, k)) * np.array([1.0, 2.0, 3.0])
    reward_eval = reward + rng.normal(scale=2.0, size=(n, k))
    return reward, cost, reward_eval


@pytest.fixture
def three_units():
    """Three single-option units with unit costs and values 3, 1, 2."""
    return np.array([3.0, 1.0, 2.0]), np.array([1.0, 1.0, 1.0])
