"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import matplotlib
matplotlib.use("Agg")

import pytest
import numpy as np

from somlib import ArrayReader, Dataset, Feature, Instance, SOMConfig


@pytest.fixture
def sample_data():
    """Generate sample data for SOM tests."""
    rng = np.random.default_rng(42)
    return rng.random((20, 4))


@pytest.fixture
def mixed_dataset():
    """Small dataset with a key column, a label column and two numeric ones."""
    features = [
        Feature("id", 0),
        Feature("height", 1),
        Feature("weight", 2),
        Feature("species", 3),
    ]
    instances = [
        Instance([1, 0.10, 0.20, "cat"]),
        Instance([2, "0.15", 0.25, "cat"]),
        Instance([3, 0.90, 0.80, "dog"]),
        Instance([4, 0.85, 0.95, "dog"]),
    ]
    return Dataset(features, instances)


@pytest.fixture
def labelled_reader():
    """Two well separated labelled blobs in [0, 1]."""
    rng = np.random.default_rng(7)
    low = rng.uniform(0.0, 0.2, size=(15, 2))
    high = rng.uniform(0.8, 1.0, size=(15, 2))
    rows = [list(r) + ["low"] for r in low] + [list(r) + ["high"] for r in high]
    return ArrayReader(rows, feature_names=["a", "b", "class"], labels=["class"])


@pytest.fixture
def small_config():
    return SOMConfig(
        width=4,
        height=3,
        initial_learning_rate=0.5,
        final_learning_rate=0.05,
        initial_radius=2.0,
        final_radius=0.5,
        epoch=3,
        random_seed=1,
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
