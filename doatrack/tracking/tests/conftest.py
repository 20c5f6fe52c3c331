"""
Pytest configuration and shared fixtures for tracking tests.

This module provides common fixtures and configuration used across
all tracker tests.

Author: DoATrack Project
"""

import pytest
import numpy as np

from ...config_loader import TrackerConfig
from ..particle_tracker import Tracker3D

np.seterr(all='warn')


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def default_config():
    """Default configuration with a fixed seed."""
    return TrackerConfig(seed=7)


@pytest.fixture
def tracker_factory():
    """Build trackers from keyword overrides of a seeded configuration."""
    created = []

    def _make(**overrides) -> Tracker3D:
        params = {'seed': 7}
        params.update(overrides)
        tracker = Tracker3D(TrackerConfig(**params))
        created.append(tracker)
        return tracker

    yield _make

    for tracker in created:
        if not tracker.destroyed:
            tracker.destroy()


@pytest.fixture
def sample_state():
    """Sample 3D state vector [x, y, z, vx, vy, vz]."""
    return np.array([1.0, 0.0, 0.0, 0.1, -0.05, 0.0])


@pytest.fixture
def sample_covariance():
    """Sample 6x6 state covariance with position/velocity coupling."""
    P = np.diag([0.01, 0.01, 0.01, 0.05, 0.05, 0.05])
    P[0, 3] = P[3, 0] = 0.005
    P[1, 4] = P[4, 1] = 0.005
    return P


@pytest.fixture
def assert_symmetric():
    """Utility to assert matrix is symmetric."""
    def _check_symmetric(matrix: np.ndarray, tolerance: float = 1e-12):
        assert np.allclose(matrix, matrix.T, atol=tolerance), "Matrix is not symmetric"
        return True

    return _check_symmetric


@pytest.fixture
def assert_positive_semidefinite():
    """Utility to assert matrix is positive semi-definite."""
    def _check_psd(matrix: np.ndarray, tolerance: float = 1e-12):
        eigenvals = np.linalg.eigvalsh(0.5 * (matrix + matrix.T))
        assert np.all(eigenvals > -tolerance), \
            f"Matrix is not positive semi-definite. Min eigenvalue: {np.min(eigenvals)}"
        return True

    return _check_psd


@pytest.fixture
def assert_probabilities_valid():
    """Utility to assert probabilities are valid."""
    def _check_probabilities(probs: np.ndarray, tolerance: float = 1e-10):
        assert np.all(probs >= 0), f"Negative probabilities found: {probs}"
        assert abs(np.sum(probs) - 1.0) < tolerance, f"Probabilities don't sum to 1: sum = {np.sum(probs)}"
        return True

    return _check_probabilities


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
