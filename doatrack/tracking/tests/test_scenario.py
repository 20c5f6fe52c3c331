"""
Test suite for synthetic DoA scenario generation.

Author: DoATrack Project
"""

import pytest
import numpy as np
import numpy.testing as npt

from ..scenario import (
    SourceTrajectory, create_sample_scenario, generate_observations,
    perturb_direction, to_azimuth_elevation, unit_vector
)


class TestDirections:
    """Test direction helpers."""

    def test_unit_vector(self):
        npt.assert_allclose(unit_vector(0.0), [1.0, 0.0, 0.0], atol=1e-12)
        npt.assert_allclose(unit_vector(90.0), [0.0, 1.0, 0.0], atol=1e-12)
        npt.assert_allclose(unit_vector(0.0, 90.0), [0.0, 0.0, 1.0], atol=1e-12)

    def test_azimuth_elevation_inverse(self):
        az, el = to_azimuth_elevation(unit_vector(-60.0, 10.0))
        assert az[0] == pytest.approx(-60.0)
        assert el[0] == pytest.approx(10.0)

    def test_perturbed_direction_is_unit(self, rng):
        direction = perturb_direction(unit_vector(30.0), 5.0, rng)
        assert np.linalg.norm(direction) == pytest.approx(1.0)
        assert np.degrees(np.arccos(direction @ unit_vector(30.0))) < 30.0


class TestGenerateObservations:
    """Test observation batches."""

    def test_shapes_and_activity(self, rng):
        sources = [
            SourceTrajectory(azimuth_deg=0.0),
            SourceTrajectory(azimuth_deg=90.0, start_frame=5, end_frame=8),
        ]
        observations, truths = generate_observations(sources, 10, 0.02, rng=rng)

        assert len(observations) == 10
        assert [len(o) for o in observations] == [1] * 5 + [2] * 3 + [1] * 2
        assert all(o.shape[1] == 3 for o in observations)
        assert all(len(t) == len(o) for t, o in zip(truths, observations))
        for batch in observations:
            npt.assert_allclose(np.linalg.norm(batch, axis=1), 1.0)

    def test_moving_source(self):
        source = SourceTrajectory(azimuth_deg=0.0, azimuth_rate=10.0)
        az, _ = to_azimuth_elevation(source.direction(100, 0.01))
        assert az[0] == pytest.approx(10.0)

    def test_missed_detections(self, rng):
        sources = [SourceTrajectory(azimuth_deg=0.0, detection_probability=0.0)]
        observations, truths = generate_observations(sources, 5, 0.02, rng=rng)
        assert all(len(o) == 0 for o in observations)
        assert all(len(t) == 1 for t in truths)

    def test_sample_scenario(self, rng):
        observations, truths = create_sample_scenario(n_frames=100, rng=rng)
        assert len(observations) == 100
        assert max(len(t) for t in truths) == 2
