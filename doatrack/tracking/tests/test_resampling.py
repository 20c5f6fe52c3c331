"""
Test suite for effective sample size and systematic resampling.

Author: DoATrack Project
"""

import pytest
import numpy as np
import numpy.testing as npt

from ..resampling import Resampler, effective_sample_size, systematic_resample
from ..tracker_base import ParticleEnsemble


class TestEffectiveSampleSize:
    """Test the degeneracy measure."""

    def test_uniform(self):
        assert effective_sample_size(np.full(20, 0.05)) == pytest.approx(20.0)

    def test_degenerate(self):
        weights = np.zeros(10)
        weights[3] = 1.0
        assert effective_sample_size(weights) == pytest.approx(1.0)

    def test_collapsed_weights(self):
        assert effective_sample_size(np.zeros(8)) == 8.0

    def test_bounds(self, rng):
        for _ in range(20):
            weights = rng.dirichlet(np.ones(15) * 0.3)
            neff = effective_sample_size(weights)
            assert 1.0 <= neff <= 15.0


class TestSystematicResample:
    """Test low-variance resampling."""

    def test_degenerate_selects_single_ancestor(self, rng):
        weights = np.zeros(6)
        weights[4] = 1.0
        npt.assert_array_equal(systematic_resample(weights, rng), np.full(6, 4))

    def test_two_heavy_particles(self, rng):
        indices = systematic_resample(np.array([0.5, 0.5, 0.0, 0.0]), rng)
        npt.assert_array_equal(indices, [0, 0, 1, 1])

    def test_counts_are_floor_or_ceil(self, rng):
        weights = np.array([0.1, 0.2, 0.3, 0.4])
        for _ in range(50):
            counts = np.bincount(systematic_resample(weights, rng), minlength=4)
            expected = 4 * weights
            assert counts.sum() == 4
            assert np.all(counts >= np.floor(expected))
            assert np.all(counts <= np.ceil(expected))

    def test_unnormalised_weights(self, rng):
        indices = systematic_resample(np.array([5.0, 5.0, 0.0, 0.0]), rng)
        npt.assert_array_equal(indices, [0, 0, 1, 1])

    @pytest.mark.parametrize("weights", [
        np.zeros(5),
        np.array([0.2, np.nan, 0.2, 0.2, 0.2]),
        np.array([0.5, -0.1, 0.2, 0.2, 0.2]),
    ])
    def test_fallback_is_uniform(self, rng, weights):
        indices = systematic_resample(weights, rng)
        npt.assert_array_equal(np.sort(indices), np.arange(5))

    def test_indices_sorted_and_in_range(self, rng):
        weights = rng.dirichlet(np.ones(30))
        indices = systematic_resample(weights, rng)
        assert len(indices) == 30
        assert np.all(np.diff(indices) >= 0)
        assert indices.min() >= 0 and indices.max() < 30


class TestResampler:
    """Test the degeneracy-triggered resampler."""

    def test_no_resampling_when_healthy(self, rng):
        ensemble = ParticleEnsemble.create(8)
        resampler = Resampler()

        assert not resampler.maybe_resample(ensemble, rng)
        assert resampler.n_resamples == 0

    def test_resamples_degenerate_ensemble(self, rng):
        ensemble = ParticleEnsemble.create(8)
        ensemble[2].add_target(np.ones(6), np.eye(6), time=0)
        weights = np.zeros(8)
        weights[2] = 1.0
        ensemble.set_weights(weights)

        resampler = Resampler()
        assert resampler.maybe_resample(ensemble, rng)
        assert resampler.n_resamples == 1

        assert len(ensemble) == 8
        npt.assert_allclose(ensemble.weights, 1.0 / 8)
        assert effective_sample_size(ensemble.weights) == pytest.approx(8.0)
        assert all(p.target_ids == [1] for p in ensemble)
        ensemble.check_invariants()

    def test_threshold(self):
        ensemble = ParticleEnsemble.create(8)
        # Neff = 2 is exactly Np/4: not below the threshold
        ensemble.set_weights(np.array([0.5, 0.5, 0, 0, 0, 0, 0, 0]))
        assert not Resampler().needs_resampling(ensemble)

        ensemble.set_weights(np.array([0.9, 0.1, 0, 0, 0, 0, 0, 0]))
        assert Resampler().needs_resampling(ensemble)

    def test_collapse_forces_uniform_resampling(self, rng):
        ensemble = ParticleEnsemble.create(5)
        ensemble.set_weights(np.zeros(5))

        resampler = Resampler()
        assert resampler.maybe_resample(ensemble, rng, collapsed=True)
        npt.assert_allclose(ensemble.weights, 0.2)
        ensemble.check_invariants()
