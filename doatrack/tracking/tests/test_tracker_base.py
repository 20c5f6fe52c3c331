"""
Test suite for the particle store.

Author: DoATrack Project
"""

import pytest
import numpy as np
import numpy.testing as npt

from ...validators import InvariantViolation
from ..tracker_base import (
    AssociationKind, AssociationRecord, Target, Particle, ParticleEnsemble
)


def make_particle(n_targets=2, history_length=8, base_weight=0.25):
    particle = Particle(base_weight, history_length)
    for i in range(n_targets):
        mean = np.zeros(6)
        mean[i % 3] = 1.0
        particle.add_target(mean, np.eye(6) * 0.1, time=i)
    return particle


class TestTarget:
    """Test target state container."""

    def test_position_velocity(self, sample_state, sample_covariance):
        target = Target(target_id=1, mean=sample_state, covariance=sample_covariance)
        npt.assert_array_equal(target.position, sample_state[:3])
        npt.assert_array_equal(target.velocity, sample_state[3:])

    def test_shape_validation(self):
        with pytest.raises(ValueError):
            Target(target_id=1, mean=np.zeros(4), covariance=np.eye(6))
        with pytest.raises(ValueError):
            Target(target_id=1, mean=np.zeros(6), covariance=np.eye(4))

    def test_copy_is_independent(self, sample_state, sample_covariance):
        target = Target(target_id=3, mean=sample_state, covariance=sample_covariance)
        copy = target.copy()
        copy.mean[0] = 42.0
        copy.covariance[0, 0] = 42.0

        assert target.mean[0] == sample_state[0]
        assert target.covariance[0, 0] == sample_covariance[0, 0]
        assert copy.target_id == 3


class TestParticle:
    """Test a single hypothesis."""

    def test_identities_are_monotonic(self):
        particle = make_particle(n_targets=3)
        assert particle.target_ids == [1, 2, 3]

        particle.remove_target(2)
        new = particle.add_target(np.zeros(6), np.eye(6), time=10)
        assert new.target_id == 4
        assert particle.target_ids == [1, 3, 4]

    def test_new_target_bookkeeping(self):
        particle = Particle(0.5)
        target = particle.add_target(np.zeros(6), np.eye(6), time=7)
        assert target.creation_time == 7
        assert target.last_update_time == 7
        assert target.hit_count == 1
        assert target.missed_frames == 0

    def test_remove_unknown(self):
        particle = make_particle()
        with pytest.raises(KeyError):
            particle.remove_target(99)

    def test_find_target(self):
        particle = make_particle()
        assert particle.find_target(2).target_id == 2
        assert particle.find_target(99) is None

    def test_history_is_bounded(self):
        particle = Particle(1.0, history_length=3)
        for t in range(5):
            particle.record(AssociationRecord(time=t, kind=AssociationKind.CLUTTER))
        assert len(particle.history) == 3
        assert [r.time for r in particle.history] == [2, 3, 4]

    def test_clone_is_deep(self):
        particle = make_particle()
        particle.weight = 0.7
        particle.record(AssociationRecord(time=0, kind=AssociationKind.BIRTH, target_id=1))

        clone = particle.clone()
        assert clone.weight == 0.7
        assert clone.target_ids == particle.target_ids
        assert clone.next_target_id == particle.next_target_id

        clone.targets[0].mean[0] = -5.0
        clone.targets[0].covariance[:] = 0.0
        clone.add_target(np.zeros(6), np.eye(6), time=3)
        clone.record(AssociationRecord(time=3, kind=AssociationKind.BIRTH, target_id=3))

        assert particle.targets[0].mean[0] == 1.0
        assert particle.targets[0].covariance[0, 0] == pytest.approx(0.1)
        assert particle.n_targets == 2
        assert particle.next_target_id == 3
        assert len(particle.history) == 1


class TestParticleEnsemble:
    """Test the fixed-size ensemble."""

    def test_create(self):
        ensemble = ParticleEnsemble.create(20)
        assert len(ensemble) == 20
        assert ensemble.size == 20
        npt.assert_allclose(ensemble.weights, 1.0 / 20)
        ensemble.check_invariants()

    def test_create_requires_particles(self):
        with pytest.raises(ValueError):
            ParticleEnsemble.create(0)

    def test_normalize_with_increments(self, assert_probabilities_valid):
        ensemble = ParticleEnsemble.create(4)
        ok = ensemble.normalize_weights(np.log([1.0, 2.0, 3.0, 4.0]))

        assert ok
        assert_probabilities_valid(ensemble.weights)
        npt.assert_allclose(ensemble.weights, [0.1, 0.2, 0.3, 0.4])

    def test_normalize_tiny_likelihoods(self):
        """Increments far below float range still normalise."""
        ensemble = ParticleEnsemble.create(2)
        ok = ensemble.normalize_weights(np.array([-2000.0, -2000.0 + np.log(3.0)]))
        assert ok
        npt.assert_allclose(ensemble.weights, [0.25, 0.75])

    def test_normalize_collapse(self):
        ensemble = ParticleEnsemble.create(3)
        ok = ensemble.normalize_weights(np.full(3, -np.inf))
        assert not ok
        npt.assert_array_equal(ensemble.weights, 0.0)

    def test_reset_weights(self):
        ensemble = ParticleEnsemble.create(4)
        ensemble.set_weights(np.array([1.0, 0.0, 0.0, 0.0]))
        ensemble.reset_weights()
        npt.assert_allclose(ensemble.weights, 0.25)

    def test_set_weights_length(self):
        ensemble = ParticleEnsemble.create(4)
        with pytest.raises(InvariantViolation):
            ensemble.set_weights(np.ones(3))

    def test_clones_do_not_alias(self):
        """Mutating one resampled particle is invisible to the others."""
        ensemble = ParticleEnsemble([make_particle(), Particle(0.5)])
        ensemble.replace_with_clones([0, 0])

        first, second = ensemble[0], ensemble[1]
        assert first is not second
        assert first.targets[0] is not second.targets[0]

        first.targets[0].mean[:3] = [9.0, 9.0, 9.0]
        first.remove_target(2)

        npt.assert_array_equal(second.targets[0].mean[:3], [1.0, 0.0, 0.0])
        assert second.target_ids == [1, 2]

    def test_replace_requires_full_size(self):
        ensemble = ParticleEnsemble.create(3)
        with pytest.raises(InvariantViolation):
            ensemble.replace_with_clones([0, 1])
        assert len(ensemble) == 3

    def test_map_index_first_on_ties(self):
        ensemble = ParticleEnsemble.create(4)
        ensemble.set_weights(np.array([0.1, 0.4, 0.4, 0.1]))
        assert ensemble.map_index() == 1
        assert ensemble.map_particle() is ensemble[1]

    @pytest.mark.parametrize("weights", [
        [0.5, 0.6, -0.1],
        [0.5, np.nan, 0.5],
        [0.2, 0.2, 0.2],
    ])
    def test_check_invariants_rejects(self, weights):
        ensemble = ParticleEnsemble.create(3)
        ensemble.set_weights(np.array(weights))
        with pytest.raises(InvariantViolation):
            ensemble.check_invariants(normalized=True)

    def test_unnormalized_check(self):
        ensemble = ParticleEnsemble.create(3)
        ensemble.set_weights(np.array([0.2, 0.2, 0.2]))
        ensemble.check_invariants(normalized=False)

    def test_dispose(self):
        ensemble = ParticleEnsemble.create(3)
        ensemble.dispose()
        assert ensemble.disposed
        assert len(ensemble) == 0
        with pytest.raises(InvariantViolation):
            ensemble.check_invariants()
