"""
Rao-Blackwellized Monte Carlo Data Association

For every observation and every particle this module weighs the competing
explanations of the observation:

- assignment to one of the particle's existing targets,
- birth of a new target,
- clutter (unassociated noise),

applies the chosen explanation to the particle's targets and returns the
weight increment of the particle. Target deaths are decided once per frame
from the per-frame best likelihood of each target.

Priors used for an observation seen by a particle holding k targets:

    P(clutter)  = clutter_prior
    P(birth)    = birth_prior            (0 once k == max_n_active_targets)
    P(target j) = (1 - clutter_prior - birth_prior) / k

When k == 0, or births are disabled, the remaining priors are renormalised
to sum to one.

Author: DoATrack Project
"""

import numpy as np
from typing import List
from dataclasses import dataclass
from scipy.special import logsumexp
import logging

from ..validators import NumericalFailure
from .kalman_filters import kf_update, innovation, gaussian_log_likelihood
from .motion_models import MeasurementModel
from .tracker_base import (
    AssociationKind, AssociationRecord, Particle, ParticleEnsemble
)

logger = logging.getLogger(__name__)


@dataclass
class HypothesisSet:
    """
    Explanations of one observation for one particle.

    Entries are ordered [target_1, ..., target_k, birth, clutter].

    Attributes:
        log_priors: Log prior probability of each explanation
        log_likelihoods: Log-likelihood of the observation under each explanation
        target_ids: Identities of the existing targets, in order
    """
    log_priors: np.ndarray
    log_likelihoods: np.ndarray
    target_ids: List[int]

    @property
    def n_targets(self) -> int:
        return len(self.target_ids)

    @property
    def birth_index(self) -> int:
        return self.n_targets

    @property
    def clutter_index(self) -> int:
        return self.n_targets + 1

    @property
    def log_joint(self) -> np.ndarray:
        with np.errstate(invalid='ignore'):
            joint = self.log_priors + self.log_likelihoods
        joint[np.isnan(joint)] = -np.inf
        return joint

    @property
    def log_normalizer(self) -> float:
        """Log of sum_h P(h) p(z | h), the predictive likelihood of z."""
        return float(logsumexp(self.log_joint))

    @property
    def posterior(self) -> np.ndarray:
        """Posterior probability of each explanation (uniform if all vanish)."""
        joint = self.log_joint
        total = logsumexp(joint)
        if not np.isfinite(total):
            return np.full(len(joint), 1.0 / len(joint))
        return np.exp(joint - total)

    def kind(self, index: int) -> AssociationKind:
        if index < self.n_targets:
            return AssociationKind.TARGET
        if index == self.birth_index:
            return AssociationKind.BIRTH
        return AssociationKind.CLUTTER


class AssociationEngine:
    """
    Per-observation, per-particle data association with birth, clutter and
    death hypotheses.
    """

    def __init__(self, config, measurement_model: MeasurementModel,
                 rng: np.random.Generator):
        """
        Initialize the association engine.

        Args:
            config: TrackerConfig with priors and death parameters
            measurement_model: Observation matrix H and noise covariance R
            rng: Random generator used in "sample" mode
        """
        self.config = config
        self.H = measurement_model.H
        self.R = measurement_model.R
        self.rng = rng
        self.mode = config.association_mode

        self.m0 = np.array(config.m0)
        self.p0 = np.array(config.p0)

        with np.errstate(divide='ignore'):
            self.log_noise_likelihood = np.log(config.noise_likelihood)
            self.log_death_likelihood = np.log(config.death_likelihood)

        # Birth likelihood N(z; H m0, H p0 H' + R) depends on z only through the residual
        self.birth_S = self.H @ self.p0 @ self.H.T + self.R

    # ------------------------------------------------------------------
    # Hypothesis evaluation
    # ------------------------------------------------------------------

    def hypothesis_priors(self, n_targets: int) -> np.ndarray:
        """
        Prior probabilities ordered [target_1..target_k, birth, clutter].
        """
        clutter = self.config.clutter_prior
        birth = self.config.birth_prior if n_targets < self.config.max_n_active_targets else 0.0
        existing = 1.0 - self.config.clutter_prior - self.config.birth_prior

        priors = np.zeros(n_targets + 2)
        if n_targets > 0:
            priors[:n_targets] = existing / n_targets
        priors[n_targets] = birth
        priors[n_targets + 1] = clutter

        total = np.sum(priors)
        if total <= 0:
            # Only clutter remains
            priors[n_targets + 1] = 1.0
            return priors
        return priors / total

    def birth_log_likelihood(self, z: np.ndarray) -> float:
        try:
            return gaussian_log_likelihood(z - self.H @ self.m0, self.birth_S)
        except NumericalFailure:
            logger.warning("Singular birth covariance, birth hypothesis disabled")
            return -np.inf

    def evaluate(self, particle: Particle, z: np.ndarray) -> HypothesisSet:
        """
        Evaluate every explanation of z for one particle.

        Targets whose innovation covariance is singular get zero likelihood,
        so their probability mass falls to the remaining explanations.
        """
        k = particle.n_targets
        log_likelihoods = np.empty(k + 2)

        for j, target in enumerate(particle.targets):
            y, S = innovation(target.mean, target.covariance, z, self.H, self.R)
            try:
                log_likelihoods[j] = gaussian_log_likelihood(y, S)
            except NumericalFailure:
                logger.warning(f"Singular innovation covariance for target {target.target_id}, "
                               f"treating observation as clutter")
                log_likelihoods[j] = -np.inf

        log_likelihoods[k] = self.birth_log_likelihood(z)
        log_likelihoods[k + 1] = self.log_noise_likelihood

        with np.errstate(divide='ignore'):
            log_priors = np.log(self.hypothesis_priors(k))

        return HypothesisSet(
            log_priors=log_priors,
            log_likelihoods=log_likelihoods,
            target_ids=particle.target_ids,
        )

    def choose(self, hypotheses: HypothesisSet) -> int:
        """
        Pick an explanation.

        "sample" draws proportionally to the posterior; "map" takes the most
        probable one, the first index winning ties (targets, then birth, then
        clutter). An observation no explanation can account for is clutter.
        """
        if not np.isfinite(hypotheses.log_normalizer):
            return hypotheses.clutter_index

        if self.mode == "map":
            return int(np.argmax(hypotheses.log_joint))

        cumsum = np.cumsum(hypotheses.posterior)
        index = int(np.searchsorted(cumsum, self.rng.random() * cumsum[-1], side='right'))
        return min(index, len(cumsum) - 1)

    # ------------------------------------------------------------------
    # Particle updates
    # ------------------------------------------------------------------

    def update_particle(self, particle: Particle, z: np.ndarray, time: int) -> float:
        """
        Associate z within one particle and update its targets.

        Returns:
            Log weight increment of the particle
        """
        hypotheses = self.evaluate(particle, z)

        for target, log_lik in zip(particle.targets, hypotheses.log_likelihoods):
            target.best_log_likelihood = max(target.best_log_likelihood, log_lik)

        index = self.choose(hypotheses)
        kind = hypotheses.kind(index)
        log_lik = float(hypotheses.log_likelihoods[index])
        target_id = None

        if kind is AssociationKind.TARGET:
            target = particle.targets[index]
            try:
                target.mean, target.covariance, _ = kf_update(
                    target.mean, target.covariance, z, self.H, self.R
                )
                target.last_update_time = time
                target.hit_count += 1
                target_id = target.target_id
            except NumericalFailure:
                kind = AssociationKind.CLUTTER
                log_lik = float(self.log_noise_likelihood)

        elif kind is AssociationKind.BIRTH:
            try:
                mean, covariance, _ = kf_update(self.m0, self.p0, z, self.H, self.R)
                target = particle.add_target(mean, covariance, time)
                # A newborn does not miss its birth frame
                target.best_log_likelihood = np.inf
                target_id = target.target_id
                logger.debug(f"Target {target_id} born at {np.round(z, 3)}")
            except NumericalFailure:
                kind = AssociationKind.CLUTTER
                log_lik = float(self.log_noise_likelihood)

        particle.record(AssociationRecord(
            time=time,
            kind=kind,
            target_id=target_id,
            log_likelihood=log_lik,
            observation=tuple(float(v) for v in z),
        ))

        if self.config.force_kill_targets and kind is not AssociationKind.CLUTTER:
            self.force_kill(particle, time)

        if self.mode == "map":
            return float(hypotheses.log_joint[index])
        return hypotheses.log_normalizer

    def associate(self, ensemble: ParticleEnsemble, z: np.ndarray, time: int) -> bool:
        """
        Associate one observation across the whole ensemble and renormalise.

        Returns:
            False if all particle weights collapsed to zero
        """
        z = np.asarray(z, dtype=np.float64)
        increments = np.array([self.update_particle(p, z, time) for p in ensemble])
        return ensemble.normalize_weights(increments)

    # ------------------------------------------------------------------
    # Death hypotheses
    # ------------------------------------------------------------------

    def force_kill(self, particle: Particle, time: int) -> List[int]:
        """
        Remove duplicated targets: of two targets closer than
        force_kill_distance, the younger one is removed.
        """
        killed = []
        targets = sorted(particle.targets, key=lambda t: (t.creation_time, t.target_id))
        for i, older in enumerate(targets):
            if older.target_id in killed:
                continue
            for younger in targets[i + 1:]:
                if younger.target_id in killed:
                    continue
                distance = np.linalg.norm(older.position - younger.position)
                if distance < self.config.force_kill_distance:
                    killed.append(younger.target_id)

        for target_id in killed:
            particle.remove_target(target_id)
            particle.record(AssociationRecord(time=time, kind=AssociationKind.DEATH,
                                              target_id=target_id))
        return killed

    def begin_frame(self, particle: Particle) -> None:
        for target in particle.targets:
            target.best_log_likelihood = -np.inf

    def end_frame(self, particle: Particle, time: int) -> List[int]:
        """
        Apply the death hypothesis at the end of a frame.

        A target whose best observation likelihood in the frame stayed below
        death_likelihood (or that saw no observation) misses the frame; after
        death_frames consecutive misses it is pruned.

        Returns:
            Identities of the pruned targets
        """
        dead = []
        for target in particle.targets:
            if target.best_log_likelihood < self.log_death_likelihood:
                target.missed_frames += 1
            else:
                target.missed_frames = 0
            if target.missed_frames >= self.config.death_frames:
                dead.append(target.target_id)

        for target_id in dead:
            particle.remove_target(target_id)
            particle.record(AssociationRecord(time=time, kind=AssociationKind.DEATH,
                                              target_id=target_id))
        return dead
