"""
Resampling of the particle ensemble.

Degeneracy is measured with the effective sample size; when it drops below
a fraction of the ensemble size the ensemble is regenerated with low-variance
systematic resampling.

Author: DoATrack Project
"""

import numpy as np
import logging

from ..constants import TrackerDefaults
from .tracker_base import ParticleEnsemble

logger = logging.getLogger(__name__)


def effective_sample_size(weights: np.ndarray) -> float:
    """
    Effective number of particles, 1 / sum(w^2).

    Args:
        weights: Normalised particle weights

    Returns:
        Neff clipped into [1, Np]; Np when the weights have collapsed to zero
    """
    weights = np.asarray(weights, dtype=np.float64)
    n = len(weights)
    sum_sq = np.sum(weights**2)
    if not np.isfinite(sum_sq) or sum_sq <= 0:
        return float(n)
    return float(np.clip(1.0 / sum_sq, 1.0, n))


def systematic_resample(weights: np.ndarray, rng: np.random.Generator) -> np.ndarray:
    """
    Low-variance systematic resampling.

    A single uniform offset u0 ~ U[0, 1/N) positions N equally spaced strata
    on the cumulative weight distribution.

    Args:
        weights: Particle weights (need not be normalised)
        rng: Random generator

    Returns:
        Array of N selected particle indices (non-decreasing)
    """
    weights = np.asarray(weights, dtype=np.float64)
    n = len(weights)

    total = np.sum(weights)
    if not np.isfinite(total) or total <= 0 or np.any(weights < 0):
        # Collapsed or corrupted weights: every particle is equally likely
        weights = np.full(n, 1.0 / n)
        total = 1.0

    cumsum = np.cumsum(weights / total)
    cumsum[-1] = 1.0  # Ensure last element is exactly 1

    u0 = rng.random() / n
    u = u0 + np.arange(n) / n

    indices = np.searchsorted(cumsum, u, side='right')
    return np.minimum(indices, n - 1)


class Resampler:
    """
    Degeneracy-triggered systematic resampler.

    Resamples when Neff < threshold_ratio * Np and always resamples
    (uniformly) when the weights have collapsed.
    """

    def __init__(self, threshold_ratio: float = TrackerDefaults.RESAMPLE_RATIO):
        self.threshold_ratio = threshold_ratio
        self.n_resamples = 0

    def needs_resampling(self, ensemble: ParticleEnsemble) -> bool:
        return effective_sample_size(ensemble.weights) < self.threshold_ratio * len(ensemble)

    def resample(self, ensemble: ParticleEnsemble, rng: np.random.Generator) -> np.ndarray:
        """Replace the ensemble with clones drawn by weight and reset weights to W0."""
        indices = systematic_resample(ensemble.weights, rng)
        ensemble.replace_with_clones(indices)
        ensemble.reset_weights()
        self.n_resamples += 1
        logger.debug(f"Resampled ensemble, {len(np.unique(indices))} distinct ancestors")
        return indices

    def maybe_resample(self, ensemble: ParticleEnsemble, rng: np.random.Generator,
                       collapsed: bool = False) -> bool:
        """
        Resample if the ensemble is degenerate.

        Args:
            ensemble: Particle ensemble with normalised weights
            rng: Random generator
            collapsed: True if the last normalisation found all weights zero

        Returns:
            True if resampling took place
        """
        if collapsed:
            logger.warning("Weight collapse, resampling uniformly")
            self.resample(ensemble, rng)
            return True

        if self.needs_resampling(ensemble):
            self.resample(ensemble, rng)
            return True

        return False
