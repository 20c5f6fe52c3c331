"""
Base classes and enums for the particle tracker.

This module provides the particle store of the tracker: the targets held by a
hypothesis, the per-particle association history, the particles themselves
and the fixed-size ensemble that owns them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence
import numpy as np
import numpy.typing as npt
from collections import deque
from scipy.special import logsumexp
import logging

from ..constants import STATE_DIM
from ..validators import InvariantViolation

logger = logging.getLogger(__name__)

# Tolerance on the sum of normalised weights
WEIGHT_SUM_TOLERANCE = 1e-5


class AssociationKind(Enum):
    """Enumeration of the explanations an observation can receive."""

    TARGET = "target"
    BIRTH = "birth"
    CLUTTER = "clutter"
    DEATH = "death"


@dataclass(frozen=True)
class AssociationRecord:
    """
    One association decision taken by a particle.

    Attributes:
        time: Tracker time tick of the decision
        kind: Chosen explanation
        target_id: Identity of the target involved (None for clutter)
        log_likelihood: Log-likelihood of the chosen explanation
        observation: The observation (None for deaths)
    """

    time: int
    kind: AssociationKind
    target_id: Optional[int] = None
    log_likelihood: float = 0.0
    observation: Optional[tuple] = None


@dataclass
class Target:
    """
    A single target held by one particle.

    Attributes:
        target_id: Identity, unique within the owning particle
        mean: State mean [x, y, z, vx, vy, vz]
        covariance: State covariance (6 x 6)
        creation_time: Time tick at which the target was born
        last_update_time: Time tick of the last associated observation
        hit_count: Number of observations associated so far
        missed_frames: Consecutive frames with no convincing observation
        best_log_likelihood: Best observation log-likelihood in the current frame
    """

    target_id: int
    mean: npt.NDArray[np.float64]
    covariance: npt.NDArray[np.float64]
    creation_time: int = 0
    last_update_time: int = 0
    hit_count: int = 0
    missed_frames: int = 0
    best_log_likelihood: float = -np.inf

    def __post_init__(self):
        self.mean = np.asarray(self.mean, dtype=np.float64)
        self.covariance = np.asarray(self.covariance, dtype=np.float64)

        if self.mean.shape != (STATE_DIM,):
            raise ValueError(f"Target mean must have shape ({STATE_DIM},)")
        if self.covariance.shape != (STATE_DIM, STATE_DIM):
            raise ValueError(f"Target covariance must have shape ({STATE_DIM}, {STATE_DIM})")

    @property
    def position(self) -> npt.NDArray[np.float64]:
        return self.mean[:3]

    @property
    def velocity(self) -> npt.NDArray[np.float64]:
        return self.mean[3:6]

    def copy(self) -> "Target":
        """Independent copy (no array is shared with the source)."""
        return Target(
            target_id=self.target_id,
            mean=self.mean.copy(),
            covariance=self.covariance.copy(),
            creation_time=self.creation_time,
            last_update_time=self.last_update_time,
            hit_count=self.hit_count,
            missed_frames=self.missed_frames,
            best_log_likelihood=self.best_log_likelihood,
        )


class Particle:
    """
    One weighted hypothesis of the ensemble.

    A particle owns its targets exclusively; clone() is the only way its
    content may populate another particle.
    """

    def __init__(self, base_weight: float, history_length: int = 64):
        """
        Initialize an empty particle.

        Args:
            base_weight: Baseline weight W0 = 1/Np
            history_length: Capacity of the association history ring buffer
        """
        self.weight = base_weight
        self.base_weight = base_weight
        self.targets: List[Target] = []
        self.next_target_id = 1
        self.history: deque = deque(maxlen=history_length)

    @property
    def n_targets(self) -> int:
        return len(self.targets)

    @property
    def target_ids(self) -> List[int]:
        return [t.target_id for t in self.targets]

    def add_target(self, mean: np.ndarray, covariance: np.ndarray, time: int) -> Target:
        """Create a target with the next identity of this particle."""
        target = Target(
            target_id=self.next_target_id,
            mean=mean,
            covariance=covariance,
            creation_time=time,
            last_update_time=time,
            hit_count=1,
        )
        self.next_target_id += 1
        self.targets.append(target)
        return target

    def remove_target(self, target_id: int) -> Target:
        """Remove and return the target with the given identity."""
        for i, target in enumerate(self.targets):
            if target.target_id == target_id:
                return self.targets.pop(i)
        raise KeyError(f"No target with id {target_id}")

    def find_target(self, target_id: int) -> Optional[Target]:
        for target in self.targets:
            if target.target_id == target_id:
                return target
        return None

    def record(self, record: AssociationRecord) -> None:
        self.history.append(record)

    def clone(self) -> "Particle":
        """Deep copy: weight, targets and history."""
        other = Particle(self.base_weight, self.history.maxlen)
        other.weight = self.weight
        other.targets = [t.copy() for t in self.targets]
        other.next_target_id = self.next_target_id
        # Records are immutable, sharing them is safe
        other.history.extend(self.history)
        return other

    def __repr__(self) -> str:
        return f"Particle(weight={self.weight:.4g}, targets={self.target_ids})"


class ParticleEnsemble:
    """
    Fixed-size container of particles.

    The number of particles is set at creation and never changes; resampling
    replaces particle content with clones, never the count.
    """

    def __init__(self, particles: Sequence[Particle]):
        self._particles: List[Particle] = list(particles)
        self._size = len(self._particles)
        self._disposed = False

    @classmethod
    def create(cls, n_particles: int, history_length: int = 64) -> "ParticleEnsemble":
        """Allocate n_particles empty particles with weight 1/n_particles."""
        if n_particles < 1:
            raise ValueError(f"Ensemble needs at least one particle, got {n_particles}")
        base_weight = 1.0 / n_particles
        return cls([Particle(base_weight, history_length) for _ in range(n_particles)])

    def __len__(self) -> int:
        return len(self._particles)

    def __iter__(self):
        return iter(self._particles)

    def __getitem__(self, index: int) -> Particle:
        return self._particles[index]

    @property
    def size(self) -> int:
        """Ensemble size fixed at creation."""
        return self._size

    @property
    def weights(self) -> np.ndarray:
        return np.array([p.weight for p in self._particles], dtype=np.float64)

    def set_weights(self, weights: np.ndarray) -> None:
        if len(weights) != len(self._particles):
            raise InvariantViolation(
                f"Got {len(weights)} weights for {len(self._particles)} particles"
            )
        for particle, w in zip(self._particles, weights):
            particle.weight = float(w)

    def normalize_weights(self, log_increments: Optional[np.ndarray] = None) -> bool:
        """
        Multiply weights by exp(log_increments) and renormalise to sum to one.

        The product is formed in the log domain so that very small likelihoods
        do not underflow before normalisation.

        Returns:
            False if every weight collapsed to zero (weights are then left at
            zero and the caller is expected to resample uniformly)
        """
        weights = self.weights
        if log_increments is None:
            log_increments = np.zeros(len(weights))

        with np.errstate(divide='ignore'):
            log_w = np.log(weights) + log_increments
        log_w[np.isnan(log_w)] = -np.inf

        total = logsumexp(log_w)
        if not np.isfinite(total):
            logger.warning("Particle weights collapsed to zero")
            self.set_weights(np.zeros(len(weights)))
            return False

        self.set_weights(np.exp(log_w - total))
        return True

    def reset_weights(self) -> None:
        """Set every weight back to the baseline W0."""
        for particle in self._particles:
            particle.weight = particle.base_weight

    def replace_with_clones(self, indices: Sequence[int]) -> None:
        """Replace the ensemble with clones of the selected particles."""
        if len(indices) != self._size:
            raise InvariantViolation(
                f"Resampling selected {len(indices)} particles for an ensemble of {self._size}"
            )
        self._particles = [self._particles[i].clone() for i in indices]

    def map_index(self) -> int:
        """Index of the maximum-weight particle (first one on ties)."""
        return int(np.argmax(self.weights))

    def map_particle(self) -> Particle:
        return self._particles[self.map_index()]

    def check_invariants(self, normalized: bool = True) -> None:
        """
        Verify ensemble size and weight validity.

        Raises:
            InvariantViolation: On size drift, negative/non-finite weights, or
                (when normalized is True) weights not summing to one
        """
        if self._disposed:
            raise InvariantViolation("Ensemble has been disposed")
        if len(self._particles) != self._size:
            raise InvariantViolation(
                f"Ensemble size drifted from {self._size} to {len(self._particles)}"
            )
        weights = self.weights
        if not np.all(np.isfinite(weights)):
            raise InvariantViolation(f"Non-finite particle weights: {weights}")
        if np.any(weights < 0):
            raise InvariantViolation(f"Negative particle weights: {weights}")
        if normalized and abs(np.sum(weights) - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise InvariantViolation(f"Particle weights sum to {np.sum(weights)}, expected 1")

    def dispose(self) -> None:
        """Release all particles."""
        self._particles = []
        self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed
