"""
Particle filter multi-target tracker for direction-of-arrival streams.

Tracker3D converts per-frame batches of 3-D direction observations (unit
vectors supplied by a DoA estimator) into a set of target positions with
persistent identities. Each observation is treated as a point in 3-D
Cartesian space, so distances are chord lengths rather than great-circle
angles; for the noise levels of DoA estimators the two are close.

Per frame:

1. predict every target of every particle for the elapsed time ticks,
2. associate each observation across the ensemble (targets / birth / clutter),
3. resample when the effective sample size drops below Np/4,
4. apply the death hypothesis and publish the MAP particle's targets.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
import threading
import logging

import numpy as np
import numpy.typing as npt
from scipy.optimize import linear_sum_assignment

from ..config_loader import TrackerConfig
from ..constants import MEASUREMENT_DIM
from ..validators import InvariantViolation, TrackerBusyError
from .association import AssociationEngine
from .kalman_filters import kf_predict
from .motion_models import build_models
from .resampling import Resampler, effective_sample_size
from .tracker_base import Particle, ParticleEnsemble

logger = logging.getLogger(__name__)


@dataclass
class TrackerOutput:
    """
    Published result of one frame.

    Attributes:
        positions: Target positions (count x 3)
        ids: Target identities (count,)
        count: Number of published targets
        time: Tracker time tick of the frame
        resampled: Whether the ensemble was resampled during the frame
    """
    positions: npt.NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 3)))
    ids: npt.NDArray[np.int64] = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    count: int = 0
    time: int = 0
    resampled: bool = False

    def as_dict(self) -> dict:
        """Target id -> position mapping."""
        return {int(i): p.copy() for i, p in zip(self.ids, self.positions)}


class OutputLabeler:
    """
    Assigns published identities to the targets of the MAP particle.

    Particles number their targets independently, so the same source can
    carry a different id in each particle and the MAP particle changes from
    frame to frame. Published ids are instead carried over by matching the
    new positions against recently published ones (Hungarian assignment on
    chord distance). A published id is remembered for `retention` ticks
    after it was last seen; unmatched targets get fresh ids.
    """

    def __init__(self, gate: float, retention: int):
        self.gate = gate
        self.retention = retention
        self.next_id = 1
        self._tracks: Dict[int, Tuple[np.ndarray, int]] = {}

    def label(self, positions: np.ndarray, time: int) -> np.ndarray:
        self._tracks = {
            track_id: (position, last_seen)
            for track_id, (position, last_seen) in self._tracks.items()
            if time - last_seen <= self.retention
        }

        ids = np.zeros(len(positions), dtype=np.int64)
        matched = np.zeros(len(positions), dtype=bool)
        known = list(self._tracks)

        if known and len(positions):
            previous = np.array([self._tracks[track_id][0] for track_id in known])
            cost = np.linalg.norm(positions[:, None, :] - previous[None, :, :], axis=2)
            rows, cols = linear_sum_assignment(cost)
            for row, col in zip(rows, cols):
                if cost[row, col] < self.gate:
                    ids[row] = known[col]
                    matched[row] = True

        for row in np.flatnonzero(~matched):
            ids[row] = self.next_id
            self.next_id += 1

        for track_id, position in zip(ids, positions):
            self._tracks[int(track_id)] = (position.copy(), time)
        return ids


class Tracker3D:
    """
    RBMCDA tracker: an owned ensemble of particles, each holding its own
    Kalman-filtered targets.

    step() must not run concurrently on the same instance; a second caller
    gets TrackerBusyError instead of blocking. destroy() refuses to run
    while a step is in progress.
    """

    def __init__(self, config: Optional[TrackerConfig] = None):
        """
        Create a tracker.

        Args:
            config: Tracker configuration (defaults when None)

        Raises:
            ConfigurationError: If the configuration is invalid, including
                n_particles > MAX_PARTICLES and multi_active=True
        """
        self.config = config if config is not None else TrackerConfig()
        result = self.config.validate(strict=True)
        for message in result.warnings:
            logger.warning(message)

        self.dynamic_model, self.measurement_model = build_models(
            self.config.dt, self.config.noise_spec_den_deg, self.config.meas_noise_sd_deg
        )
        self.A = self.dynamic_model.A
        self.Q = self.dynamic_model.Q

        self.rng = np.random.default_rng(self.config.seed)
        self.ensemble = ParticleEnsemble.create(self.config.n_particles, self.config.history_length)
        self.engine = AssociationEngine(self.config, self.measurement_model, self.rng)
        self.resampler = Resampler()
        self.labeler = OutputLabeler(self.config.force_kill_distance, self.config.death_frames)

        self.time = 0
        self._lock = threading.Lock()
        self._destroyed = False

        logger.info(f"Created tracker with {self.config.n_particles} particles, dt={self.config.dt} s")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def n_particles(self) -> int:
        return len(self.ensemble)

    @property
    def weights(self) -> np.ndarray:
        self._check_alive()
        return self.ensemble.weights

    @property
    def effective_sample_size(self) -> float:
        self._check_alive()
        return effective_sample_size(self.ensemble.weights)

    @property
    def map_particle(self) -> Particle:
        self._check_alive()
        return self.ensemble.map_particle()

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _check_alive(self) -> None:
        if self._destroyed:
            raise TrackerBusyError("Tracker has been destroyed")

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def predict(self, n_ticks: int = 1) -> None:
        """Predict every target of every particle n_ticks frames ahead."""
        for _ in range(n_ticks):
            for particle in self.ensemble:
                for target in particle.targets:
                    target.mean, target.covariance = kf_predict(
                        target.mean, target.covariance, self.A, self.Q
                    )

    def step(self, observations: Optional[npt.ArrayLike] = None,
             elapsed_ticks: int = 1) -> TrackerOutput:
        """
        Process one frame of observations.

        Args:
            observations: Array-like of shape (n, 3) with one direction
                vector per detected source; None or empty for a silent frame
            elapsed_ticks: Frames elapsed since the previous call (> 1 to
                catch up after skipped frames)

        Returns:
            TrackerOutput with the targets of the MAP particle

        Raises:
            TrackerBusyError: If another step is running or the tracker was destroyed
            ValueError: If observations do not have shape (n, 3)
            InvariantViolation: If the ensemble is found in an impossible state
        """
        obs = self._as_observations(observations)
        if elapsed_ticks < 1:
            raise ValueError(f"elapsed_ticks must be at least 1, got {elapsed_ticks}")

        if not self._lock.acquire(blocking=False):
            raise TrackerBusyError("Tracker step already in progress")
        try:
            if self._destroyed:
                raise TrackerBusyError("Tracker has been destroyed")
            return self._step(obs, elapsed_ticks)
        finally:
            self._lock.release()

    def _step(self, obs: np.ndarray, elapsed_ticks: int) -> TrackerOutput:
        self.time += elapsed_ticks
        pending_ticks = elapsed_ticks
        resampled = False

        for particle in self.ensemble:
            self.engine.begin_frame(particle)

        for z in obs:
            # Targets are propagated once per elapsed tick, before the first observation
            self.predict(pending_ticks)
            pending_ticks = 0

            ok = self.engine.associate(self.ensemble, z, self.time)
            if self.resampler.maybe_resample(self.ensemble, self.rng, collapsed=not ok):
                resampled = True
                logger.debug(f"Resampled at t={self.time}")

            self.ensemble.check_invariants(normalized=True)

        # Silent frame: prediction only
        self.predict(pending_ticks)

        for particle in self.ensemble:
            for target_id in self.engine.end_frame(particle, self.time):
                logger.debug(f"Target {target_id} died at t={self.time}")

        if len(self.ensemble) != self.config.n_particles:
            raise InvariantViolation(
                f"Ensemble size drifted to {len(self.ensemble)}, expected {self.config.n_particles}"
            )

        return self._publish(resampled)

    def _publish(self, resampled: bool) -> TrackerOutput:
        best = self.ensemble.map_particle()
        if best.n_targets == 0:
            return TrackerOutput(time=self.time, resampled=resampled)

        positions = np.array([t.position.copy() for t in best.targets])
        ids = self.labeler.label(positions, self.time)
        return TrackerOutput(positions=positions, ids=ids, count=len(ids),
                             time=self.time, resampled=resampled)

    @staticmethod
    def _as_observations(observations: Optional[npt.ArrayLike]) -> np.ndarray:
        if observations is None:
            return np.zeros((0, MEASUREMENT_DIM))
        obs = np.asarray(observations, dtype=np.float64)
        if obs.size == 0:
            return np.zeros((0, MEASUREMENT_DIM))
        if obs.ndim == 1:
            obs = obs.reshape(1, -1)
        if obs.ndim != 2 or obs.shape[1] != MEASUREMENT_DIM:
            raise ValueError(f"Observations must have shape (n, {MEASUREMENT_DIM}), got {obs.shape}")
        if not np.all(np.isfinite(obs)):
            raise ValueError("Observations must be finite")
        return obs

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def destroy(self) -> None:
        """
        Release the ensemble.

        Raises:
            TrackerBusyError: If a step is in progress
        """
        if not self._lock.acquire(blocking=False):
            raise TrackerBusyError("Cannot destroy tracker while a step is in progress")
        try:
            if self._destroyed:
                return
            self.ensemble.dispose()
            self._destroyed = True
            logger.info("Destroyed tracker")
        finally:
            self._lock.release()

    def __enter__(self) -> "Tracker3D":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()


def create_tracker(config: Optional[TrackerConfig] = None, **overrides) -> Tracker3D:
    """
    Create a tracker, optionally overriding configuration fields.

    Example:
        tracker = create_tracker(n_particles=100, dt=0.02, seed=1)
    """
    config = config if config is not None else TrackerConfig()
    if overrides:
        config = config.replace(**overrides)
    return Tracker3D(config)
