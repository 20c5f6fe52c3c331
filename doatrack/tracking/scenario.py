"""
Synthetic direction-of-arrival scenarios.

Generates per-frame batches of noisy unit direction vectors, as a DoA
estimator would deliver them, for sources moving on the unit sphere plus
optional uniformly distributed clutter.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..constants import DEG_TO_RAD


def unit_vector(azimuth_deg: float, elevation_deg: float = 0.0) -> np.ndarray:
    """Unit direction vector for an azimuth/elevation pair in degrees."""
    az = azimuth_deg * DEG_TO_RAD
    el = elevation_deg * DEG_TO_RAD
    return np.array([np.cos(az) * np.cos(el), np.sin(az) * np.cos(el), np.sin(el)])


def to_azimuth_elevation(xyz: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Azimuth and elevation (degrees) of one or more direction vectors."""
    xyz = np.atleast_2d(xyz)
    azimuth = np.degrees(np.arctan2(xyz[:, 1], xyz[:, 0]))
    elevation = np.degrees(np.arctan2(xyz[:, 2], np.hypot(xyz[:, 0], xyz[:, 1])))
    return azimuth, elevation


def perturb_direction(direction: np.ndarray, noise_sd_deg: float,
                      rng: np.random.Generator) -> np.ndarray:
    """Rotate a direction by a random angular error and renormalise."""
    noisy = direction + rng.normal(0.0, noise_sd_deg * DEG_TO_RAD, 3)
    return noisy / np.linalg.norm(noisy)


@dataclass
class SourceTrajectory:
    """
    A source moving at a constant angular rate.

    Attributes:
        azimuth_deg: Initial azimuth in degrees
        elevation_deg: Initial elevation in degrees
        azimuth_rate: Azimuth rate in degrees per second
        elevation_rate: Elevation rate in degrees per second
        start_frame: First frame in which the source is active
        end_frame: Frame after the last active one (None for always)
        detection_probability: Probability of a detection in an active frame
    """
    azimuth_deg: float
    elevation_deg: float = 0.0
    azimuth_rate: float = 0.0
    elevation_rate: float = 0.0
    start_frame: int = 0
    end_frame: Optional[int] = None
    detection_probability: float = 1.0

    def is_active(self, frame: int) -> bool:
        return frame >= self.start_frame and (self.end_frame is None or frame < self.end_frame)

    def direction(self, frame: int, dt: float) -> np.ndarray:
        t = (frame - self.start_frame) * dt
        return unit_vector(self.azimuth_deg + self.azimuth_rate * t,
                           self.elevation_deg + self.elevation_rate * t)


def generate_observations(sources: Sequence[SourceTrajectory], n_frames: int, dt: float,
                          noise_sd_deg: float = 5.0, clutter_rate: float = 0.0,
                          rng: Optional[np.random.Generator] = None
                          ) -> Tuple[List[np.ndarray], List[np.ndarray]]:
    """
    Generate noisy observation batches.

    Args:
        sources: Source trajectories
        n_frames: Number of frames
        dt: Frame interval in seconds
        noise_sd_deg: Angular noise standard deviation of each detection
        clutter_rate: Mean number of clutter detections per frame (Poisson)
        rng: Random generator

    Returns:
        Tuple of (observations, truths): per frame an (n, 3) array of
        observed directions and a (m, 3) array of true active directions
    """
    rng = rng if rng is not None else np.random.default_rng()
    observations = []
    truths = []

    for frame in range(n_frames):
        detections = []
        true_dirs = []
        for source in sources:
            if not source.is_active(frame):
                continue
            direction = source.direction(frame, dt)
            true_dirs.append(direction)
            if rng.random() < source.detection_probability:
                detections.append(perturb_direction(direction, noise_sd_deg, rng))

        for _ in range(rng.poisson(clutter_rate) if clutter_rate > 0 else 0):
            clutter = rng.normal(size=3)
            detections.append(clutter / np.linalg.norm(clutter))

        order = rng.permutation(len(detections))
        observations.append(np.array([detections[i] for i in order]).reshape(-1, 3))
        truths.append(np.array(true_dirs).reshape(-1, 3))

    return observations, truths


def create_sample_scenario(n_frames: int = 300, dt: float = 0.0116,
                           rng: Optional[np.random.Generator] = None):
    """Two sources, one static and one sweeping in azimuth, with light clutter."""
    sources = [
        SourceTrajectory(azimuth_deg=-60.0, elevation_deg=10.0, detection_probability=0.9),
        SourceTrajectory(azimuth_deg=30.0, azimuth_rate=20.0, start_frame=50,
                         detection_probability=0.9),
    ]
    return generate_observations(sources, n_frames, dt, noise_sd_deg=5.0,
                                 clutter_rate=0.1, rng=rng)
