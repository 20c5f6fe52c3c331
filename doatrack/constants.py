"""
Limits and Default Values for the DoA Tracker

This module contains the hard limits, state layout and default prior values
used throughout the particle filtering tracker.
"""

import numpy as np
from dataclasses import dataclass


# ============================================================================
# STATE LAYOUT
# ============================================================================

# [x, y, z, vx, vy, vz]
STATE_DIM = 6

# Observations are Cartesian points (unit DoA vectors) [x, y, z]
MEASUREMENT_DIM = 3

DEG_TO_RAD = np.pi / 180.0


# ============================================================================
# TRACKER LIMITS
# ============================================================================

@dataclass
class TrackerLimits:
    """Hard limits for tracker parameters"""

    # Ensemble size
    MIN_PARTICLES = 1
    MAX_PARTICLES = 100

    # Simultaneously tracked targets per particle
    MIN_ACTIVE_TARGETS = 1
    MAX_ACTIVE_TARGETS = 24

    # Angular noise parameters (degrees)
    MAX_NOISE_DEG = 180.0

    # Frame interval (seconds)
    MAX_DT = 10.0

    # Association history ring buffer
    MAX_HISTORY_LENGTH = 10000


MAX_PARTICLES = TrackerLimits.MAX_PARTICLES


# ============================================================================
# DEFAULT CONFIGURATION
# ============================================================================

@dataclass
class TrackerDefaults:
    """Default tracker configuration values"""

    N_PARTICLES = 20
    MEAS_NOISE_SD_DEG = 20.0
    NOISE_SPEC_DEN_DEG = 1.0

    # 512-sample hop at 44.1 kHz
    DT = 0.0116

    MAX_N_ACTIVE_TARGETS = 4

    # Association priors
    NOISE_LIKELIHOOD = 0.2
    CLUTTER_PRIOR = 0.1
    BIRTH_PRIOR = 0.2

    # Death hypothesis
    DEATH_LIKELIHOOD = 0.2
    DEATH_FRAMES = 40

    # Duplicate target suppression (chord distance on the unit sphere)
    FORCE_KILL_TARGETS = True
    FORCE_KILL_DISTANCE = 0.2

    # Resampling is triggered when Neff < RESAMPLE_RATIO * Np
    RESAMPLE_RATIO = 0.25

    HISTORY_LENGTH = 64

    ASSOCIATION_MODE = "sample"


ASSOCIATION_MODES = ("sample", "map")


def default_birth_mean() -> np.ndarray:
    """Prior mean of a newborn target (origin, at rest)."""
    return np.zeros(STATE_DIM)


def default_birth_covariance() -> np.ndarray:
    """Prior covariance of a newborn target.

    Position variance of 1 covers the whole unit sphere; the velocity
    variance is kept small since DoA sources move slowly between frames.
    """
    return np.diag([1.0, 1.0, 1.0, 0.1, 0.1, 0.1])
