"""
DoATrack: particle filter tracking of direction-of-arrival observations
"""

from .config_loader import TrackerConfig, ConfigLoader
from .constants import MAX_PARTICLES
from .validators import (
    TrackerError,
    ConfigurationError,
    NumericalFailure,
    InvariantViolation,
    TrackerBusyError,
)
from .tracking.particle_tracker import Tracker3D, TrackerOutput, create_tracker

__version__ = "1.0.0"

__all__ = [
    "TrackerConfig",
    "ConfigLoader",
    "MAX_PARTICLES",
    "TrackerError",
    "ConfigurationError",
    "NumericalFailure",
    "InvariantViolation",
    "TrackerBusyError",
    "Tracker3D",
    "TrackerOutput",
    "create_tracker",
]
