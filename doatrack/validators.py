"""
Input Validation Module for the DoA Tracker

This module defines the tracker's exception taxonomy and validates tracker
configurations before any model or particle is built.
"""

import numpy as np
from typing import Any, List
from dataclasses import dataclass

from .constants import (
    TrackerLimits, STATE_DIM, ASSOCIATION_MODES
)


# ============================================================================
# CUSTOM EXCEPTIONS
# ============================================================================

class TrackerError(Exception):
    """Base exception for all tracker errors"""
    pass

class ValidationError(TrackerError):
    """Base exception for validation errors"""
    pass

class ConfigurationError(ValidationError):
    """Raised when a tracker configuration cannot be used"""
    pass

class ParameterOutOfRangeError(ConfigurationError):
    """Raised when a parameter is outside acceptable range"""
    def __init__(self, param_name: str, value: float, min_val: float, max_val: float):
        self.param_name = param_name
        self.value = value
        self.min_val = min_val
        self.max_val = max_val
        super().__init__(
            f"{param_name} = {value} is outside valid range [{min_val}, {max_val}]"
        )

class NumericalFailure(TrackerError):
    """Raised when a filter update cannot be computed (e.g. singular innovation covariance)"""
    pass

class InvariantViolation(TrackerError):
    """Raised when the particle ensemble is found in an impossible state"""
    pass

class TrackerBusyError(TrackerError):
    """Raised when a tracker is used concurrently or after it was destroyed"""
    pass


# ============================================================================
# VALIDATION RESULTS
# ============================================================================

@dataclass
class ValidationResult:
    """Container for validation results"""
    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def add_error(self, message: str):
        """Add an error message"""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        """Add a warning message"""
        self.warnings.append(message)

    def merge(self, other: "ValidationResult"):
        """Fold another result into this one"""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.is_valid:
            self.is_valid = False

    def raise_if_invalid(self):
        """Raise exception if validation failed"""
        if not self.is_valid:
            raise ConfigurationError("\n".join(self.errors))


def _new_result() -> ValidationResult:
    return ValidationResult(is_valid=True, errors=[], warnings=[])


# ============================================================================
# PARAMETER VALIDATORS
# ============================================================================

INTEGER_FIELDS = ("n_particles", "max_n_active_targets", "death_frames", "history_length")
REAL_FIELDS = (
    "meas_noise_sd_deg", "noise_spec_den_deg", "dt", "noise_likelihood", "clutter_prior",
    "birth_prior", "death_likelihood", "force_kill_distance",
)
BOOLEAN_FIELDS = ("multi_active", "force_kill_targets")


class TrackerConfigValidator:
    """Validates tracker configuration parameters"""

    @staticmethod
    def validate_n_particles(n_particles: int, strict: bool = True) -> ValidationResult:
        """
        Validate the ensemble size

        Args:
            n_particles: Number of particles (Np)
            strict: If True, raise exception on failure

        Returns:
            ValidationResult
        """
        result = _new_result()

        if isinstance(n_particles, bool) or not isinstance(n_particles, (int, np.integer)):
            result.add_error(f"Number of particles must be an integer, got {n_particles!r}")
        elif n_particles < TrackerLimits.MIN_PARTICLES:
            result.add_error(f"Number of particles must be positive, got {n_particles}")
        elif n_particles > TrackerLimits.MAX_PARTICLES:
            result.add_error(
                f"Number of particles {n_particles} exceeds maximum {TrackerLimits.MAX_PARTICLES}"
            )
        elif n_particles < 10:
            result.add_warning(f"Only {n_particles} particles; association will be poorly marginalised")

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_noise_deg(name: str, value: float, strict: bool = True) -> ValidationResult:
        """Validate an angular noise parameter given in degrees"""
        result = _new_result()

        if not np.isfinite(value):
            result.add_error(f"{name} must be finite, got {value}")
        elif value < 0:
            result.add_error(f"{name} cannot be negative, got {value} deg")
        elif value > TrackerLimits.MAX_NOISE_DEG:
            result.add_error(
                f"{name} = {value} deg exceeds maximum {TrackerLimits.MAX_NOISE_DEG} deg"
            )

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_dt(dt: float, strict: bool = True) -> ValidationResult:
        """Validate frame interval"""
        result = _new_result()

        if not np.isfinite(dt) or dt <= 0:
            result.add_error(f"Frame interval dt must be positive, got {dt} s")
        elif dt > TrackerLimits.MAX_DT:
            result.add_warning(f"Frame interval {dt} s is unusually long")

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_probability(name: str, value: float, strict: bool = True) -> ValidationResult:
        """Validate a prior probability"""
        result = _new_result()

        if not np.isfinite(value) or value < 0.0 or value > 1.0:
            result.add_error(f"{name} must lie in [0, 1], got {value}")

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_priors(clutter_prior: float, birth_prior: float,
                        strict: bool = True) -> ValidationResult:
        """Validate the association priors jointly"""
        result = _new_result()
        result.merge(TrackerConfigValidator.validate_probability("clutter_prior", clutter_prior, strict=False))
        result.merge(TrackerConfigValidator.validate_probability("birth_prior", birth_prior, strict=False))

        if result.is_valid and clutter_prior + birth_prior >= 1.0:
            result.add_error(
                f"clutter_prior + birth_prior must be < 1 to leave mass for existing targets, "
                f"got {clutter_prior + birth_prior}"
            )

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_birth_prior_state(m0: np.ndarray, p0: np.ndarray,
                                   strict: bool = True) -> ValidationResult:
        """Validate newborn target mean and covariance"""
        result = _new_result()
        m0 = np.asarray(m0, dtype=np.float64)
        p0 = np.asarray(p0, dtype=np.float64)

        if m0.shape != (STATE_DIM,):
            result.add_error(f"m0 must have shape ({STATE_DIM},), got {m0.shape}")
        if p0.shape != (STATE_DIM, STATE_DIM):
            result.add_error(f"p0 must have shape ({STATE_DIM}, {STATE_DIM}), got {p0.shape}")
        elif not np.allclose(p0, p0.T):
            result.add_error("p0 must be symmetric")
        elif np.min(np.linalg.eigvalsh(p0)) < 0:
            result.add_error("p0 must be positive semi-definite")

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_types(config: Any, strict: bool = True) -> ValidationResult:
        """
        Check that every scalar field has a usable type

        Values read from YAML can arrive as strings or nulls; these must be
        caught before any range comparison.
        """
        result = _new_result()

        for name in INTEGER_FIELDS:
            value = getattr(config, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                result.add_error(f"{name} must be an integer, got {value!r}")

        for name in REAL_FIELDS:
            value = getattr(config, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
                result.add_error(f"{name} must be a number, got {value!r}")

        for name in BOOLEAN_FIELDS:
            value = getattr(config, name)
            if not isinstance(value, (bool, np.bool_)):
                result.add_error(f"{name} must be true or false, got {value!r}")

        if not isinstance(config.association_mode, str):
            result.add_error(f"association_mode must be a string, got {config.association_mode!r}")

        seed = config.seed
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, (int, np.integer))):
            result.add_error(f"seed must be an integer or null, got {seed!r}")

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result

    @staticmethod
    def validate_config(config: Any, strict: bool = True) -> ValidationResult:
        """
        Validate a complete tracker configuration

        Args:
            config: TrackerConfig instance
            strict: If True, raise ConfigurationError on the first invalid result

        Returns:
            ValidationResult combining every field check
        """
        v = TrackerConfigValidator

        # Range checks below assume numeric values
        result = v.validate_types(config, strict=strict)
        if not result.is_valid:
            return result

        # Ensemble size beyond the hard limit gets the more specific error
        if strict and isinstance(config.n_particles, (int, np.integer)):
            check_range("n_particles", config.n_particles,
                        TrackerLimits.MIN_PARTICLES, TrackerLimits.MAX_PARTICLES)

        result.merge(v.validate_n_particles(config.n_particles, strict=False))
        result.merge(v.validate_noise_deg("meas_noise_sd_deg", config.meas_noise_sd_deg, strict=False))
        result.merge(v.validate_noise_deg("noise_spec_den_deg", config.noise_spec_den_deg, strict=False))
        result.merge(v.validate_dt(config.dt, strict=False))
        result.merge(v.validate_priors(config.clutter_prior, config.birth_prior, strict=False))

        if config.multi_active:
            result.add_error("multi_active tracking (multiple simultaneously active sources) is not supported")

        if not (TrackerLimits.MIN_ACTIVE_TARGETS <= config.max_n_active_targets
                <= TrackerLimits.MAX_ACTIVE_TARGETS):
            result.add_error(
                f"max_n_active_targets = {config.max_n_active_targets} is outside valid range "
                f"[{TrackerLimits.MIN_ACTIVE_TARGETS}, {TrackerLimits.MAX_ACTIVE_TARGETS}]"
            )

        if not np.isfinite(config.noise_likelihood) or config.noise_likelihood < 0:
            result.add_error(f"noise_likelihood cannot be negative, got {config.noise_likelihood}")
        if not np.isfinite(config.death_likelihood) or config.death_likelihood < 0:
            result.add_error(f"death_likelihood cannot be negative, got {config.death_likelihood}")
        if config.death_frames < 1:
            result.add_error(f"death_frames must be at least 1, got {config.death_frames}")
        if config.force_kill_distance < 0:
            result.add_error(f"force_kill_distance cannot be negative, got {config.force_kill_distance}")
        if config.association_mode not in ASSOCIATION_MODES:
            result.add_error(
                f"Unknown association_mode '{config.association_mode}', expected one of {ASSOCIATION_MODES}"
            )
        if not (1 <= config.history_length <= TrackerLimits.MAX_HISTORY_LENGTH):
            result.add_error(
                f"history_length = {config.history_length} is outside valid range "
                f"[1, {TrackerLimits.MAX_HISTORY_LENGTH}]"
            )

        result.merge(v.validate_birth_prior_state(config.m0, config.p0, strict=False))

        if strict and not result.is_valid:
            result.raise_if_invalid()

        return result


def check_range(param_name: str, value: float, min_val: float, max_val: float) -> None:
    """Raise ParameterOutOfRangeError if value is outside [min_val, max_val]"""
    if value < min_val or value > max_val:
        raise ParameterOutOfRangeError(param_name, value, min_val, max_val)
