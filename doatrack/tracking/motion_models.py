"""
Motion and measurement models for DoA target tracking

This module builds the discrete-time constant velocity model used by every
target in the tracker. The continuous-time model is discretised exactly over
one frame interval (matrix exponential / Van Loan), and the angular noise
parameters are converted to chord lengths on the unit sphere, since the
tracker works on unit direction vectors embedded in 3-D Cartesian space.

Author: DoATrack Project
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple
from scipy.linalg import expm

from ..constants import STATE_DIM, MEASUREMENT_DIM, DEG_TO_RAD
from ..validators import ConfigurationError


def chord_length(angle_deg: float) -> float:
    """
    Map an angular deviation onto the unit sphere.

    Args:
        angle_deg: Angle in degrees

    Returns:
        1 - cos(angle), the sphere-chord parameterisation used for noise terms
    """
    return 1.0 - np.cos(angle_deg * DEG_TO_RAD)


def lti_disc(F: np.ndarray, L: Optional[np.ndarray], Qc: np.ndarray,
             dt: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Discretise a linear time-invariant model exactly.

    Continuous model: dx/dt = F x + L w, with white noise w of spectral
    density Qc. The discrete transition is A = expm(F dt) and the process
    noise covariance is obtained with the Van Loan block matrix exponential.

    Args:
        F: Continuous feedback matrix (n x n)
        L: Noise effect matrix (n x s); identity when None
        Qc: Noise spectral density (s x s)
        dt: Time step

    Returns:
        Tuple of (A, Q)
    """
    F = np.asarray(F, dtype=np.float64)
    n = F.shape[0]
    if L is None:
        L = np.eye(n)
    L = np.asarray(L, dtype=np.float64)
    Qc = np.asarray(Qc, dtype=np.float64)

    A = expm(F * dt)

    # Van Loan: expm([[F, L Qc L'], [0, -F']] dt) = [[., Phi12], [0, Phi22]]
    # with Q = Phi12 Phi22^-1 (Phi22 = A^-T)
    phi = np.zeros((2 * n, 2 * n))
    phi[:n, :n] = F
    phi[:n, n:] = L @ Qc @ L.T
    phi[n:, n:] = -F.T
    AB = expm(phi * dt) @ np.vstack([np.zeros((n, n)), np.eye(n)])
    Q = np.linalg.solve(AB[n:, :].T, AB[:n, :].T).T

    Q = 0.5 * (Q + Q.T)
    return A, Q


@dataclass
class ModelParameters:
    """Parameters for the constant velocity model"""
    dt: float                          # Time step
    noise_spec_den_deg: float = 1.0    # Process noise spectral density (degrees)


class ConstantVelocityModel:
    """
    Constant Velocity (CV) motion model in 3-D Cartesian coordinates

    State vector: [x, y, z, vx, vy, vz]

    Velocity drives position; white noise enters on the velocity components
    only, with spectral density 1 - cos(noise_spec_den_deg).
    """

    def __init__(self, params: ModelParameters):
        """
        Initialize motion model

        Args:
            params: Model parameters including time step
        """
        if not np.isfinite(params.dt) or params.dt <= 0:
            raise ConfigurationError(f"Frame interval dt must be positive, got {params.dt}")
        if params.noise_spec_den_deg < 0:
            raise ConfigurationError(
                f"Process noise spectral density cannot be negative, got {params.noise_spec_den_deg}"
            )

        self.params = params
        self.dt = params.dt
        self.q = chord_length(params.noise_spec_den_deg)

        self.F_continuous = np.zeros((STATE_DIM, STATE_DIM))
        self.F_continuous[:3, 3:] = np.eye(3)

        self.Qc = np.zeros((STATE_DIM, STATE_DIM))
        self.Qc[3:, 3:] = np.eye(3) * self.q

        self._A, self._Q = lti_disc(self.F_continuous, None, self.Qc, self.dt)

    @property
    def A(self) -> np.ndarray:
        return self._A

    @property
    def Q(self) -> np.ndarray:
        return self._Q


@dataclass
class MeasurementModel:
    """
    Linear position measurement model

    Attributes:
        H: Observation matrix (3 x 6) selecting the position components
        R: Diagonal measurement noise covariance (3 x 3)
    """
    H: np.ndarray
    R: np.ndarray

    @classmethod
    def from_angular_noise(cls, meas_noise_sd_deg: float) -> "MeasurementModel":
        """Build H and R from an angular noise standard deviation in degrees"""
        if meas_noise_sd_deg < 0:
            raise ConfigurationError(
                f"Measurement noise standard deviation cannot be negative, got {meas_noise_sd_deg}"
            )

        H = np.zeros((MEASUREMENT_DIM, STATE_DIM))
        H[:, :3] = np.eye(MEASUREMENT_DIM)

        sd_xyz = chord_length(meas_noise_sd_deg)
        R = np.eye(MEASUREMENT_DIM) * sd_xyz**2
        return cls(H=H, R=R)


def build_models(dt: float, noise_spec_den_deg: float,
                 meas_noise_sd_deg: float) -> Tuple[ConstantVelocityModel, MeasurementModel]:
    """
    Build the dynamic and measurement models used by the tracker.

    Args:
        dt: Frame interval in seconds
        noise_spec_den_deg: Process noise spectral density (degrees)
        meas_noise_sd_deg: Measurement noise standard deviation (degrees)

    Returns:
        Tuple of (dynamic model, measurement model)

    Raises:
        ConfigurationError: If dt <= 0 or a noise parameter is negative
    """
    dynamic = ConstantVelocityModel(ModelParameters(dt=dt, noise_spec_den_deg=noise_spec_den_deg))
    measurement = MeasurementModel.from_angular_noise(meas_noise_sd_deg)
    return dynamic, measurement
