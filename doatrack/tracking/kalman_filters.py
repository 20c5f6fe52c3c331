"""
Kalman filter used as the per-target filter of the particle tracker.

Each particle marginalises the continuous state of its targets analytically,
so the filter is exposed as pure functions operating on (x, P) pairs that
every particle applies to the targets it owns.

Author: DoATrack Project
"""

import numpy as np
from typing import Tuple

from ..validators import NumericalFailure


def kf_predict(x: np.ndarray, P: np.ndarray, A: np.ndarray,
               Q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Kalman prediction step.

    Args:
        x: State mean
        P: State covariance
        A: State transition matrix
        Q: Process noise covariance

    Returns:
        Predicted (x', P') with x' = A x and P' = A P A' + Q
    """
    x_pred = A @ x
    P_pred = A @ P @ A.T + Q
    return x_pred, P_pred


def gaussian_log_likelihood(y: np.ndarray, S: np.ndarray) -> float:
    """
    Log-density of a zero-mean Gaussian with covariance S evaluated at y.

    Raises:
        NumericalFailure: If S is not positive definite
    """
    if not np.all(np.isfinite(S)):
        raise NumericalFailure("Non-finite innovation covariance")
    try:
        L = np.linalg.cholesky(S)
    except np.linalg.LinAlgError as e:
        raise NumericalFailure("Singular innovation covariance matrix") from e

    alpha = np.linalg.solve(L, y)
    log_det = 2.0 * np.sum(np.log(np.diag(L)))
    return float(-0.5 * (len(y) * np.log(2 * np.pi) + log_det + alpha @ alpha))


def innovation(x: np.ndarray, P: np.ndarray, z: np.ndarray, H: np.ndarray,
               R: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Innovation y = z - H x and its covariance S = H P H' + R"""
    y = z - H @ x
    S = H @ P @ H.T + R
    return y, S


def kf_update(x: np.ndarray, P: np.ndarray, z: np.ndarray, H: np.ndarray,
              R: np.ndarray) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Kalman update step.

    Args:
        x: Predicted state mean
        P: Predicted state covariance
        z: Measurement vector
        H: Measurement matrix
        R: Measurement noise covariance

    Returns:
        Tuple of (updated mean, updated covariance, log-likelihood of z
        under N(H x, S))

    Raises:
        NumericalFailure: If the innovation covariance is singular
    """
    y, S = innovation(x, P, z, H, R)
    log_likelihood = gaussian_log_likelihood(y, S)

    K = np.linalg.solve(S, H @ P).T  # P H' S^-1, with S symmetric
    x_new = x + K @ y
    P_new = (np.eye(len(x)) - K @ H) @ P
    P_new = 0.5 * (P_new + P_new.T)

    return x_new, P_new, log_likelihood
