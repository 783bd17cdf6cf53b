"""
Unscented Kalman Filter Implementation for Pose State Estimation

This module provides the nonlinear filtering engine used by the pose
estimator. The filter is generic: the process and measurement models are
supplied by a StateSystem object (see systems.py), so the same engine drives
both the 16-dimensional IMU filter and the 7-dimensional odometry filter.

Mathematical Foundation:
The UKF propagates a deterministic set of sigma points through the true
nonlinear functions instead of linearizing them:

State Evolution:
    x(k+1) = f(x(k), u(k)) + w(k)
    z(k) = h(x(k)) + v(k)

Where:
    - w(k) ~ N(0, Q) is process noise
    - v(k) ~ N(0, R) is measurement noise

Sigma Points (n-dimensional mean x̂, covariance P):
    χ₀ = x̂
    χᵢ = x̂ + Lᵢ,  χᵢ₊ₙ = x̂ − Lᵢ,  L = chol((n + λ)P)

Weights:
    W₀ = λ / (n + λ),  Wᵢ = 1 / (2(n + λ))

UKF Recursion:
    Prediction:
        x̂⁻ = Σ Wᵢ f(χᵢ, u)
        P⁻ = Σ Wᵢ (f(χᵢ) − x̂⁻)(f(χᵢ) − x̂⁻)ᵀ + Q

    Update (state augmented with the measurement noise block):
        ẑ = Σ Wᵢ (h(χᵢ) + νᵢ)
        S = Σ Wᵢ (zᵢ − ẑ)(zᵢ − ẑ)ᵀ
        C = Σ Wᵢ (χᵢ − x̂)(zᵢ − ẑ)ᵀ
        K = C S⁻¹
        x̂⁺ = x̂⁻ + K(z − ẑ)
        P⁺ = P⁻ − K S Kᵀ

Authors: Scan Localization Team
License: MIT
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Dict, Any
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class FilterDiagnostics:
    """Container for filter diagnostic information."""
    covariance_trace: float
    condition_number: float
    prediction_count: int
    correction_count: int


def ensure_positive_finite(matrix: np.ndarray, min_eigenvalue: float = 1e-9) -> np.ndarray:
    """
    Enforce positive definiteness through eigenvalue clamping.

    Mathematical Approach:
        P = UΛUᵀ where Λ = diag(λ₁, ..., λₙ)
        P_corrected = U max(Λ, ε·I) Uᵀ

    Args:
        matrix: Symmetric covariance matrix
        min_eigenvalue: Minimum allowable eigenvalue ε

    Returns:
        Corrected (symmetric) copy of the matrix
    """
    matrix = 0.5 * (matrix + matrix.T)
    eigenvals, eigenvecs = np.linalg.eigh(matrix)

    min_eval = np.min(eigenvals)
    if min_eval >= min_eigenvalue:
        return matrix

    eigenvals = np.maximum(eigenvals, min_eigenvalue)
    corrected = eigenvecs @ np.diag(eigenvals) @ eigenvecs.T
    logger.debug(f"Clamped eigenvalue from {min_eval:.2e} to {min_eigenvalue:.2e}")
    return 0.5 * (corrected + corrected.T)


class StateFilter(ABC):
    """
    Minimal interface of a recursive state filter.

    A state filter owns a Gaussian belief (mean, cov) over a fixed-layout
    state vector, advances it with a control input and corrects it with an
    observation. The pose estimator only depends on this interface.
    """

    mean: np.ndarray
    cov: np.ndarray

    @abstractmethod
    def set_process_noise_cov(self, process_noise: np.ndarray) -> None:
        """Replace the process noise covariance Q used by predict()."""

    @abstractmethod
    def predict(self, control: np.ndarray) -> None:
        """Advance the belief with a control vector."""

    @abstractmethod
    def correct(self, measurement: np.ndarray) -> None:
        """Update the belief with an observation vector."""


class UnscentedKalmanFilter(StateFilter):
    """
    Unscented Kalman Filter over an arbitrary StateSystem.

    The measurement update uses the augmented formulation: the state is
    extended with the measurement noise so that additive noise enters through
    the sigma points rather than being added to S afterwards.

    Attributes:
        system: Process/measurement model with f(state, control) and h(state)
        state_dim: Dimension N of the state vector
        input_dim: Dimension M of the control vector
        measurement_dim: Dimension K of the observation vector
        process_noise: Process noise covariance Q (N×N)
        measurement_noise: Measurement noise covariance R (K×K)
        mean: Current state estimate (N,)
        cov: Current state covariance (N×N)
    """

    def __init__(self, system, state_dim: int, input_dim: int, measurement_dim: int,
                 process_noise: np.ndarray, measurement_noise: np.ndarray,
                 mean: np.ndarray, cov: np.ndarray,
                 lambda_: float = 1.0, min_eigenvalue: float = 1e-9):
        """
        Initialize the Unscented Kalman Filter.

        Args:
            system: Object providing f(state, control) and h(state)
            state_dim: State dimension N
            input_dim: Control dimension M
            measurement_dim: Measurement dimension K
            process_noise: Process noise covariance (N×N)
            measurement_noise: Measurement noise covariance (K×K)
            mean: Initial state estimate (N,)
            cov: Initial state covariance (N×N)
            lambda_: Sigma point scaling parameter λ
            min_eigenvalue: Eigenvalue floor applied before sigma point generation

        Raises:
            ValueError: If dimensions are inconsistent
        """
        if state_dim <= 0 or input_dim <= 0 or measurement_dim <= 0:
            raise ValueError("Filter dimensions must be positive")
        if lambda_ <= 0:
            raise ValueError(f"Sigma point parameter lambda must be positive, got {lambda_}")

        self.system = system
        self.state_dim = state_dim
        self.input_dim = input_dim
        self.measurement_dim = measurement_dim
        self.lambda_ = lambda_
        self.min_eigenvalue = min_eigenvalue

        self.process_noise = self._checked_matrix(process_noise, state_dim, "Process noise")
        self.measurement_noise = self._checked_matrix(measurement_noise, measurement_dim,
                                                      "Measurement noise")
        self.cov = self._checked_matrix(cov, state_dim, "Initial covariance")

        self.mean = np.asarray(mean, dtype=float).copy()
        if self.mean.shape != (state_dim,):
            raise ValueError(f"Initial mean must have {state_dim} elements, got {self.mean.shape}")

        self.weights = self._compute_weights(state_dim)
        self.ext_weights = self._compute_weights(state_dim + measurement_dim)

        self._prediction_count = 0
        self._correction_count = 0

        logger.info(f"Unscented Kalman Filter initialized (N={state_dim}, M={input_dim}, "
                    f"K={measurement_dim})")

    @staticmethod
    def _checked_matrix(matrix: np.ndarray, size: int, name: str) -> np.ndarray:
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (size, size):
            raise ValueError(f"{name} shape must be ({size}, {size}), got {matrix.shape}")
        return matrix.copy()

    def _compute_weights(self, n: int) -> np.ndarray:
        weights = np.full(2 * n + 1, 1.0 / (2.0 * (n + self.lambda_)))
        weights[0] = self.lambda_ / (n + self.lambda_)
        return weights

    def _compute_sigma_points(self, mean: np.ndarray, cov: np.ndarray) -> np.ndarray:
        """
        Generate 2n+1 sigma points around the mean.

        Uses Cholesky decomposition of (n + λ)P; when the factorization fails
        the symmetric eigen-decomposition square root is used instead.

        Returns:
            Sigma points matrix (2n+1, n), one sigma point per row
        """
        n = len(mean)
        scaled = (n + self.lambda_) * cov
        try:
            L = np.linalg.cholesky(scaled)
        except np.linalg.LinAlgError:
            logger.debug("Cholesky decomposition failed, using eigendecomposition")
            eigenvals, eigenvecs = np.linalg.eigh(0.5 * (scaled + scaled.T))
            L = eigenvecs @ np.diag(np.sqrt(np.maximum(eigenvals, 0.0)))

        sigma_points = np.empty((2 * n + 1, n))
        sigma_points[0] = mean
        sigma_points[1::2] = mean + L.T
        sigma_points[2::2] = mean - L.T
        return sigma_points

    def set_process_noise_cov(self, process_noise: np.ndarray) -> None:
        self.process_noise = self._checked_matrix(process_noise, self.state_dim, "Process noise")

    def set_measurement_noise_cov(self, measurement_noise: np.ndarray) -> None:
        self.measurement_noise = self._checked_matrix(measurement_noise, self.measurement_dim,
                                                      "Measurement noise")

    def predict(self, control: np.ndarray) -> None:
        """
        Prediction step of the Unscented Kalman Filter.

        Args:
            control: Control vector u (M,)

        Raises:
            ValueError: If the control vector has the wrong size
        """
        control = np.asarray(control, dtype=float)
        if control.shape != (self.input_dim,):
            raise ValueError(f"Control vector must have {self.input_dim} elements, "
                             f"got {control.shape}")

        self.cov = ensure_positive_finite(self.cov, self.min_eigenvalue)
        sigma_points = self._compute_sigma_points(self.mean, self.cov)

        propagated = np.array([self.system.f(sp, control) for sp in sigma_points])

        mean_pred = self.weights @ propagated
        diff = propagated - mean_pred
        cov_pred = (self.weights[:, np.newaxis] * diff).T @ diff + self.process_noise

        self.mean = mean_pred
        self.cov = 0.5 * (cov_pred + cov_pred.T)
        self._prediction_count += 1

    def correct(self, measurement: np.ndarray) -> None:
        """
        Measurement update of the Unscented Kalman Filter.

        Args:
            measurement: Observation vector z (K,)

        Raises:
            ValueError: If the measurement has the wrong size
            numpy.linalg.LinAlgError: If the innovation covariance is singular
        """
        measurement = np.asarray(measurement, dtype=float)
        if measurement.shape != (self.measurement_dim,):
            raise ValueError(f"Measurement must have {self.measurement_dim} elements, "
                             f"got {measurement.shape}")

        N = self.state_dim
        K = self.measurement_dim

        # extended state space which includes the measurement noise
        ext_mean_pred = np.zeros(N + K)
        ext_mean_pred[:N] = self.mean
        ext_cov_pred = np.zeros((N + K, N + K))
        ext_cov_pred[:N, :N] = self.cov
        ext_cov_pred[N:, N:] = self.measurement_noise
        ext_cov_pred = ensure_positive_finite(ext_cov_pred, self.min_eigenvalue)

        ext_sigma_points = self._compute_sigma_points(ext_mean_pred, ext_cov_pred)

        expected_measurements = np.array([
            self.system.h(sp[:N]) + sp[N:] for sp in ext_sigma_points
        ])

        w = self.ext_weights
        expected_measurement_mean = w @ expected_measurements
        dz = expected_measurements - expected_measurement_mean
        expected_measurement_cov = (w[:, np.newaxis] * dz).T @ dz

        dx = ext_sigma_points - ext_mean_pred
        cross_cov = (w[:, np.newaxis] * dx).T @ dz

        kalman_gain = cross_cov @ np.linalg.inv(expected_measurement_cov)

        ext_mean = ext_mean_pred + kalman_gain @ (measurement - expected_measurement_mean)
        ext_cov = ext_cov_pred - kalman_gain @ expected_measurement_cov @ kalman_gain.T

        self.mean = ext_mean[:N]
        self.cov = 0.5 * (ext_cov[:N, :N] + ext_cov[:N, :N].T)
        self._correction_count += 1

    def get_diagnostics(self) -> FilterDiagnostics:
        """Generate filter diagnostics from the current covariance."""
        try:
            condition_number = float(np.linalg.cond(self.cov))
        except np.linalg.LinAlgError:
            condition_number = float('inf')
        return FilterDiagnostics(
            covariance_trace=float(np.trace(self.cov)),
            condition_number=condition_number,
            prediction_count=self._prediction_count,
            correction_count=self._correction_count
        )

    def get_state_dict(self) -> Dict[str, Any]:
        """Mean, standard deviations and counters as plain Python types."""
        diagnostics = self.get_diagnostics()
        return {
            'mean': self.mean.tolist(),
            'std': np.sqrt(np.maximum(np.diag(self.cov), 0.0)).tolist(),
            'covariance_trace': diagnostics.covariance_trace,
            'condition_number': diagnostics.condition_number,
            'prediction_count': diagnostics.prediction_count,
            'correction_count': diagnostics.correction_count
        }
