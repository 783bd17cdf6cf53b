"""
Scan matching-based pose estimator.

The estimator fuses three asynchronous sensor streams into a 6-DoF pose
relative to a fixed global map:

    IMU samples (high rate)      -> predict()       -> IMU filter (16-D UKF)
    Odometry increments          -> predict_odom()  -> odometry filter (7-D UKF)
    Range scans (low rate)       -> correct()       -> registration + both filters

Correction Sequence:
    1. The initial guess for registration is the IMU filter pose or, once the
       odometry filter exists, the information-form fusion of both poses.
    2. The registration engine aligns the scan to the map.
    3. The resulting absolute pose (sign-aligned quaternion) updates both
       filters, and each filter's prediction error
           E = T_predicted⁻¹ · T_registered
       is kept for diagnostics.

Threading:
    The estimator is single-writer. Every method reads and mutates shared
    filter state without locking; callers driving it from several threads
    must serialize all calls (one lock or one event queue per estimator).
"""

import numpy as np
from typing import Any, Callable, Dict, Optional
import warnings
import logging

from ..fusion.kalman import UnscentedKalmanFilter
from ..fusion.systems import PoseSystem, OdomSystem, odom_process_noise
from ..fusion.information import PoseBelief, extract_pose_belief, fuse_pose_beliefs
from ..geometry.transforms import (
    normalize_quaternion,
    make_transform,
    decompose_transform,
    invert_transform,
    rotation_angle,
)
from ..registration.base import Registration
from .config import EstimatorConfig

logger = logging.getLogger(__name__)

# odometry increments above this translation (m) are reported as suspicious
LARGE_ODOM_STEP = 5.0

CorrectionPolicy = Callable[[np.ndarray, np.ndarray], bool]


class PoseEstimator:
    """
    Dual-UKF pose estimator corrected by scan-to-map registration.

    IMU State Vector (16):
        [px, py, pz, vx, vy, vz, qw, qx, qy, qz, bax, bay, baz, bgx, bgy, bgz]

    Odometry State Vector (7, created on the first predict_odom call):
        [px, py, pz, qw, qx, qy, qz]

    Attributes:
        registration: Scan-to-map registration engine
        config: Noise and timing parameters
        cool_time_duration: Seconds after init_stamp during which IMU
            prediction is suppressed
        init_stamp: Timestamp the estimator was created at
        prev_stamp: Timestamp of the last IMU sample seen (None before the first)
        ukf: IMU-driven filter
        odom_ukf: Odometry-driven filter, None until the first odometry sample
        correction_policy: Optional predicate (initial_guess, final_transform)
            deciding whether a registration result is applied; every result
            is applied when None
    """

    def __init__(self, registration: Registration, stamp: float,
                 position: np.ndarray, orientation: np.ndarray,
                 cool_time_duration: Optional[float] = None,
                 config: Optional[EstimatorConfig] = None,
                 correction_policy: Optional[CorrectionPolicy] = None):
        """
        Initialize the pose estimator.

        Args:
            registration: Registration engine with its target (map) already set
            stamp: Initialization timestamp (seconds)
            position: Initial position [x, y, z]
            orientation: Initial orientation quaternion (w, x, y, z)
            cool_time_duration: Prediction suppression window (seconds);
                defaults to config.cool_time_duration
            config: Estimator parameters, defaults to EstimatorConfig()
            correction_policy: Optional acceptance test for registration results

        Raises:
            ValueError: If the initial pose or cool time is invalid
        """
        self.config = config if config is not None else EstimatorConfig()
        if cool_time_duration is None:
            cool_time_duration = self.config.cool_time_duration
        if cool_time_duration < 0:
            raise ValueError(f"Cool time duration must be non-negative, got {cool_time_duration}")

        position = np.asarray(position, dtype=float)
        if position.shape != (3,):
            raise ValueError(f"Initial position must have 3 elements, got {position.shape}")
        orientation = normalize_quaternion(orientation)

        self.registration = registration
        self.correction_policy = correction_policy
        self.cool_time_duration = float(cool_time_duration)

        self.init_stamp = float(stamp)
        self.prev_stamp: Optional[float] = None
        self._last_correction_stamp: Optional[float] = None

        self.process_noise = self._create_process_noise_matrix()
        measurement_noise = self._create_measurement_noise_matrix()

        mean = np.zeros(16)
        mean[0:3] = position
        mean[6:10] = orientation

        cov = np.eye(16) * self.config.initial_covariance

        system = PoseSystem(gravity=self.config.gravity)
        self.ukf = UnscentedKalmanFilter(system, 16, 6, 7, self.process_noise, measurement_noise,
                                         mean, cov, lambda_=self.config.ukf_lambda,
                                         min_eigenvalue=self.config.min_eigenvalue)
        self.odom_ukf: Optional[UnscentedKalmanFilter] = None

        self._imu_pred_error: Optional[np.ndarray] = None
        self._odom_pred_error: Optional[np.ndarray] = None

        logger.info(f"Pose estimator initialized at t={self.init_stamp:.3f} "
                    f"pos={position.round(3).tolist()} cool_time={self.cool_time_duration:.2f}s")

    def _create_process_noise_matrix(self) -> np.ndarray:
        """
        Per-second process noise of the IMU filter; scaled by dt at every prediction.

        Returns:
            16x16 diagonal process noise matrix
        """
        Q = np.eye(16)
        Q[0:3, 0:3] *= self.config.position_process_noise
        Q[3:6, 3:6] *= self.config.velocity_process_noise
        Q[6:10, 6:10] *= self.config.orientation_process_noise
        Q[10:13, 10:13] *= self.config.bias_process_noise
        Q[13:16, 13:16] *= self.config.bias_process_noise
        return Q

    def _create_measurement_noise_matrix(self) -> np.ndarray:
        R = np.eye(7)
        R[0:3, 0:3] *= self.config.position_measurement_noise
        R[3:7, 3:7] *= self.config.orientation_measurement_noise
        return R

    def predict(self, stamp: float, acc: np.ndarray, gyro: np.ndarray) -> None:
        """
        Propagate the IMU filter with one inertial sample.

        The sample is only recorded (no propagation) during the cool time, on
        the first call, and when the timestamp repeats the previous one.

        Args:
            stamp: Sample timestamp (seconds)
            acc: Linear acceleration [ax, ay, az] (m/s², specific force)
            gyro: Angular velocity [ωx, ωy, ωz] (rad/s)

        Raises:
            ValueError: If acc or gyro do not have 3 elements
        """
        acc = np.asarray(acc, dtype=float)
        gyro = np.asarray(gyro, dtype=float)
        if acc.shape != (3,) or gyro.shape != (3,):
            raise ValueError("Acceleration and angular velocity must have 3 elements each")

        stamp = float(stamp)
        if (stamp - self.init_stamp) < self.cool_time_duration or self.prev_stamp is None \
                or self.prev_stamp == stamp:
            self.prev_stamp = stamp
            return

        dt = stamp - self.prev_stamp
        if dt < 0:
            logger.warning(f"IMU sample out of order (t={stamp:.3f} < {self.prev_stamp:.3f}), skipped")
            return
        self.prev_stamp = stamp

        self.ukf.set_process_noise_cov(self.process_noise * dt)
        self.ukf.system.dt = dt

        control = np.concatenate([acc, gyro])
        self.ukf.predict(control)

        logger.debug(f"IMU prediction at t={stamp:.3f}, dt={dt:.4f}s")

    def _ensure_odom_filter(self) -> None:
        """Create the odometry filter from the current IMU-filter pose if absent."""
        if self.odom_ukf is not None:
            return

        odom_process_noise_init = np.eye(7) * self.config.odom_process_noise
        odom_measurement_noise = np.eye(7) * self.config.odom_measurement_noise

        odom_mean = np.zeros(7)
        odom_mean[0:3] = self.ukf.mean[0:3]
        odom_mean[3:7] = self.ukf.mean[6:10]
        odom_cov = np.eye(7) * self.config.odom_initial_covariance

        self.odom_ukf = UnscentedKalmanFilter(OdomSystem(), 7, 7, 7, odom_process_noise_init,
                                              odom_measurement_noise, odom_mean, odom_cov,
                                              lambda_=self.config.ukf_lambda,
                                              min_eigenvalue=self.config.min_eigenvalue)
        logger.info("Odometry-based estimation started")

    def predict_odom(self, odom_delta: np.ndarray) -> None:
        """
        Propagate the odometry filter with a relative motion.

        Args:
            odom_delta: 4x4 transform of the motion since the previous odometry
                sample, expressed in the previous body frame

        Raises:
            ValueError: If odom_delta is not a 4x4 matrix
        """
        odom_delta = np.asarray(odom_delta, dtype=float)
        if odom_delta.shape != (4, 4):
            raise ValueError(f"Odometry delta must be a 4x4 transform, got {odom_delta.shape}")

        self._ensure_odom_filter()

        translation, quat = decompose_transform(odom_delta)
        step = np.linalg.norm(translation)
        if step > LARGE_ODOM_STEP:
            warnings.warn(f"Large odometry increment detected: {step:.2f} m")

        control = np.concatenate([translation, quat])

        self.odom_ukf.set_process_noise_cov(
            odom_process_noise(translation, quat, self.config.odom_noise_floor))
        self.odom_ukf.predict(control)

        logger.debug(f"Odometry prediction: |dt|={step:.4f}m")

    def _fused_initial_guess(self) -> np.ndarray:
        """Information-form fusion of the IMU and odometry poses as a 4x4 transform."""
        imu_belief = extract_pose_belief(self.ukf.mean, self.ukf.cov)

        odom_mean = self.odom_ukf.mean.copy()
        if np.dot(imu_belief.mean[3:7], odom_mean[3:7]) < 0.0:
            odom_mean[3:7] *= -1.0
        odom_belief = PoseBelief(odom_mean, self.odom_ukf.cov)

        return fuse_pose_beliefs(imu_belief, odom_belief).to_matrix()

    def correct(self, stamp: float, cloud: np.ndarray) -> np.ndarray:
        """
        Correct both filters with the registration of a range scan.

        Args:
            stamp: Scan timestamp (seconds)
            cloud: Scan points in the sensor frame, shape (N, 3)

        Returns:
            The scan aligned to the global map
        """
        stamp = float(stamp)
        if self._last_correction_stamp is not None and stamp < self._last_correction_stamp:
            logger.warning(f"Correction stamp {stamp:.3f} precedes last correction "
                           f"{self._last_correction_stamp:.3f}")
        else:
            self._last_correction_stamp = stamp

        imu_guess = self.pose_matrix
        odom_guess = None
        if self.odom_ukf is None:
            init_guess = imu_guess
        else:
            odom_guess = self.odom_pose_matrix
            init_guess = self._fused_initial_guess()

        self.registration.set_input_source(cloud)
        aligned = self.registration.align(init_guess)
        trans = np.asarray(self.registration.get_final_transformation(), dtype=float)

        if not self.registration.has_converged():
            logger.warning(f"Registration did not converge at t={stamp:.3f}, applying its result")

        if self.correction_policy is not None and not self.correction_policy(init_guess, trans):
            logger.warning(f"Registration result at t={stamp:.3f} rejected by correction policy")
            return aligned

        p, q = decompose_transform(trans)
        if np.dot(self.orientation, q) < 0.0:
            q = -q

        observation = np.concatenate([p, q])

        self.ukf.correct(observation)
        self._imu_pred_error = invert_transform(imu_guess) @ trans

        if self.odom_ukf is not None:
            self.odom_ukf.correct(observation)
            self._odom_pred_error = invert_transform(odom_guess) @ trans

        logger.debug(f"Correction at t={stamp:.3f}: pos={p.round(3).tolist()}")
        return aligned

    # accessors

    @property
    def last_correction_time(self) -> Optional[float]:
        """
        Latest correction timestamp, None before the first.

        A correction stamped earlier than this value is still applied to the
        filters, but its stamp is ignored here so the value never decreases.
        """
        return self._last_correction_stamp

    @property
    def position(self) -> np.ndarray:
        return self.ukf.mean[0:3].copy()

    @property
    def velocity(self) -> np.ndarray:
        return self.ukf.mean[3:6].copy()

    @property
    def orientation(self) -> np.ndarray:
        """Normalized orientation quaternion (w, x, y, z)."""
        return normalize_quaternion(self.ukf.mean[6:10])

    @property
    def pose_matrix(self) -> np.ndarray:
        return make_transform(self.position, self.orientation)

    @property
    def has_odom_estimate(self) -> bool:
        return self.odom_ukf is not None

    def _require_odom(self) -> None:
        if self.odom_ukf is None:
            raise RuntimeError("Odometry-based estimate is not available before the first "
                               "predict_odom() call")

    @property
    def odom_position(self) -> np.ndarray:
        self._require_odom()
        return self.odom_ukf.mean[0:3].copy()

    @property
    def odom_orientation(self) -> np.ndarray:
        self._require_odom()
        return normalize_quaternion(self.odom_ukf.mean[3:7])

    @property
    def odom_pose_matrix(self) -> np.ndarray:
        return make_transform(self.odom_position, self.odom_orientation)

    @property
    def imu_prediction_error(self) -> Optional[np.ndarray]:
        """IMU-filter pose error of the latest correction, None before the first."""
        return None if self._imu_pred_error is None else self._imu_pred_error.copy()

    @property
    def odom_prediction_error(self) -> Optional[np.ndarray]:
        return None if self._odom_pred_error is None else self._odom_pred_error.copy()

    def get_state_dict(self) -> Dict[str, Any]:
        """
        Get estimator state and diagnostics as a dictionary.

        Prediction errors are summarized by their translation norm (m) and
        rotation angle (rad).
        """
        state = {
            'position': self.position.tolist(),
            'velocity': self.velocity.tolist(),
            'orientation': self.orientation.tolist(),
            'last_correction_time': self._last_correction_stamp,
            'has_odom_estimate': self.has_odom_estimate,
            'imu_filter': self.ukf.get_state_dict()
        }
        if self.odom_ukf is not None:
            state['odom_position'] = self.odom_position.tolist()
            state['odom_orientation'] = self.odom_orientation.tolist()
            state['odom_filter'] = self.odom_ukf.get_state_dict()

        for label, error in (('imu', self._imu_pred_error), ('odom', self._odom_pred_error)):
            if error is not None:
                state[f'{label}_prediction_error'] = {
                    'translation': float(np.linalg.norm(error[0:3, 3])),
                    'rotation': rotation_angle(error)
                }
        return state
