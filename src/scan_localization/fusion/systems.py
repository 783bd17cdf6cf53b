"""
Process and measurement models for the pose estimation filters.

Two systems are defined:

PoseSystem (IMU-driven, 16-dimensional state):
    x = [p(3), v(3), q(4), b_a(3), b_g(3)]ᵀ
    u = [a(3), ω(3)]ᵀ   (raw accelerometer and gyroscope readings)

    p(k+1) = p(k) + v(k)·dt
    q(k+1) = q(k) ⊗ δq,  δq = normalize(1, ½(ω − b_g)·dt)
    v(k+1) = v(k) + (R(q)·(a − b_a) − g)·dt
    b(k+1) = b(k)

OdomSystem (relative-motion-driven, 7-dimensional state):
    x = [p(3), q(4)]ᵀ
    u = [Δt(3), Δq(4)]ᵀ  (motion since the previous odometry sample, body frame)

    p(k+1) = p(k) + R(q)·Δt
    q(k+1) = q(k) ⊗ Δq

Both observe the absolute pose:
    z = h(x) = [p, normalize(q)]ᵀ
"""

import numpy as np
from abc import ABC, abstractmethod

from ..geometry.transforms import normalize_quaternion, quaternion_multiply, rotate_vector


class StateSystem(ABC):
    """Process model f and measurement model h of a state filter."""

    state_dim: int
    control_dim: int
    measurement_dim: int

    @abstractmethod
    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        """State transition."""

    @abstractmethod
    def h(self, state: np.ndarray) -> np.ndarray:
        """Expected observation for a state."""


class PoseSystem(StateSystem):
    """
    Strapdown inertial model over position, velocity, orientation and biases.

    Attributes:
        dt: Integration interval in seconds, set before each prediction
        gravity: Gravity vector in the world frame (z up)
    """

    state_dim = 16
    control_dim = 6
    measurement_dim = 7

    def __init__(self, dt: float = 0.01, gravity: float = 9.80665):
        self.dt = dt
        self.gravity = np.array([0.0, 0.0, gravity])

    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        dt = self.dt
        pt = state[0:3]
        vt = state[3:6]
        qt = normalize_quaternion(state[6:10])
        acc_bias = state[10:13]
        gyro_bias = state[13:16]

        next_state = np.empty(16)

        # position
        next_state[0:3] = pt + vt * dt

        # orientation
        gyro = control[3:6] - gyro_bias
        dq = normalize_quaternion(np.array([1.0, *(gyro * dt / 2.0)]))
        next_state[6:10] = normalize_quaternion(quaternion_multiply(qt, dq))

        # velocity
        acc = control[0:3] - acc_bias
        next_state[3:6] = vt + (rotate_vector(qt, acc) - self.gravity) * dt

        next_state[10:16] = state[10:16]
        return next_state

    def h(self, state: np.ndarray) -> np.ndarray:
        observation = np.empty(7)
        observation[0:3] = state[0:3]
        observation[3:7] = normalize_quaternion(state[6:10])
        return observation


class OdomSystem(StateSystem):
    """Pose composition model driven by relative-motion increments."""

    state_dim = 7
    control_dim = 7
    measurement_dim = 7

    def f(self, state: np.ndarray, control: np.ndarray) -> np.ndarray:
        pt = state[0:3]
        qt = normalize_quaternion(state[3:7])

        delta_trans = control[0:3]
        delta_quat = normalize_quaternion(control[3:7])

        next_state = np.empty(7)
        next_state[0:3] = pt + rotate_vector(qt, delta_trans)
        next_state[3:7] = normalize_quaternion(quaternion_multiply(qt, delta_quat))
        return next_state

    def h(self, state: np.ndarray) -> np.ndarray:
        observation = np.empty(7)
        observation[0:3] = state[0:3]
        observation[3:7] = normalize_quaternion(state[3:7])
        return observation


def odom_process_noise(translation: np.ndarray, quaternion: np.ndarray,
                       floor: float = 1e-3) -> np.ndarray:
    """
    Build the motion-magnitude-adaptive process noise of the odometry filter.

    Larger relative motions inject proportionally larger uncertainty:
        Q_pos = I₃·(‖Δt‖ + floor)
        Q_rot = I₄·(1 − |Δq_w| + floor)

    Args:
        translation: Relative translation Δt (3,)
        quaternion: Relative rotation Δq (w, x, y, z)
        floor: Minimum noise added to both blocks

    Returns:
        7x7 process noise covariance
    """
    process_noise = np.eye(7)
    process_noise[0:3, 0:3] = np.eye(3) * (np.linalg.norm(translation) + floor)
    process_noise[3:7, 3:7] = np.eye(4) * (1.0 - abs(quaternion[0]) + floor)
    return process_noise
