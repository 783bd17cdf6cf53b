import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scan_localization.fusion import PoseSystem, OdomSystem, odom_process_noise
from scan_localization.geometry import quaternion_from_rotvec, rotate_vector

GRAVITY = 9.80665


def pose_state(position=(0, 0, 0), velocity=(0, 0, 0), quaternion=(1, 0, 0, 0),
               acc_bias=(0, 0, 0), gyro_bias=(0, 0, 0)):
    return np.concatenate([position, velocity, quaternion, acc_bias, gyro_bias]).astype(float)


class TestPoseSystem:
    """Test the 16-D strapdown inertial process model"""

    def test_dimensions(self):
        """Test declared state, control and measurement sizes"""
        system = PoseSystem()
        assert (system.state_dim, system.control_dim, system.measurement_dim) == (16, 6, 7)

    def test_stationary_vehicle_stays_at_rest(self):
        """Test a level IMU measuring only gravity produces no motion"""
        system = PoseSystem(dt=0.1)
        state = pose_state(position=(1, 2, 3))
        control = np.array([0.0, 0.0, GRAVITY, 0.0, 0.0, 0.0])

        next_state = system.f(state, control)

        np.testing.assert_allclose(next_state, state, atol=1e-12)

    def test_constant_velocity_integration(self):
        """Test position advances by v·dt"""
        system = PoseSystem(dt=0.1)
        state = pose_state(velocity=(1.0, -2.0, 0.5))
        control = np.array([0.0, 0.0, GRAVITY, 0.0, 0.0, 0.0])

        next_state = system.f(state, control)

        np.testing.assert_allclose(next_state[0:3], [0.1, -0.2, 0.05], atol=1e-12)
        np.testing.assert_allclose(next_state[3:6], [1.0, -2.0, 0.5], atol=1e-12)

    def test_gyro_integration(self):
        """Test yaw rate rotates the orientation by the small-angle quaternion"""
        system = PoseSystem(dt=0.1)
        control = np.array([0.0, 0.0, GRAVITY, 0.0, 0.0, 1.0])

        q = system.f(pose_state(), control)[6:10]

        expected = np.array([1.0, 0.0, 0.0, 0.05]) / np.linalg.norm([1.0, 0.0, 0.0, 0.05])
        np.testing.assert_allclose(q, expected, atol=1e-12)
        assert np.linalg.norm(q) == pytest.approx(1.0)

    def test_gyro_bias_compensated(self):
        """Test a gyro reading equal to the bias leaves orientation unchanged"""
        system = PoseSystem(dt=0.1)
        state = pose_state(gyro_bias=(0.01, -0.02, 0.03))
        control = np.array([0.0, 0.0, GRAVITY, 0.01, -0.02, 0.03])

        np.testing.assert_allclose(system.f(state, control)[6:10], [1, 0, 0, 0], atol=1e-12)

    def test_acc_bias_compensated(self):
        """Test accelerometer bias is removed before integration"""
        system = PoseSystem(dt=0.1)
        state = pose_state(acc_bias=(0.2, 0.0, -0.1))
        control = np.array([0.2, 0.0, GRAVITY - 0.1, 0.0, 0.0, 0.0])

        np.testing.assert_allclose(system.f(state, control)[3:6], [0, 0, 0], atol=1e-12)

    def test_body_acceleration_rotated_to_world(self):
        """Test forward acceleration of a vehicle facing +y accelerates along +y"""
        system = PoseSystem(dt=0.1)
        q = quaternion_from_rotvec([0.0, 0.0, np.pi / 2])
        state = pose_state(quaternion=q)
        control = np.array([1.0, 0.0, GRAVITY, 0.0, 0.0, 0.0])

        np.testing.assert_allclose(system.f(state, control)[3:6], [0.0, 0.1, 0.0], atol=1e-12)

    def test_biases_are_constant(self):
        """Test bias entries pass through unchanged"""
        system = PoseSystem(dt=0.5)
        state = pose_state(acc_bias=(0.1, 0.2, 0.3), gyro_bias=(0.01, 0.02, 0.03))
        next_state = system.f(state, np.array([0.3, 0.1, 9.0, 0.2, 0.1, -0.3]))
        np.testing.assert_allclose(next_state[10:16], state[10:16])

    def test_measurement_normalizes_quaternion(self):
        """Test h returns position and the unit quaternion"""
        system = PoseSystem()
        state = pose_state(position=(1, 2, 3), quaternion=(2, 0, 0, 0))

        np.testing.assert_allclose(system.h(state), [1, 2, 3, 1, 0, 0, 0])


class TestOdomSystem:
    """Test the 7-D relative-motion process model"""

    def test_translation_in_body_frame(self):
        """Test forward motion of a vehicle facing +y moves along +y"""
        system = OdomSystem()
        q = quaternion_from_rotvec([0.0, 0.0, np.pi / 2])
        state = np.concatenate([[1.0, 1.0, 0.0], q])
        control = np.array([1.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0])

        next_state = system.f(state, control)

        np.testing.assert_allclose(next_state[0:3], [1.0, 2.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(next_state[3:7], q, atol=1e-12)

    def test_rotation_composition(self):
        """Test orientation composes with the relative rotation"""
        system = OdomSystem()
        q1 = quaternion_from_rotvec([0.0, 0.0, 0.3])
        dq = quaternion_from_rotvec([0.0, 0.0, 0.2])
        state = np.concatenate([np.zeros(3), q1])

        next_state = system.f(state, np.concatenate([np.zeros(3), dq]))

        np.testing.assert_allclose(next_state[3:7], quaternion_from_rotvec([0.0, 0.0, 0.5]),
                                   atol=1e-12)

    def test_measurement(self):
        """Test h returns position and normalized quaternion"""
        system = OdomSystem()
        state = np.array([1.0, 2.0, 3.0, 0.0, 0.0, 0.0, 3.0])
        np.testing.assert_allclose(system.h(state), [1, 2, 3, 0, 0, 0, 1])


class TestOdomProcessNoise:
    """Test motion-magnitude-adaptive odometry process noise"""

    def test_structure(self):
        """Test diagonal blocks follow translation norm and rotation magnitude"""
        q = quaternion_from_rotvec([0.0, 0.0, 0.4])
        Q = odom_process_noise(np.array([3.0, 4.0, 0.0]), q, floor=1e-3)

        np.testing.assert_allclose(np.diag(Q)[0:3], 5.001)
        np.testing.assert_allclose(np.diag(Q)[3:7], 1.0 - q[0] + 1e-3)
        np.testing.assert_allclose(Q - np.diag(np.diag(Q)), 0.0)

    def test_zero_motion_gives_floor(self):
        """Test a null increment only injects the floor"""
        Q = odom_process_noise(np.zeros(3), np.array([1.0, 0.0, 0.0, 0.0]))
        np.testing.assert_allclose(Q, np.eye(7) * 1e-3)

    def test_sign_of_w_ignored(self):
        """Test q and −q yield the same rotation noise"""
        q = quaternion_from_rotvec([0.2, 0.0, 0.0])
        np.testing.assert_allclose(odom_process_noise(np.zeros(3), q),
                                   odom_process_noise(np.zeros(3), -q))

    def test_rotate_vector_consistency(self):
        """Test rotated translation used by the model matches rotate_vector"""
        q = quaternion_from_rotvec([0.1, 0.2, 0.3])
        state = np.concatenate([np.zeros(3), q])
        control = np.array([0.5, -0.5, 1.0, 1.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(OdomSystem().f(state, control)[0:3],
                                   rotate_vector(q, control[0:3]), atol=1e-12)
