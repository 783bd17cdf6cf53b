import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scan_localization.sensors import IMUSensor, IMUMeasurement, OdometrySensor
from scan_localization.geometry import make_transform, invert_transform, quaternion_from_rotvec

GRAVITY = 9.80665
IDENTITY_Q = np.array([1.0, 0.0, 0.0, 0.0])


class TestIMUSensor:
    """Test IMU measurement generation"""

    def test_imu_initialization(self):
        """Test IMU initializes with proper noise parameters"""
        imu = IMUSensor(accel_noise_std=0.1, gyro_noise_std=0.02, rng=np.random.default_rng(0))

        assert imu.accel_noise_std == 0.1
        assert imu.gyro_noise_std == 0.02
        assert imu.accel_bias.shape == (3,)
        assert imu.gyro_bias.shape == (3,)

    def test_stationary_level_measures_gravity(self):
        """Test a noiseless level IMU at rest reads +g on z"""
        imu = IMUSensor(accel_noise_std=0.0, gyro_noise_std=0.0, bias_drift_rate=0.0)

        measurement = imu.get_measurement(0.0, np.zeros(3), IDENTITY_Q, np.zeros(3), 0.01)

        assert isinstance(measurement, IMUMeasurement)
        np.testing.assert_allclose(measurement.acceleration, [0, 0, GRAVITY], atol=1e-12)
        np.testing.assert_allclose(measurement.angular_velocity, [0, 0, 0])

    def test_specific_force_in_body_frame(self):
        """Test world acceleration is expressed in the rotated body frame"""
        imu = IMUSensor(accel_noise_std=0.0, gyro_noise_std=0.0, bias_drift_rate=0.0)
        q = quaternion_from_rotvec([0.0, 0.0, np.pi / 2])

        measurement = imu.get_measurement(0.0, np.array([1.0, 0.0, 0.0]), q,
                                          np.array([0.0, 0.0, 0.3]), 0.01)

        np.testing.assert_allclose(measurement.acceleration, [0.0, -1.0, GRAVITY], atol=1e-12)
        np.testing.assert_allclose(measurement.angular_velocity, [0.0, 0.0, 0.3])

    def test_imu_bias_drift(self):
        """Test IMU bias drifts over time"""
        imu = IMUSensor(bias_drift_rate=0.1, rng=np.random.default_rng(1))
        initial_accel_bias = imu.accel_bias.copy()
        initial_gyro_bias = imu.gyro_bias.copy()

        for _ in range(100):
            imu.update_bias_drift(0.1)

        assert not np.allclose(imu.accel_bias, initial_accel_bias)
        assert not np.allclose(imu.gyro_bias, initial_gyro_bias)

    def test_reproducible_with_seed(self):
        """Test identical seeds give identical measurements"""
        samples = []
        for _ in range(2):
            imu = IMUSensor(rng=np.random.default_rng(123))
            samples.append(imu.get_measurement(0.0, np.ones(3), IDENTITY_Q, np.ones(3), 0.01))

        np.testing.assert_array_equal(samples[0].acceleration, samples[1].acceleration)
        np.testing.assert_array_equal(samples[0].angular_velocity, samples[1].angular_velocity)

    def test_invalid_parameters(self):
        """Test negative noise parameters and bad inputs raise ValueError"""
        with pytest.raises(ValueError):
            IMUSensor(accel_noise_std=-0.1)
        with pytest.raises(ValueError):
            IMUSensor(bias_drift_rate=-1.0)

        imu = IMUSensor()
        with pytest.raises(ValueError):
            imu.get_measurement(0.0, np.zeros(2), IDENTITY_Q, np.zeros(3), 0.01)
        with pytest.raises(ValueError):
            imu.update_bias_drift(0.0)


class TestOdometrySensor:
    """Test relative-motion odometry"""

    def test_first_measurement_is_none(self):
        """Test no increment is available before a previous pose exists"""
        odometry = OdometrySensor()
        assert odometry.get_measurement(np.eye(4)) is None

    def test_noiseless_relative_transform(self):
        """Test the increment is the previous-frame relative motion"""
        odometry = OdometrySensor(translation_noise_ratio=0.0, rotation_noise_ratio=0.0,
                                  noise_floor=0.0)
        pose_a = make_transform([1.0, 2.0, 0.0], quaternion_from_rotvec([0.0, 0.0, 0.5]))
        pose_b = make_transform([1.5, 2.5, 0.1], quaternion_from_rotvec([0.0, 0.0, 0.7]))

        odometry.get_measurement(pose_a)
        delta = odometry.get_measurement(pose_b)

        np.testing.assert_allclose(delta, invert_transform(pose_a) @ pose_b, atol=1e-12)
        np.testing.assert_allclose(pose_a @ delta, pose_b, atol=1e-12)

    def test_reset(self):
        """Test reset forgets the previous pose"""
        odometry = OdometrySensor()
        odometry.get_measurement(np.eye(4))
        odometry.reset()
        assert odometry.get_measurement(np.eye(4)) is None

    def test_noise_grows_with_motion(self):
        """Test larger increments carry larger translation errors"""
        rng = np.random.default_rng(9)
        odometry = OdometrySensor(translation_noise_ratio=0.05, noise_floor=1e-4, rng=rng)

        def mean_error(step):
            errors = []
            for _ in range(200):
                odometry.reset()
                odometry.get_measurement(np.eye(4))
                delta = odometry.get_measurement(make_transform([step, 0.0, 0.0], IDENTITY_Q))
                errors.append(np.linalg.norm(delta[0:3, 3] - [step, 0.0, 0.0]))
            return np.mean(errors)

        assert mean_error(1.0) > 10 * mean_error(0.01)

    def test_rotation_stays_orthonormal(self):
        """Test rotation noise keeps a proper rotation matrix"""
        odometry = OdometrySensor(rotation_noise_ratio=0.1, rng=np.random.default_rng(2))
        odometry.get_measurement(np.eye(4))
        delta = odometry.get_measurement(make_transform([0.1, 0.0, 0.0],
                                                        quaternion_from_rotvec([0.0, 0.0, 0.2])))

        R = delta[0:3, 0:3]
        np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
        assert np.linalg.det(R) == pytest.approx(1.0)

    def test_invalid_parameters(self):
        """Test negative noise parameters raise ValueError"""
        with pytest.raises(ValueError):
            OdometrySensor(translation_noise_ratio=-0.1)
