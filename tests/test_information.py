import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scan_localization.fusion import PoseBelief, extract_pose_belief, fuse_pose_beliefs
from scan_localization.fusion.information import POSE_INDICES
from scan_localization.geometry import quaternion_from_rotvec


def random_spd(rng, size=7, scale=0.1):
    A = rng.normal(0, scale, (size, size))
    return A @ A.T + np.eye(size) * 0.01


class TestPoseBelief:
    """Test the pose belief container"""

    def test_validation(self):
        """Test wrongly shaped mean or covariance is rejected"""
        with pytest.raises(ValueError):
            PoseBelief(np.zeros(6), np.eye(7))
        with pytest.raises(ValueError):
            PoseBelief(np.zeros(7), np.eye(6))

    def test_quaternion_normalized_and_matrix(self):
        """Test the quaternion is normalized on read and the matrix matches"""
        belief = PoseBelief(np.array([1.0, 2.0, 3.0, 2.0, 0.0, 0.0, 0.0]), np.eye(7))

        np.testing.assert_allclose(belief.quaternion, [1, 0, 0, 0])
        T = belief.to_matrix()
        np.testing.assert_allclose(T[0:3, 3], [1, 2, 3])
        np.testing.assert_allclose(T[0:3, 0:3], np.eye(3), atol=1e-12)


class TestExtractPoseBelief:
    """Test restriction of the 16-D belief to the pose sub-space"""

    def test_indices(self):
        """Test position and orientation entries with their covariance block"""
        mean = np.arange(16, dtype=float)
        cov = np.arange(256, dtype=float).reshape(16, 16)

        belief = extract_pose_belief(mean, cov)

        np.testing.assert_array_equal(POSE_INDICES, [0, 1, 2, 6, 7, 8, 9])
        np.testing.assert_array_equal(belief.mean, [0, 1, 2, 6, 7, 8, 9])
        np.testing.assert_array_equal(belief.covariance[0], cov[0, [0, 1, 2, 6, 7, 8, 9]])
        np.testing.assert_array_equal(belief.covariance[:, 3], cov[[0, 1, 2, 6, 7, 8, 9], 6])


class TestFusePoseBeliefs:
    """Test information-form fusion"""

    def test_equal_beliefs(self):
        """Test fusing identical beliefs keeps the mean and halves the covariance"""
        rng = np.random.default_rng(3)
        mean = np.concatenate([[1.0, -2.0, 0.5], quaternion_from_rotvec([0.1, 0.2, 0.3])])
        cov = random_spd(rng)

        fused = fuse_pose_beliefs(PoseBelief(mean, cov), PoseBelief(mean, cov))

        np.testing.assert_allclose(fused.mean, mean, atol=1e-9)
        np.testing.assert_allclose(fused.covariance, cov / 2.0, atol=1e-9)

    def test_scalar_weighting(self):
        """Test isotropic covariances weight means by inverse variance"""
        a = PoseBelief(np.array([0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0]), np.eye(7) * 1.0)
        b = PoseBelief(np.array([4.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0]), np.eye(7) * 3.0)

        fused = fuse_pose_beliefs(a, b)

        # weights 1/1 and 1/3 -> 0.75 and 0.25
        np.testing.assert_allclose(fused.position, [1.0, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(fused.covariance, np.eye(7) * 0.75, atol=1e-12)

    def test_symmetric_in_arguments(self):
        """Test argument order does not change the result"""
        rng = np.random.default_rng(11)
        a = PoseBelief(rng.normal(size=7), random_spd(rng))
        b = PoseBelief(rng.normal(size=7), random_spd(rng))

        ab = fuse_pose_beliefs(a, b)
        ba = fuse_pose_beliefs(b, a)

        np.testing.assert_allclose(ab.mean, ba.mean, atol=1e-9)
        np.testing.assert_allclose(ab.covariance, ba.covariance, atol=1e-9)

    def test_fused_covariance_not_larger(self):
        """Test the fused covariance is bounded by each input covariance"""
        rng = np.random.default_rng(5)
        a = PoseBelief(np.zeros(7), random_spd(rng))
        b = PoseBelief(np.zeros(7), random_spd(rng))

        fused = fuse_pose_beliefs(a, b)

        assert np.min(np.linalg.eigvalsh(a.covariance - fused.covariance)) > -1e-12
        assert np.min(np.linalg.eigvalsh(b.covariance - fused.covariance)) > -1e-12

    def test_singular_covariance_propagates(self):
        """Test a singular covariance raises LinAlgError"""
        a = PoseBelief(np.zeros(7), np.zeros((7, 7)))
        b = PoseBelief(np.zeros(7), np.eye(7))

        with pytest.raises(np.linalg.LinAlgError):
            fuse_pose_beliefs(a, b)
