import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scan_localization.registration import Registration, IterativeClosestPoint, align_svd
from scan_localization.geometry import (
    make_transform, invert_transform, transform_points, quaternion_from_rotvec
)


@pytest.fixture
def target_cloud():
    rng = np.random.default_rng(42)
    return rng.uniform(-5.0, 5.0, (300, 3))


class TestAlignSVD:
    """Test closed-form rigid alignment of matched pairs"""

    def test_recovers_known_transform(self, target_cloud):
        """Test exact correspondences give the exact transform"""
        T = make_transform([0.5, -1.0, 2.0], quaternion_from_rotvec([0.3, -0.2, 0.8]))
        source = transform_points(invert_transform(T), target_cloud)

        np.testing.assert_allclose(align_svd(source, target_cloud), T, atol=1e-9)

    def test_result_is_proper_rotation(self):
        """Test reflection correction keeps det(R) = +1 for planar input"""
        rng = np.random.default_rng(0)
        source = np.column_stack([rng.normal(size=(20, 2)), np.zeros(20)])
        target = source * np.array([1.0, 1.0, -1.0])

        T = align_svd(source, target)

        assert np.linalg.det(T[0:3, 0:3]) == pytest.approx(1.0)

    def test_rejects_bad_input(self):
        """Test mismatched shapes and too few pairs raise ValueError"""
        with pytest.raises(ValueError):
            align_svd(np.zeros((5, 3)), np.zeros((4, 3)))
        with pytest.raises(ValueError):
            align_svd(np.zeros((2, 3)), np.zeros((2, 3)))


class TestIterativeClosestPoint:
    """Test point-to-point ICP"""

    def test_implements_registration(self):
        """Test ICP satisfies the registration interface"""
        assert isinstance(IterativeClosestPoint(), Registration)

    def test_converges_to_known_pose(self, target_cloud):
        """Test ICP recovers a small offset from an identity initial guess"""
        T_true = make_transform([0.1, -0.05, 0.05], quaternion_from_rotvec([0.0, 0.0, 0.03]))
        source = transform_points(invert_transform(T_true), target_cloud)

        icp = IterativeClosestPoint(max_iterations=50, max_correspondence_distance=1.0,
                                    transformation_epsilon=1e-8, rotation_epsilon=1e-8)
        icp.set_input_target(target_cloud)
        icp.set_input_source(source)
        aligned = icp.align(np.eye(4))

        assert icp.has_converged()
        np.testing.assert_allclose(icp.get_final_transformation(), T_true, atol=1e-6)
        np.testing.assert_allclose(aligned, target_cloud, atol=1e-6)
        assert icp.get_fitness_score() < 1e-10
        assert 1 <= icp.iterations <= 50

    def test_initial_guess_is_used(self, target_cloud):
        """Test a correct initial guess converges immediately"""
        T_true = make_transform([3.0, 1.0, -2.0], quaternion_from_rotvec([0.2, 0.1, 1.0]))
        source = transform_points(invert_transform(T_true), target_cloud)

        icp = IterativeClosestPoint(transformation_epsilon=1e-8, rotation_epsilon=1e-8)
        icp.set_input_target(target_cloud)
        icp.set_input_source(source)
        icp.align(T_true)

        assert icp.has_converged()
        np.testing.assert_allclose(icp.get_final_transformation(), T_true, atol=1e-8)

    def test_no_correspondences(self, target_cloud):
        """Test a far-off guess stops unconverged and keeps the guess"""
        icp = IterativeClosestPoint(max_correspondence_distance=0.5)
        icp.set_input_target(target_cloud)
        icp.set_input_source(target_cloud.copy())

        guess = make_transform([100.0, 0.0, 0.0], np.array([1.0, 0.0, 0.0, 0.0]))
        icp.align(guess)

        assert not icp.has_converged()
        np.testing.assert_allclose(icp.get_final_transformation(), guess)
        assert icp.get_fitness_score() == float('inf')

    def test_align_requires_clouds(self, target_cloud):
        """Test align before setting source and target raises RuntimeError"""
        icp = IterativeClosestPoint()
        with pytest.raises(RuntimeError):
            icp.align(np.eye(4))

        icp.set_input_target(target_cloud)
        with pytest.raises(RuntimeError):
            icp.align(np.eye(4))

    def test_input_validation(self):
        """Test invalid clouds and parameters raise ValueError"""
        icp = IterativeClosestPoint()
        with pytest.raises(ValueError):
            icp.set_input_target(np.zeros((10, 2)))
        with pytest.raises(ValueError):
            icp.set_input_source(np.zeros((0, 3)))
        with pytest.raises(ValueError):
            IterativeClosestPoint(max_iterations=0)
        with pytest.raises(ValueError):
            IterativeClosestPoint(max_correspondence_distance=-1.0)
        with pytest.raises(ValueError):
            IterativeClosestPoint(min_correspondences=2)
