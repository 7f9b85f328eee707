"""
Tests for calibration modules.

Test Coverage:
- Intrinsics: K matrix, meta-data decoding, unit-depth back-projection
- Box corners: half-extent layout
- Projection: known pose → expected 2D box, clamping to the image
- Edge cases: short meta data, malformed pose vectors
"""

import numpy as np
import pytest


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def simple_intrinsics():
    """64x64 camera with principal point at the image center."""
    from houghpose.calibration.intrinsics import CameraIntrinsics

    return CameraIntrinsics(
        fx=100.0, fy=100.0,
        cx=32.0, cy=32.0,
        width=64, height=64,
    )


@pytest.fixture
def cube_corners():
    """Corners of a cube with half-extent 0.1."""
    from houghpose.calibration.projection import get_box_corners_3d

    return get_box_corners_3d([0.1, 0.1, 0.1])


# =============================================================================
# Test CameraIntrinsics
# =============================================================================

class TestCameraIntrinsics:
    """Tests for CameraIntrinsics class."""

    def test_intrinsic_matrix_construction(self, simple_intrinsics):
        """Test intrinsic matrix K has correct structure."""
        K = simple_intrinsics.K

        assert K.shape == (3, 3)
        assert K[0, 0] == 100.0  # fx
        assert K[1, 1] == 100.0  # fy
        assert K[0, 2] == 32.0   # cx
        assert K[1, 2] == 32.0   # cy
        assert K[2, 2] == 1.0    # homogeneous
        assert K[0, 1] == 0.0    # no skew

    def test_from_meta_data_reads_row_major_matrix(self):
        """fx, fy, px, py come from slots 0, 4, 2, 5."""
        from houghpose.calibration.intrinsics import CameraIntrinsics

        meta = np.zeros(48)
        meta[0], meta[2], meta[4], meta[5] = 500.0, 320.0, 510.0, 240.0

        intrinsics = CameraIntrinsics.from_meta_data(meta, width=640, height=480)

        assert intrinsics.fx == 500.0
        assert intrinsics.fy == 510.0
        assert intrinsics.cx == 320.0
        assert intrinsics.cy == 240.0
        assert (intrinsics.width, intrinsics.height) == (640, 480)

    def test_from_meta_data_accepts_nested_layout(self, simple_intrinsics):
        """(1, 1, M) meta blocks are flattened."""
        from houghpose.calibration.intrinsics import CameraIntrinsics

        meta = simple_intrinsics.to_meta_data().reshape(1, 1, -1)
        decoded = CameraIntrinsics.from_meta_data(meta, 64, 64)

        assert np.allclose(decoded.K, simple_intrinsics.K)

    def test_from_meta_data_too_short(self):
        """Fewer than nine values cannot hold the matrix."""
        from houghpose.calibration.intrinsics import CameraIntrinsics

        with pytest.raises(ValueError, match="at least 9"):
            CameraIntrinsics.from_meta_data(np.zeros(8), 64, 64)

    def test_to_meta_data_size(self, simple_intrinsics):
        """Meta row has the requested size and zero padding."""
        meta = simple_intrinsics.to_meta_data(size=16)

        assert meta.shape == (16,)
        assert meta.dtype == np.float32
        assert np.all(meta[9:] == 0)


# =============================================================================
# Test Back-Projection
# =============================================================================

class TestBackProjection:
    """Unit-depth back-projection and box clipping."""

    def test_backproject_ray(self, simple_intrinsics):
        """Pixel maps onto the Z = 1 plane."""
        x, y = simple_intrinsics.backproject_ray(42.0, 22.0)

        assert np.isclose(x, 0.1)
        assert np.isclose(y, -0.1)

    def test_clip_box(self, simple_intrinsics):
        """Box coordinates are clamped to [0, W] x [0, H]."""
        clipped = simple_intrinsics.clip_box([-5.0, 10.0, 70.0, 80.0])
        assert np.allclose(clipped, [0.0, 10.0, 64.0, 64.0])


# =============================================================================
# Test 3D Box Projection
# =============================================================================

class TestBoxProjection:
    """Tests for 3D box to 2D box projection."""

    def test_box_corners_use_half_extents(self):
        """Corners lie at ±extent along each axis."""
        from houghpose.calibration.projection import get_box_corners_3d

        corners = get_box_corners_3d([0.1, 0.2, 0.3])

        assert corners.shape == (8, 3)
        assert np.allclose(corners.min(axis=0), [-0.1, -0.2, -0.3])
        assert np.allclose(corners.max(axis=0), [0.1, 0.2, 0.3])
        assert len({tuple(c) for c in corners}) == 8

    def test_split_pose_vector(self):
        """Pose splits into rotation and translation."""
        from houghpose.calibration.projection import split_pose_vector

        rvec, tvec = split_pose_vector(np.arange(6.0))

        assert np.allclose(rvec, [0, 1, 2])
        assert np.allclose(tvec, [3, 4, 5])

    def test_split_pose_vector_wrong_size(self):
        """Poses must have six values."""
        from houghpose.calibration.projection import split_pose_vector

        with pytest.raises(ValueError):
            split_pose_vector(np.zeros(7))

    def test_project_centered_cube(self, simple_intrinsics, cube_corners):
        """Cube on the optical axis projects symmetrically around (cx, cy)."""
        from houghpose.calibration.projection import project_box_to_2d

        box = project_box_to_2d(cube_corners, np.zeros(3), np.array([0.0, 0.0, 1.0]), simple_intrinsics)

        # Near face at depth 0.9 sets the extent: 100 * 0.1 / 0.9
        half = 100.0 * 0.1 / 0.9
        assert np.allclose(box, [32 - half, 32 - half, 32 + half, 32 + half])

    def test_project_depth_scaling(self, simple_intrinsics, cube_corners):
        """Moving the cube away shrinks its box."""
        from houghpose.calibration.projection import project_pose_box

        near = project_pose_box(np.array([0, 0, 0, 0, 0, 1.0]), cube_corners, simple_intrinsics)
        far = project_pose_box(np.array([0, 0, 0, 0, 0, 2.0]), cube_corners, simple_intrinsics)

        assert (far[2] - far[0]) < (near[2] - near[0])

    def test_project_box_clamped(self, simple_intrinsics, cube_corners):
        """Boxes leaving the image are clamped to its border."""
        from houghpose.calibration.projection import project_pose_box

        box = project_pose_box(
            np.array([0, 0, 0, -0.3, 0.0, 1.0]), cube_corners, simple_intrinsics
        )

        assert box[0] == 0.0
        assert 0.0 <= box[2] <= 64.0
        assert 0.0 <= box[1] <= box[3] <= 64.0

    def test_project_box_outside_image_has_zero_area(self, simple_intrinsics, cube_corners):
        """A box entirely left of the image collapses onto the border."""
        from houghpose.calibration.projection import project_pose_box

        box = project_pose_box(
            np.array([0, 0, 0, -2.0, 0.0, 1.0]), cube_corners, simple_intrinsics
        )

        assert box[0] == box[2] == 0.0
