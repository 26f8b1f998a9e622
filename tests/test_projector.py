"""Tests for disparity reprojection and point validity."""

import numpy as np
import pytest

from conftest import BASELINE, CX, CY, FX, make_camera_info, make_disparity
from src_stereo_proc.calibration import StereoCameraModel
from src_stereo_proc.core.messages import INVALID_DISPARITY
from src_stereo_proc.pointcloud import DisparityProjector, PointBuffer


def expected_point(u, v, d):
    z = FX * BASELINE / d
    return np.array([(u - CX) * z / FX, (v - CY) * z / FX, z], dtype=np.float32)


class TestDisparityProjector:

    def test_projects_known_disparities(self, stereo_model):
        disparity = make_disparity([[5.0, 10.0], [2.0, 5.0]])
        points = DisparityProjector().project(disparity, stereo_model)

        assert points.shape == (2, 2)
        assert points.valid.all()
        for v in range(2):
            for u in range(2):
                d = disparity.as_array()[v, u]
                np.testing.assert_allclose(points.points[v, u], expected_point(u, v, d), rtol=1e-5)

    def test_validity_is_exact_on_synthetic_grid(self):
        # Sentinel, zero (infinite depth), negative, fractional and ordinary disparities.
        left = make_camera_info(side="left", width=4, height=3)
        right = make_camera_info(side="right", width=4, height=3)
        model = StereoCameraModel.from_camera_info(left, right)

        grid = np.array([
            [INVALID_DISPARITY, 0.0, 4.0, 8.0],
            [0.5, INVALID_DISPARITY, -0.5, 0.0],
            [64.0, 1e-3, INVALID_DISPARITY, 3.0],
        ], dtype=np.float32)
        points = DisparityProjector().project(make_disparity(grid), model)

        finite = np.isfinite(points.points).all(axis=2)
        expected_valid = (grid != np.float32(INVALID_DISPARITY)) & finite
        np.testing.assert_array_equal(points.valid, expected_valid)

        # Every invalid point has the sentinel or a non-finite projection, and vice versa.
        for v, u in zip(*np.nonzero(~points.valid)):
            assert grid[v, u] == INVALID_DISPARITY or not finite[v, u]
        assert not points.valid[0, 1] and not points.valid[1, 3]
        assert points.valid[1, 2]

    def test_sentinel_is_taken_from_message(self, stereo_model):
        disparity = make_disparity([[-7.0, 5.0], [5.0, 5.0]], invalid_value=-7.0)
        points = DisparityProjector().project(disparity, stereo_model)
        assert points.valid.tolist() == [[False, True], [True, True]]

    def test_explicit_sentinel_overrides_message(self, stereo_model):
        disparity = make_disparity([[3.0, 5.0], [5.0, 5.0]])
        points = DisparityProjector().project(disparity, stereo_model, invalid_value=3.0)
        assert points.valid_count == 3

    def test_scratch_buffer_is_reused_when_shape_matches(self, stereo_model):
        scratch = PointBuffer.allocate(2, 2)
        points = DisparityProjector().project(make_disparity([[5.0, 5.0], [5.0, 5.0]]),
                                              stereo_model, scratch=scratch)
        assert points is scratch

    def test_scratch_buffer_is_replaced_when_shape_differs(self, stereo_model):
        scratch = PointBuffer.allocate(3, 3)
        points = DisparityProjector().project(make_disparity([[5.0, 5.0], [5.0, 5.0]]),
                                              stereo_model, scratch=scratch)
        assert points is not scratch
        assert points.shape == (2, 2)
        assert scratch.shape == (3, 3)

    def test_projection_is_pure(self, stereo_model):
        disparity = make_disparity([[5.0, INVALID_DISPARITY], [2.0, 5.0]])
        first = DisparityProjector().project(disparity, stereo_model)
        second = DisparityProjector().project(disparity, stereo_model)

        np.testing.assert_array_equal(first.valid, second.valid)
        np.testing.assert_array_equal(first.points[first.valid], second.points[second.valid])

    def test_point_buffer_allocation(self):
        buffer = PointBuffer.allocate(4, 6)
        assert buffer.points.shape == (4, 6, 3)
        assert buffer.points.dtype == np.float32
        assert buffer.height == 4 and buffer.width == 6
        assert buffer.valid_count == 0

    def test_depth_matches_model(self, stereo_model):
        points = DisparityProjector().project(make_disparity([[4.0, 4.0], [4.0, 4.0]]), stereo_model)
        assert points.points[..., 2] == pytest.approx(np.full((2, 2), FX * BASELINE / 4.0))
