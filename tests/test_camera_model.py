"""Tests for the pinhole and stereo camera models."""

from dataclasses import replace

import numpy as np
import pytest

from conftest import BASELINE, CX, CY, FX, FY, make_camera_info
from src_stereo_proc.calibration import PinholeCameraModel, StereoCameraModel
from src_stereo_proc.core.messages import CameraInfo, Header
from src_stereo_proc.exceptions import CalibrationError


class TestPinholeCameraModel:

    def test_accessors_follow_projection_matrix(self):
        model = PinholeCameraModel.from_camera_info(make_camera_info(side="right"))
        assert model.fx == FX
        assert model.fy == FY
        assert model.cx == CX
        assert model.cy == CY
        assert model.resolution == (2, 2)

    def test_malformed_matrices_raise(self):
        info = replace(make_camera_info(), P=(1.0,) * 11)
        with pytest.raises(CalibrationError):
            PinholeCameraModel.from_camera_info(info)

    def test_fingerprint_changes_with_calibration(self):
        a = PinholeCameraModel.from_camera_info(make_camera_info())
        b = PinholeCameraModel.from_camera_info(make_camera_info(fx=120.0))
        assert a.fingerprint == PinholeCameraModel.from_camera_info(make_camera_info(stamp=9)).fingerprint
        assert a.fingerprint != b.fingerprint


class TestStereoCameraModel:

    def test_baseline_and_reprojection_matrix(self, stereo_model):
        assert stereo_model.baseline == pytest.approx(BASELINE)

        Q = stereo_model.reprojection_matrix
        tx = -BASELINE
        expected = np.array([
            [FY * tx, 0.0, 0.0, -FY * CX * tx],
            [0.0, FX * tx, 0.0, -FX * CY * tx],
            [0.0, 0.0, 0.0, FX * FY * tx],
            [0.0, 0.0, -FY, 0.0],
        ])
        np.testing.assert_allclose(Q, expected)

    def test_reprojects_pixel_with_disparity(self, stereo_model):
        X, Y, Z, W = stereo_model.reprojection_matrix @ np.array([0.0, 0.0, 10.0, 1.0])
        point = np.array([X, Y, Z]) / W
        np.testing.assert_allclose(point, [-0.005, -0.005, 1.0], rtol=1e-9)

    def test_principal_point_offset_enters_q33(self):
        right = make_camera_info(side="right", cx=2.5)
        model = StereoCameraModel.from_camera_info(make_camera_info(), right)
        assert model.reprojection_matrix[3, 3] == pytest.approx(FY * (CX - 2.5))

    def test_missing_info_raises(self):
        with pytest.raises(CalibrationError):
            StereoCameraModel.from_camera_info(make_camera_info(), None)

    def test_uncalibrated_camera_raises(self):
        uncalibrated = CameraInfo(header=Header(stamp=1), height=2, width=2)
        with pytest.raises(CalibrationError):
            StereoCameraModel.from_camera_info(make_camera_info(), uncalibrated)

    def test_different_instants_raise(self):
        with pytest.raises(CalibrationError):
            StereoCameraModel.from_camera_info(make_camera_info(stamp=1), make_camera_info(stamp=2, side="right"))

    def test_different_focal_lengths_raise(self):
        right = make_camera_info(side="right", fx=110.0)
        with pytest.raises(CalibrationError, match="focal lengths"):
            StereoCameraModel.from_camera_info(make_camera_info(), right)

    def test_zero_baseline_raises(self):
        with pytest.raises(CalibrationError):
            StereoCameraModel.from_camera_info(make_camera_info(), make_camera_info(side="left"))
