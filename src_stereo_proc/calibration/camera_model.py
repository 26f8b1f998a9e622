"""
Camera models built from calibration records.

PinholeCameraModel wraps one camera's intrinsic/extrinsic parameters.
StereoCameraModel combines a synchronized left/right pair and derives the
reprojection matrix Q used to turn disparities into 3D points:

    [X Y Z W]^T = Q @ [u v d 1]^T,    point = (X/W, Y/W, Z/W)
"""

from typing import Optional, Tuple

import numpy as np

from utils.stereo_math import StereoMath
from utils.logger_config import get_logger

from ..core.messages import CameraInfo
from ..exceptions import CalibrationError

logger = get_logger(__name__)


class PinholeCameraModel:
    """Rectified pinhole model of a single camera."""

    def __init__(self, info: CameraInfo):
        self.info = info
        self.width = info.width
        self.height = info.height
        self.K = np.array(info.K, dtype=np.float64).reshape(3, 3)
        self.D = np.array(info.D, dtype=np.float64)
        self.R = np.array(info.R, dtype=np.float64).reshape(3, 3)
        self.P = np.array(info.P, dtype=np.float64).reshape(3, 4)

    @classmethod
    def from_camera_info(cls, info: CameraInfo) -> "PinholeCameraModel":
        if len(info.K) != 9 or len(info.R) != 9 or len(info.P) != 12:
            raise CalibrationError(
                f"Malformed calibration for frame '{info.header.frame_id}': "
                f"len(K)={len(info.K)}, len(R)={len(info.R)}, len(P)={len(info.P)}"
            )
        return cls(info)

    @property
    def is_calibrated(self) -> bool:
        return self.info.is_calibrated

    @property
    def fx(self) -> float:
        return float(self.P[0, 0])

    @property
    def fy(self) -> float:
        return float(self.P[1, 1])

    @property
    def cx(self) -> float:
        return float(self.P[0, 2])

    @property
    def cy(self) -> float:
        return float(self.P[1, 2])

    @property
    def distortion(self) -> Optional[np.ndarray]:
        """Distortion coefficients as OpenCV expects them (None when there are none)."""
        return self.D if self.D.size else None

    @property
    def resolution(self) -> Tuple[int, int]:
        return self.width, self.height

    @property
    def fingerprint(self) -> Tuple:
        """Hashable identity of the calibration, used to cache rectification maps."""
        return (self.width, self.height, self.info.distortion_model,
                self.info.K, self.info.D, self.info.R, self.info.P)

    def validate(self, name: str) -> None:
        """
        Validate the calibration matrices.

        Raises:
            CalibrationError: If any matrix is invalid
        """
        try:
            StereoMath.validate_camera_matrix(self.K, f"{name}.K")
            StereoMath.validate_distortion_coefficients(self.D, f"{name}.D")
            StereoMath.validate_rotation_matrix(self.R, f"{name}.R")
            StereoMath.validate_projection_matrix(self.P, f"{name}.P")
        except ValueError as e:
            raise CalibrationError(str(e)) from e


class StereoCameraModel:
    """
    Rectified stereo pair built from one synchronized pair of calibration records.

    Instances are cheap to build and immutable; callers create a fresh model for
    every synchronized tuple instead of updating a shared one.
    """

    def __init__(self, left: PinholeCameraModel, right: PinholeCameraModel):
        self.left = left
        self.right = right
        self.Q = self._calculate_reprojection_matrix()

    @classmethod
    def from_camera_info(cls, left_info: Optional[CameraInfo],
                         right_info: Optional[CameraInfo]) -> "StereoCameraModel":
        """
        Build and validate a stereo model.

        Args:
            left_info: Left camera calibration
            right_info: Right camera calibration

        Returns:
            StereoCameraModel: Validated model

        Raises:
            CalibrationError: If calibration is absent, uncalibrated, taken at
                different instants, numerically invalid, or if the two cameras
                were rectified to different focal lengths
        """
        if left_info is None or right_info is None:
            raise CalibrationError("Stereo calibration requires both left and right camera info")

        if left_info.header.stamp != right_info.header.stamp:
            raise CalibrationError(
                f"Left/right camera info stamps differ: "
                f"{left_info.header.stamp} != {right_info.header.stamp}"
            )

        left = PinholeCameraModel.from_camera_info(left_info)
        right = PinholeCameraModel.from_camera_info(right_info)

        if not left.is_calibrated or not right.is_calibrated:
            raise CalibrationError(
                f"Camera is not calibrated (left={left.is_calibrated}, right={right.is_calibrated})"
            )

        left.validate("left")
        right.validate("right")

        if not StereoMath.check_focal_length_consistency(left.P, right.P):
            raise CalibrationError(
                f"Rectified focal lengths differ: left=({left.fx}, {left.fy}), "
                f"right=({right.fx}, {right.fy})"
            )

        return cls(left, right)

    @property
    def baseline(self) -> float:
        """Baseline in the translation units of the calibration."""
        return StereoMath.calculate_baseline_from_projection_matrices(self.left.P, self.right.P)

    @property
    def reprojection_matrix(self) -> np.ndarray:
        return self.Q

    def _calculate_reprojection_matrix(self) -> np.ndarray:
        """
        Build the 4x4 Q matrix from the rectified projection matrices.

        Q[3, 3] carries the principal point offset between the two rectified
        cameras and is zero for a rig rectified to a common principal point.
        """
        fx, fy = self.left.fx, self.left.fy
        cx, cy = self.left.cx, self.left.cy
        baseline = self.baseline

        try:
            StereoMath.validate_q_matrix_parameters(fx, fy, baseline)
        except ValueError as e:
            raise CalibrationError(str(e)) from e

        Tx = -baseline
        Q = np.zeros((4, 4), dtype=np.float64)
        Q[0, 0] = fy * Tx
        Q[0, 3] = -fy * cx * Tx
        Q[1, 1] = fx * Tx
        Q[1, 3] = -fx * cy * Tx
        Q[2, 3] = fx * fy * Tx
        Q[3, 2] = -fy
        Q[3, 3] = fy * (cx - self.right.cx)

        logger.debug(f"Reprojection matrix: fx={fx:.2f}, fy={fy:.2f}, "
                     f"cx={cx:.2f}, cy={cy:.2f}, baseline={baseline:.4f}")
        return Q
