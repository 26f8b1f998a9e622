"""
Stereo vision mathematical utilities.

This module provides mathematical functions and validations for stereo vision
applications, including matrix validation, baseline extraction and
consistency checks between the two halves of a rectified stereo pair.
"""

import numpy as np
import logging

logger = logging.getLogger(__name__)


class StereoMath:
    """Mathematical utilities for stereo vision calculations."""

    @staticmethod
    def validate_camera_matrix(K: np.ndarray, matrix_name: str = "K") -> bool:
        """
        Validate camera intrinsic matrix.

        Args:
            K: 3x3 camera matrix
            matrix_name: Name for error messages

        Returns:
            bool: True if valid

        Raises:
            ValueError: If matrix is invalid
        """
        if K.shape != (3, 3):
            raise ValueError(f"{matrix_name} must be 3x3, got {K.shape}")

        fx, fy = K[0, 0], K[1, 1]
        if fx <= 0 or fy <= 0:
            raise ValueError(f"{matrix_name} focal lengths must be positive: fx={fx}, fy={fy}")

        if not np.allclose(K[2, :], [0, 0, 1]):
            raise ValueError(f"{matrix_name} bottom row must be [0, 0, 1]")

        return True

    @staticmethod
    def validate_distortion_coefficients(d: np.ndarray, coeff_name: str = "D") -> bool:
        """
        Validate distortion coefficients.

        An empty array is accepted and means "no distortion".

        Args:
            d: Distortion coefficients array
            coeff_name: Name for error messages

        Returns:
            bool: True if valid

        Raises:
            ValueError: If coefficients are invalid
        """
        if d.ndim != 1:
            raise ValueError(f"{coeff_name} must be 1D array, got shape {d.shape}")

        if len(d) not in [0, 4, 5, 8, 12, 14]:
            logger.warning(f"{coeff_name} has unusual length {len(d)}, "
                           f"expected 4, 5, 8, 12, or 14")

        if np.any(np.isnan(d)) or np.any(np.isinf(d)):
            raise ValueError(f"{coeff_name} contains NaN or infinite values")

        return True

    @staticmethod
    def validate_rotation_matrix(R: np.ndarray, matrix_name: str = "R") -> bool:
        """
        Validate rotation matrix.

        Args:
            R: 3x3 rotation matrix
            matrix_name: Name for error messages

        Returns:
            bool: True if valid

        Raises:
            ValueError: If matrix is invalid
        """
        if R.shape != (3, 3):
            raise ValueError(f"{matrix_name} must be 3x3, got {R.shape}")

        # R @ R.T should be identity
        identity_check = R @ R.T
        if not np.allclose(identity_check, np.eye(3), atol=1e-6):
            raise ValueError(f"{matrix_name} is not orthogonal")

        det = np.linalg.det(R)
        if not np.isclose(det, 1.0, atol=1e-6):
            raise ValueError(f"{matrix_name} determinant must be 1, got {det}")

        return True

    @staticmethod
    def validate_projection_matrix(P: np.ndarray, matrix_name: str = "P") -> bool:
        """
        Validate projection matrix.

        Args:
            P: 3x4 projection matrix
            matrix_name: Name for error messages

        Returns:
            bool: True if valid

        Raises:
            ValueError: If matrix is invalid
        """
        if P.shape != (3, 4):
            raise ValueError(f"{matrix_name} must be 3x4, got {P.shape}")

        fx, fy = P[0, 0], P[1, 1]
        if fx <= 0 or fy <= 0:
            raise ValueError(f"{matrix_name} focal lengths must be positive: fx={fx}, fy={fy}")

        if not np.all(np.isfinite(P)):
            raise ValueError(f"{matrix_name} contains NaN or infinite values")

        return True

    @staticmethod
    def calculate_baseline_from_projection_matrices(
        P1: np.ndarray,
        P2: np.ndarray
    ) -> float:
        """
        Calculate baseline from projection matrices.

        For a horizontal rig the right projection matrix carries
        P2[0, 3] = -fx * baseline.

        Args:
            P1: Left camera projection matrix
            P2: Right camera projection matrix

        Returns:
            float: Baseline distance, in the units of the calibration
        """
        baseline = -P2[0, 3] / P2[0, 0]

        if abs(baseline) < 1e-6:
            logger.warning(f"Very small baseline detected: {baseline}")

        return float(baseline)

    @staticmethod
    def check_focal_length_consistency(
        P1: np.ndarray,
        P2: np.ndarray,
        tolerance: float = 1e-3
    ) -> bool:
        """
        Check if focal lengths are consistent between projection matrices.

        Args:
            P1: Left camera projection matrix
            P2: Right camera projection matrix
            tolerance: Tolerance for focal length differences

        Returns:
            bool: True if focal lengths are consistent
        """
        fx1, fy1 = P1[0, 0], P1[1, 1]
        fx2, fy2 = P2[0, 0], P2[1, 1]

        fx_diff = abs(fx1 - fx2)
        fy_diff = abs(fy1 - fy2)

        if fx_diff > tolerance or fy_diff > tolerance:
            logger.warning(f"Focal length inconsistency: "
                           f"fx_diff={fx_diff:.6f}, fy_diff={fy_diff:.6f}")
            return False

        return True

    @staticmethod
    def validate_q_matrix_parameters(
        fx: float,
        fy: float,
        baseline: float
    ) -> bool:
        """
        Validate reprojection matrix parameters.

        Args:
            fx: Focal length in x direction
            fy: Focal length in y direction
            baseline: Stereo baseline

        Returns:
            bool: True if parameters are valid

        Raises:
            ValueError: If parameters are invalid
        """
        if fx <= 0 or fy <= 0:
            raise ValueError(f"Focal lengths must be positive: fx={fx}, fy={fy}")

        if abs(baseline) < 1e-9:
            raise ValueError(f"Baseline too small: {baseline}")

        return True

