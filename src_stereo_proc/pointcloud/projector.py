"""
Reprojection of a disparity grid into an organized 3D point grid.

Every pixel (u, v) with disparity d is mapped through the 4x4 reprojection
matrix Q of the stereo model:

    [X Y Z W]^T = Q @ [u v d 1]^T,    point = (X/W, Y/W, Z/W)

A point is valid iff its disparity differs from the sentinel and all three
coordinates are finite. Zero disparity maps to W = 0 (infinite depth) and is
therefore invalid as well.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from utils.logger_config import get_logger

from ..calibration import StereoCameraModel
from ..core.messages import DisparityImage

logger = get_logger(__name__)


@dataclass
class PointBuffer:
    """Organized point grid (H, W, 3) with its validity mask (H, W)."""

    points: np.ndarray
    valid: np.ndarray

    @classmethod
    def allocate(cls, height: int, width: int) -> "PointBuffer":
        return cls(
            points=np.zeros((height, width, 3), dtype=np.float32),
            valid=np.zeros((height, width), dtype=bool),
        )

    @property
    def shape(self) -> Tuple[int, int]:
        return self.valid.shape

    @property
    def height(self) -> int:
        return self.valid.shape[0]

    @property
    def width(self) -> int:
        return self.valid.shape[1]

    @property
    def valid_count(self) -> int:
        return int(np.count_nonzero(self.valid))


class DisparityProjector:
    """Turns disparity grids into PointBuffers."""

    def project(
        self,
        disparity: DisparityImage,
        model: StereoCameraModel,
        invalid_value: Optional[float] = None,
        scratch: Optional[PointBuffer] = None
    ) -> PointBuffer:
        """
        Reproject a disparity image.

        Args:
            disparity: Disparity grid aligned with the rectified left image
            model: Stereo model of the synchronized instant
            invalid_value: Sentinel marking unmatched pixels (default: the
                value carried by the disparity message)
            scratch: Buffer to write into; reused when its shape matches the
                grid, replaced by a fresh allocation otherwise

        Returns:
            PointBuffer: Points and validity mask, same shape as the grid
        """
        grid = disparity.as_array()
        if invalid_value is None:
            invalid_value = disparity.invalid_value

        height, width = grid.shape
        if scratch is None or scratch.shape != (height, width):
            if scratch is not None:
                logger.debug(f"Reallocating point buffer {scratch.shape} -> {(height, width)}")
            scratch = PointBuffer.allocate(height, width)

        self.reproject(grid, model.reprojection_matrix, scratch.points)
        finite = np.isfinite(scratch.points).all(axis=2)
        np.logical_and(grid != np.float32(invalid_value), finite, out=scratch.valid)
        return scratch

    @staticmethod
    def reproject(grid: np.ndarray, Q: np.ndarray, out: np.ndarray) -> np.ndarray:
        """
        Map every pixel of a disparity grid through Q.

        Args:
            grid: (H, W) disparities
            Q: 4x4 reprojection matrix
            out: (H, W, 3) float32 array receiving the points

        Returns:
            np.ndarray: out
        """
        height, width = grid.shape
        v, u = np.mgrid[0:height, 0:width].astype(np.float64)
        d = grid.astype(np.float64)

        homogeneous = [Q[row, 0] * u + Q[row, 1] * v + Q[row, 2] * d + Q[row, 3] for row in range(4)]
        w = homogeneous[3]
        with np.errstate(divide='ignore', invalid='ignore', over='ignore'):
            for axis in range(3):
                out[..., axis] = homogeneous[axis] / w
        return out
