"""
Serialization of organized point grids into PointCloud2 messages.

Each point occupies a 16-byte little-endian record:

    offset  0  x    float32
    offset  4  y    float32
    offset  8  z    float32
    offset 12  rgb  packed 0x00RRGGBB, tagged FLOAT32 for consumer compatibility

Invalid points carry the quiet-NaN bit pattern 0x7FC00000 in all four slots,
so the cloud keeps its grid shape and is flagged as not dense.
"""

import time
from typing import Callable, List, Optional

import numpy as np

from utils.logger_config import get_logger, ThrottledLogger

from ..core.messages import Header, Image, PointCloud2, PointField, PointFieldType
from ..exceptions import DimensionMismatchError
from .color_packing import pack_colors, SUPPORTED_COLOR_ENCODINGS
from .projector import PointBuffer

logger = get_logger(__name__)

POINT_STEP = 16
NAN_BITS = np.uint32(0x7FC00000)

POINT_FIELDS: List[PointField] = [
    PointField('x', 0, PointFieldType.FLOAT32, 1),
    PointField('y', 4, PointFieldType.FLOAT32, 1),
    PointField('z', 8, PointFieldType.FLOAT32, 1),
    PointField('rgb', 12, PointFieldType.FLOAT32, 1),
]

# Raw 32-bit view of a record, used to write exact bit patterns.
_RECORD_BITS = np.dtype({
    'names': ['x', 'y', 'z', 'rgb'],
    'formats': ['<u4', '<u4', '<u4', '<u4'],
    'offsets': [0, 4, 8, 12],
    'itemsize': POINT_STEP,
})

_RECORD_FLOATS = np.dtype({
    'names': ['x', 'y', 'z'],
    'formats': ['<f4', '<f4', '<f4'],
    'offsets': [0, 4, 8],
    'itemsize': POINT_STEP,
})


class PointCloudEncoder:
    """Builds dense, colour-annotated PointCloud2 messages."""

    def __init__(self, color_warning_period: float = 30.0,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            color_warning_period: Minimum seconds between warnings about the
                same unsupported colour encoding
            clock: Time source for the warning throttle
        """
        self.color_warning_period = color_warning_period
        self._throttle = ThrottledLogger(logger, clock)

    def encode(self, points: PointBuffer, color_image: Optional[Image], header: Header) -> PointCloud2:
        """
        Encode a point grid with the colours of the aligned image.

        Args:
            points: Projected points and validity mask
            color_image: Rectified left colour image aligned with the grid;
                None leaves the colour slots zero
            header: Header of the produced cloud

        Returns:
            PointCloud2: Organized cloud with height x width records

        Raises:
            DimensionMismatchError: If the colour image and the grid differ in size
        """
        height, width = points.shape
        if color_image is not None and (color_image.height, color_image.width) != (height, width):
            raise DimensionMismatchError(
                f"Colour image {color_image.width}x{color_image.height} does not match "
                f"disparity grid {width}x{height}"
            )

        records = np.zeros((height, width), dtype=_RECORD_BITS)
        invalid = ~points.valid

        xyz_bits = np.ascontiguousarray(points.points, dtype=np.float32).view(np.uint32)
        for axis, name in enumerate(('x', 'y', 'z')):
            records[name] = xyz_bits[..., axis]
            records[name][invalid] = NAN_BITS

        packed = self._packed_colors(color_image) if color_image is not None else None
        if packed is not None:
            records['rgb'] = packed
            records['rgb'][invalid] = NAN_BITS

        return PointCloud2(
            header=header,
            height=height,
            width=width,
            fields=list(POINT_FIELDS),
            point_step=POINT_STEP,
            row_step=POINT_STEP * width,
            data=records.tobytes(),
            is_bigendian=False,
            is_dense=False,
        )

    def _packed_colors(self, color_image: Image) -> Optional[np.ndarray]:
        packed = pack_colors(color_image)
        if packed is None:
            self._throttle.warning(
                color_image.encoding, self.color_warning_period,
                f"Point cloud colour: image encoding '{color_image.encoding}' is not supported "
                f"(supported: {', '.join(SUPPORTED_COLOR_ENCODINGS)}); colour left empty"
            )
        return packed


def _records(cloud: PointCloud2, dtype: np.dtype) -> np.ndarray:
    if cloud.point_step != POINT_STEP:
        raise ValueError(f"Unsupported point_step {cloud.point_step}, expected {POINT_STEP}")
    expected = cloud.height * cloud.width * POINT_STEP
    if len(cloud.data) != expected:
        raise ValueError(f"Cloud holds {len(cloud.data)} bytes, expected {expected}")
    return np.frombuffer(cloud.data, dtype=dtype).reshape(cloud.height, cloud.width)


def decode_xyz(cloud: PointCloud2) -> np.ndarray:
    """(H, W, 3) float32 coordinates of an encoded cloud; invalid points are NaN."""
    records = _records(cloud, _RECORD_FLOATS)
    return np.stack([records['x'], records['y'], records['z']], axis=-1)


def decode_rgb(cloud: PointCloud2) -> np.ndarray:
    """(H, W) uint32 raw bits of the rgb slot."""
    return np.array(_records(cloud, _RECORD_BITS)['rgb'])


def decode_valid(cloud: PointCloud2) -> np.ndarray:
    """(H, W) mask of points whose coordinates are not the invalid marker."""
    return ~np.isnan(decode_xyz(cloud)).any(axis=-1)
