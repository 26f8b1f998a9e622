"""
Disparity reprojection and point cloud serialization.
"""

from .projector import PointBuffer, DisparityProjector
from .color_packing import pack_colors, pack_rgb, unpack_colors, SUPPORTED_COLOR_ENCODINGS
from .encoder import (
    PointCloudEncoder,
    POINT_FIELDS,
    POINT_STEP,
    NAN_BITS,
    decode_xyz,
    decode_rgb,
    decode_valid,
)
from .sparse_cloud import SparsePointCloudBuilder

__all__ = [
    'PointBuffer',
    'DisparityProjector',
    'pack_colors',
    'pack_rgb',
    'unpack_colors',
    'SUPPORTED_COLOR_ENCODINGS',
    'PointCloudEncoder',
    'POINT_FIELDS',
    'POINT_STEP',
    'NAN_BITS',
    'decode_xyz',
    'decode_rgb',
    'decode_valid',
    'SparsePointCloudBuilder',
]
