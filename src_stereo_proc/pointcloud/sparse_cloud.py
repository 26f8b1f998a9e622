"""
Legacy sparse point cloud: only valid points, with per-point channels.

Channels:
    rgb  packed 0x00RRGGBB reinterpreted as float32
    u    image column of the point
    v    image row of the point
"""

from typing import Optional

import numpy as np

from utils.logger_config import get_logger

from ..core.messages import ChannelFloat32, Header, Image, PointCloud
from ..exceptions import DimensionMismatchError
from .color_packing import pack_colors
from .projector import PointBuffer

logger = get_logger(__name__)


class SparsePointCloudBuilder:
    """Collects the valid points of a grid into a PointCloud message."""

    def build(self, points: PointBuffer, color_image: Optional[Image], header: Header) -> PointCloud:
        height, width = points.shape
        if color_image is not None and (color_image.height, color_image.width) != (height, width):
            raise DimensionMismatchError(
                f"Colour image {color_image.width}x{color_image.height} does not match "
                f"disparity grid {width}x{height}"
            )

        rows, cols = np.nonzero(points.valid)
        cloud = PointCloud(header=header, points=points.points[rows, cols].astype(np.float32))

        packed = pack_colors(color_image) if color_image is not None else None
        if packed is not None:
            rgb = packed[rows, cols].astype(np.uint32).view(np.float32)
            cloud.channels.append(ChannelFloat32('rgb', rgb))
        elif color_image is not None:
            logger.debug(f"Sparse cloud without colour: encoding '{color_image.encoding}' not supported")

        cloud.channels.append(ChannelFloat32('u', cols.astype(np.float32)))
        cloud.channels.append(ChannelFloat32('v', rows.astype(np.float32)))
        return cloud
