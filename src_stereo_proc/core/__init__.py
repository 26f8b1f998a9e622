"""
Core data model for the stereo processing pipeline.

This package contains the message types exchanged between stages and the
pixel encoding tags they carry.
"""

from . import image_encodings
from .messages import (
    INVALID_DISPARITY,
    Header,
    Image,
    CameraInfo,
    DisparityImage,
    PointField,
    PointFieldType,
    PointCloud2,
    PointCloud,
    ChannelFloat32,
)

__all__ = [
    'image_encodings',
    'INVALID_DISPARITY',
    'Header',
    'Image',
    'CameraInfo',
    'DisparityImage',
    'PointField',
    'PointFieldType',
    'PointCloud2',
    'PointCloud',
    'ChannelFloat32',
]
