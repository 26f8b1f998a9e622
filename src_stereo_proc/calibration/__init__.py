"""
Calibration models for the stereo processing pipeline.

This package converts left/right calibration records into the pinhole and
stereo models used for rectification and disparity reprojection.
"""

from .camera_model import PinholeCameraModel, StereoCameraModel

__all__ = [
    'PinholeCameraModel',
    'StereoCameraModel',
]
