"""
Selective stereo processing: synchronized stereo pairs in, rectified images,
disparity and dense colour point clouds out.
"""

from .stereo_proc import StereoProc

__all__ = ['StereoProc']
