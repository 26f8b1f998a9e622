"""
Selective stereo processing: demand flags, image processing, block matching
and the pipeline that ties them together.
"""

from .output_demand import OutputDemand, side_flags
from .image_processor import ImageSet, OpenCVImageProcessor
from .stereo_matcher import BlockMatcher, StereoMatcherParameters, DISPARITY_SCALE
from .stereo_processor import StereoImageSet, StereoProcessor

__all__ = [
    'OutputDemand',
    'side_flags',
    'ImageSet',
    'OpenCVImageProcessor',
    'BlockMatcher',
    'StereoMatcherParameters',
    'DISPARITY_SCALE',
    'StereoImageSet',
    'StereoProcessor',
]
