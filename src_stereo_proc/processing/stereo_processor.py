"""
Selective stereo processing pipeline.

StereoProcessor turns one synchronized raw pair into the outputs that are
actually requested. The requested set is closed over its dependencies first
and every stage is skipped unless something downstream needs it:

    raw --> mono / colour --> rectified --> disparity --> points / points2

Recoverable per-tuple faults (calibration, encodings, grid sizes) are
logged and reported as "not processed" by returning None.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from utils.logger_config import get_logger

from ..calibration import StereoCameraModel
from ..core.messages import DisparityImage, Image, PointCloud, PointCloud2
from ..exceptions import StereoProcError
from ..pointcloud import DisparityProjector, PointBuffer, PointCloudEncoder, SparsePointCloudBuilder
from .image_processor import ImageSet, OpenCVImageProcessor
from .output_demand import OutputDemand, side_flags
from .stereo_matcher import BlockMatcher, StereoMatcherParameters

logger = get_logger(__name__)


@dataclass
class StereoImageSet:
    """Everything produced for one synchronized pair."""

    demand: OutputDemand = OutputDemand.NONE
    left: ImageSet = field(default_factory=ImageSet)
    right: ImageSet = field(default_factory=ImageSet)
    disparity: Optional[DisparityImage] = None
    points: Optional[PointCloud] = None
    points2: Optional[PointCloud2] = None
    point_buffer: Optional[PointBuffer] = None


class StereoProcessor:
    """Runs only the processing stages needed for the requested outputs."""

    def __init__(
        self,
        image_processor: Optional[OpenCVImageProcessor] = None,
        matcher: Optional[BlockMatcher] = None,
        projector: Optional[DisparityProjector] = None,
        encoder: Optional[PointCloudEncoder] = None,
        sparse_builder: Optional[SparsePointCloudBuilder] = None
    ):
        self.image_processor = image_processor or OpenCVImageProcessor()
        self.matcher = matcher or BlockMatcher()
        self.projector = projector or DisparityProjector()
        self.encoder = encoder or PointCloudEncoder()
        self.sparse_builder = sparse_builder or SparsePointCloudBuilder()

    def process(
        self,
        left_raw: Image,
        right_raw: Image,
        model: StereoCameraModel,
        demand: OutputDemand,
        scratch: Optional[PointBuffer] = None
    ) -> Optional[StereoImageSet]:
        """
        Process one synchronized raw pair.

        Args:
            left_raw: Raw left frame
            right_raw: Raw right frame
            model: Stereo model of the same instant
            demand: Outputs with at least one consumer
            scratch: Point buffer to reuse for the projection

        Returns:
            Optional[StereoImageSet]: Produced outputs (requested ones plus their
                intermediates), or None when the pair could not be processed
        """
        required = OutputDemand(demand).expand_dependencies()
        result = StereoImageSet(demand=OutputDemand(demand))
        if not required:
            return result

        try:
            result.left = self._process_side(left_raw, model.left, required, 'left')
            result.right = self._process_side(right_raw, model.right, required, 'right')

            if required.wants(OutputDemand.DISPARITY):
                result.disparity = self.matcher.compute(result.left.rect, result.right.rect, model)

            if required.wants(OutputDemand.POINT_CLOUD | OutputDemand.POINT_CLOUD2):
                buffer = self.projector.project(result.disparity, model, scratch=scratch)
                result.point_buffer = buffer
                header = result.disparity.header

                if required.wants(OutputDemand.POINT_CLOUD):
                    result.points = self.sparse_builder.build(buffer, result.left.rect_color, header)
                if required.wants(OutputDemand.POINT_CLOUD2):
                    result.points2 = self.encoder.encode(buffer, result.left.rect_color, header)

        except StereoProcError as e:
            logger.warning(f"Skipping stereo pair at stamp {left_raw.header.stamp}: {e}")
            return None

        return result

    def _process_side(self, raw: Image, camera, required: OutputDemand, side: str) -> ImageSet:
        flags = side_flags(side)
        if not required & (flags['mono'] | flags['rect'] | flags['color'] | flags['rect_color']):
            return ImageSet()

        return self.image_processor.process(
            raw, camera,
            mono=required.wants(flags['mono']),
            rect=required.wants(flags['rect']),
            color=required.wants(flags['color']),
            rect_color=required.wants(flags['rect_color']),
            cache_key=side,
        )

    def set_parameters(self, **params: Any) -> StereoMatcherParameters:
        """Forward correlation parameters to the matcher unchanged."""
        return self.matcher.update_parameters(params)
