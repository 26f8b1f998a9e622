"""
Stereo processing node: raw stereo pair -> images, disparity and point clouds.

Inputs (exact-time synchronized):
    <left>/image_raw, <left>/camera_info, <right>/image_raw, <right>/camera_info
Outputs:
    <side>/image_mono, <side>/image_rect, <side>/image_color,
    <side>/image_rect_color for both sides, disparity, points, points2

The inputs stay subscribed while any output has a subscriber; per tuple only
the outputs that currently have subscribers are computed and published.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..calibration import StereoCameraModel
from ..core.messages import CameraInfo, Image
from ..pointcloud import PointBuffer
from ..processing import OutputDemand, StereoImageSet, StereoMatcherParameters, StereoProcessor
from ..transport import LocalTransport
from .base import BaseNode

_IMAGE_OUTPUTS = (
    ('image_mono', 'mono', 'MONO'),
    ('image_rect', 'rect', 'RECT'),
    ('image_color', 'color', 'COLOR'),
    ('image_rect_color', 'rect_color', 'RECT_COLOR'),
)


class StereoProcNode(BaseNode):
    """Runs the selective stereo pipeline on synchronized raw pairs."""

    def __init__(
        self,
        transport: LocalTransport,
        processor: Optional[StereoProcessor] = None,
        left_namespace: str = "left",
        right_namespace: str = "right",
        queue_size: int = 3,
        advertisement_warning_period: float = 60.0,
        publish_point_clouds: bool = True,
        name: str = "stereo_proc"
    ):
        """
        Args:
            transport: Transport the node subscribes and publishes on
            processor: Pipeline to run (default: OpenCV-backed StereoProcessor)
            left_namespace: Topic prefix of the left camera
            right_namespace: Topic prefix of the right camera
            queue_size: Synchronizer queue size
            advertisement_warning_period: Seconds between warnings about
                unadvertised inputs
            publish_point_clouds: Advertise points/points2; disable when a
                separate point cloud node serves them
            name: Node name used in log messages
        """
        self.left_namespace = left_namespace
        self.right_namespace = right_namespace
        self.processor = processor or StereoProcessor()
        self._scratch: Optional[PointBuffer] = None

        self.output_flags: Dict[str, OutputDemand] = {}
        self._image_sources: Dict[OutputDemand, Tuple[str, str]] = {}
        for side, namespace in (('left', left_namespace), ('right', right_namespace)):
            for suffix, attribute, kind in _IMAGE_OUTPUTS:
                flag = OutputDemand[f"{side.upper()}_{kind}"]
                self.output_flags[f"{namespace}/{suffix}"] = flag
                self._image_sources[flag] = (side, attribute)
        self.output_flags['disparity'] = OutputDemand.DISPARITY
        if publish_point_clouds:
            self.output_flags['points'] = OutputDemand.POINT_CLOUD
            self.output_flags['points2'] = OutputDemand.POINT_CLOUD2

        super().__init__(name, transport, queue_size, advertisement_warning_period)

    def input_topics(self) -> List[str]:
        return [
            f"{self.left_namespace}/image_raw",
            f"{self.left_namespace}/camera_info",
            f"{self.right_namespace}/image_raw",
            f"{self.right_namespace}/camera_info",
        ]

    def output_topics(self) -> List[str]:
        return list(self.output_flags)

    def current_demand(self) -> OutputDemand:
        """Outputs that currently have at least one subscriber."""
        return OutputDemand.from_counts({
            flag: self.publishers[topic].num_subscribers
            for topic, flag in self.output_flags.items()
        })

    def reconfigure(self, params: Mapping[str, Any]) -> StereoMatcherParameters:
        """
        Apply new correlation parameters.

        Raises:
            ValueError: If the matcher rejects the parameters; the previous
                parameters stay in effect
        """
        try:
            return self.processor.set_parameters(**params)
        except ValueError as e:
            self.logger.error(f"[{self.name}] Rejected stereo parameters {dict(params)}: {e}")
            raise

    def _process_tuple(self, left_raw: Image, left_info: CameraInfo,
                       right_raw: Image, right_info: CameraInfo) -> bool:
        model = StereoCameraModel.from_camera_info(left_info, right_info)

        demand = self.current_demand()
        result = self.processor.process(left_raw, right_raw, model, demand, scratch=self._scratch)
        if result is None:
            return False

        if result.point_buffer is not None:
            self._scratch = result.point_buffer

        self._publish(result)
        return True

    def _publish(self, result: StereoImageSet) -> None:
        for topic, flag in self.output_flags.items():
            if not result.demand.wants(flag):
                continue
            message = self._output_message(result, flag)
            if message is not None:
                self.publishers[topic].publish(message)

    def _output_message(self, result: StereoImageSet, flag: OutputDemand) -> Any:
        if flag == OutputDemand.DISPARITY:
            return result.disparity
        if flag == OutputDemand.POINT_CLOUD:
            return result.points
        if flag == OutputDemand.POINT_CLOUD2:
            return result.points2

        side, attribute = self._image_sources[flag]
        return getattr(getattr(result, side), attribute)
