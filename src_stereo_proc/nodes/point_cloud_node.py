"""
Point cloud node: disparity + rectified colour image -> PointCloud2.

Inputs (exact-time synchronized):
    <left>/image_rect_color, <left>/camera_info, <right>/camera_info, disparity
Output:
    points2

Inputs are subscribed only while points2 has subscribers.
"""

from typing import List, Optional

from ..calibration import StereoCameraModel
from ..core.messages import CameraInfo, DisparityImage, Image
from ..pointcloud import DisparityProjector, PointBuffer, PointCloudEncoder
from ..transport import LocalTransport
from .base import BaseNode


class PointCloud2Node(BaseNode):
    """Projects synchronized disparity images into colour point clouds."""

    def __init__(
        self,
        transport: LocalTransport,
        left_namespace: str = "left",
        right_namespace: str = "right",
        disparity_topic: str = "disparity",
        output_topic: str = "points2",
        queue_size: int = 5,
        color_warning_period: float = 30.0,
        advertisement_warning_period: float = 60.0,
        name: str = "point_cloud2"
    ):
        self.left_namespace = left_namespace
        self.right_namespace = right_namespace
        self.disparity_topic = disparity_topic
        self.output_topic = output_topic

        self.projector = DisparityProjector()
        self.encoder = PointCloudEncoder(color_warning_period)
        # Reused across tuples while the grid size stays the same.
        self._scratch: Optional[PointBuffer] = None

        super().__init__(name, transport, queue_size, advertisement_warning_period)

    def input_topics(self) -> List[str]:
        return [
            f"{self.left_namespace}/image_rect_color",
            f"{self.left_namespace}/camera_info",
            f"{self.right_namespace}/camera_info",
            self.disparity_topic,
        ]

    def output_topics(self) -> List[str]:
        return [self.output_topic]

    def _process_tuple(self, left_color: Image, left_info: CameraInfo,
                       right_info: CameraInfo, disparity: DisparityImage) -> bool:
        model = StereoCameraModel.from_camera_info(left_info, right_info)

        points = self.projector.project(disparity, model, scratch=self._scratch)
        self._scratch = points

        cloud = self.encoder.encode(points, left_color, disparity.header)
        self.publishers[self.output_topic].publish(cloud)

        self.logger.debug(f"[{self.name}] Published cloud at {disparity.header.stamp}: "
                          f"{points.valid_count}/{cloud.width * cloud.height} valid points")
        return True
