"""
Stereo processing facade.

StereoProc wires a configuration into a running pipeline: an in-process
transport, the stereo processing node, optionally a separate point cloud
node, and the publishers feeding raw frames in. run() replays a recorded
dataset through the pipeline and records the requested outputs.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from utils.file_operations import DataSaver
from utils.logger_config import get_logger

from .core.messages import CameraInfo, Image
from .nodes import PointCloud2Node, StereoProcNode
from .pointcloud import PointCloudEncoder
from .processing import BlockMatcher, StereoMatcherParameters, StereoProcessor
from .replay import DatasetLoader, OutputRecorder, StereoFrame
from .transport import LocalTransport, Publisher


class StereoProc:
    """Builds and drives the stereo pipeline described by a Config."""

    def __init__(self, config, transport: Optional[LocalTransport] = None):
        """
        Args:
            config: Configuration object (config.config.Config)
            transport: Transport to build on (default: a new LocalTransport)
        """
        self.config = config
        self.transport = transport or LocalTransport()
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

        matcher = BlockMatcher(
            StereoMatcherParameters.from_dict(config.get_matcher_parameters()),
            invalid_value=config.missing_disparity
        )
        processor = StereoProcessor(
            matcher=matcher,
            encoder=PointCloudEncoder(config.color_warning_period)
        )

        split = config.pipeline_mode == "split"
        self.stereo_node = StereoProcNode(
            self.transport,
            processor,
            left_namespace=config.left_namespace,
            right_namespace=config.right_namespace,
            queue_size=config.stereo_sync_queue_size,
            advertisement_warning_period=config.advertisement_warning_period,
            publish_point_clouds=not split,
        )

        self.point_cloud_node: Optional[PointCloud2Node] = None
        if split:
            self.point_cloud_node = PointCloud2Node(
                self.transport,
                left_namespace=config.left_namespace,
                right_namespace=config.right_namespace,
                queue_size=config.point_cloud_sync_queue_size,
                color_warning_period=config.color_warning_period,
                advertisement_warning_period=config.advertisement_warning_period,
            )

        self.input_publishers: Dict[str, Publisher] = {
            topic: self.transport.advertise(topic) for topic in self.stereo_node.input_topics()
        }

        self.logger.info(f"StereoProc initialized ({config.pipeline_mode}): {config.get_summary()}")

    @property
    def nodes(self) -> List[Any]:
        return [node for node in (self.stereo_node, self.point_cloud_node) if node is not None]

    def available_outputs(self) -> List[str]:
        topics: List[str] = []
        for node in self.nodes:
            topics.extend(node.output_topics())
        return topics

    def publish_frame(self, left_image: Image, left_info: CameraInfo,
                      right_image: Image, right_info: CameraInfo) -> None:
        """Feed one raw stereo pair into the pipeline."""
        left, right = self.config.left_namespace, self.config.right_namespace
        self.input_publishers[f"{left}/image_raw"].publish(left_image)
        self.input_publishers[f"{left}/camera_info"].publish(left_info)
        self.input_publishers[f"{right}/image_raw"].publish(right_image)
        self.input_publishers[f"{right}/camera_info"].publish(right_info)

    def process_frame(self, frame: StereoFrame) -> None:
        self.publish_frame(frame.left_image, frame.left_info, frame.right_image, frame.right_info)

    def reconfigure(self, params: Mapping[str, Any]) -> StereoMatcherParameters:
        return self.stereo_node.reconfigure(params)

    def check_inputs(self) -> List[str]:
        """Warn about unadvertised node inputs; returns the missing topics."""
        missing: List[str] = []
        for node in self.nodes:
            missing.extend(node.check_inputs())
        return missing

    def run(
        self,
        input_path: Optional[Path] = None,
        output_path: Optional[Path] = None,
        outputs: Optional[Sequence[str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Replay a recorded dataset and record the requested outputs.

        Args:
            input_path: Dataset root (default: config input_path)
            output_path: Result root (default: config output_path)
            outputs: Topics to record (default: config requested_outputs)

        Returns:
            List[Dict[str, Any]]: One summary row per processed pair

        Raises:
            ValueError: If no input path is configured or an output is unknown
        """
        input_path = input_path or self.config.input_path
        if not input_path:
            raise ValueError("No input path configured")
        output_path = Path(output_path or self.config.output_path)
        outputs = list(outputs or self.config.requested_outputs)

        unknown = sorted(set(outputs) - set(self.available_outputs()))
        if unknown:
            raise ValueError(f"Unknown output topics {unknown}; available: {self.available_outputs()}")

        loader = DatasetLoader(Path(input_path))
        recorder = OutputRecorder(self.transport, output_path, outputs)
        recorder.start()
        self.check_inputs()

        try:
            for frame in loader:
                self.logger.info(f"Processing pair: {frame.set_name}/{frame.pair_name}")
                recorder.begin_pair(frame.set_name, frame.pair_name, frame.stamp)
                self.process_frame(frame)
                recorder.end_pair()
        finally:
            recorder.stop()

        recorder.save_summary()
        DataSaver.save_json_data(self.run_parameters(outputs), output_path, "run_parameters")
        self.logger.info(f"Processed {len(recorder.rows)} pairs, results in {output_path}")
        return recorder.rows

    def run_parameters(self, outputs: Sequence[str]) -> Dict[str, Any]:
        """Parameters a recorded run was produced with."""
        return {
            "pipeline_mode": self.config.pipeline_mode,
            "outputs": list(outputs),
            "missing_disparity": self.config.missing_disparity,
            "stereo_matcher": self.stereo_node.processor.matcher.parameters.as_dict(),
        }

    def shutdown(self) -> None:
        for node in self.nodes:
            node.shutdown()
        for publisher in self.input_publishers.values():
            publisher.shutdown()
