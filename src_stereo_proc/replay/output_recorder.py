"""
Recorder that stores published outputs of an offline run on disk.

Per stereo pair the recorder writes into output_path/<set>/<pair>/:

    <topic>.png           images (topic slashes replaced by underscores)
    disparity.npy         disparity grid (float32, sentinel kept)
    points2_xyz.npy       dense cloud coordinates (H, W, 3), NaN when invalid
    points2_rgb.npy       dense cloud colours (H, W, 3) uint8, zero when invalid
    points_xyz.npy        sparse cloud coordinates (N, 3)

and a summary.csv with one row per pair at the output root.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import cv2
import numpy as np

from utils.file_operations import DataSaver, PathManager
from utils.logger_config import get_logger

from ..core import image_encodings as enc
from ..core.messages import DisparityImage, Image, PointCloud, PointCloud2
from ..pointcloud import decode_rgb, decode_valid, decode_xyz, unpack_colors
from ..transport import LocalTransport, Subscription

logger = get_logger(__name__)

_TO_BGR = {
    enc.RGB8: cv2.COLOR_RGB2BGR,
    enc.RGBA8: cv2.COLOR_RGBA2BGR,
    enc.BGRA8: cv2.COLOR_BGRA2BGR,
}


class OutputRecorder:
    """Subscribes to output topics and saves every received message."""

    def __init__(self, transport: LocalTransport, output_path: Path, topics: Iterable[str]):
        self.transport = transport
        self.output_path = Path(output_path)
        self.topics = list(topics)

        self.rows: List[Dict[str, Any]] = []
        self._current: Optional[Dict[str, Any]] = None
        self._pair_folder: Optional[Path] = None
        self._subscriptions: List[Subscription] = []

    def start(self) -> None:
        """Subscribe to the recorded topics; this activates the producing nodes."""
        for topic in self.topics:
            self._subscriptions.append(
                self.transport.subscribe(topic, lambda message, topic=topic: self._on_message(topic, message))
            )
        logger.info(f"Recording {', '.join(self.topics)} to {self.output_path}")

    def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

    def begin_pair(self, set_name: str, pair_name: str, stamp: int) -> None:
        self._pair_folder = PathManager.create_output_structure(self.output_path, set_name, pair_name)
        self._current = {'set': set_name, 'pair': pair_name, 'stamp': stamp}

    def end_pair(self) -> Dict[str, Any]:
        """Close the current pair and return its summary row."""
        row = self._current or {}
        for topic in self.topics:
            row.setdefault(f"{topic}_received", False)
        self.rows.append(row)
        self._current = None
        self._pair_folder = None
        return row

    def save_summary(self, filename: str = "summary") -> bool:
        if not self.rows:
            logger.warning("No pairs recorded, summary not written")
            return False
        return DataSaver.save_table(self.rows, self.output_path, filename)

    def _on_message(self, topic: str, message: Any) -> None:
        if self._current is None:
            logger.debug(f"Ignoring '{topic}' message outside a recorded pair")
            return

        self._current[f"{topic}_received"] = True
        name = topic.strip('/').replace('/', '_')

        if isinstance(message, PointCloud2):
            self._save_points2(message, name)
        elif isinstance(message, PointCloud):
            DataSaver.save_numpy_array(message.points, self._pair_folder, f"{name}_xyz")
            self._current[f"{name}_count"] = int(message.points.shape[0])
        elif isinstance(message, DisparityImage):
            self._save_disparity(message, name)
        elif isinstance(message, Image):
            DataSaver.save_image(self._to_bgr(message), self._pair_folder, name)
        else:
            logger.warning(f"Cannot record message of type {type(message).__name__} on '{topic}'")

    def _save_points2(self, cloud: PointCloud2, name: str) -> None:
        DataSaver.save_numpy_array(decode_xyz(cloud), self._pair_folder, f"{name}_xyz")
        valid = decode_valid(cloud)
        colors = unpack_colors(decode_rgb(cloud))
        # rgb of invalid points holds NaN marker bits
        colors[~valid] = 0
        DataSaver.save_numpy_array(colors, self._pair_folder, f"{name}_rgb")
        self._current[f"{name}_valid"] = int(np.count_nonzero(valid))
        self._current[f"{name}_total"] = cloud.width * cloud.height

    def _save_disparity(self, disparity: DisparityImage, name: str) -> None:
        grid = disparity.as_array()
        DataSaver.save_numpy_array(grid, self._pair_folder, name)

        matched = grid != np.float32(disparity.invalid_value)
        self._current[f"{name}_valid_ratio"] = float(np.count_nonzero(matched)) / grid.size if grid.size else 0.0
        if matched.any():
            self._current[f"{name}_min"] = float(grid[matched].min())
            self._current[f"{name}_max"] = float(grid[matched].max())

    @staticmethod
    def _to_bgr(image: Image) -> np.ndarray:
        pixels = np.array(image.as_array())
        if image.encoding in _TO_BGR:
            return cv2.cvtColor(pixels, _TO_BGR[image.encoding])
        return pixels
