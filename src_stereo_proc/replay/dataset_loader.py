"""
Loader for recorded stereo datasets.

Expected layout:

    input_path/
        set_*/
            pair_*/
                left.png
                right.png
                calibration.json   {"left": {...}, "right": {...}}

Each camera entry of calibration.json holds width, height, K (9), D, R (9),
P (12) and optionally distortion_model and frame_id. Frames get synthetic,
strictly increasing stamps so that they can be replayed through the
synchronizing nodes.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import cv2
import numpy as np

from utils.file_operations import PathManager, load_json_data
from utils.logger_config import get_logger

from ..core import image_encodings as enc
from ..core.messages import CameraInfo, Header, Image

logger = get_logger(__name__)

DEFAULT_FRAME_PERIOD_NS = 100_000_000


@dataclass
class StereoFrame:
    """One recorded stereo pair with its calibration."""

    set_name: str
    pair_name: str
    left_image: Image
    left_info: CameraInfo
    right_image: Image
    right_info: CameraInfo

    @property
    def stamp(self) -> int:
        return self.left_image.header.stamp


class DatasetLoader:
    """Iterates over set_*/pair_* folders and yields StereoFrames."""

    def __init__(self, input_path: Path, frame_period_ns: int = DEFAULT_FRAME_PERIOD_NS,
                 left_image_name: str = "left.png", right_image_name: str = "right.png",
                 calibration_name: str = "calibration.json"):
        self.input_path = Path(input_path)
        self.frame_period_ns = frame_period_ns
        self.left_image_name = left_image_name
        self.right_image_name = right_image_name
        self.calibration_name = calibration_name

    def pair_folders(self) -> List[Path]:
        """
        All pair folders in replay order.

        Raises:
            ValueError: If the input path holds no set_* folders
        """
        folders = []
        for set_folder in PathManager.validate_input_structure(self.input_path):
            folders.extend(PathManager.get_pair_folders(set_folder))
        return folders

    def __iter__(self) -> Iterator[StereoFrame]:
        seq = 0
        for pair_folder in self.pair_folders():
            frame = self._load_pair(pair_folder, seq)
            if frame is None:
                continue
            seq += 1
            yield frame

    def _load_pair(self, pair_folder: Path, seq: int) -> Optional[StereoFrame]:
        set_name = pair_folder.parent.name
        pair_name = pair_folder.name

        paths = [pair_folder / name for name in
                 (self.left_image_name, self.right_image_name, self.calibration_name)]
        missing = [p.name for p in paths if not p.exists()]
        if missing:
            logger.warning(f"Skipping {set_name}/{pair_name}: missing {', '.join(missing)}")
            return None

        stamp = (seq + 1) * self.frame_period_ns
        try:
            calibration = load_json_data(paths[2])
            left_info = self.camera_info_from_dict(calibration['left'], stamp, seq, 'left')
            right_info = self.camera_info_from_dict(calibration['right'], stamp, seq, 'right')
        except (KeyError, ValueError) as e:
            logger.error(f"Skipping {set_name}/{pair_name}: invalid calibration: {e}")
            return None

        left_image = self.load_image(paths[0], left_info.header)
        right_image = self.load_image(paths[1], right_info.header)
        if left_image is None or right_image is None:
            logger.error(f"Skipping {set_name}/{pair_name}: unreadable image")
            return None

        logger.debug(f"Loaded {set_name}/{pair_name} at stamp {stamp}")
        return StereoFrame(set_name, pair_name, left_image, left_info, right_image, right_info)

    @staticmethod
    def camera_info_from_dict(data: Dict[str, Any], stamp: int, seq: int, side: str) -> CameraInfo:
        """
        Build a CameraInfo from one camera entry of calibration.json.

        Raises:
            KeyError: If a required entry is missing
            ValueError: If a matrix has the wrong number of elements
        """
        header = Header(stamp=stamp, frame_id=data.get('frame_id', f"{side}_camera_optical"), seq=seq)
        info = CameraInfo.from_matrices(
            header,
            width=data['width'],
            height=data['height'],
            K=np.asarray(data['K'], dtype=np.float64),
            D=np.asarray(data.get('D', []), dtype=np.float64),
            R=np.asarray(data.get('R', np.eye(3)), dtype=np.float64),
            P=np.asarray(data['P'], dtype=np.float64),
            distortion_model=data.get('distortion_model', 'plumb_bob'),
        )
        for name, expected in (('K', 9), ('R', 9), ('P', 12)):
            if len(getattr(info, name)) != expected:
                raise ValueError(f"{side}.{name} must have {expected} elements, "
                                 f"got {len(getattr(info, name))}")
        return info

    @staticmethod
    def load_image(path: Path, header: Header) -> Optional[Image]:
        """Read an image file as a raw frame (mono8, mono16 or bgr8)."""
        pixels = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if pixels is None:
            return None

        if pixels.ndim == 2:
            encoding = enc.MONO16 if pixels.dtype == np.uint16 else enc.MONO8
            return Image.from_array(pixels, encoding, header)

        if pixels.dtype == np.uint16:
            pixels = (pixels >> 8).astype(np.uint8)
        if pixels.shape[2] == 4:
            encoding = enc.BGRA8
        else:
            encoding = enc.BGR8
        return Image.from_array(pixels, encoding, header)
