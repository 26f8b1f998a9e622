"""
Monocular image processing: colour conversion, debayering and rectification.

OpenCVImageProcessor produces, for one raw camera frame, the subset of
mono / colour / rectified images that was requested. Rectification maps are
expensive to build, so they are cached per camera and rebuilt only when the
calibration or the image size changes.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from utils.logger_config import get_logger

from ..calibration import PinholeCameraModel
from ..core import image_encodings as enc
from ..core.messages import Image
from ..exceptions import CalibrationError, OpenCVStageError, UnsupportedEncodingError

logger = get_logger(__name__)

# OpenCV names Bayer patterns after the second row, hence the apparent swap.
_BAYER_TO_BGR = {
    enc.BAYER_RGGB8: cv2.COLOR_BayerBG2BGR,
    enc.BAYER_BGGR8: cv2.COLOR_BayerRG2BGR,
    enc.BAYER_GBRG8: cv2.COLOR_BayerGR2BGR,
    enc.BAYER_GRBG8: cv2.COLOR_BayerGB2BGR,
}

_BAYER_TO_GRAY = {
    enc.BAYER_RGGB8: cv2.COLOR_BayerBG2GRAY,
    enc.BAYER_BGGR8: cv2.COLOR_BayerRG2GRAY,
    enc.BAYER_GBRG8: cv2.COLOR_BayerGR2GRAY,
    enc.BAYER_GRBG8: cv2.COLOR_BayerGB2GRAY,
}

_COLOR_TO_GRAY = {
    enc.RGB8: cv2.COLOR_RGB2GRAY,
    enc.BGR8: cv2.COLOR_BGR2GRAY,
    enc.RGBA8: cv2.COLOR_RGBA2GRAY,
    enc.BGRA8: cv2.COLOR_BGRA2GRAY,
}


@dataclass
class ImageSet:
    """Products derived from one raw frame; entries that were not requested stay None."""

    mono: Optional[Image] = None
    rect: Optional[Image] = None
    color: Optional[Image] = None
    rect_color: Optional[Image] = None

    @property
    def color_encoding(self) -> Optional[str]:
        source = self.rect_color or self.color
        return source.encoding if source is not None else None


class OpenCVImageProcessor:
    """Debayer, colour-convert and rectify raw frames with OpenCV."""

    def __init__(self, interpolation: int = cv2.INTER_LINEAR):
        self.interpolation = interpolation
        self._map_cache: Dict[str, Tuple[Tuple, np.ndarray, np.ndarray]] = {}

    def process(
        self,
        raw: Image,
        camera: PinholeCameraModel,
        mono: bool = False,
        rect: bool = False,
        color: bool = False,
        rect_color: bool = False,
        cache_key: str = "default"
    ) -> ImageSet:
        """
        Produce the requested images for one raw frame.

        Args:
            raw: Raw frame from the camera driver
            camera: Calibrated model of the camera that took the frame
            mono: Produce the unrectified mono image
            rect: Produce the rectified mono image
            color: Produce the unrectified colour image
            rect_color: Produce the rectified colour image
            cache_key: Identity of the camera for the rectification map cache

        Returns:
            ImageSet: Requested products, all carrying the raw frame's header

        Raises:
            UnsupportedEncodingError: If the raw encoding cannot be converted
            CalibrationError: If the frame size disagrees with the calibration
            OpenCVStageError: If an OpenCV conversion rejects the frame
        """
        if not enc.is_known(raw.encoding) or raw.encoding == enc.TYPE_32FC1:
            raise UnsupportedEncodingError(f"Cannot process raw image encoding '{raw.encoding}'")

        try:
            return self._build(raw, camera, mono, rect, color, rect_color, cache_key)
        except cv2.error as e:
            raise OpenCVStageError(
                f"OpenCV failed on {raw.width}x{raw.height} '{raw.encoding}' frame: {e}"
            ) from e

    def _build(self, raw: Image, camera: PinholeCameraModel, mono: bool, rect: bool,
               color: bool, rect_color: bool, cache_key: str) -> ImageSet:
        result = ImageSet()
        # cv2 needs a writable buffer
        pixels = np.array(raw.as_array())

        mono_pixels = None
        if mono or rect:
            mono_pixels = self._to_mono(pixels, raw.encoding)
            if mono:
                result.mono = Image.from_array(mono_pixels, self._mono_encoding(raw.encoding), raw.header)

        color_pixels, color_encoding = None, None
        if color or rect_color:
            color_pixels, color_encoding = self._to_color(pixels, raw.encoding)
            if color:
                result.color = Image.from_array(color_pixels, color_encoding, raw.header)

        if rect or rect_color:
            map_x, map_y = self._rectification_maps(camera, raw, cache_key)
            if rect:
                rectified = cv2.remap(mono_pixels, map_x, map_y, self.interpolation)
                result.rect = Image.from_array(rectified, self._mono_encoding(raw.encoding), raw.header)
            if rect_color:
                rectified = cv2.remap(color_pixels, map_x, map_y, self.interpolation)
                result.rect_color = Image.from_array(rectified, color_encoding, raw.header)

        return result

    def clear_cache(self) -> None:
        self._map_cache.clear()

    @staticmethod
    def _mono_encoding(raw_encoding: str) -> str:
        return enc.MONO16 if raw_encoding == enc.MONO16 else enc.MONO8

    @staticmethod
    def _to_mono(pixels: np.ndarray, encoding: str) -> np.ndarray:
        if enc.is_mono(encoding):
            return pixels
        if enc.is_bayer(encoding):
            return cv2.cvtColor(pixels, _BAYER_TO_GRAY[encoding])
        return cv2.cvtColor(pixels, _COLOR_TO_GRAY[encoding])

    @staticmethod
    def _to_color(pixels: np.ndarray, encoding: str) -> Tuple[np.ndarray, str]:
        """Colour version of the frame; mono frames stay mono, Bayer frames become bgr8."""
        if enc.is_bayer(encoding):
            return cv2.cvtColor(pixels, _BAYER_TO_BGR[encoding]), enc.BGR8
        return pixels, encoding

    def _rectification_maps(self, camera: PinholeCameraModel, raw: Image,
                            cache_key: str) -> Tuple[np.ndarray, np.ndarray]:
        if (raw.width, raw.height) != camera.resolution:
            raise CalibrationError(
                f"Image size {raw.width}x{raw.height} differs from calibration "
                f"{camera.width}x{camera.height}"
            )

        fingerprint = camera.fingerprint
        cached = self._map_cache.get(cache_key)
        if cached is not None and cached[0] == fingerprint:
            return cached[1], cached[2]

        logger.debug(f"Building rectification maps for '{cache_key}' ({raw.width}x{raw.height})")
        map_x, map_y = cv2.initUndistortRectifyMap(
            camera.K, camera.distortion, camera.R, camera.P[:, :3],
            camera.resolution, cv2.CV_32FC1
        )
        self._map_cache[cache_key] = (fingerprint, map_x, map_y)
        return map_x, map_y
