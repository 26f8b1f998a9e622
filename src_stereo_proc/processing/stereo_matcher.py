"""
Block-matching correlation engine for rectified stereo pairs.

The matcher is a replaceable stage of the pipeline: the processor hands it
a pair of rectified mono images plus the stereo model and receives a
DisparityImage whose unmatched pixels carry the configured sentinel.
Parameters may be changed at runtime through update_parameters().
"""

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping, Tuple

import cv2
import numpy as np

from utils.logger_config import get_logger

from ..calibration import StereoCameraModel
from ..core import image_encodings as enc
from ..core.messages import DisparityImage, Image, INVALID_DISPARITY
from ..exceptions import DimensionMismatchError, OpenCVStageError, UnsupportedEncodingError

logger = get_logger(__name__)

# StereoBM reports disparities as 16-bit fixed point with 4 fractional bits.
DISPARITY_SCALE = 16


@dataclass(frozen=True)
class StereoMatcherParameters:
    """Tunable block-matching parameters."""

    prefilter_size: int = 9
    prefilter_cap: int = 31
    correlation_window_size: int = 15
    min_disparity: int = 0
    disparity_range: int = 64
    uniqueness_ratio: int = 15
    texture_threshold: int = 10
    speckle_size: int = 100
    speckle_range: int = 4

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "StereoMatcherParameters":
        params = cls()._updated(values)
        params.validate()
        return params

    def _updated(self, values: Mapping[str, Any]) -> "StereoMatcherParameters":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown stereo matcher parameter(s): {', '.join(unknown)}")
        return replace(self, **{name: int(value) for name, value in values.items()})

    def validate(self) -> None:
        """
        Validate parameters against the ranges the correlation engine accepts.

        Raises:
            ValueError: If any parameter is out of range
        """
        if self.prefilter_size % 2 == 0 or not 5 <= self.prefilter_size <= 255:
            raise ValueError(f"prefilter_size must be odd and in [5, 255], got {self.prefilter_size}")

        if not 1 <= self.prefilter_cap <= 63:
            raise ValueError(f"prefilter_cap must be in [1, 63], got {self.prefilter_cap}")

        if self.correlation_window_size % 2 == 0 or not 5 <= self.correlation_window_size <= 255:
            raise ValueError(f"correlation_window_size must be odd and in [5, 255], "
                             f"got {self.correlation_window_size}")

        if self.disparity_range <= 0 or self.disparity_range % 16 != 0:
            raise ValueError(f"disparity_range must be positive and divisible by 16, "
                             f"got {self.disparity_range}")

        for name in ('uniqueness_ratio', 'texture_threshold', 'speckle_size', 'speckle_range'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")

        if self.correlation_window_size > 21:
            logger.warning(f"Large correlation_window_size ({self.correlation_window_size}) "
                           f"may blur depth discontinuities")

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class BlockMatcher:
    """OpenCV StereoBM wrapper producing DisparityImage messages."""

    def __init__(self, parameters: StereoMatcherParameters = None,
                 invalid_value: float = INVALID_DISPARITY):
        """
        Args:
            parameters: Initial parameters (defaults when None)
            invalid_value: Value written where no match was found; must lie
                below min_disparity so it cannot be confused with a real match
        """
        self.invalid_value = float(invalid_value)
        self.parameters = parameters or StereoMatcherParameters()
        self._check_sentinel(self.parameters)
        self.parameters.validate()
        self._matcher = self._create_matcher(self.parameters)

    def update_parameters(self, values: Mapping[str, Any]) -> StereoMatcherParameters:
        """
        Validate and apply a partial parameter update.

        The previous parameters stay in effect when validation fails.

        Raises:
            ValueError: If a name is unknown or a value is out of range
        """
        params = self.parameters._updated(values)
        params.validate()
        self._check_sentinel(params)

        self.parameters = params
        self._matcher = self._create_matcher(params)
        logger.info(f"Stereo matcher reconfigured: {values}")
        return params

    def compute(self, left_rect: Image, right_rect: Image, model: StereoCameraModel) -> DisparityImage:
        """
        Correlate a rectified pair.

        Args:
            left_rect: Rectified left mono image (mono8)
            right_rect: Rectified right mono image (mono8)
            model: Stereo model the images were rectified with

        Returns:
            DisparityImage: Disparity aligned with the left image, header of left_rect

        Raises:
            UnsupportedEncodingError: If the images are not mono8
            DimensionMismatchError: If the images differ in size or are too small
                for the correlation window and disparity range
            OpenCVStageError: If StereoBM rejects the pair
        """
        for name, image in (('left', left_rect), ('right', right_rect)):
            if image.encoding != enc.MONO8:
                raise UnsupportedEncodingError(
                    f"Block matching needs {enc.MONO8} images, {name} is '{image.encoding}'"
                )

        if (left_rect.width, left_rect.height) != (right_rect.width, right_rect.height):
            raise DimensionMismatchError(
                f"Rectified images differ in size: left={left_rect.width}x{left_rect.height}, "
                f"right={right_rect.width}x{right_rect.height}"
            )

        params = self.parameters
        self._check_frame_size(left_rect.width, left_rect.height, params)

        try:
            raw = self._matcher.compute(np.array(left_rect.as_array()), np.array(right_rect.as_array()))
        except cv2.error as e:
            raise OpenCVStageError(f"StereoBM failed on {left_rect.width}x{left_rect.height} pair: {e}") from e

        disparity = raw.astype(np.float32) / DISPARITY_SCALE
        unmatched = raw < params.min_disparity * DISPARITY_SCALE
        disparity[unmatched] = self.invalid_value

        matched = raw.size - int(np.count_nonzero(unmatched))
        logger.debug(f"Disparity computed: valid_pixels={matched}/{raw.size}")

        return DisparityImage.from_array(
            disparity,
            left_rect.header,
            f=model.left.fx,
            T=model.baseline,
            min_disparity=float(params.min_disparity),
            max_disparity=float(params.min_disparity + params.disparity_range - 1),
            delta_d=1.0 / DISPARITY_SCALE,
            valid_window=self._valid_window(left_rect.width, left_rect.height),
            invalid_value=self.invalid_value,
        )

    def _valid_window(self, width: int, height: int) -> Tuple[int, int, int, int]:
        """(x_offset, y_offset, width, height) of the region where matching is possible."""
        params = self.parameters
        border = params.correlation_window_size // 2
        left = params.disparity_range + params.min_disparity + border - 1
        right_border = border + params.min_disparity if params.min_disparity >= 0 else max(border, -params.min_disparity)
        right = width - 1 - right_border
        top = border
        bottom = height - 1 - border
        return left, top, max(right - left, 0), max(bottom - top, 0)

    @staticmethod
    def _check_frame_size(width: int, height: int, params: StereoMatcherParameters) -> None:
        window = params.correlation_window_size
        if window > min(width, height):
            raise DimensionMismatchError(
                f"Frame {width}x{height} is smaller than the correlation window {window}"
            )

        searched = params.disparity_range + max(params.min_disparity, 0)
        if width <= searched:
            raise DimensionMismatchError(
                f"Frame width {width} does not exceed the searched disparities ({searched})"
            )

    def _check_sentinel(self, params: StereoMatcherParameters) -> None:
        if self.invalid_value >= params.min_disparity:
            raise ValueError(
                f"Invalid disparity value {self.invalid_value} must be below "
                f"min_disparity {params.min_disparity}"
            )

    @staticmethod
    def _create_matcher(params: StereoMatcherParameters) -> "cv2.StereoBM":
        matcher = cv2.StereoBM_create(
            numDisparities=params.disparity_range,
            blockSize=params.correlation_window_size
        )
        matcher.setPreFilterType(cv2.STEREO_BM_PREFILTER_XSOBEL)
        matcher.setPreFilterSize(params.prefilter_size)
        matcher.setPreFilterCap(params.prefilter_cap)
        matcher.setMinDisparity(params.min_disparity)
        matcher.setUniquenessRatio(params.uniqueness_ratio)
        matcher.setTextureThreshold(params.texture_threshold)
        matcher.setSpeckleWindowSize(params.speckle_size)
        matcher.setSpeckleRange(params.speckle_range)
        return matcher
