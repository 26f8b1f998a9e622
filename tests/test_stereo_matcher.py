"""Tests for the block-matching correlation stage."""

import cv2
import numpy as np
import pytest

from conftest import make_camera_info, make_image
from src_stereo_proc.calibration import StereoCameraModel
from src_stereo_proc.core import image_encodings as enc
from src_stereo_proc.exceptions import DimensionMismatchError, OpenCVStageError, UnsupportedEncodingError
from src_stereo_proc.processing import BlockMatcher, StereoMatcherParameters

HEIGHT, WIDTH, SHIFT = 64, 128, 8


@pytest.fixture
def textured_pair():
    rng = np.random.default_rng(7)
    texture = rng.integers(0, 256, size=(HEIGHT, WIDTH + SHIFT), dtype=np.uint8)
    left = texture[:, :WIDTH]
    right = texture[:, SHIFT:]
    return make_image(left, enc.MONO8), make_image(right, enc.MONO8, frame_id="right_optical")


@pytest.fixture
def wide_model():
    left = make_camera_info(side="left", width=WIDTH, height=HEIGHT)
    right = make_camera_info(side="right", width=WIDTH, height=HEIGHT)
    return StereoCameraModel.from_camera_info(left, right)


class TestStereoMatcherParameters:

    def test_defaults_are_valid(self):
        StereoMatcherParameters().validate()

    @pytest.mark.parametrize("values", [
        {'prefilter_size': 4},
        {'prefilter_size': 301},
        {'prefilter_cap': 0},
        {'correlation_window_size': 8},
        {'disparity_range': 20},
        {'disparity_range': 0},
        {'uniqueness_ratio': -1},
        {'speckle_size': -5},
    ])
    def test_out_of_range_values_are_rejected(self, values):
        with pytest.raises(ValueError):
            StereoMatcherParameters.from_dict(values)

    def test_unknown_names_are_rejected(self):
        with pytest.raises(ValueError, match="block_size"):
            StereoMatcherParameters.from_dict({'block_size': 5})

    def test_as_dict_round_trips_names(self):
        params = StereoMatcherParameters.from_dict({'disparity_range': 32})
        assert params.as_dict()['disparity_range'] == 32
        assert params.as_dict()['prefilter_cap'] == 31


class TestBlockMatcher:

    def test_recovers_constant_shift(self, textured_pair, wide_model):
        matcher = BlockMatcher(StereoMatcherParameters.from_dict({
            'disparity_range': 16, 'correlation_window_size': 9, 'texture_threshold': 0,
            'uniqueness_ratio': 0, 'speckle_size': 0,
        }))
        disparity = matcher.compute(*textured_pair, wide_model)
        grid = disparity.as_array()

        assert grid.shape == (HEIGHT, WIDTH)
        matched = grid != disparity.invalid_value
        assert matched.mean() > 0.5
        assert np.median(grid[matched]) == pytest.approx(SHIFT, abs=1.0)

    def test_disparity_message_metadata(self, textured_pair, wide_model):
        matcher = BlockMatcher(StereoMatcherParameters.from_dict({'disparity_range': 16}))
        disparity = matcher.compute(*textured_pair, wide_model)

        assert disparity.header == textured_pair[0].header
        assert disparity.f == pytest.approx(100.0)
        assert disparity.T == pytest.approx(0.1)
        assert disparity.min_disparity == 0.0
        assert disparity.max_disparity == 15.0
        assert disparity.delta_d == pytest.approx(1.0 / 16)
        assert disparity.invalid_value == -1.0

    def test_unmatched_pixels_carry_sentinel(self, textured_pair, wide_model):
        matcher = BlockMatcher(StereoMatcherParameters.from_dict({'disparity_range': 16}), invalid_value=-5.0)
        grid = matcher.compute(*textured_pair, wide_model).as_array()

        # The left border cannot be matched against the full disparity range.
        assert (grid[:, :10] == -5.0).all()
        assert grid.min() >= -5.0

    def test_sentinel_must_lie_below_min_disparity(self):
        with pytest.raises(ValueError):
            BlockMatcher(invalid_value=0.0)

        matcher = BlockMatcher()
        with pytest.raises(ValueError):
            matcher.update_parameters({'min_disparity': -4})

    def test_update_parameters_keeps_previous_on_failure(self):
        matcher = BlockMatcher()
        matcher.update_parameters({'disparity_range': 32})
        with pytest.raises(ValueError):
            matcher.update_parameters({'disparity_range': 33})
        assert matcher.parameters.disparity_range == 32

    def test_non_mono8_images_are_rejected(self, wide_model):
        image = make_image(np.zeros((HEIGHT, WIDTH, 3), dtype=np.uint8), enc.BGR8)
        with pytest.raises(UnsupportedEncodingError):
            BlockMatcher().compute(image, image, wide_model)

    def test_size_mismatch_is_rejected(self, wide_model):
        left = make_image(np.zeros((HEIGHT, WIDTH), dtype=np.uint8), enc.MONO8)
        right = make_image(np.zeros((HEIGHT, WIDTH - 2), dtype=np.uint8), enc.MONO8)
        with pytest.raises(DimensionMismatchError):
            BlockMatcher().compute(left, right, wide_model)

    def test_frame_smaller_than_window_is_rejected(self, wide_model):
        tiny = make_image(np.zeros((8, 8), dtype=np.uint8), enc.MONO8)
        with pytest.raises(DimensionMismatchError, match="correlation window"):
            BlockMatcher().compute(tiny, tiny, wide_model)

    def test_frame_narrower_than_disparity_range_is_rejected(self, wide_model):
        narrow = make_image(np.zeros((HEIGHT, 32), dtype=np.uint8), enc.MONO8)
        matcher = BlockMatcher(StereoMatcherParameters.from_dict({'disparity_range': 32}))
        with pytest.raises(DimensionMismatchError, match="searched disparities"):
            matcher.compute(narrow, narrow, wide_model)

    def test_window_grown_by_reconfigure_is_checked(self, textured_pair, wide_model):
        matcher = BlockMatcher()
        matcher.update_parameters({'correlation_window_size': 101})
        with pytest.raises(DimensionMismatchError):
            matcher.compute(*textured_pair, wide_model)

    def test_opencv_failures_are_wrapped(self, textured_pair, wide_model):
        class RejectingStereoBM:
            def compute(self, left, right):
                raise cv2.error("SADWindowSize must be odd")

        matcher = BlockMatcher()
        matcher._matcher = RejectingStereoBM()
        with pytest.raises(OpenCVStageError, match="SADWindowSize") as excinfo:
            matcher.compute(*textured_pair, wide_model)
        assert isinstance(excinfo.value.__cause__, cv2.error)
