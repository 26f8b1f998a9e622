"""Shared fixtures for the stereo processing test suite.

Provides:
- project root on sys.path (the flat layout is not installed for tests)
- synthetic calibration: fx = fy = 100, principal point (0.5, 0.5), baseline 0.1
- image / camera info / disparity factories
- an in-process transport
- log capture on the 'stereo_proc' logger hierarchy
"""

import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src_stereo_proc.core import image_encodings as enc  # noqa: E402
from src_stereo_proc.core.messages import (  # noqa: E402
    CameraInfo,
    DisparityImage,
    Header,
    Image,
    INVALID_DISPARITY,
)
from src_stereo_proc.transport import LocalTransport  # noqa: E402

FX = 100.0
FY = 100.0
CX = 0.5
CY = 0.5
BASELINE = 0.1


def make_camera_info(
    stamp: int = 1,
    side: str = "left",
    width: int = 2,
    height: int = 2,
    fx: float = FX,
    fy: float = FY,
    cx: float = CX,
    cy: float = CY,
    baseline: float = BASELINE,
    frame_id: Optional[str] = None
) -> CameraInfo:
    """Calibration of an ideal rectified rig; the right camera carries Tx = -fx * baseline."""
    tx = -fx * baseline if side == "right" else 0.0
    return CameraInfo(
        header=Header(stamp=stamp, frame_id=frame_id or f"{side}_optical"),
        height=height,
        width=width,
        distortion_model="plumb_bob",
        D=(0.0, 0.0, 0.0, 0.0, 0.0),
        K=(fx, 0.0, cx, 0.0, fy, cy, 0.0, 0.0, 1.0),
        R=(1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0),
        P=(fx, 0.0, cx, tx, 0.0, fy, cy, 0.0, 0.0, 0.0, 1.0, 0.0),
    )


def make_disparity(values, stamp: int = 1, invalid_value: float = INVALID_DISPARITY,
                   frame_id: str = "left_optical") -> DisparityImage:
    grid = np.asarray(values, dtype=np.float32)
    return DisparityImage.from_array(
        grid, Header(stamp=stamp, frame_id=frame_id),
        f=FX, T=BASELINE, invalid_value=invalid_value
    )


def make_image(pixels, encoding: str, stamp: int = 1, frame_id: str = "left_optical") -> Image:
    return Image.from_array(np.asarray(pixels), encoding, Header(stamp=stamp, frame_id=frame_id))


@pytest.fixture
def camera_info_factory() -> Callable[..., CameraInfo]:
    return make_camera_info


@pytest.fixture
def camera_infos():
    """Left/right calibration for a 2x2 grid at stamp 1."""
    return make_camera_info(1, "left"), make_camera_info(1, "right")


@pytest.fixture
def stereo_model(camera_infos):
    from src_stereo_proc.calibration import StereoCameraModel
    return StereoCameraModel.from_camera_info(*camera_infos)


@pytest.fixture
def gray_image():
    """2x2 mono8 image filled with 200."""
    return make_image(np.full((2, 2), 200, dtype=np.uint8), enc.MONO8)


@pytest.fixture
def transport() -> LocalTransport:
    return LocalTransport()


@pytest.fixture
def stereo_logs(caplog):
    """caplog attached to the 'stereo_proc' hierarchy, which does not propagate to root."""
    logger = logging.getLogger("stereo_proc")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="stereo_proc")
    yield caplog
    logger.removeHandler(caplog.handler)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FixedMatcher:
    """Stands in for the block matcher and returns a fixed disparity grid."""

    def __init__(self, grid):
        self.grid = grid
        self.calls = 0
        self.updates = []

    def compute(self, left_rect, right_rect, model):
        self.calls += 1
        return make_disparity(self.grid, stamp=left_rect.header.stamp, frame_id=left_rect.header.frame_id)

    def update_parameters(self, values):
        if 'disparity_range' in values and values['disparity_range'] % 16:
            raise ValueError("disparity_range must be a positive multiple of 16")
        self.updates.append(dict(values))
        return values
