"""
Message data model exchanged between pipeline stages.

These dataclasses mirror the wire messages of a camera/stereo driver stack:
raw and processed images, camera calibration records, disparity images and
point clouds. Frames produced by an external source are treated as read-only:
pipeline stages never modify them, they derive new messages instead.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from . import image_encodings as enc

# Sentinel written into disparity grids where correlation found no match.
INVALID_DISPARITY = -1.0


@dataclass(frozen=True)
class Header:
    """Timestamp (integer nanoseconds) and frame of reference of a message."""

    stamp: int = 0
    frame_id: str = ""
    seq: int = 0


@dataclass(frozen=True)
class Image:
    """
    A timestamped image frame.

    The pixel buffer is stored row-major with `step` bytes per row, which may
    be larger than width * channels * bytes_per_channel when rows are padded.
    """

    header: Header
    height: int
    width: int
    encoding: str
    step: int
    data: bytes
    is_bigendian: bool = False
    metadata: Tuple = ()

    @classmethod
    def from_array(cls, array: np.ndarray, encoding: str, header: Optional[Header] = None,
                   metadata: Tuple = ()) -> "Image":
        """
        Build an image message from a numpy array.

        Args:
            array: (H, W) or (H, W, C) array whose dtype matches the encoding
            encoding: Pixel encoding tag
            header: Message header (default: empty header)
            metadata: Arbitrary metadata carried along with the frame

        Returns:
            Image: New image message owning a copy of the pixels
        """
        array = np.ascontiguousarray(array)
        channels = enc.num_channels(encoding)
        if array.ndim == 2 and channels != 1:
            raise ValueError(f"Encoding '{encoding}' needs {channels} channels, got a 2D array")
        if array.ndim == 3 and array.shape[2] != channels:
            raise ValueError(f"Encoding '{encoding}' needs {channels} channels, got {array.shape[2]}")

        height, width = array.shape[:2]
        step = width * channels * array.dtype.itemsize
        return cls(
            header=header or Header(),
            height=height,
            width=width,
            encoding=encoding,
            step=step,
            data=array.tobytes(),
            metadata=metadata,
        )

    def as_array(self) -> np.ndarray:
        """
        Read-only numpy view of the pixels, honoring the row stride.

        Returns:
            np.ndarray: (H, W) for single-channel encodings, (H, W, C) otherwise
        """
        channels = enc.num_channels(self.encoding)
        dtype = _encoding_dtype(self.encoding, self.is_bigendian)
        row_bytes = self.width * channels * dtype.itemsize

        if self.step < row_bytes:
            raise ValueError(f"Row step {self.step} is smaller than row size {row_bytes}")
        if len(self.data) < self.step * self.height:
            raise ValueError(f"Buffer holds {len(self.data)} bytes, "
                             f"expected {self.step * self.height}")

        raw = np.frombuffer(self.data, dtype=np.uint8, count=self.step * self.height)
        rows = raw.reshape(self.height, self.step)
        if self.step != row_bytes:
            rows = np.ascontiguousarray(rows[:, :row_bytes])
        pixels = rows.view(dtype)

        if channels == 1:
            return pixels.reshape(self.height, self.width)
        return pixels.reshape(self.height, self.width, channels)


def _encoding_dtype(encoding: str, is_bigendian: bool) -> np.dtype:
    if encoding == enc.TYPE_32FC1:
        base = np.dtype(np.float32)
    elif enc.bytes_per_channel(encoding) == 2:
        base = np.dtype(np.uint16)
    else:
        return np.dtype(np.uint8)
    return base.newbyteorder('>' if is_bigendian else '<')


@dataclass(frozen=True)
class CameraInfo:
    """
    Calibration record of one camera.

    K is the 3x3 intrinsic matrix, D the distortion coefficients, R the 3x3
    rectification rotation and P the 3x4 projection matrix of the rectified
    image, all stored row-major. An all-zero K marks an uncalibrated camera.
    """

    header: Header
    height: int
    width: int
    distortion_model: str = "plumb_bob"
    D: Tuple[float, ...] = ()
    K: Tuple[float, ...] = (0.0,) * 9
    R: Tuple[float, ...] = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0)
    P: Tuple[float, ...] = (0.0,) * 12

    @property
    def is_calibrated(self) -> bool:
        return len(self.K) == 9 and self.K[0] != 0.0

    @classmethod
    def from_matrices(cls, header: Header, width: int, height: int, K: np.ndarray,
                      D: np.ndarray, R: np.ndarray, P: np.ndarray,
                      distortion_model: str = "plumb_bob") -> "CameraInfo":
        return cls(
            header=header,
            height=int(height),
            width=int(width),
            distortion_model=distortion_model,
            D=tuple(float(v) for v in np.ravel(D)),
            K=tuple(float(v) for v in np.ravel(K)),
            R=tuple(float(v) for v in np.ravel(R)),
            P=tuple(float(v) for v in np.ravel(P)),
        )


@dataclass
class DisparityImage:
    """
    Disparity grid aligned with the rectified left image.

    `f` and `T` are the focal length and baseline the disparity was computed
    with; pixels where correlation failed hold `invalid_value`.
    """

    header: Header
    image: Image
    f: float = 0.0
    T: float = 0.0
    min_disparity: float = 0.0
    max_disparity: float = 0.0
    delta_d: float = 0.0
    valid_window: Tuple[int, int, int, int] = (0, 0, 0, 0)
    invalid_value: float = INVALID_DISPARITY

    @classmethod
    def from_array(cls, disparity: np.ndarray, header: Header, **kwargs) -> "DisparityImage":
        image = Image.from_array(disparity.astype(np.float32, copy=False), enc.TYPE_32FC1, header)
        return cls(header=header, image=image, **kwargs)

    def as_array(self) -> np.ndarray:
        if self.image.encoding != enc.TYPE_32FC1:
            raise ValueError(f"Disparity image must be {enc.TYPE_32FC1}, got '{self.image.encoding}'")
        return self.image.as_array()


class PointFieldType:
    INT8 = 1
    UINT8 = 2
    INT16 = 3
    UINT16 = 4
    INT32 = 5
    UINT32 = 6
    FLOAT32 = 7
    FLOAT64 = 8


@dataclass(frozen=True)
class PointField:
    name: str
    offset: int
    datatype: int
    count: int = 1


@dataclass
class PointCloud2:
    """
    Dense, organized point cloud: one fixed-size record per pixel, row-major.
    """

    header: Header
    height: int
    width: int
    fields: List[PointField]
    point_step: int
    row_step: int
    data: bytes
    is_bigendian: bool = False
    is_dense: bool = False


@dataclass
class ChannelFloat32:
    name: str
    values: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float32))


@dataclass
class PointCloud:
    """Sparse point list with per-point channels, holding valid points only."""

    header: Header
    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3), dtype=np.float32))
    channels: List[ChannelFloat32] = field(default_factory=list)

    def channel(self, name: str) -> ChannelFloat32:
        for channel in self.channels:
            if channel.name == name:
                return channel
        raise KeyError(f"channel '{name}' not found")
