"""
Packing of pixel colours into the 24-bit rgb value stored with each point.

The packed layout is R << 16 | G << 8 | B regardless of the channel order of
the source image. Mono images contribute the same intensity to all three
channels.
"""

from typing import Optional

import numpy as np

from ..core import image_encodings as enc
from ..core.messages import Image

SUPPORTED_COLOR_ENCODINGS = (enc.MONO8, enc.RGB8, enc.BGR8)


def pack_rgb(red: np.ndarray, green: np.ndarray, blue: np.ndarray) -> np.ndarray:
    """Pack per-channel uint8 arrays into uint32 R << 16 | G << 8 | B."""
    return (red.astype(np.uint32) << 16) | (green.astype(np.uint32) << 8) | blue.astype(np.uint32)


def pack_colors(image: Image) -> Optional[np.ndarray]:
    """
    Packed colour of every pixel of an image.

    Args:
        image: mono8, rgb8 or bgr8 image

    Returns:
        Optional[np.ndarray]: (H, W) uint32 packed colours, or None when the
            encoding is not supported
    """
    if image.encoding not in SUPPORTED_COLOR_ENCODINGS:
        return None

    pixels = image.as_array()
    if image.encoding == enc.MONO8:
        return pack_rgb(pixels, pixels, pixels)
    if image.encoding == enc.RGB8:
        return pack_rgb(pixels[..., 0], pixels[..., 1], pixels[..., 2])
    return pack_rgb(pixels[..., 2], pixels[..., 1], pixels[..., 0])


def unpack_colors(packed: np.ndarray) -> np.ndarray:
    """Split packed colours back into an (..., 3) uint8 array in R, G, B order."""
    packed = packed.astype(np.uint32, copy=False)
    return np.stack(
        [(packed >> 16) & 0xFF, (packed >> 8) & 0xFF, packed & 0xFF],
        axis=-1
    ).astype(np.uint8)
