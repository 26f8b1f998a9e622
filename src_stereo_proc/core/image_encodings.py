"""
Pixel encoding tags for images exchanged between pipeline stages.

Tags follow the usual camera driver names so that recorded data can be used
as-is.
"""

from typing import Dict

MONO8 = "mono8"
MONO16 = "mono16"
RGB8 = "rgb8"
BGR8 = "bgr8"
RGBA8 = "rgba8"
BGRA8 = "bgra8"
TYPE_32FC1 = "32FC1"

BAYER_RGGB8 = "bayer_rggb8"
BAYER_BGGR8 = "bayer_bggr8"
BAYER_GBRG8 = "bayer_gbrg8"
BAYER_GRBG8 = "bayer_grbg8"

_CHANNELS: Dict[str, int] = {
    MONO8: 1,
    MONO16: 1,
    RGB8: 3,
    BGR8: 3,
    RGBA8: 4,
    BGRA8: 4,
    TYPE_32FC1: 1,
    BAYER_RGGB8: 1,
    BAYER_BGGR8: 1,
    BAYER_GBRG8: 1,
    BAYER_GRBG8: 1,
}

_BYTES_PER_CHANNEL: Dict[str, int] = {
    MONO16: 2,
    TYPE_32FC1: 4,
}


def is_known(encoding: str) -> bool:
    return encoding in _CHANNELS


def num_channels(encoding: str) -> int:
    """
    Number of channels per pixel.

    Raises:
        ValueError: If the encoding is unknown
    """
    try:
        return _CHANNELS[encoding]
    except KeyError:
        raise ValueError(f"Unknown image encoding: '{encoding}'") from None


def bytes_per_channel(encoding: str) -> int:
    return _BYTES_PER_CHANNEL.get(encoding, 1)


def is_mono(encoding: str) -> bool:
    return encoding in (MONO8, MONO16)


def is_bayer(encoding: str) -> bool:
    return encoding.startswith("bayer_")
