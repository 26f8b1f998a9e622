"""
Requested-output flags and their dependency closure.

The stereo node computes only what downstream consumers ask for. Demand is
expressed as an OutputDemand bit set derived from live subscriber counts and
then closed over the processing dependencies, e.g. a point cloud needs a
disparity image, which in turn needs both rectified mono images.
"""

from enum import IntFlag
from typing import Dict, Mapping


class OutputDemand(IntFlag):
    NONE = 0

    LEFT_MONO = 1 << 0
    LEFT_RECT = 1 << 1
    LEFT_COLOR = 1 << 2
    LEFT_RECT_COLOR = 1 << 3

    RIGHT_MONO = 1 << 4
    RIGHT_RECT = 1 << 5
    RIGHT_COLOR = 1 << 6
    RIGHT_RECT_COLOR = 1 << 7

    DISPARITY = 1 << 8
    POINT_CLOUD = 1 << 9
    POINT_CLOUD2 = 1 << 10

    LEFT_ALL = LEFT_MONO | LEFT_RECT | LEFT_COLOR | LEFT_RECT_COLOR
    RIGHT_ALL = RIGHT_MONO | RIGHT_RECT | RIGHT_COLOR | RIGHT_RECT_COLOR
    STEREO_ALL = DISPARITY | POINT_CLOUD | POINT_CLOUD2

    @classmethod
    def from_counts(cls, counts: Mapping["OutputDemand", int]) -> "OutputDemand":
        """
        Build the demand set from per-output subscriber counts.

        Args:
            counts: Subscriber count keyed by single-output flag

        Returns:
            OutputDemand: Flags of outputs with at least one subscriber
        """
        demand = cls.NONE
        for flag, count in counts.items():
            if count > 0:
                demand |= flag
        return demand

    def expand_dependencies(self) -> "OutputDemand":
        """Close the demand over the processing dependencies."""
        demand = OutputDemand(self)

        if demand & (OutputDemand.POINT_CLOUD | OutputDemand.POINT_CLOUD2):
            demand |= OutputDemand.DISPARITY | OutputDemand.LEFT_RECT_COLOR
        if demand & OutputDemand.DISPARITY:
            demand |= OutputDemand.LEFT_RECT | OutputDemand.RIGHT_RECT

        for side in _SIDES.values():
            if demand & side['rect_color']:
                demand |= side['rect'] | side['color']
            if demand & side['rect']:
                demand |= side['mono']
        return demand

    def wants(self, flag: "OutputDemand") -> bool:
        return bool(self & flag)


# Per-side flags, so that left and right are handled by the same code paths.
_SIDES: Dict[str, Dict[str, OutputDemand]] = {
    'left': {
        'mono': OutputDemand.LEFT_MONO,
        'rect': OutputDemand.LEFT_RECT,
        'color': OutputDemand.LEFT_COLOR,
        'rect_color': OutputDemand.LEFT_RECT_COLOR,
    },
    'right': {
        'mono': OutputDemand.RIGHT_MONO,
        'rect': OutputDemand.RIGHT_RECT,
        'color': OutputDemand.RIGHT_COLOR,
        'rect_color': OutputDemand.RIGHT_RECT_COLOR,
    },
}


def side_flags(side: str) -> Dict[str, OutputDemand]:
    """Flags of one camera side keyed by image kind ('mono', 'rect', 'color', 'rect_color')."""
    return _SIDES[side]
