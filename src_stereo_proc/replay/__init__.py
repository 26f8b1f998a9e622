"""
Offline replay of recorded stereo datasets and recording of the outputs.
"""

from .dataset_loader import DatasetLoader, StereoFrame
from .output_recorder import OutputRecorder

__all__ = [
    'DatasetLoader',
    'StereoFrame',
    'OutputRecorder',
]
