"""
Stream synchronization for the stereo processing pipeline.
"""

from .time_synchronizer import SynchronizedTuple, TimeSynchronizer, header_stamp

__all__ = [
    'SynchronizedTuple',
    'TimeSynchronizer',
    'header_stamp',
]
