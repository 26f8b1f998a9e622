"""
Processing nodes hosting the stereo pipeline on the transport.
"""

from .base import BaseNode
from .point_cloud_node import PointCloud2Node
from .stereo_proc_node import StereoProcNode

__all__ = [
    'BaseNode',
    'PointCloud2Node',
    'StereoProcNode',
]
