"""
Publish/subscribe boundary of the stereo processing pipeline.

This package contains the in-process transport, on-demand input subscribers
and the advertisement checker for required inputs.
"""

from .local_transport import LocalTransport, Publisher, Subscription
from .subscriber import InputSubscriber, InputGroup
from .advertisement_checker import AdvertisementChecker

__all__ = [
    'LocalTransport',
    'Publisher',
    'Subscription',
    'InputSubscriber',
    'InputGroup',
    'AdvertisementChecker',
]
