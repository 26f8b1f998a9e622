"""
Consumer-driven lifecycle of upstream subscriptions.
"""

from .subscription_manager import (
    LifecycleState,
    SubscriberCountEvent,
    SubscriptionLifecycleManager,
)

__all__ = [
    'LifecycleState',
    'SubscriberCountEvent',
    'SubscriptionLifecycleManager',
]
