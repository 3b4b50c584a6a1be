"""
Depth polling: shared request gate and the subscription driver.

Usage:
    from depthfeed.polling import DepthPoller, RequestGate

    gate = RequestGate()
    poller = DepthPoller(gate)
"""

from .rate_limiter import RateLimitedSource, RequestGate
from .subscription import Subscription, SubscriptionHandle
from .depth_poller import DepthListener, DepthPoller

__all__ = [
    'RequestGate',
    'RateLimitedSource',
    'Subscription',
    'SubscriptionHandle',
    'DepthListener',
    'DepthPoller',
]
