"""
Test doubles for depth feed unit tests.

Scripted sources replace real exchanges; the fake HTTP session replaces
aiohttp so REST adapters can be tested against canned JSON bodies.
"""

from .mock_source import FakeMarketDataSource, FakeTickerSource, ManualClock, depth_payload
from .mock_http import FakeResponse, FakeSession

__all__ = [
    "FakeMarketDataSource",
    "FakeTickerSource",
    "ManualClock",
    "depth_payload",
    "FakeResponse",
    "FakeSession",
]
