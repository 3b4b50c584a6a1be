"""
depthfeed: normalized order book snapshots from cryptocurrency exchanges.

Usage:
    from depthfeed import DepthPoller, RequestGate, CurrencyPair
    from depthfeed.exchanges.integrations import KrakenMarketDataSource

    gate = RequestGate()
    poller = DepthPoller(gate)
    async with poller:
        kraken = KrakenMarketDataSource()
        await poller.subscribe(kraken, CurrencyPair.from_string("BTC<=>USD"))
"""

from depthfeed.exchanges.structs import CurrencyPair, Depth, DepthOrder, Money, RequestKind, Side
from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.polling import DepthPoller, RequestGate, SubscriptionHandle

__version__ = "0.1.0"

__all__ = [
    'CurrencyPair',
    'Depth',
    'DepthOrder',
    'Money',
    'RequestKind',
    'Side',
    'MarketDataSource',
    'DepthPoller',
    'RequestGate',
    'SubscriptionHandle',
]
