from .kraken import KrakenMarketDataSource
from .bitstamp import BitstampMarketDataSource
from .bitfinex import BitfinexMarketDataSource

__all__ = [
    'KrakenMarketDataSource',
    'BitstampMarketDataSource',
    'BitfinexMarketDataSource',
]
