from .market_data import (
    MarketDataError,
    MalformedMarketDataError,
    CurrencyMismatchError,
    EmptyBookError,
    IndexOutOfRangeError,
    MarketDataUnavailableError,
    UnsupportedPairError,
    UnsupportedOperationError,
    RateLimitExceededError,
)
from .system import ConfigurationError

__all__ = [
    'MarketDataError',
    'MalformedMarketDataError',
    'CurrencyMismatchError',
    'EmptyBookError',
    'IndexOutOfRangeError',
    'MarketDataUnavailableError',
    'UnsupportedPairError',
    'UnsupportedOperationError',
    'RateLimitExceededError',
    'ConfigurationError',
]
