from typing import Any, Optional


class MarketDataError(Exception):
    """Base exception for all market data errors."""
    def __init__(self, message: str, source: Optional[str] = None, pair: Optional[Any] = None) -> None:
        self.message = message
        self.source = source
        self.pair = pair
        super().__init__(message)

    def __str__(self):
        parts = [self.message]
        if self.source:
            parts.append(f"source={self.source}")
        if self.pair is not None:
            parts.append(f"pair={self.pair}")
        return " | ".join(parts)


# Normalization errors (Non-retryable)
class MalformedMarketDataError(MarketDataError):
    """Raw levels failed sanity checks (unparsable or non-positive values)."""
    def __init__(self, message: str, raw_value: Any = None, source: Optional[str] = None,
                 pair: Optional[Any] = None) -> None:
        super().__init__(message, source, pair)
        self.raw_value = raw_value

    def __str__(self):
        return f"{super().__str__()} | raw={self.raw_value!r}"


class CurrencyMismatchError(MarketDataError, ValueError):
    """Arithmetic or comparison between amounts of different currencies."""
    pass


# Query errors (Caller-recoverable)
class EmptyBookError(MarketDataError):
    """Best-level query on an order book side with zero levels."""
    pass


class IndexOutOfRangeError(MarketDataError, IndexError):
    """Level index outside [0, size) for the requested side."""
    pass


# Source errors
class MarketDataUnavailableError(MarketDataError):
    """Transport failure, non-success HTTP status or unparsable payload. Retryable."""
    def __init__(self, message: str, source: Optional[str] = None, pair: Optional[Any] = None,
                 status_code: Optional[int] = None) -> None:
        super().__init__(message, source, pair)
        self.status_code = status_code


class UnsupportedPairError(MarketDataError):
    """The source does not list the requested currency pair. Fatal for a subscription."""
    pass


class UnsupportedOperationError(MarketDataError):
    """The source reports this request kind as unsupported."""
    pass


class RateLimitExceededError(MarketDataError):
    """A direct request was attempted while the source was still cooling down."""
    def __init__(self, message: str, source: Optional[str] = None, retry_after: float = 0.0) -> None:
        super().__init__(message, source)
        self.retry_after = retry_after

    def __str__(self):
        return f"{super().__str__()} | retry_after={self.retry_after:.3f}s"
