"""
Market data source contract.

Each exchange adapter implements MarketDataSource. The polling core depends
only on this interface: adapters own HTTP, JSON decoding and the mapping from
site-specific field names to raw (price, quantity) levels, and translate
every transport failure into the market data error taxonomy.
"""

from abc import ABC, abstractmethod
from typing import Dict, FrozenSet, List, Mapping, Optional

from depthfeed.exchanges.structs import (
    Capability,
    CurrencyPair,
    RawDepthPayload,
    RawTickerPayload,
    RawTrade,
    RequestKind,
    SourceId,
)
from depthfeed.infrastructure.exceptions import UnsupportedOperationError


class MarketDataSource(ABC):
    """
    Public market data of one exchange.

    Subclasses declare their request interval policy in
    `request_intervals` (seconds per RequestKind); kinds that are missing
    fall back to `default_request_interval`.
    """

    source_id: SourceId
    default_request_interval: float = 15.0
    request_intervals: Mapping[RequestKind, float] = {}

    def minimum_request_interval(self, kind: RequestKind) -> float:
        """Minimum seconds between two requests of `kind` to this source."""
        return self.request_intervals.get(kind, self.default_request_interval)

    @property
    def update_interval(self) -> float:
        """Default polling cadence for depth subscriptions."""
        return self.minimum_request_interval(RequestKind.DEPTH)

    def capability(self, kind: RequestKind) -> Capability:
        """Whether this source can serve `kind`, known before calling it."""
        if kind is RequestKind.DEPTH:
            return Capability.SUPPORTED
        if kind is RequestKind.TICKER:
            overridden = type(self).fetch_ticker is not MarketDataSource.fetch_ticker
        else:
            overridden = type(self).fetch_trades is not MarketDataSource.fetch_trades
        return Capability.SUPPORTED if overridden else Capability.UNSUPPORTED

    def capabilities(self) -> Dict[RequestKind, Capability]:
        return {kind: self.capability(kind) for kind in RequestKind}

    @abstractmethod
    async def supported_pairs(self) -> FrozenSet[CurrencyPair]:
        """
        Pairs listed by this source.

        Raises:
            MarketDataUnavailableError: the listing could not be fetched
        """
        pass

    async def is_supported_pair(self, pair: CurrencyPair) -> bool:
        return pair in await self.supported_pairs()

    @abstractmethod
    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        """
        Fetch the current order book for `pair`.

        Raises:
            MarketDataUnavailableError: network failure, non-success status or
                unparsable payload
            UnsupportedPairError: pair is not listed by this source
        """
        pass

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        """Fetch the current ticker for `pair`. Check capability() first."""
        raise UnsupportedOperationError("Ticker requests are not supported", self.source_id, pair)

    async def fetch_trades(self, pair: CurrencyPair, since: Optional[float] = None) -> List[RawTrade]:
        """
        Fetch recent trades for `pair`, keeping only those after `since`
        (unix seconds). Check capability() first.
        """
        raise UnsupportedOperationError("Trade requests are not supported", self.source_id, pair)

    async def close(self) -> None:
        """Release transport resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source_id})"

