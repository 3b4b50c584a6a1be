"""
Scripted MarketDataSource for polling tests.

Responses are queued per pair and returned (or raised, for exceptions) in
order. Setting `hold` to an asyncio.Event parks every fetch until the event
is set, which lets tests act while a fetch is in flight.
"""

import asyncio
from collections import defaultdict, deque
from typing import Any, Deque, Dict, FrozenSet, Iterable, List, Optional, Union

from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.exchanges.structs import CurrencyPair, RawDepthPayload, RawTickerPayload, RequestKind, SourceId
from depthfeed.infrastructure.exceptions import MarketDataUnavailableError


def depth_payload(bids: Iterable[Any] = ((100, 1),), asks: Iterable[Any] = ((101, 1),)) -> RawDepthPayload:
    return RawDepthPayload(bids=[list(level) for level in bids], asks=[list(level) for level in asks])


class ManualClock:
    """Monotonic clock moved only by the test."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMarketDataSource(MarketDataSource):
    """Market data source returning scripted depth payloads."""

    def __init__(self, source_id: str = "fake", pairs: Optional[Iterable[CurrencyPair]] = None,
                 interval: float = 15.0):
        self.source_id = SourceId(source_id)
        self.request_intervals = {kind: interval for kind in RequestKind}
        self._pairs = frozenset(pairs or [])
        self.responses: Dict[CurrencyPair, Deque[Union[RawDepthPayload, Exception]]] = defaultdict(deque)
        self.fetch_calls: List[CurrencyPair] = []
        self.hold: Optional[asyncio.Event] = None
        self.closed = False

    def queue(self, pair: CurrencyPair, *responses: Union[RawDepthPayload, Exception]) -> None:
        self.responses[pair].extend(responses)

    async def supported_pairs(self) -> FrozenSet[CurrencyPair]:
        return self._pairs

    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        self.fetch_calls.append(pair)
        if self.hold is not None:
            await self.hold.wait()

        if not self.responses[pair]:
            raise MarketDataUnavailableError("No scripted response", self.source_id, pair)
        response = self.responses[pair].popleft()
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class FakeTickerSource(FakeMarketDataSource):
    """Scripted source that also serves tickers, queued separately from depth."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tickers: Dict[CurrencyPair, Deque[Union[RawTickerPayload, Exception]]] = defaultdict(deque)
        self.ticker_calls: List[CurrencyPair] = []

    def queue_ticker(self, pair: CurrencyPair, *responses: Union[RawTickerPayload, Exception]) -> None:
        self.tickers[pair].extend(responses)

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        self.ticker_calls.append(pair)
        if not self.tickers[pair]:
            raise MarketDataUnavailableError("No scripted ticker", self.source_id, pair)
        response = self.tickers[pair].popleft()
        if isinstance(response, Exception):
            raise response
        return response
