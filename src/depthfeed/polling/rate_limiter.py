"""
Per-source request admission gate.

Every (source, request kind) key is either idle (no request recorded, or the
minimum interval has elapsed since the last one) or cooling. The gate never
performs I/O and never sleeps: callers ask `is_allowed`, then
`record_request` when they dispatch, or use `try_admit`/`admit` which do both
atomically under a per-key lock.

Time is injectable (explicit `now` or the gate's clock), so tests can walk
through intervals of many sources without real sleeps.
"""

import asyncio
import time
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.exchanges.structs import (
    Capability,
    CurrencyPair,
    RawDepthPayload,
    RawTickerPayload,
    RawTrade,
    RequestKind,
)
from depthfeed.infrastructure.exceptions import RateLimitExceededError, UnsupportedOperationError
from depthfeed.infrastructure.logging import LoggerInterface, get_logger

GateKey = Tuple[str, RequestKind]


class RequestGate:
    """Keyed minimum-interval limiter shared by every subscription of a source."""

    def __init__(self, clock: Callable[[], float] = time.monotonic,
                 logger: Optional[LoggerInterface] = None):
        self.clock = clock
        self.logger = logger or get_logger('depthfeed.rate_limiter')

        self._intervals: Dict[GateKey, float] = {}
        self._last_request_times: Dict[GateKey, float] = {}
        self._request_counts: Dict[GateKey, int] = {}
        self._rejected_counts: Dict[GateKey, int] = {}
        self._locks: Dict[GateKey, asyncio.Lock] = {}

    def register_source(self, source: MarketDataSource) -> None:
        """Take the minimum request interval of every kind from the source policy."""
        for kind in RequestKind:
            self.set_interval(source.source_id, kind, source.minimum_request_interval(kind))

    def set_interval(self, source_id: str, kind: RequestKind, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"Minimum request interval cannot be negative: {seconds}")
        self._intervals[(source_id, kind)] = seconds

    def interval(self, source_id: str, kind: RequestKind) -> float:
        return self._intervals.get((source_id, kind), 0.0)

    def is_allowed(self, source_id: str, kind: RequestKind, now: Optional[float] = None) -> bool:
        """True iff the key is idle at `now`. No side effects."""
        return self.time_until_allowed(source_id, kind, now) <= 0.0

    def time_until_allowed(self, source_id: str, kind: RequestKind, now: Optional[float] = None) -> float:
        key = (source_id, kind)
        last = self._last_request_times.get(key)
        if last is None:
            return 0.0
        if now is None:
            now = self.clock()
        return max(0.0, self._intervals.get(key, 0.0) - (now - last))

    def record_request(self, source_id: str, kind: RequestKind, now: Optional[float] = None) -> None:
        """Mark the key as cooling from `now` on."""
        key = (source_id, kind)
        self._last_request_times[key] = self.clock() if now is None else now
        self._request_counts[key] = self._request_counts.get(key, 0) + 1

    def _lock(self, key: GateKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def try_admit(self, source_id: str, kind: RequestKind, now: Optional[float] = None) -> bool:
        """Check and record in one step. Returns False when the key is cooling."""
        key = (source_id, kind)
        async with self._lock(key):
            if now is None:
                now = self.clock()
            if not self.is_allowed(source_id, kind, now):
                self._rejected_counts[key] = self._rejected_counts.get(key, 0) + 1
                return False
            self.record_request(source_id, kind, now)
            return True

    async def admit(self, source_id: str, kind: RequestKind, now: Optional[float] = None) -> None:
        """
        Check and record in one step.

        Raises:
            RateLimitExceededError: the key is cooling; retry_after says for how long
        """
        if now is None:
            now = self.clock()
        if not await self.try_admit(source_id, kind, now):
            retry_after = self.time_until_allowed(source_id, kind, now)
            self.logger.debug("Request rejected by rate limiter",
                              source=source_id, kind=kind.value, retry_after=retry_after)
            raise RateLimitExceededError(
                f"{kind.value} request issued before minimum interval elapsed",
                source_id, retry_after
            )

    def get_stats(self) -> Dict[str, Any]:
        keys = set(self._intervals) | set(self._last_request_times)
        stats: Dict[str, Any] = {}
        for source_id, kind in sorted(keys, key=lambda key: (key[0], key[1].value)):
            key = (source_id, kind)
            stats.setdefault(source_id, {})[kind.value] = {
                "min_interval": self._intervals.get(key, 0.0),
                "last_request_time": self._last_request_times.get(key),
                "total_requests": self._request_counts.get(key, 0),
                "rejected_requests": self._rejected_counts.get(key, 0),
            }
        return stats


class RateLimitedSource(MarketDataSource):
    """
    Wraps a source so that direct callers honour a RequestGate.

    A fetch issued before the source's minimum interval elapsed raises
    RateLimitExceededError instead of reaching the exchange. The polling
    driver admits requests itself and uses sources unwrapped.
    """

    def __init__(self, source: MarketDataSource, gate: RequestGate):
        self.source = source
        self.gate = gate
        self.source_id = source.source_id
        gate.register_source(source)

    def minimum_request_interval(self, kind: RequestKind) -> float:
        return self.source.minimum_request_interval(kind)

    @property
    def update_interval(self) -> float:
        return self.source.update_interval

    def capability(self, kind: RequestKind) -> Capability:
        return self.source.capability(kind)

    async def supported_pairs(self) -> FrozenSet[CurrencyPair]:
        return await self.source.supported_pairs()

    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        await self.gate.admit(self.source_id, RequestKind.DEPTH)
        return await self.source.fetch_depth(pair)

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        if self.source.capability(RequestKind.TICKER) is not Capability.SUPPORTED:
            raise UnsupportedOperationError("Ticker requests are not supported", self.source_id, pair)
        await self.gate.admit(self.source_id, RequestKind.TICKER)
        return await self.source.fetch_ticker(pair)

    async def fetch_trades(self, pair: CurrencyPair, since: Optional[float] = None) -> List[RawTrade]:
        if self.source.capability(RequestKind.TRADES) is not Capability.SUPPORTED:
            raise UnsupportedOperationError("Trade requests are not supported", self.source_id, pair)
        await self.gate.admit(self.source_id, RequestKind.TRADES)
        return await self.source.fetch_trades(pair, since)

    async def close(self) -> None:
        await self.source.close()
