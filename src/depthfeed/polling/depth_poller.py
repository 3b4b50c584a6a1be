"""
Depth polling driver.

Keeps the latest Depth snapshot of every subscribed (source, pair) fresh,
and optionally the latest Ticker of (source, pair) ticker subscriptions:

    Scheduled -> Fetching -> (Published | Failed) -> Scheduled
    Cancelled on unsubscribe, Stopped when the source drops the pair

Each scheduling pass ("tick") starts a fetch task for every subscription
that is due, idle, and admitted by the shared RequestGate under its
(source, request kind) key. Admission records the request, so a failed
fetch still consumes its slot. Fetches run as separate tasks under a
timeout, so one slow source never delays the others.

Failure policy:
- MarketDataUnavailableError / timeout: retry after exponential backoff,
  capped at the subscription's update interval
- MalformedMarketDataError: no early retry, next fetch at the normal interval
- UnsupportedPairError: subscription stops

Usage:
    poller = DepthPoller(RequestGate(), PollingConfig(tick_interval=0.5))
    poller.add_listener(on_depth)          # (source_id, pair, depth)
    async with poller:
        handle = await poller.subscribe(kraken, CurrencyPair.from_string("BTC<=>USD"))
        ...
        depth = poller.latest_depth("kraken", handle.pair)

Trades are not polled: callers page through them with
source.fetch_trades(pair, since=last_seen_timestamp).
"""

import asyncio
import inspect
import itertools
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from depthfeed.config.structs import PollingConfig
from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.exchanges.structs import (
    Capability,
    CurrencyPair,
    Depth,
    RequestKind,
    SourceId,
    SubscriptionState,
    Ticker,
)
from depthfeed.infrastructure.exceptions import (
    MalformedMarketDataError,
    MarketDataUnavailableError,
    UnsupportedOperationError,
    UnsupportedPairError,
)
from depthfeed.infrastructure.logging import LoggerInterface, LoggingTimer, get_logger
from .rate_limiter import RequestGate
from .subscription import Subscription, SubscriptionHandle

DepthListener = Callable[[SourceId, CurrencyPair, Depth], Union[None, Awaitable[None]]]
TickerListener = Callable[[SourceId, CurrencyPair, Ticker], Union[None, Awaitable[None]]]
SnapshotKey = Tuple[str, CurrencyPair]
SubscriptionKey = Tuple[str, CurrencyPair, RequestKind]


class DepthPoller:
    """Concurrent rate-limited polling of order book snapshots."""

    def __init__(self, gate: Optional[RequestGate] = None, config: Optional[PollingConfig] = None,
                 clock: Optional[Callable[[], float]] = None, logger: Optional[LoggerInterface] = None):
        self.gate = gate or RequestGate()
        self.config = config or PollingConfig()
        self.clock = clock or self.gate.clock
        self.logger = logger or get_logger('depthfeed.poller')

        self._ids = itertools.count(1)
        self._subscriptions: Dict[int, Subscription] = {}
        self._by_key: Dict[SubscriptionKey, Subscription] = {}
        self._snapshots: Dict[SnapshotKey, Depth] = {}
        self._tickers: Dict[SnapshotKey, Ticker] = {}
        self._listeners: List[DepthListener] = []
        self._ticker_listeners: List[TickerListener] = []
        self._registered_sources: Set[str] = set()

        self._fetch_tasks: Set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None
        self._running = False

    # Subscription API

    async def subscribe(self, source: MarketDataSource, pair: CurrencyPair,
                        update_interval: Optional[float] = None) -> SubscriptionHandle:
        """
        Start keeping `pair` on `source` refreshed.

        Subscribing an already subscribed (source, pair) returns its handle.
        A subscription that was stopped is replaced by a new one.

        Raises:
            UnsupportedPairError: the source does not list the pair
            MarketDataUnavailableError: the pair listing could not be fetched
            ValueError: update_interval is not positive
        """
        return await self._subscribe(source, pair, RequestKind.DEPTH, update_interval)

    async def subscribe_ticker(self, source: MarketDataSource, pair: CurrencyPair,
                               update_interval: Optional[float] = None) -> SubscriptionHandle:
        """
        Start keeping the ticker of `pair` on `source` refreshed.

        Ticker requests use their own rate limit key, so they never delay
        depth fetches of the same source.

        Raises:
            UnsupportedOperationError: the source serves no tickers
            UnsupportedPairError: the source does not list the pair
        """
        if source.capability(RequestKind.TICKER) is not Capability.SUPPORTED:
            raise UnsupportedOperationError("Ticker requests are not supported", source.source_id, pair)
        return await self._subscribe(source, pair, RequestKind.TICKER, update_interval)

    def _live_subscription(self, key: SubscriptionKey) -> Optional[Subscription]:
        existing = self._by_key.get(key)
        if existing is not None and not existing.active:
            del self._by_key[key]
            return None
        return existing

    async def _subscribe(self, source: MarketDataSource, pair: CurrencyPair, kind: RequestKind,
                         update_interval: Optional[float]) -> SubscriptionHandle:
        if update_interval is not None and update_interval <= 0:
            raise ValueError(f"update_interval must be positive: {update_interval}")

        key = (source.source_id, pair, kind)
        existing = self._live_subscription(key)
        if existing is not None:
            return existing.handle

        if not await source.is_supported_pair(pair):
            raise UnsupportedPairError(f"Pair {pair} is not listed", source.source_id, pair)

        # Another subscribe may have completed while the listing was fetched
        existing = self._live_subscription(key)
        if existing is not None:
            return existing.handle

        if source.source_id not in self._registered_sources:
            self.gate.register_source(source)
            self._registered_sources.add(source.source_id)

        if update_interval is None:
            update_interval = (source.update_interval if kind is RequestKind.DEPTH
                               else source.minimum_request_interval(kind))
        handle = SubscriptionHandle(next(self._ids), source.source_id, pair, kind)
        subscription = Subscription(
            handle=handle,
            source=source,
            update_interval=update_interval,
            next_due=self.clock(),
        )
        self._subscriptions[handle.subscription_id] = subscription
        self._by_key[key] = subscription

        self.logger.audit("Subscribed", source=source.source_id, pair=pair, kind=kind.value,
                          subscription_id=handle.subscription_id,
                          update_interval=subscription.update_interval)
        return handle

    def unsubscribe(self, handle: SubscriptionHandle, drop_snapshot: bool = False) -> bool:
        """
        Stop refreshing a subscription. Safe while its fetch is in flight.

        An in-flight fetch completes but its result is discarded. The last
        published snapshot stays readable through latest_depth() (or
        latest_ticker()) unless `drop_snapshot` is set.

        Returns:
            False if the handle was not (or no longer) subscribed
        """
        subscription = self._subscriptions.pop(handle.subscription_id, None)
        if subscription is None:
            return False

        subscription.state = SubscriptionState.CANCELLED
        key = (handle.source_id, handle.pair, handle.kind)
        if self._by_key.get(key) is subscription:
            del self._by_key[key]
        if drop_snapshot:
            self._store(handle.kind).pop((handle.source_id, handle.pair), None)

        self.logger.audit("Unsubscribed", source=handle.source_id, pair=handle.pair, kind=handle.kind.value,
                          subscription_id=handle.subscription_id,
                          fetch_in_flight=subscription.in_flight)
        return True

    def latest_depth(self, source: Union[MarketDataSource, str], pair: CurrencyPair) -> Optional[Depth]:
        """Last published snapshot, or None if nothing was published yet."""
        source_id = source.source_id if isinstance(source, MarketDataSource) else source
        return self._snapshots.get((source_id, pair))

    def latest_ticker(self, source: Union[MarketDataSource, str], pair: CurrencyPair) -> Optional[Ticker]:
        """Last published ticker, or None if nothing was published yet."""
        source_id = source.source_id if isinstance(source, MarketDataSource) else source
        return self._tickers.get((source_id, pair))

    def _store(self, kind: RequestKind) -> Dict[SnapshotKey, Any]:
        return self._tickers if kind is RequestKind.TICKER else self._snapshots

    def state(self, handle: SubscriptionHandle) -> SubscriptionState:
        subscription = self._subscriptions.get(handle.subscription_id)
        if subscription is None:
            return SubscriptionState.CANCELLED
        return subscription.state

    def get_subscription(self, handle: SubscriptionHandle) -> Optional[Subscription]:
        return self._subscriptions.get(handle.subscription_id)

    def subscriptions(self) -> List[SubscriptionHandle]:
        return [subscription.handle for subscription in self._subscriptions.values()]

    # Listener API

    def add_listener(self, listener: DepthListener) -> None:
        """Register a plain or coroutine function called with (source_id, pair, depth)."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: DepthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_ticker_listener(self, listener: TickerListener) -> None:
        """Register a plain or coroutine function called with (source_id, pair, ticker)."""
        if listener not in self._ticker_listeners:
            self._ticker_listeners.append(listener)

    def remove_ticker_listener(self, listener: TickerListener) -> None:
        if listener in self._ticker_listeners:
            self._ticker_listeners.remove(listener)

    # Scheduling

    async def tick(self) -> int:
        """
        Run one scheduling pass.

        Returns:
            Number of fetches started
        """
        now = self.clock()
        started = 0
        # Longest-waiting first, so pairs sharing a source gate take turns
        for subscription in sorted(self._subscriptions.values(), key=lambda sub: sub.next_due):
            if not subscription.is_due(now):
                continue
            if not await self.gate.try_admit(subscription.source_id, subscription.kind, now):
                continue

            subscription.in_flight = True
            subscription.state = SubscriptionState.FETCHING
            task = asyncio.create_task(self._fetch(subscription),
                                       name=f"{subscription.kind.value}-fetch-{subscription.handle}")
            self._fetch_tasks.add(task)
            task.add_done_callback(self._fetch_tasks.discard)
            started += 1
        return started

    async def _run_loop(self) -> None:
        self.logger.info("Depth poller started", tick_interval=self.config.tick_interval,
                         subscriptions=len(self._subscriptions))
        while self._running:
            try:
                await self.tick()
            except Exception as e:
                # Scheduling must survive any single failure
                self.logger.error("Scheduling pass failed", error_type=type(e).__name__,
                                  error_message=str(e))
            await asyncio.sleep(self.config.tick_interval)

    async def _fetch(self, subscription: Subscription) -> None:
        source_id, pair = subscription.source_id, subscription.pair
        subscription.total_fetches += 1
        try:
            snapshot = await self._load(subscription)
        except asyncio.TimeoutError:
            self._on_unavailable(subscription, f"Fetch timed out after {self.config.fetch_timeout}s")
        except MarketDataUnavailableError as e:
            self._on_unavailable(subscription, str(e))
        except MalformedMarketDataError as e:
            self._on_malformed(subscription, e)
        except UnsupportedPairError as e:
            self._on_unsupported(subscription, e)
        except Exception as e:
            self.logger.error("Unexpected error from source", source=source_id, pair=pair,
                              error_type=type(e).__name__, error_message=str(e))
            self._on_unavailable(subscription, f"{type(e).__name__}: {e}")
        else:
            await self._on_success(subscription, snapshot)
        finally:
            subscription.in_flight = False

    async def _load(self, subscription: Subscription) -> Union[Depth, Ticker]:
        source, source_id, pair = subscription.source, subscription.source_id, subscription.pair
        if subscription.kind is RequestKind.TICKER:
            with LoggingTimer(self.logger, "ticker_fetch", source=source_id):
                payload = await asyncio.wait_for(source.fetch_ticker(pair), timeout=self.config.fetch_timeout)
            return Ticker.build(pair, source_id, payload)

        with LoggingTimer(self.logger, "depth_fetch", source=source_id):
            payload = await asyncio.wait_for(source.fetch_depth(pair), timeout=self.config.fetch_timeout)
        return Depth.from_payload(pair, source_id, payload)

    async def _on_success(self, subscription: Subscription, snapshot: Union[Depth, Ticker]) -> None:
        if not subscription.active:
            self.logger.debug("Discarding result of cancelled subscription",
                              source=subscription.source_id, pair=subscription.pair,
                              kind=subscription.kind.value)
            return

        now = self.clock()
        self._store(subscription.kind)[(subscription.source_id, subscription.pair)] = snapshot
        subscription.state = SubscriptionState.PUBLISHED
        subscription.consecutive_failures = 0
        subscription.last_error = None
        subscription.last_published_at = now
        subscription.next_due = now + subscription.update_interval

        if subscription.kind is RequestKind.TICKER:
            self.logger.debug("Ticker published", source=subscription.source_id, pair=subscription.pair,
                              last=snapshot.last)
            self.logger.counter("ticker_published", source=subscription.source_id)
            await self._notify(self._ticker_listeners, subscription.source_id, subscription.pair, snapshot)
            return

        self.logger.debug("Depth published", source=subscription.source_id, pair=subscription.pair,
                          bids=snapshot.bid_size, asks=snapshot.ask_size)
        self.logger.counter("depth_published", source=subscription.source_id)
        await self._notify(self._listeners, subscription.source_id, subscription.pair, snapshot)

    def _record_failure(self, subscription: Subscription, message: str) -> bool:
        """Update failure counters. Returns False if the subscription is gone."""
        if not subscription.active:
            return False
        subscription.state = SubscriptionState.FAILED
        subscription.consecutive_failures += 1
        subscription.total_failures += 1
        subscription.last_error = message
        return True

    def backoff_delay(self, subscription: Subscription) -> float:
        exponent = max(subscription.consecutive_failures - 1, 0)
        return min(self.config.backoff_base * (2 ** exponent), subscription.update_interval)

    def _on_unavailable(self, subscription: Subscription, message: str) -> None:
        if not self._record_failure(subscription, message):
            return
        delay = self.backoff_delay(subscription)
        subscription.next_due = self.clock() + delay
        self.logger.warning("Market data unavailable, retrying with backoff",
                            source=subscription.source_id, pair=subscription.pair,
                            error_message=message, retry_in=delay,
                            consecutive_failures=subscription.consecutive_failures)

    def _on_malformed(self, subscription: Subscription, error: MalformedMarketDataError) -> None:
        if not self._record_failure(subscription, str(error)):
            return
        subscription.next_due = self.clock() + subscription.update_interval
        self.logger.error("Malformed market data", source=subscription.source_id, pair=subscription.pair,
                          error_message=error.message, raw_value=repr(error.raw_value))

    def _on_unsupported(self, subscription: Subscription, error: UnsupportedPairError) -> None:
        if not self._record_failure(subscription, str(error)):
            return
        subscription.state = SubscriptionState.STOPPED
        # The handle keeps reporting STOPPED; a new subscribe starts over
        key = (subscription.source_id, subscription.pair, subscription.kind)
        if self._by_key.get(key) is subscription:
            del self._by_key[key]
        self.logger.error("Pair no longer supported, subscription stopped",
                          source=subscription.source_id, pair=subscription.pair,
                          error_message=error.message)
        self.logger.audit("Subscription stopped", source=subscription.source_id, pair=subscription.pair,
                          subscription_id=subscription.handle.subscription_id)

    async def _notify(self, listeners: List[Callable], source_id: SourceId, pair: CurrencyPair,
                      snapshot: Union[Depth, Ticker]) -> None:
        for listener in list(listeners):
            try:
                result = listener(source_id, pair, snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error("Listener failed", source=source_id, pair=pair,
                                  listener=getattr(listener, '__qualname__', repr(listener)),
                                  error_type=type(e).__name__, error_message=str(e))

    # Lifecycle

    @property
    def running(self) -> bool:
        return self._running

    async def wait_for_fetches(self) -> None:
        """Wait until every fetch started so far has completed."""
        while self._fetch_tasks:
            await asyncio.gather(*list(self._fetch_tasks), return_exceptions=True)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop(), name="depth-poller")

    async def stop(self, close_sources: bool = False) -> None:
        """Stop scheduling and wait for in-flight fetches (bounded by fetch_timeout)."""
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

        await self.wait_for_fetches()

        if close_sources:
            sources = {id(sub.source): sub.source for sub in self._subscriptions.values()}
            for source in sources.values():
                await source.close()

        self.logger.info("Depth poller stopped", subscriptions=len(self._subscriptions))

    async def __aenter__(self) -> "DepthPoller":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "subscriptions": len(self._subscriptions),
            "fetches_in_flight": len(self._fetch_tasks),
            "snapshots": len(self._snapshots),
            "tickers": len(self._tickers),
            "listeners": len(self._listeners) + len(self._ticker_listeners),
            "per_subscription": {
                str(sub.handle): {
                    "kind": sub.kind.value,
                    "state": sub.state.name,
                    "total_fetches": sub.total_fetches,
                    "total_failures": sub.total_failures,
                    "consecutive_failures": sub.consecutive_failures,
                    "last_error": sub.last_error,
                }
                for sub in self._subscriptions.values()
            },
            "rate_limiter": self.gate.get_stats(),
        }
