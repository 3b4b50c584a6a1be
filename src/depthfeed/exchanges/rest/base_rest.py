"""
Shared REST transport for public market data sources.

Owns the aiohttp session, decodes JSON with msgspec and translates every
transport, status and payload failure into MarketDataUnavailableError so no
aiohttp or msgspec exception crosses the MarketDataSource boundary.

Subclasses implement the site-specific parts:
- `_load_supported_pairs()`: pair listing as {CurrencyPair: exchange symbol}
- `fetch_depth()` / `fetch_ticker()`: endpoint layout and field mapping
- `_handle_error()`: optional mapping of site error bodies
"""

import asyncio
import time
from abc import abstractmethod
from typing import Any, Callable, Dict, FrozenSet, Optional, TypeVar

import aiohttp
import msgspec

from depthfeed.config.structs import NetworkConfig, SourceConfig
from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.exchanges.structs import CurrencyPair, RequestKind
from depthfeed.infrastructure.exceptions import (
    MarketDataError,
    MarketDataUnavailableError,
    UnsupportedPairError,
)
from depthfeed.infrastructure.logging import LoggerInterface, get_source_logger

T = TypeVar("T")


def _preview(body: bytes, limit: Optional[int] = None) -> str:
    """Response body as text for error messages; undecodable bytes are replaced."""
    text = body.decode("utf-8", errors="replace")
    return text if limit is None else text[:limit]


class RestMarketDataSource(MarketDataSource):
    """
    Base class for REST-polled exchange adapters.

    The aiohttp session is created lazily on first request and closed by
    close(). A session passed in by the caller is shared and left open.
    """

    base_url: str = ""

    def __init__(self, config: Optional[SourceConfig] = None, network: Optional[NetworkConfig] = None,
                 logger: Optional[LoggerInterface] = None, session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self.network = network or NetworkConfig()
        if config is not None and config.base_url:
            self.base_url = config.base_url.rstrip('/')

        self.logger = logger or get_source_logger(self.source_id, 'rest')

        self._session = session
        self._owns_session = session is None
        self._pair_symbols: Optional[Dict[CurrencyPair, str]] = None
        self._pairs_lock = asyncio.Lock()

        self._request_count = 0
        self._error_count = 0
        self._total_latency = 0.0

        self.logger.debug(f"{self.source_id} REST source initialized", source=self.source_id,
                          base_url=self.base_url)

    def minimum_request_interval(self, kind: RequestKind) -> float:
        if self.config is not None and self.config.min_request_interval is not None:
            return self.config.min_request_interval
        return super().minimum_request_interval(kind)

    @property
    def update_interval(self) -> float:
        if self.config is not None and self.config.update_interval is not None:
            return self.config.update_interval
        return super().update_interval

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.network.max_connections,
                ttl_dns_cache=300,
                keepalive_timeout=30,
            )
            timeout = aiohttp.ClientTimeout(
                total=self.network.request_timeout,
                connect=self.network.connect_timeout,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers={
                    'User-Agent': 'depthfeed/0.1',
                    'Accept': 'application/json',
                }
            )
            self._owns_session = True
        return self._session

    def _handle_error(self, status: int, response_text: str, pair: Optional[CurrencyPair] = None) -> Exception:
        """Map a non-success HTTP response to an exception. Override for site error bodies."""
        return MarketDataUnavailableError(
            f"HTTP {status}: {response_text[:200]}", self.source_id, pair, status_code=status
        )

    def _parse_response(self, body: bytes, pair: Optional[CurrencyPair] = None) -> Any:
        try:
            return msgspec.json.decode(body)
        except msgspec.DecodeError as e:
            raise MarketDataUnavailableError(
                f"Invalid JSON response: {_preview(body, 100)}", self.source_id, pair
            ) from e

    async def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                   pair: Optional[CurrencyPair] = None) -> Any:
        """
        GET `endpoint` and return the decoded JSON body.

        Raises:
            MarketDataUnavailableError: transport failure, timeout, error status or invalid JSON
            UnsupportedPairError: when `_handle_error` recognizes an unknown-pair response
        """
        url = f"{self.base_url}{endpoint}"
        start_time = time.perf_counter()
        try:
            session = await self._ensure_session()
            async with session.request('GET', url, params=params) as response:
                body = await response.read()
                if response.status >= 400:
                    raise self._handle_error(response.status, _preview(body), pair)
                result = self._parse_response(body, pair)
        except MarketDataError:
            self._error_count += 1
            raise
        except asyncio.TimeoutError as e:
            self._error_count += 1
            raise MarketDataUnavailableError(f"Request timed out: {endpoint}", self.source_id, pair) from e
        except aiohttp.ClientError as e:
            self._error_count += 1
            raise MarketDataUnavailableError(
                f"Request failed: {type(e).__name__}: {e}", self.source_id, pair
            ) from e
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self._request_count += 1
            self._total_latency += duration_ms
            self.logger.latency("rest_request", duration_ms, source=self.source_id, endpoint=endpoint)

        return result

    def _extract(self, parser: Callable[[Any], T], data: Any, pair: Optional[CurrencyPair] = None) -> T:
        """Run a payload parser, turning shape errors into MarketDataUnavailableError."""
        try:
            return parser(data)
        except MarketDataError as e:
            if e.source is None:
                e.source = self.source_id
            if e.pair is None:
                e.pair = pair
            raise
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise MarketDataUnavailableError(
                f"Unexpected payload shape: {type(e).__name__}: {e}", self.source_id, pair
            ) from e

    @abstractmethod
    async def _load_supported_pairs(self) -> Dict[CurrencyPair, str]:
        """Fetch the pair listing as a mapping to exchange symbols."""
        pass

    async def _pair_symbol_map(self) -> Dict[CurrencyPair, str]:
        if self._pair_symbols is None:
            async with self._pairs_lock:
                if self._pair_symbols is None:
                    self._pair_symbols = await self._load_supported_pairs()
                    self.logger.info("Loaded supported pairs", source=self.source_id,
                                     count=len(self._pair_symbols))
        return self._pair_symbols

    async def supported_pairs(self) -> FrozenSet[CurrencyPair]:
        return frozenset(await self._pair_symbol_map())

    async def symbol_for(self, pair: CurrencyPair) -> str:
        """Exchange symbol for `pair`, e.g. 'XXBTZUSD' on Kraken."""
        symbol = (await self._pair_symbol_map()).get(pair)
        if symbol is None:
            raise UnsupportedPairError(f"Pair {pair} is not listed", self.source_id, pair)
        return symbol

    def invalidate_pairs(self) -> None:
        """Drop the cached pair listing; the next call reloads it."""
        self._pair_symbols = None

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

        if self._request_count > 0:
            self.logger.info(f"{self.source_id} REST source closed",
                             source=self.source_id,
                             total_requests=self._request_count,
                             failed_requests=self._error_count,
                             avg_latency_ms=self._total_latency / self._request_count)

    def get_performance_stats(self) -> Dict[str, Any]:
        return {
            "source": self.source_id,
            "total_requests": self._request_count,
            "failed_requests": self._error_count,
            "avg_latency_ms": self._total_latency / self._request_count if self._request_count else 0.0,
        }
