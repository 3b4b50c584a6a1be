"""
Bitstamp public market data (API v2).

Endpoints (https://www.bitstamp.net/api/v2):
- trading-pairs-info/   pair listing, e.g. {"name": "BTC/USD", "url_symbol": "btcusd"}
- order_book/{symbol}/  {"timestamp": ..., "bids": [[price, amount]], "asks": [...]}
- ticker/{symbol}/      {"last", "bid", "ask", "high", "low", "volume", "vwap", ...}
- transactions/{symbol}/?time=minute|hour|day
                        [{"date", "tid", "price", "amount", "type": 0 buy | 1 sell}]

Unknown symbols are answered with HTTP 404.
"""

import time
from typing import Any, Dict, List, Optional

from depthfeed.exchanges.rest import RestMarketDataSource
from depthfeed.exchanges.structs import (
    CurrencyCode,
    CurrencyPair,
    RawDepthPayload,
    RawTickerPayload,
    RawTrade,
    RequestKind,
    SourceId,
    TradeType,
)
from depthfeed.infrastructure.exceptions import MarketDataUnavailableError, UnsupportedPairError


def parse_trading_pairs(pairs_info: List[Dict[str, Any]]) -> Dict[CurrencyPair, str]:
    pairs: Dict[CurrencyPair, str] = {}
    for info in pairs_info:
        if info.get('trading', 'Enabled') != 'Enabled':
            continue
        base, quote = info['name'].split('/', 1)
        pairs[CurrencyPair(CurrencyCode(base.upper()), CurrencyCode(quote.upper()))] = info['url_symbol']
    return pairs


def parse_order_book(book: Dict[str, Any]) -> RawDepthPayload:
    return RawDepthPayload(bids=list(book['bids']), asks=list(book['asks']))


def parse_ticker(ticker: Dict[str, Any]) -> RawTickerPayload:
    return RawTickerPayload(
        last=ticker['last'],
        bid=ticker.get('bid'),
        ask=ticker.get('ask'),
        high=ticker.get('high'),
        low=ticker.get('low'),
        volume=ticker.get('volume'),
    )


def parse_transactions(transactions: List[Dict[str, Any]]) -> List[RawTrade]:
    return [
        RawTrade(
            trade_id=str(item['tid']),
            price=item['price'],
            quantity=item['amount'],
            timestamp=float(item['date']),
            trade_type=TradeType.SELL if int(item['type']) == 1 else TradeType.BUY,
        )
        for item in transactions
    ]


def transactions_window(since: Optional[float], now: float) -> str:
    """Smallest `time` window of the transactions endpoint that reaches back to `since`."""
    if since is None:
        return 'hour'
    age = now - since
    if age <= 60:
        return 'minute'
    if age <= 3600:
        return 'hour'
    return 'day'


class BitstampMarketDataSource(RestMarketDataSource):
    """Bitstamp order books, tickers and recent trades."""

    source_id = SourceId('bitstamp')
    base_url = 'https://www.bitstamp.net/api/v2'
    default_request_interval = 15.0
    request_intervals = {
        RequestKind.DEPTH: 15.0,
        RequestKind.TICKER: 15.0,
        RequestKind.TRADES: 15.0,
    }

    def _handle_error(self, status: int, response_text: str, pair: Optional[CurrencyPair] = None) -> Exception:
        if status == 404 and pair is not None:
            return UnsupportedPairError(f"Pair {pair} is not listed (HTTP 404)", self.source_id, pair)
        return MarketDataUnavailableError(
            f"HTTP {status}: {response_text[:200]}", self.source_id, pair, status_code=status
        )

    async def _load_supported_pairs(self) -> Dict[CurrencyPair, str]:
        data = await self._get('/trading-pairs-info/')
        return self._extract(parse_trading_pairs, data)

    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        symbol = await self.symbol_for(pair)
        data = await self._get(f'/order_book/{symbol}/', pair=pair)
        return self._extract(parse_order_book, data, pair)

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        symbol = await self.symbol_for(pair)
        data = await self._get(f'/ticker/{symbol}/', pair=pair)
        return self._extract(parse_ticker, data, pair)

    async def fetch_trades(self, pair: CurrencyPair, since: Optional[float] = None) -> List[RawTrade]:
        symbol = await self.symbol_for(pair)
        data = await self._get(f'/transactions/{symbol}/',
                               params={'time': transactions_window(since, time.time())}, pair=pair)
        trades = self._extract(parse_transactions, data, pair)
        if since is not None:
            trades = [trade for trade in trades if trade.timestamp > since]
        return trades
