"""
Bitfinex public market data (API v1).

Endpoints (https://api.bitfinex.com/v1):
- symbols              ["btcusd", "ethbtc", "testbtc:testusd", ...]
- book/{symbol}        levels are objects {"price", "amount", "timestamp"}
- pubticker/{symbol}   {"mid", "bid", "ask", "last_price", "low", "high", "volume", ...}

Errors come back as {"message": "..."} with HTTP 400.
"""

from typing import Any, Dict, List, Optional

import msgspec

from depthfeed.exchanges.rest import RestMarketDataSource
from depthfeed.exchanges.structs import (
    CurrencyCode,
    CurrencyPair,
    RawDepthPayload,
    RawTickerPayload,
    RequestKind,
    SourceId,
)
from depthfeed.infrastructure.exceptions import MarketDataUnavailableError, UnsupportedPairError


def split_symbol(symbol: str) -> CurrencyPair:
    """'btcusd' -> BTC<=>USD, 'testbtc:testusd' -> TESTBTC<=>TESTUSD."""
    if ':' in symbol:
        base, quote = symbol.split(':', 1)
    elif len(symbol) == 6:
        base, quote = symbol[:3], symbol[3:]
    else:
        raise ValueError(f"Cannot split Bitfinex symbol: {symbol}")
    return CurrencyPair(CurrencyCode(base.upper()), CurrencyCode(quote.upper()))


def parse_symbols(symbols: List[str]) -> Dict[CurrencyPair, str]:
    pairs: Dict[CurrencyPair, str] = {}
    for symbol in symbols:
        try:
            pairs[split_symbol(symbol)] = symbol
        except ValueError:
            continue
    return pairs


def parse_book(book: Dict[str, Any]) -> RawDepthPayload:
    return RawDepthPayload(
        bids=[[level['price'], level['amount']] for level in book['bids']],
        asks=[[level['price'], level['amount']] for level in book['asks']],
    )


def parse_ticker(ticker: Dict[str, Any]) -> RawTickerPayload:
    return RawTickerPayload(
        last=ticker['last_price'],
        bid=ticker.get('bid'),
        ask=ticker.get('ask'),
        high=ticker.get('high'),
        low=ticker.get('low'),
        volume=ticker.get('volume'),
    )


class BitfinexMarketDataSource(RestMarketDataSource):
    """Bitfinex order books and tickers."""

    source_id = SourceId('bitfinex')
    base_url = 'https://api.bitfinex.com/v1'
    default_request_interval = 15.0
    request_intervals = {
        RequestKind.DEPTH: 15.0,
        RequestKind.TICKER: 15.0,
        RequestKind.TRADES: 15.0,
    }

    def _handle_error(self, status: int, response_text: str, pair: Optional[CurrencyPair] = None) -> Exception:
        message = response_text[:200]
        try:
            body = msgspec.json.decode(response_text)
            if isinstance(body, dict) and 'message' in body:
                message = str(body['message'])
        except msgspec.DecodeError:
            pass

        if status == 400 and pair is not None and 'unknown symbol' in message.lower():
            return UnsupportedPairError(message, self.source_id, pair)
        return MarketDataUnavailableError(f"HTTP {status}: {message}", self.source_id, pair, status_code=status)

    async def _load_supported_pairs(self) -> Dict[CurrencyPair, str]:
        data = await self._get('/symbols')
        return self._extract(parse_symbols, data)

    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        symbol = await self.symbol_for(pair)
        data = await self._get(f'/book/{symbol}', pair=pair)
        return self._extract(parse_book, data, pair)

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        symbol = await self.symbol_for(pair)
        data = await self._get(f'/pubticker/{symbol}', pair=pair)
        return self._extract(parse_ticker, data, pair)
