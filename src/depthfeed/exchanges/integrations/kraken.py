"""
Kraken public market data.

Endpoints (https://api.kraken.com):
- 0/public/AssetPairs       pair listing
- 0/public/Depth?pair=NAME  order book, levels are [price, volume, timestamp]
- 0/public/Ticker?pair=NAME ticker, values are arrays (a, b, c, v, l, h)
- 0/public/Trades?pair=NAME&since=SECONDS
                            recent trades, [price, volume, time, b|s, m|l, misc, id]

Every response is {"error": [...], "result": {...}}; a non-empty error list
means the request failed even with HTTP 200.
"""

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

# Kraken legacy asset names to common codes
ASSET_ALIASES = {
    'XBT': 'BTC',
    'XXBT': 'BTC',
    'XDG': 'DOGE',
    'XXDG': 'DOGE',
}


def normalize_asset(name: str, legacy: bool = True) -> CurrencyCode:
    """
    Common currency code for a Kraken asset name.

    Only legacy `base`/`quote` names carry the X or Z class prefix; `wsname`
    halves are already plain codes (ZETA, XTZ) apart from aliases like XBT.
    """
    name = name.upper()
    if name in ASSET_ALIASES:
        return CurrencyCode(ASSET_ALIASES[name])
    # Four-letter legacy names carry an X (crypto) or Z (fiat) prefix: XETH, ZUSD
    if legacy and len(name) == 4 and name[0] in 'XZ':
        name = name[1:]
    return CurrencyCode(ASSET_ALIASES.get(name, name))


def parse_asset_pairs(result: Dict[str, Any]) -> Dict[CurrencyPair, str]:
    """Map CurrencyPair -> Kraken pair name from an AssetPairs result."""
    pairs: Dict[CurrencyPair, str] = {}
    for kraken_name, info in result.items():
        if kraken_name.endswith('.d'):  # dark pool books have no public depth
            continue
        wsname = info.get('wsname')
        if wsname and '/' in wsname:
            base, quote = (normalize_asset(name, legacy=False) for name in wsname.split('/', 1))
        else:
            base, quote = normalize_asset(info['base']), normalize_asset(info['quote'])
        if base == quote:
            continue
        pairs[CurrencyPair(base, quote)] = kraken_name
    return pairs


def parse_depth(result: Dict[str, Any], kraken_name: str) -> RawDepthPayload:
    book = result[kraken_name]
    return RawDepthPayload(bids=list(book['bids']), asks=list(book['asks']))


def parse_ticker(result: Dict[str, Any], kraken_name: str) -> RawTickerPayload:
    ticker = result[kraken_name]
    return RawTickerPayload(
        last=ticker['c'][0],
        bid=ticker['b'][0],
        ask=ticker['a'][0],
        high=ticker['h'][1],
        low=ticker['l'][1],
        volume=ticker['v'][1],
    )


def parse_trades(result: Dict[str, Any], kraken_name: str) -> List[RawTrade]:
    # The result is keyed by the canonical pair name next to a "last" cursor
    rows = result.get(kraken_name)
    if rows is None:
        rows = next((value for key, value in result.items() if key != 'last'), None)
    if rows is None:
        raise KeyError(kraken_name)
    trades = []
    for index, row in enumerate(rows):
        trade_id = str(row[6]) if len(row) > 6 else f"{row[2]}-{index}"
        trades.append(RawTrade(
            trade_id=trade_id,
            price=row[0],
            quantity=row[1],
            timestamp=float(row[2]),
            trade_type=TradeType.SELL if row[3] == 's' else TradeType.BUY,
        ))
    return trades


class KrakenMarketDataSource(RestMarketDataSource):
    """Kraken spot order books, tickers and recent trades."""

    source_id = SourceId('kraken')
    base_url = 'https://api.kraken.com'
    default_request_interval = 15.0
    request_intervals = {
        RequestKind.DEPTH: 15.0,
        RequestKind.TICKER: 15.0,
        RequestKind.TRADES: 15.0,
    }

    async def _public(self, method: str, params: Dict[str, Any] = None, pair: CurrencyPair = None) -> Any:
        data = await self._get(f"/0/public/{method}", params, pair)
        if not isinstance(data, dict):
            raise MarketDataUnavailableError(f"Unexpected {method} response type", self.source_id, pair)

        errors = data.get('error') or []
        if errors:
            message = '; '.join(str(error) for error in errors)
            if any('Unknown asset pair' in str(error) for error in errors):
                raise UnsupportedPairError(message, self.source_id, pair)
            raise MarketDataUnavailableError(message, self.source_id, pair)

        if 'result' not in data:
            raise MarketDataUnavailableError(f"No result in {method} response", self.source_id, pair)
        return data['result']

    async def _load_supported_pairs(self) -> Dict[CurrencyPair, str]:
        result = await self._public('AssetPairs')
        return self._extract(parse_asset_pairs, result)

    async def fetch_depth(self, pair: CurrencyPair) -> RawDepthPayload:
        kraken_name = await self.symbol_for(pair)
        result = await self._public('Depth', {'pair': kraken_name}, pair)
        return self._extract(lambda data: parse_depth(data, kraken_name), result, pair)

    async def fetch_ticker(self, pair: CurrencyPair) -> RawTickerPayload:
        kraken_name = await self.symbol_for(pair)
        result = await self._public('Ticker', {'pair': kraken_name}, pair)
        return self._extract(lambda data: parse_ticker(data, kraken_name), result, pair)

    async def fetch_trades(self, pair: CurrencyPair, since: Optional[float] = None) -> List[RawTrade]:
        kraken_name = await self.symbol_for(pair)
        params: Dict[str, Any] = {'pair': kraken_name}
        if since is not None:
            params['since'] = int(since)
        result = await self._public('Trades', params, pair)
        trades = self._extract(lambda data: parse_trades(data, kraken_name), result, pair)
        if since is not None:
            trades = [trade for trade in trades if trade.timestamp > since]
        return trades
