"""
Normalized market data structures shared by all sources.

Every exchange adapter returns raw payloads (RawDepthPayload, RawTickerPayload,
RawTrade) with site-specific numbers still in their wire form. The core converts them
into the immutable Depth, Ticker and Trade values defined here.

Design Principles:
- Frozen msgspec.Struct values, replaced whole on every refresh
- Exact Decimal arithmetic through Money, never floats
- Ladders sorted once at build time (asks ascending, bids descending)
"""

import time
from decimal import Decimal
from typing import Any, List, Optional, Tuple, Union

from msgspec import Struct

from depthfeed.infrastructure.exceptions import (
    EmptyBookError,
    IndexOutOfRangeError,
    MalformedMarketDataError,
)
from .enums import Side, TradeType
from .money import Money, to_decimal
from .types import CurrencyCode, RawNumber, SourceId

PAIR_DELIMITER = "<=>"


class CurrencyPair(Struct, frozen=True):
    """Traded market: amounts in base currency, prices in quote currency."""
    base: CurrencyCode
    quote: CurrencyCode

    def __post_init__(self):
        if not self.base or not self.quote:
            raise ValueError("Currency codes must be non-empty")
        if self.base == self.quote:
            raise ValueError(f"Base and quote currency must differ: {self.base}")

    @classmethod
    def from_string(cls, value: str) -> "CurrencyPair":
        """Parse the canonical 'BASE<=>QUOTE' form."""
        parts = value.split(PAIR_DELIMITER)
        if len(parts) != 2:
            raise ValueError(f"Cannot parse currency pair: {value!r}")
        base, quote = (part.strip().upper() for part in parts)
        if not base or not quote:
            raise ValueError(f"Cannot parse currency pair: {value!r}")
        return cls(CurrencyCode(base), CurrencyCode(quote))

    def invert(self) -> "CurrencyPair":
        return CurrencyPair(self.quote, self.base)

    def __str__(self) -> str:
        return f"{self.base}{PAIR_DELIMITER}{self.quote}"


class DepthOrder(Struct, frozen=True):
    """One price level of an order book side."""
    side: Side
    price: Money
    pair: CurrencyPair
    quantity: Money

    @property
    def sort_key(self) -> Decimal:
        # Best level first: lowest ask, highest bid
        return self.price.amount if self.side is Side.ASK else -self.price.amount

    def __lt__(self, other: "DepthOrder") -> bool:
        if not isinstance(other, DepthOrder) or other.side is not self.side:
            raise TypeError("Only orders of the same side can be ordered")
        return self.sort_key < other.sort_key

    def is_at_or_better(self, limit_price: Money) -> bool:
        if self.side is Side.ASK:
            return self.price <= limit_price
        return self.price >= limit_price


class RawDepthPayload(Struct, frozen=True):
    """
    Order book levels as extracted from a site-specific JSON shape.

    Each level is a sequence whose first two items are price and quantity
    in their wire representation; trailing items are ignored.
    """
    bids: List[Any]
    asks: List[Any]


class RawTickerPayload(Struct, frozen=True):
    """Ticker values in their wire representation. Missing values stay None."""
    last: Optional[RawNumber] = None
    bid: Optional[RawNumber] = None
    ask: Optional[RawNumber] = None
    high: Optional[RawNumber] = None
    low: Optional[RawNumber] = None
    volume: Optional[RawNumber] = None


def _parse_amount(raw: Any, field: str, currency: str, level: Any, allow_zero: bool = False) -> Money:
    try:
        value = to_decimal(raw)
    except ValueError:
        raise MalformedMarketDataError(f"Unparsable {field}", raw_value=level) from None
    if value < 0 or (value == 0 and not allow_zero):
        raise MalformedMarketDataError(f"Non-positive {field}", raw_value=level)
    return Money(value, CurrencyCode(currency))


class Depth(Struct, frozen=True):
    """
    Immutable order book snapshot for one pair from one source.

    bids are sorted by descending price, asks by ascending price.
    """
    pair: CurrencyPair
    source: SourceId
    bids: Tuple[DepthOrder, ...]
    asks: Tuple[DepthOrder, ...]
    observed_at: float

    @classmethod
    def build(cls, pair: CurrencyPair, source: str, raw_bids: List[Any], raw_asks: List[Any],
              observed_at: Optional[float] = None) -> "Depth":
        """
        Normalize raw levels into a sorted snapshot.

        Raises:
            MalformedMarketDataError: a level is not a (price, quantity) sequence,
                a value is not a finite decimal, or a value is not positive
        """
        try:
            bids = cls._build_side(Side.BID, pair, raw_bids)
            asks = cls._build_side(Side.ASK, pair, raw_asks)
        except MalformedMarketDataError as e:
            e.source = source
            e.pair = pair
            raise

        return cls(
            pair=pair,
            source=SourceId(source),
            bids=bids,
            asks=asks,
            observed_at=time.time() if observed_at is None else observed_at,
        )

    @classmethod
    def from_payload(cls, pair: CurrencyPair, source: str, payload: RawDepthPayload,
                     observed_at: Optional[float] = None) -> "Depth":
        return cls.build(pair, source, payload.bids, payload.asks, observed_at)

    @staticmethod
    def _build_side(side: Side, pair: CurrencyPair, raw_levels: Any) -> Tuple[DepthOrder, ...]:
        if raw_levels is None:
            return ()
        if isinstance(raw_levels, (str, bytes)) or not hasattr(raw_levels, '__iter__'):
            raise MalformedMarketDataError(f"{side.name} levels are not a sequence", raw_value=raw_levels)

        orders = []
        for level in raw_levels:
            if isinstance(level, (str, bytes, dict)) or not hasattr(level, '__getitem__') or len(level) < 2:
                raise MalformedMarketDataError("Level is not a (price, quantity) pair", raw_value=level)
            orders.append(DepthOrder(
                side=side,
                price=_parse_amount(level[0], "price", pair.quote, level),
                pair=pair,
                quantity=_parse_amount(level[1], "quantity", pair.base, level),
            ))
        orders.sort(key=lambda order: order.sort_key)
        return tuple(orders)

    def levels(self, side: Side) -> Tuple[DepthOrder, ...]:
        return self.bids if side is Side.BID else self.asks

    def size(self, side: Side) -> int:
        return len(self.levels(side))

    @property
    def bid_size(self) -> int:
        return len(self.bids)

    @property
    def ask_size(self) -> int:
        return len(self.asks)

    def best_bid(self) -> DepthOrder:
        if not self.bids:
            raise EmptyBookError("No bid levels", self.source, self.pair)
        return self.bids[0]

    def best_ask(self) -> DepthOrder:
        if not self.asks:
            raise EmptyBookError("No ask levels", self.source, self.pair)
        return self.asks[0]

    def level_at(self, side: Side, index: int) -> DepthOrder:
        levels = self.levels(side)
        if not 0 <= index < len(levels):
            raise IndexOutOfRangeError(
                f"{side.name} level {index} outside [0, {len(levels)})", self.source, self.pair
            )
        return levels[index]

    def volume_available_at_or_better(self, side: Side, limit_price: Union[Money, RawNumber]) -> Money:
        """
        Total quantity on `side` priced at or better than `limit_price`.

        For ASK that is every level priced <= limit (buying), for BID every
        level priced >= limit (selling). Returned in the base currency.
        """
        if not isinstance(limit_price, Money):
            limit_price = Money.of(limit_price, self.pair.quote)

        total = Money.zero(self.pair.base)
        for order in self.levels(side):
            if not order.is_at_or_better(limit_price):
                break
            total = total + order.quantity
        return total

    def spread(self) -> Money:
        return self.best_ask().price - self.best_bid().price

    def mid_price(self) -> Money:
        best_bid = self.best_bid().price
        return Money((best_bid.amount + self.best_ask().price.amount) / 2, best_bid.currency)


class Ticker(Struct, frozen=True):
    """Normalized ticker snapshot. Prices in quote currency, volume in base currency."""
    pair: CurrencyPair
    source: SourceId
    observed_at: float
    last: Optional[Money] = None
    bid: Optional[Money] = None
    ask: Optional[Money] = None
    high: Optional[Money] = None
    low: Optional[Money] = None
    volume: Optional[Money] = None

    @classmethod
    def build(cls, pair: CurrencyPair, source: str, payload: RawTickerPayload,
              observed_at: Optional[float] = None) -> "Ticker":
        def price(raw: Optional[RawNumber], field: str) -> Optional[Money]:
            if raw is None:
                return None
            return _parse_amount(raw, field, pair.quote, raw)

        try:
            volume = None
            if payload.volume is not None:
                volume = _parse_amount(payload.volume, "volume", pair.base, payload.volume, allow_zero=True)
            return cls(
                pair=pair,
                source=SourceId(source),
                observed_at=time.time() if observed_at is None else observed_at,
                last=price(payload.last, "last"),
                bid=price(payload.bid, "bid"),
                ask=price(payload.ask, "ask"),
                high=price(payload.high, "high"),
                low=price(payload.low, "low"),
                volume=volume,
            )
        except MalformedMarketDataError as e:
            e.source = source
            e.pair = pair
            raise


class RawTrade(Struct, frozen=True):
    """One executed trade in its wire representation. `timestamp` is unix seconds."""
    trade_id: str
    price: RawNumber
    quantity: RawNumber
    timestamp: float
    trade_type: Optional[TradeType] = None


class Trade(Struct, frozen=True):
    """Normalized executed trade. Price in quote currency, quantity in base currency."""
    pair: CurrencyPair
    source: SourceId
    trade_id: str
    price: Money
    quantity: Money
    timestamp: float
    trade_type: Optional[TradeType] = None

    @classmethod
    def build(cls, pair: CurrencyPair, source: str, raw: RawTrade) -> "Trade":
        try:
            return cls(
                pair=pair,
                source=SourceId(source),
                trade_id=raw.trade_id,
                price=_parse_amount(raw.price, "price", pair.quote, raw),
                quantity=_parse_amount(raw.quantity, "quantity", pair.base, raw),
                timestamp=raw.timestamp,
                trade_type=raw.trade_type,
            )
        except MalformedMarketDataError as e:
            e.source = source
            e.pair = pair
            raise

    @classmethod
    def build_all(cls, pair: CurrencyPair, source: str, raw_trades: List[RawTrade],
                  since: Optional[float] = None) -> Tuple["Trade", ...]:
        """
        Normalize a trade list, oldest first.

        Trades at or before `since` (unix seconds) are left out, so callers
        can pass the timestamp of the newest trade they already hold.
        """
        trades = [cls.build(pair, source, raw) for raw in raw_trades
                  if since is None or raw.timestamp > since]
        trades.sort(key=lambda trade: (trade.timestamp, trade.trade_id))
        return tuple(trades)
