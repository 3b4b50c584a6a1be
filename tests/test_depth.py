"""
Unit tests for Depth, Ticker and Trade normalization and queries.
"""

from decimal import Decimal

import pytest

from depthfeed.exchanges.structs import (
    CurrencyPair,
    Depth,
    Money,
    RawDepthPayload,
    RawTickerPayload,
    RawTrade,
    Side,
    Ticker,
    Trade,
    TradeType,
)
from depthfeed.infrastructure.exceptions import (
    EmptyBookError,
    IndexOutOfRangeError,
    MalformedMarketDataError,
)


@pytest.fixture
def pair():
    return CurrencyPair("BTC", "USD")


@pytest.fixture
def depth(pair):
    return Depth.build(
        pair, "kraken",
        raw_bids=[["99", "1.0"], ["100", "0.5"], ["98", "3"]],
        raw_asks=[["102", "1.0"], ["101", "2.0"], ["103", "4"]],
        observed_at=1700000000.0,
    )


def price_qty(order):
    return order.price.amount, order.quantity.amount


class TestDepthBuild:
    """Test normalization of raw levels"""

    def test_unsorted_levels_are_sorted(self, pair):
        depth = Depth.build(pair, "kraken",
                            raw_bids=[[99, 1.0], [100, 0.5]],
                            raw_asks=[[102, 1.0], [101, 2.0]])

        assert [price_qty(o) for o in depth.asks] == [(Decimal(101), Decimal("2.0")), (Decimal(102), Decimal("1.0"))]
        assert [price_qty(o) for o in depth.bids] == [(Decimal(100), Decimal("0.5")), (Decimal(99), Decimal("1.0"))]
        assert price_qty(depth.best_ask()) == (Decimal(101), Decimal("2.0"))
        assert price_qty(depth.best_bid()) == (Decimal(100), Decimal("0.5"))

    def test_negative_quantity_is_malformed(self, pair):
        with pytest.raises(MalformedMarketDataError) as exc_info:
            Depth.build(pair, "kraken", raw_bids=[["100", "-1"]], raw_asks=[])

        assert exc_info.value.raw_value == ["100", "-1"]
        assert exc_info.value.source == "kraken"
        assert exc_info.value.pair == pair

    @pytest.mark.parametrize("level", [
        ["0", "1"],
        ["100", "0"],
        ["abc", "1"],
        ["100", "NaN"],
        ["100"],
        "100,1",
        {"price": "100", "amount": "1"},
        None,
    ])
    def test_invalid_levels_are_malformed(self, pair, level):
        with pytest.raises(MalformedMarketDataError):
            Depth.build(pair, "bitstamp", raw_bids=[], raw_asks=[level])

    def test_levels_not_a_sequence(self, pair):
        with pytest.raises(MalformedMarketDataError):
            Depth.build(pair, "bitstamp", raw_bids="100,1", raw_asks=[])

    def test_extra_level_fields_ignored(self, pair):
        depth = Depth.build(pair, "kraken", raw_bids=[["100.5", "2", 1700000000]], raw_asks=[])
        assert price_qty(depth.best_bid()) == (Decimal("100.5"), Decimal("2"))

    def test_currencies_follow_pair(self, depth):
        best_ask = depth.best_ask()
        assert best_ask.price.currency == "USD"
        assert best_ask.quantity.currency == "BTC"
        assert best_ask.pair == depth.pair

    def test_empty_sides_allowed(self, pair):
        depth = Depth.build(pair, "kraken", raw_bids=[], raw_asks=None)
        assert depth.bid_size == 0
        assert depth.ask_size == 0

    def test_from_payload(self, pair):
        payload = RawDepthPayload(bids=[["100", "1"]], asks=[["101", "1"]])
        depth = Depth.from_payload(pair, "bitfinex", payload, observed_at=5.0)
        assert depth.source == "bitfinex"
        assert depth.observed_at == 5.0
        assert depth.bid_size == depth.ask_size == 1

    def test_observed_at_defaults_to_now(self, pair):
        depth = Depth.build(pair, "kraken", raw_bids=[], raw_asks=[])
        assert depth.observed_at > 1_600_000_000


class TestDepthQueries:
    """Test queries on a built snapshot"""

    def test_sizes(self, depth):
        assert depth.size(Side.BID) == 3
        assert depth.size(Side.ASK) == 3
        assert depth.bid_size == depth.ask_size == 3

    def test_level_at(self, depth):
        assert depth.level_at(Side.ASK, 0) == depth.best_ask()
        assert depth.level_at(Side.BID, 0) == depth.best_bid()
        assert depth.level_at(Side.ASK, 2).price == Money.of(103, "USD")

    @pytest.mark.parametrize("index", [3, 10, -1])
    def test_level_at_out_of_range(self, depth, index):
        with pytest.raises(IndexOutOfRangeError):
            depth.level_at(Side.BID, index)

    def test_out_of_range_is_index_error(self, depth):
        with pytest.raises(IndexError):
            depth.level_at(Side.ASK, 99)

    def test_best_levels_on_empty_side(self, pair):
        depth = Depth.build(pair, "kraken", raw_bids=[], raw_asks=[["101", "1"]])
        with pytest.raises(EmptyBookError):
            depth.best_bid()
        assert depth.best_ask().price == Money.of(101, "USD")

    def test_volume_at_or_better_asks(self, depth):
        assert depth.volume_available_at_or_better(Side.ASK, Money.of(102, "USD")) == Money.of(3, "BTC")
        assert depth.volume_available_at_or_better(Side.ASK, "103") == Money.of(7, "BTC")
        assert depth.volume_available_at_or_better(Side.ASK, 100) == Money.zero("BTC")

    def test_volume_at_or_better_bids(self, depth):
        assert depth.volume_available_at_or_better(Side.BID, Money.of(99, "USD")) == Money.of("1.5", "BTC")
        assert depth.volume_available_at_or_better(Side.BID, 101) == Money.zero("BTC")

    def test_volume_rejects_limit_in_wrong_currency(self, depth):
        with pytest.raises(ValueError):
            depth.volume_available_at_or_better(Side.ASK, Money.of(102, "EUR"))

    def test_spread_and_mid(self, depth):
        assert depth.spread() == Money.of(1, "USD")
        assert depth.mid_price() == Money.of("100.5", "USD")

    def test_snapshot_is_immutable(self, depth):
        with pytest.raises(AttributeError):
            depth.bids = ()


class TestTicker:
    """Test ticker normalization"""

    def test_build(self, pair):
        payload = RawTickerPayload(last="100.5", bid="100.4", ask="100.6", high="110", low="90", volume="1234.5")
        ticker = Ticker.build(pair, "bitstamp", payload, observed_at=1.0)

        assert ticker.last == Money.of("100.5", "USD")
        assert ticker.volume == Money.of("1234.5", "BTC")
        assert ticker.high.currency == "USD"

    def test_missing_values_stay_none(self, pair):
        ticker = Ticker.build(pair, "bitfinex", RawTickerPayload(last="1"))
        assert ticker.bid is None
        assert ticker.volume is None

    def test_zero_volume_allowed(self, pair):
        ticker = Ticker.build(pair, "kraken", RawTickerPayload(last="1", volume="0"))
        assert ticker.volume == Money.zero("BTC")

    def test_non_positive_price_is_malformed(self, pair):
        with pytest.raises(MalformedMarketDataError) as exc_info:
            Ticker.build(pair, "kraken", RawTickerPayload(last="0"))
        assert exc_info.value.source == "kraken"


class TestTrade:
    """Test trade list normalization"""

    def test_build_all_sorts_and_filters(self, pair):
        raw = [
            RawTrade(trade_id="2", price="101", quantity="0.5", timestamp=20.0, trade_type=TradeType.SELL),
            RawTrade(trade_id="1", price="100", quantity="1", timestamp=10.0, trade_type=TradeType.BUY),
            RawTrade(trade_id="0", price="99", quantity="1", timestamp=5.0),
        ]

        trades = Trade.build_all(pair, "kraken", raw, since=5.0)

        assert [trade.trade_id for trade in trades] == ["1", "2"]
        assert trades[1].price == Money.of(101, "USD")
        assert trades[1].quantity == Money.of("0.5", "BTC")
        assert trades[0].source == "kraken"

    def test_malformed_trade(self, pair):
        raw = [RawTrade(trade_id="1", price="abc", quantity="1", timestamp=10.0)]

        with pytest.raises(MalformedMarketDataError) as exc_info:
            Trade.build_all(pair, "bitstamp", raw)
        assert exc_info.value.source == "bitstamp"
        assert exc_info.value.pair == pair
