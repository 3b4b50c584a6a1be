from .types import CurrencyCode, SourceId, RawNumber
from .enums import Side, RequestKind, Capability, SubscriptionState, TradeType
from .money import Money, to_decimal
from .common import (
    PAIR_DELIMITER,
    CurrencyPair,
    DepthOrder,
    Depth,
    Ticker,
    RawDepthPayload,
    RawTickerPayload,
    RawTrade,
    Trade,
)

__all__ = [
    'CurrencyCode',
    'SourceId',
    'RawNumber',
    'Side',
    'RequestKind',
    'Capability',
    'SubscriptionState',
    'TradeType',
    'Money',
    'to_decimal',
    'PAIR_DELIMITER',
    'CurrencyPair',
    'DepthOrder',
    'Depth',
    'Ticker',
    'RawDepthPayload',
    'RawTickerPayload',
    'RawTrade',
    'Trade',
]
