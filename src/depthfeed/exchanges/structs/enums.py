from enum import Enum, IntEnum


class Side(IntEnum):
    """Order book side."""
    BID = 1
    ASK = 2

    @property
    def opposite(self) -> "Side":
        return Side.ASK if self is Side.BID else Side.BID


class RequestKind(Enum):
    """
    Kinds of public market data requests a source can serve.

    Rate limits are tracked separately per source and request kind.
    """
    DEPTH = "depth"
    TICKER = "ticker"
    TRADES = "trades"


class Capability(IntEnum):
    """Result of a capability query against a market data source."""
    UNSUPPORTED = 0
    SUPPORTED = 1


class TradeType(Enum):
    """Aggressor side of an executed trade."""
    BUY = "buy"
    SELL = "sell"


class SubscriptionState(IntEnum):
    """Lifecycle state of a polling subscription."""
    SCHEDULED = 0
    FETCHING = 1
    PUBLISHED = 2
    FAILED = 3
    STOPPED = 4    # fatal error, no further fetches
    CANCELLED = 5  # unsubscribed

    @property
    def is_terminal(self) -> bool:
        return self in (SubscriptionState.STOPPED, SubscriptionState.CANCELLED)
