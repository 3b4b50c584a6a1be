from dataclasses import dataclass
from typing import Optional

from msgspec import Struct

from depthfeed.exchanges.interfaces import MarketDataSource
from depthfeed.exchanges.structs import CurrencyPair, RequestKind, SourceId, SubscriptionState


class SubscriptionHandle(Struct, frozen=True):
    """Opaque reference to one (source, pair, kind) subscription of a DepthPoller."""
    subscription_id: int
    source_id: SourceId
    pair: CurrencyPair
    kind: RequestKind = RequestKind.DEPTH

    def __str__(self) -> str:
        if self.kind is RequestKind.DEPTH:
            return f"#{self.subscription_id} {self.source_id}:{self.pair}"
        return f"#{self.subscription_id} {self.source_id}:{self.pair} {self.kind.value}"


@dataclass
class Subscription:
    """
    Mutable scheduling state of a subscription.

    Owned by the poller; `in_flight` guarantees at most one fetch at a time.
    """
    handle: SubscriptionHandle
    source: MarketDataSource
    update_interval: float
    next_due: float
    state: SubscriptionState = SubscriptionState.SCHEDULED
    in_flight: bool = False
    consecutive_failures: int = 0
    total_fetches: int = 0
    total_failures: int = 0
    last_error: Optional[str] = None
    last_published_at: Optional[float] = None

    @property
    def source_id(self) -> SourceId:
        return self.handle.source_id

    @property
    def pair(self) -> CurrencyPair:
        return self.handle.pair

    @property
    def kind(self) -> RequestKind:
        return self.handle.kind

    @property
    def active(self) -> bool:
        return not self.state.is_terminal

    def is_due(self, now: float) -> bool:
        return self.active and not self.in_flight and now >= self.next_due
