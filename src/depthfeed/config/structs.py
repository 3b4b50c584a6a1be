from typing import Dict, List, Optional

from msgspec import Struct, field

from depthfeed.exchanges.structs import CurrencyPair
from depthfeed.infrastructure.exceptions import ConfigurationError
from depthfeed.infrastructure.logging.structs import LoggingConfig

VALID_ENVIRONMENTS = ('dev', 'prod', 'test')


class NetworkConfig(Struct, frozen=True):
    """
    HTTP transport settings shared by all REST sources.

    Attributes:
        request_timeout: Total HTTP request timeout in seconds
        connect_timeout: Connection timeout in seconds
        max_connections: Connection pool size per source session
    """
    request_timeout: float = 10.0
    connect_timeout: float = 5.0
    max_connections: int = 10

    def validate(self) -> None:
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive", "network.request_timeout")
        if self.connect_timeout <= 0:
            raise ConfigurationError("connect_timeout must be positive", "network.connect_timeout")
        if self.max_connections <= 0:
            raise ConfigurationError("max_connections must be positive", "network.max_connections")


class PollingConfig(Struct, frozen=True):
    """
    Depth poller settings.

    Attributes:
        tick_interval: Seconds between scheduling passes
        fetch_timeout: Per-fetch timeout in seconds
        backoff_base: First retry delay after an unavailable source, doubled per
            consecutive failure and capped at the subscription update interval
    """
    tick_interval: float = 0.5
    fetch_timeout: float = 10.0
    backoff_base: float = 1.0

    def validate(self) -> None:
        if self.tick_interval <= 0:
            raise ConfigurationError("tick_interval must be positive", "polling.tick_interval")
        if self.fetch_timeout <= 0:
            raise ConfigurationError("fetch_timeout must be positive", "polling.fetch_timeout")
        if self.backoff_base <= 0:
            raise ConfigurationError("backoff_base must be positive", "polling.backoff_base")


class SourceConfig(Struct, frozen=True):
    """
    One market data source.

    Attributes:
        name: Registry name of the source (kraken, bitstamp, bitfinex)
        enabled: Whether the source is built at all
        base_url: Override of the adapter's public API URL
        min_request_interval: Override of the adapter's minimum request interval
        update_interval: Polling cadence for subscriptions on this source
        pairs: Pairs to subscribe, in BASE<=>QUOTE form
    """
    name: str
    enabled: bool = True
    base_url: Optional[str] = None
    min_request_interval: Optional[float] = None
    update_interval: Optional[float] = None
    pairs: List[str] = []

    def validate(self) -> None:
        if self.min_request_interval is not None and self.min_request_interval < 0:
            raise ConfigurationError("min_request_interval cannot be negative",
                                     f"sources.{self.name}.min_request_interval")
        if self.update_interval is not None and self.update_interval <= 0:
            raise ConfigurationError("update_interval must be positive",
                                     f"sources.{self.name}.update_interval")
        for pair in self.pairs:
            try:
                CurrencyPair.from_string(pair)
            except ValueError as e:
                raise ConfigurationError(str(e), f"sources.{self.name}.pairs") from e

    def currency_pairs(self) -> List[CurrencyPair]:
        return [CurrencyPair.from_string(pair) for pair in self.pairs]


class FeedConfig(Struct, frozen=True):
    """Complete configuration of a depth feed."""
    environment: str = "dev"
    network: NetworkConfig = field(default_factory=NetworkConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    sources: Dict[str, SourceConfig] = {}
    logging: Optional[LoggingConfig] = None

    def validate(self) -> None:
        if self.environment not in VALID_ENVIRONMENTS:
            raise ConfigurationError(f"Invalid environment '{self.environment}'", "environment")
        self.network.validate()
        self.polling.validate()
        for source in self.sources.values():
            source.validate()
        if self.logging is not None:
            try:
                self.logging.validate()
            except ValueError as e:
                raise ConfigurationError(str(e), "logging") from e

    def enabled_sources(self) -> List[SourceConfig]:
        return [source for source in self.sources.values() if source.enabled]
