"""
Source factory.

Builds MarketDataSource instances by registry name from configuration.
"""

from typing import Dict, List, Optional, Type

import aiohttp

from depthfeed.config.structs import FeedConfig, NetworkConfig, SourceConfig
from depthfeed.exchanges.integrations import (
    BitfinexMarketDataSource,
    BitstampMarketDataSource,
    KrakenMarketDataSource,
)
from depthfeed.exchanges.rest import RestMarketDataSource
from depthfeed.infrastructure.exceptions import ConfigurationError

SOURCE_REGISTRY: Dict[str, Type[RestMarketDataSource]] = {
    'kraken': KrakenMarketDataSource,
    'bitstamp': BitstampMarketDataSource,
    'bitfinex': BitfinexMarketDataSource,
}


def available_sources() -> List[str]:
    return sorted(SOURCE_REGISTRY)


def create_source(config: SourceConfig, network: Optional[NetworkConfig] = None,
                  session: Optional[aiohttp.ClientSession] = None) -> RestMarketDataSource:
    source_class = SOURCE_REGISTRY.get(config.name.lower())
    if source_class is None:
        raise ConfigurationError(
            f"Unknown source '{config.name}', available: {', '.join(available_sources())}",
            f"sources.{config.name}"
        )
    return source_class(config=config, network=network, session=session)


def create_sources(config: FeedConfig) -> List[RestMarketDataSource]:
    """One source per enabled entry of the configuration."""
    return [create_source(source_config, config.network) for source_config in config.enabled_sources()]
