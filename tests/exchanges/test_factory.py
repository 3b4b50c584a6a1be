"""
Source factory tests.
"""

import pytest

from depthfeed.config import FeedConfig, SourceConfig
from depthfeed.exchanges.factory import available_sources, create_source, create_sources
from depthfeed.exchanges.integrations import BitstampMarketDataSource, KrakenMarketDataSource
from depthfeed.infrastructure.exceptions import ConfigurationError


class TestSourceFactory:
    """Test building sources from configuration"""

    def test_available_sources(self):
        assert available_sources() == ["bitfinex", "bitstamp", "kraken"]

    def test_create_source_case_insensitive(self):
        source = create_source(SourceConfig(name="Kraken"))
        assert isinstance(source, KrakenMarketDataSource)
        assert source.source_id == "kraken"

    def test_unknown_source(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_source(SourceConfig(name="mtgox"))
        assert exc_info.value.setting_name == "sources.mtgox"

    def test_create_sources_skips_disabled(self):
        config = FeedConfig(sources={
            "kraken": SourceConfig(name="kraken", enabled=False),
            "bitstamp": SourceConfig(name="bitstamp", pairs=["BTC<=>USD"]),
        })

        sources = create_sources(config)

        assert len(sources) == 1
        assert isinstance(sources[0], BitstampMarketDataSource)
