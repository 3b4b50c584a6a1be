"""
Command-line entry point tests.

run_feed is exercised with a scripted source patched in for the factory, so
no network access or signal handlers are involved.
"""

import pytest

from depthfeed.__main__ import DepthFeedCLI
from depthfeed.config import FeedConfig, PollingConfig, SourceConfig
from depthfeed.exchanges.structs import CurrencyPair
from depthfeed.infrastructure.exceptions import ConfigurationError

from tests.mocks import FakeMarketDataSource, depth_payload


class TestDepthFeedCLI:
    """Test argument parsing and the feed run loop"""

    def test_parse_args(self):
        args = DepthFeedCLI().parse_args(["--config", "feed.yaml", "--duration", "2.5", "--pairs", "BTC<=>USD"])

        assert args.config == "feed.yaml"
        assert args.duration == 2.5
        assert args.pairs == "BTC<=>USD"

    def test_parse_args_defaults(self):
        args = DepthFeedCLI().parse_args([])

        assert args.config is None
        assert args.duration is None

    @pytest.mark.asyncio
    async def test_missing_config_exit_code(self, tmp_path):
        assert await DepthFeedCLI().main(["--config", str(tmp_path / "absent.yaml")]) == 2

    @pytest.mark.asyncio
    async def test_invalid_pairs_exit_code(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("environment: test\n")

        assert await DepthFeedCLI().main(["--config", str(config_file), "--pairs", "BTCUSD"]) == 2

    @pytest.mark.asyncio
    async def test_no_enabled_sources(self):
        with pytest.raises(ConfigurationError):
            await DepthFeedCLI().run_feed(FeedConfig(), duration=0.01)

    @pytest.mark.asyncio
    async def test_run_feed_polls_until_duration(self, monkeypatch, btc_usd):
        source = FakeMarketDataSource("kraken", pairs=[btc_usd])
        source.queue(btc_usd, depth_payload(bids=[(100, 1)], asks=[(101, 1)]))
        monkeypatch.setattr("depthfeed.__main__.create_sources", lambda config: [source])
        config = FeedConfig(
            polling=PollingConfig(tick_interval=0.01),
            sources={"kraken": SourceConfig(name="kraken", pairs=["BTC<=>USD", "DOGE<=>USD"])},
        )
        cli = DepthFeedCLI()

        await cli.run_feed(config, duration=0.1)

        assert source.fetch_calls == [btc_usd]
        assert source.closed
        assert cli.poller.latest_depth("kraken", btc_usd) is not None
        # Unlisted pair is reported and skipped
        assert [handle.pair for handle in cli.poller.subscriptions()] == [btc_usd]

    @pytest.mark.asyncio
    async def test_pairs_override(self, monkeypatch, btc_usd, eth_usd):
        source = FakeMarketDataSource("kraken", pairs=[btc_usd, eth_usd])
        monkeypatch.setattr("depthfeed.__main__.create_sources", lambda config: [source])
        config = FeedConfig(sources={"kraken": SourceConfig(name="kraken", pairs=["BTC<=>USD"])})
        cli = DepthFeedCLI()

        await cli.run_feed(config, duration=0.01, pairs_override=[CurrencyPair("ETH", "USD")])

        assert [handle.pair for handle in cli.poller.subscriptions()] == [eth_usd]

    @pytest.mark.asyncio
    async def test_main_flushes_every_logger_on_exit(self, monkeypatch, tmp_path, btc_usd):
        log_file = tmp_path / "feed.log"
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "environment: test\n"
            "polling:\n"
            "  tick_interval: 0.01\n"
            "sources:\n"
            "  kraken:\n"
            "    pairs: [\"BTC<=>USD\"]\n"
            "logging:\n"
            "  file:\n"
            f"    path: {log_file}\n"
            "    buffer_size: 1000\n"
            "    flush_interval: 60.0\n"
        )
        source = FakeMarketDataSource("kraken", pairs=[btc_usd])
        monkeypatch.setattr("depthfeed.__main__.create_sources", lambda config: [source])
        cli = DepthFeedCLI()
        monkeypatch.setattr(cli, "setup_signal_handlers", lambda: None)

        assert await cli.main(["--config", str(config_file), "--duration", "0.05"]) == 0

        content = log_file.read_text()
        assert "Depth feed running" in content
        assert "Depth poller stopped" in content
