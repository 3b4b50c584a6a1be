"""
Depth Feed Entry Point

Polls order books of the configured sources and logs top of book on every
published snapshot.

    python -m depthfeed --config config.yaml --duration 60
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from depthfeed.config import FeedConfig, load_config
from depthfeed.exchanges.factory import available_sources, create_sources
from depthfeed.exchanges.structs import CurrencyPair, Depth, SourceId
from depthfeed.infrastructure.exceptions import ConfigurationError, MarketDataError
from depthfeed.infrastructure.logging import LoggerFactory, configure_logging, get_logger
from depthfeed.polling import DepthPoller, RequestGate


class DepthFeedCLI:
    """Command-line interface for the depth feed."""

    def __init__(self):
        self.logger = get_logger('depthfeed.cli')
        self.poller: Optional[DepthPoller] = None
        self._shutdown_event = asyncio.Event()

    def setup_signal_handlers(self) -> None:
        def signal_handler(signum, frame):
            self.logger.info("Received signal, initiating shutdown", signal=signum)
            self._shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def on_depth(self, source_id: SourceId, pair: CurrencyPair, depth: Depth) -> None:
        if depth.bid_size and depth.ask_size:
            self.logger.info("Top of book", source=source_id, pair=pair,
                             best_bid=str(depth.best_bid().price.amount),
                             best_ask=str(depth.best_ask().price.amount),
                             spread=str(depth.spread().amount),
                             bids=depth.bid_size, asks=depth.ask_size)
        else:
            self.logger.warning("One-sided book", source=source_id, pair=pair,
                                bids=depth.bid_size, asks=depth.ask_size)

    async def run_feed(self, config: FeedConfig, duration: Optional[float] = None,
                       pairs_override: Optional[List[CurrencyPair]] = None) -> None:
        """
        Subscribe every configured pair and poll until shutdown or `duration` elapses.

        Args:
            config: Loaded feed configuration
            duration: Seconds to run, None runs until a signal arrives
            pairs_override: Pairs to subscribe on every source instead of configured ones
        """
        sources = create_sources(config)
        if not sources:
            raise ConfigurationError("No enabled sources configured", "sources")

        self.poller = DepthPoller(RequestGate(), config.polling)
        self.poller.add_listener(self.on_depth)

        try:
            for source_config, source in zip(config.enabled_sources(), sources):
                pairs = pairs_override or source_config.currency_pairs()
                for pair in pairs:
                    try:
                        await self.poller.subscribe(source, pair)
                    except MarketDataError as e:
                        self.logger.error("Subscription failed", source=source.source_id, pair=pair,
                                          error_type=type(e).__name__, error_message=e.message)

            self.logger.info("Depth feed running", sources=len(sources),
                             subscriptions=len(self.poller.subscriptions()), duration=duration)
            await self.poller.start()
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=duration)
            except asyncio.TimeoutError:
                self.logger.info("Run duration elapsed", duration=duration)
        finally:
            await self.poller.stop()
            for source in sources:
                await source.close()

    def parse_args(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        parser = argparse.ArgumentParser(
            prog="python -m depthfeed",
            description="Rate-limited order book polling for cryptocurrency exchanges",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=f"""
Examples:
  # Run with automatic config detection
  python -m depthfeed

  # Poll for one minute
  python -m depthfeed --config config.yaml --duration 60

  # Override pairs on every enabled source
  python -m depthfeed --pairs "BTC<=>USD,ETH<=>USD"

Available sources: {', '.join(available_sources())}
            """
        )
        parser.add_argument("--config", type=str, default=None,
                            help="Path to config.yaml (default: search standard locations)")
        parser.add_argument("--duration", type=float, default=None,
                            help="Seconds to run before shutting down (default: until interrupted)")
        parser.add_argument("--pairs", type=str, default=None,
                            help="Comma-separated pairs to poll on every source, e.g. BTC<=>USD")
        return parser.parse_args(argv)

    async def main(self, argv: Optional[List[str]] = None) -> int:
        args = self.parse_args(argv)

        try:
            config = load_config(args.config)
            if config.logging is not None:
                configure_logging(config.logging)
                self.logger = get_logger('depthfeed.cli')
            pairs_override = None
            if args.pairs:
                pairs_override = [CurrencyPair.from_string(item) for item in args.pairs.split(",")]
        except (ConfigurationError, ValueError) as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return 2

        self.setup_signal_handlers()

        try:
            await self.run_feed(config, args.duration, pairs_override)
        except ConfigurationError as e:
            self.logger.error("Configuration error", error_message=str(e))
            return 2
        finally:
            await LoggerFactory.flush_all()
        return 0


def main() -> None:
    """Entry point for command line execution."""
    cli = DepthFeedCLI()
    sys.exit(asyncio.run(cli.main()))


if __name__ == "__main__":
    main()
