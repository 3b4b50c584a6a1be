"""
Pytest configuration and shared fixtures for depth feed tests.

Provides quiet test logging, a manual clock and scripted market data sources
so polling behaviour can be walked through without network access or sleeps.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Configure test environment
os.environ['ENVIRONMENT'] = 'test'

from depthfeed.exchanges.structs import CurrencyPair
from depthfeed.infrastructure.logging.factory import LoggerFactory
from depthfeed.infrastructure.logging.structs import LoggingConfig

from tests.mocks import FakeMarketDataSource, ManualClock


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Set up test-appropriate logging configuration."""
    LoggerFactory.reset(LoggingConfig.for_environment("test"))
    yield
    LoggerFactory.reset()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def btc_usd():
    return CurrencyPair.from_string("BTC<=>USD")


@pytest.fixture
def eth_usd():
    return CurrencyPair.from_string("ETH<=>USD")


@pytest.fixture
def kraken_like(btc_usd, eth_usd):
    """Scripted source listing BTC/USD and ETH/USD with a 15s minimum interval."""
    return FakeMarketDataSource("kraken", pairs=[btc_usd, eth_usd], interval=15.0)
