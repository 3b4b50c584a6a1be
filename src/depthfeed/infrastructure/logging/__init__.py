"""
Logging system.

Usage:
    from depthfeed.infrastructure.logging import get_logger, get_source_logger

    logger = get_logger('depthfeed.poller')
    logger.info("Poller started", subscriptions=3)

    logger = get_source_logger('kraken', 'rest')
    logger.warning("Depth request failed", pair="BTC<=>USD", status=502)

    logger.metric("depth_levels", 200, source="kraken")
"""

from .interfaces import LogLevel, LogType, LogRecord, LogBackend, LogRouter, LoggerInterface
from .feed_logger import FeedLogger, LoggingTimer
from .factory import LoggerFactory, get_logger, get_source_logger, configure_logging
from .structs import LoggingConfig, ConsoleBackendConfig, FileBackendConfig, DispatchConfig, RouterConfig
from .router import SimpleRouter, create_router
from .backends import ConsoleBackend, ColorConsoleBackend, FileBackend

__all__ = [
    'LogLevel',
    'LogType',
    'LogRecord',
    'LogBackend',
    'LogRouter',
    'LoggerInterface',
    'FeedLogger',
    'LoggingTimer',
    'LoggerFactory',
    'get_logger',
    'get_source_logger',
    'configure_logging',
    'LoggingConfig',
    'ConsoleBackendConfig',
    'FileBackendConfig',
    'DispatchConfig',
    'RouterConfig',
    'SimpleRouter',
    'create_router',
    'ConsoleBackend',
    'ColorConsoleBackend',
    'FileBackend',
]
