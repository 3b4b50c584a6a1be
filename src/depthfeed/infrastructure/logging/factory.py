"""
Logger factory.

Loggers are created once per name from the active LoggingConfig and cached,
so components simply do `self.logger = get_logger('depthfeed.poller')`.
Without an explicit configure_logging() call the defaults follow the
ENVIRONMENT variable (dev, prod or test).
"""

import os
from typing import Dict, Optional

from .backends.console import ColorConsoleBackend, ConsoleBackend
from .backends.file import FileBackend
from .feed_logger import FeedLogger
from .interfaces import LogBackend, LoggerInterface, LogLevel
from .router import create_router
from .structs import LoggingConfig, RouterConfig


def build_backends(config: LoggingConfig) -> Dict[str, LogBackend]:
    backends: Dict[str, LogBackend] = {}
    if config.console is not None and config.console.enabled:
        console_class = ColorConsoleBackend if config.console.color else ConsoleBackend
        backends["console"] = console_class(config.console)
    if config.file is not None and config.file.enabled:
        backends["file"] = FileBackend(config.file)
    return backends


class LoggerFactory:

    _cached_loggers: Dict[str, FeedLogger] = {}
    _default_config: Optional[LoggingConfig] = None

    @classmethod
    def create_logger(cls, name: str, config: Optional[LoggingConfig] = None) -> FeedLogger:
        cached = cls._cached_loggers.get(name)
        if cached is not None:
            return cached

        config = config or cls.get_default_config()
        backends = build_backends(config)
        logger = FeedLogger(
            name,
            list(backends.values()),
            create_router(backends, config.router or RouterConfig()),
            dispatch=config.dispatch,
            propagate=config.propagate,
            default_context=config.default_context,
        )
        cls._cached_loggers[name] = logger
        return logger

    @classmethod
    def get_default_config(cls) -> LoggingConfig:
        if cls._default_config is None:
            cls._default_config = LoggingConfig.for_environment(os.getenv("ENVIRONMENT", "dev"))
        return cls._default_config

    @classmethod
    def configure(cls, config: LoggingConfig) -> None:
        """
        Make `config` the default for loggers created from now on.

        Existing logger objects keep their backends. The cache is cleared, so
        components that call get_logger() again receive reconfigured loggers.
        """
        config.validate()
        cls._cached_loggers.clear()
        cls._default_config = config

    @classmethod
    def override_logger(cls, name: str, min_level: Optional[str] = None,
                        enabled: Optional[bool] = None) -> bool:
        """
        Adjust the backends of a cached logger, e.g. to quieten one adapter:

            LoggerFactory.override_logger("kraken.rest", min_level="ERROR")

        Returns False when no logger of that name has been created.
        """
        logger = cls._cached_loggers.get(name)
        if logger is None:
            return False
        for backend in logger.backends:
            if min_level is not None:
                backend.min_level = LogLevel[min_level.upper()]
            if enabled is not None:
                backend.enabled = enabled
        return True

    @classmethod
    async def flush_all(cls) -> None:
        """Deliver queued records of every cached logger, e.g. before the process exits."""
        for logger in list(cls._cached_loggers.values()):
            await logger.flush()

    @classmethod
    def reset(cls, config: Optional[LoggingConfig] = None) -> None:
        """Drop cached loggers and set (or clear) the default configuration."""
        cls._cached_loggers.clear()
        cls._default_config = config


def get_logger(name: str) -> LoggerInterface:
    return LoggerFactory.create_logger(name)


def get_source_logger(source: str, component: Optional[str] = None) -> LoggerInterface:
    """Logger named after a market data source, e.g. `kraken.rest`."""
    return get_logger(f"{source}.{component}" if component else source)


def configure_logging(config: LoggingConfig) -> None:
    LoggerFactory.configure(config)
