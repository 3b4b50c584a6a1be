"""
Logging contracts: records, backends, routing and the logger API.

A log call only builds a LogRecord. Formatting and I/O belong to backends,
which the router picks per record.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional


class LogLevel(IntEnum):
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(IntEnum):
    TEXT = 1
    METRIC = 2    # latency, counters, gauges
    AUDIT = 3     # subscription lifecycle


@dataclass
class LogRecord:
    """
    One log event.

    `source`, `pair` and `correlation_id` are taken out of the call's keyword
    context so every backend renders them in the same place. Metric records
    carry their keyword arguments as `metric_tags` and leave `context` empty.
    """
    level: LogLevel
    log_type: LogType
    logger_name: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)
    source: Optional[str] = None
    pair: Optional[str] = None
    correlation_id: Optional[str] = None
    metric_name: Optional[str] = None
    metric_value: Optional[float] = None
    metric_tags: Optional[Dict[str, Any]] = None

    @property
    def is_metric(self) -> bool:
        return self.log_type == LogType.METRIC


class LogBackend(ABC):
    """
    Destination for log records.

    `accepts` applies the enabled flag and the level threshold. Metric
    records bypass the threshold and go to backends with `handles_metrics`.
    A backend disables itself after `max_failures` write errors.
    """

    handles_metrics = True
    max_failures = 10

    def __init__(self, name: str, min_level: LogLevel = LogLevel.DEBUG, enabled: bool = True):
        self.name = name
        self.min_level = min_level
        self.enabled = enabled
        self.failures = 0

    def accepts(self, record: LogRecord) -> bool:
        if not self.enabled:
            return False
        if record.is_metric:
            return self.handles_metrics
        return record.level >= self.min_level

    @abstractmethod
    async def write(self, record: LogRecord) -> None:
        ...

    @abstractmethod
    def write_sync(self, record: LogRecord) -> None:
        """Blocking write, used when no event loop is running."""

    async def flush(self) -> None:
        pass

    def record_failure(self, error: Exception) -> None:
        self.failures += 1
        if self.failures >= self.max_failures and self.enabled:
            self.enabled = False
            print(f"Log backend '{self.name}' disabled after {self.failures} failures, last: {error!r}")


class LogRouter(ABC):

    @abstractmethod
    def get_backends(self, record: LogRecord) -> List[LogBackend]:
        ...


class LoggerInterface(ABC):
    """
    Logger API components receive as `self.logger`.

    Keyword arguments become record context, e.g.
    `logger.warning("Depth request failed", source="kraken", status=502)`.
    """

    @abstractmethod
    def debug(self, msg: str, **context) -> None: ...

    @abstractmethod
    def info(self, msg: str, **context) -> None: ...

    @abstractmethod
    def warning(self, msg: str, **context) -> None: ...

    @abstractmethod
    def error(self, msg: str, **context) -> None: ...

    @abstractmethod
    def critical(self, msg: str, **context) -> None: ...

    @abstractmethod
    def metric(self, name: str, value: float, **tags) -> None: ...

    @abstractmethod
    def latency(self, operation: str, duration_ms: float, **tags) -> None:
        """Metric named `<operation>_latency_ms`."""

    @abstractmethod
    def counter(self, name: str, value: int = 1, **tags) -> None:
        """Metric named `<name>_count`."""

    @abstractmethod
    def audit(self, event: str, **context) -> None:
        """Lifecycle event such as a subscription being created or stopped."""

    @abstractmethod
    def set_context(self, **context) -> None:
        """Context attached to every later record of this logger."""

    @abstractmethod
    async def flush(self) -> None: ...
