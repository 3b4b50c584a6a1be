"""
Record routing.

Text and audit records go to the default backends, metric records only to
the metric backends. Routing tables are resolved once at construction.
"""

from typing import Dict, List

from .interfaces import LogBackend, LogRecord, LogRouter, LogType
from .structs import RouterConfig


class SimpleRouter(LogRouter):
    """Routes records by log type to named backends."""

    def __init__(self, backends: Dict[str, LogBackend], config: RouterConfig):
        self.backends = backends
        self.config = config
        self._default = [backends[name] for name in config.get_default_backends() if name in backends]
        self._metrics = [backends[name] for name in config.get_metric_backends() if name in backends]

    def get_backends(self, record: LogRecord) -> List[LogBackend]:
        if record.log_type == LogType.METRIC:
            return self._metrics
        return self._default


def create_router(backends: Dict[str, LogBackend], config: RouterConfig) -> LogRouter:
    return SimpleRouter(backends, config)
