"""
Console backend.

Writes are synchronous: one short line per record on stderr (or an injected
stream), so an async path would only add scheduling overhead.
"""

import sys
from datetime import datetime
from typing import Optional, TextIO

from ..formatters import format_text
from ..interfaces import LogBackend, LogLevel, LogRecord
from ..structs import ConsoleBackendConfig


class ConsoleBackend(LogBackend):

    def __init__(self, config: ConsoleBackendConfig, name: str = "console", stream: Optional[TextIO] = None):
        super().__init__(name, LogLevel[config.min_level.upper()], config.enabled)
        self.config = config
        self.handles_metrics = config.include_metrics
        self.stream = stream

    @property
    def _out(self) -> TextIO:
        # Resolved per write so pytest's capsys replacement of sys.stderr is honoured
        return self.stream or sys.stderr

    def level_label(self, level: LogLevel) -> str:
        return f"{level.name:<8}"

    def render(self, record: LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.timestamp).strftime("%H:%M:%S.%f")[:-3]
        return format_text(record, timestamp, self.level_label(record.level),
                           include_context=self.config.include_context,
                           max_message_length=self.config.max_message_length)

    async def write(self, record: LogRecord) -> None:
        self.write_sync(record)

    def write_sync(self, record: LogRecord) -> None:
        self._out.write(self.render(record) + "\n")

    async def flush(self) -> None:
        self._out.flush()


class ColorConsoleBackend(ConsoleBackend):
    """Console backend with ANSI colored level names."""

    COLORS = {
        LogLevel.DEBUG: "\033[36m",
        LogLevel.INFO: "\033[32m",
        LogLevel.WARNING: "\033[33m",
        LogLevel.ERROR: "\033[31m",
        LogLevel.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def level_label(self, level: LogLevel) -> str:
        return f"{self.COLORS[level]}{level.name:<8}{self.RESET}"
